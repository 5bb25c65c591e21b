"""CLI job to fill missing or placeholder listing addresses by reverse geocoding."""

import argparse
import logging
import time
from functools import partial
from typing import Any, Callable, Dict, Optional

from laundromat_etl.core import db
from laundromat_etl.core.asset_cache import JsonCache, geocode_filename
from laundromat_etl.core.batch import Handler, TableSource
from laundromat_etl.core.config import Settings, get_settings
from laundromat_etl.core.models import BatchResult, GeocodedAddress, Outcome
from laundromat_etl.etl.geocoding import address_fields, needs_address
from laundromat_etl.jobs.common import add_batch_arguments, execute, run_cli
from laundromat_etl.vendors import google_places

logger = logging.getLogger(__name__)

JOB_NAME = "geocode"


class GeocodeError(RuntimeError):
    """Raised when a coordinate resolves to nothing usable as an address."""


class Geocoder:
    """Reverse geocoding backed by a JSON file per coordinate; cached answers cost no request."""

    def __init__(
        self,
        settings: Settings,
        api_key: str,
        *,
        delay_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key
        self.cache = JsonCache(settings.geocode_cache_dir)
        self.delay_seconds = settings.request_delay if delay_seconds is None else delay_seconds
        self._sleep = sleep
        self._calls = 0

    def _pause(self) -> None:
        if self._calls and self.delay_seconds > 0:
            self._sleep(self.delay_seconds)
        self._calls += 1

    def lookup(self, lat: float, lng: float) -> Optional[GeocodedAddress]:
        filename = geocode_filename(lat, lng)
        payload = self.cache.load(filename)
        if payload is not None:
            logger.debug("Using cached geocoding result for %s,%s", lat, lng)
        else:
            self._pause()
            payload = google_places.reverse_geocode(lat, lng, self.api_key)
            if payload.get("status") != "OK":
                logger.info("No address found at %s,%s", lat, lng)
                return None
            self.cache.store(filename, payload)
        return GeocodedAddress.from_payload(payload)


def make_handler(geocoder: Geocoder) -> Handler:
    def geocode_listing(conn, listing: Dict[str, Any]) -> Outcome:
        if not needs_address(listing.get("address")):
            return Outcome.SKIPPED
        lat, lng = listing.get("latitude"), listing.get("longitude")
        if lat is None or lng is None:
            return Outcome.SKIPPED

        geocoded = geocoder.lookup(float(lat), float(lng))
        if geocoded is None:
            return Outcome.SKIPPED
        fields = address_fields(geocoded)
        if not fields["address"]:
            raise GeocodeError(f"no address at {lat},{lng} for listing {listing['id']}")

        db.update_address(conn, listing["id"], geocoded=geocoded.to_payload(), **fields)
        logger.info("Listing %s address set to %s", listing["id"], fields["address"])
        return Outcome.UPDATED

    return geocode_listing


def run_geocode(args: argparse.Namespace, geocoder: Optional[Geocoder] = None) -> BatchResult:
    settings = get_settings()
    settings.require_database_url()
    geocoder = geocoder or Geocoder(settings, settings.require_google_api_key())
    source = TableSource(partial(db.fetch_listings, filter_name="missing_address"))
    return execute(args.job_name, source, make_handler(geocoder), args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fill missing or placeholder addresses from coordinates")
    add_batch_arguments(parser, get_settings(), default_job_name=JOB_NAME)
    return parser


def main() -> None:
    args = build_parser().parse_args()
    run_cli("Geocoding", lambda: run_geocode(args))


if __name__ == "__main__":
    main()
