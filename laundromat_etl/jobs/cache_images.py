"""CLI job to cache static map and street-view images for listings on disk."""

import argparse
import logging
from functools import partial
from typing import Any, Dict, List, Optional

import requests

from laundromat_etl.core import db
from laundromat_etl.core.asset_cache import (
    FALLBACK_MAP_IMAGES,
    FALLBACK_STREETVIEW_IMAGES,
    AssetCache,
    CacheResult,
    CacheStatus,
    static_map_filename,
    streetview_filename,
)
from laundromat_etl.core.batch import Handler, TableSource
from laundromat_etl.core.config import Settings, get_settings
from laundromat_etl.core.models import BatchResult, Outcome
from laundromat_etl.jobs.common import add_batch_arguments, execute, run_cli
from laundromat_etl.vendors import google_places

logger = logging.getLogger(__name__)

KINDS = ("static", "streetview", "all")
MAP_ZOOM = 14
MAP_SIZE = (600, 300)
STREETVIEW_SIZE = (600, 400)
STREETVIEW_HEADINGS = (0, 90, 180, 270)


class ImageCacheError(RuntimeError):
    """Raised when neither the image nor a fallback could be cached."""


class ImageCacher:
    def __init__(self, settings: Settings, api_key: str, session: Optional[requests.Session] = None) -> None:
        self.api_key = api_key
        session = session or requests.Session()
        self.maps = AssetCache(settings.static_maps_dir, session=session)
        self.streetview = AssetCache(settings.streetview_dir, session=session)

    def cache_static_map(self, lat: float, lng: float) -> CacheResult:
        width, height = MAP_SIZE
        filename = static_map_filename(lat, lng, MAP_ZOOM, width, height)
        request = google_places.static_map_request(
            lat, lng, self.api_key, zoom=MAP_ZOOM, width=width, height=height
        )
        return self.maps.fetch(filename, request["url"], request["params"], fallback_urls=FALLBACK_MAP_IMAGES)

    def find_heading(self, lat: float, lng: float) -> Optional[int]:
        """First cardinal heading with street-view coverage, or None."""
        for heading in STREETVIEW_HEADINGS:
            try:
                metadata = google_places.streetview_metadata(lat, lng, self.api_key, heading=heading)
            except requests.RequestException as exc:
                logger.warning("Street View metadata lookup failed at %s,%s: %s", lat, lng, exc)
                return None
            if metadata.get("status") == "OK":
                return heading
        return None

    def cache_streetview(self, lat: float, lng: float) -> CacheResult:
        width, height = STREETVIEW_SIZE
        for candidate in STREETVIEW_HEADINGS:
            cached = self.streetview.path_for(streetview_filename(lat, lng, candidate, width, height))
            if cached.exists():
                return CacheResult(CacheStatus.HIT, cached)

        heading = self.find_heading(lat, lng)
        filename = streetview_filename(lat, lng, heading or 0, width, height)
        if heading is None:
            logger.info("No Street View coverage at %s,%s; using stock image", lat, lng)
            return self.streetview.fallback(filename, FALLBACK_STREETVIEW_IMAGES)
        request = google_places.streetview_request(
            lat, lng, self.api_key, heading=heading, width=width, height=height
        )
        return self.streetview.fetch(
            filename, request["url"], request["params"], fallback_urls=FALLBACK_STREETVIEW_IMAGES
        )


def make_handler(cacher: ImageCacher, kind: str) -> Handler:
    if kind not in KINDS:
        raise ValueError(f"unknown image kind {kind!r}")

    def cache_listing(conn, listing: Dict[str, Any]) -> Outcome:
        lat, lng = listing.get("latitude"), listing.get("longitude")
        if lat is None or lng is None:
            return Outcome.SKIPPED
        lat, lng = float(lat), float(lng)

        results: List[CacheResult] = []
        if kind in ("static", "all"):
            results.append(cacher.cache_static_map(lat, lng))
        if kind in ("streetview", "all"):
            results.append(cacher.cache_streetview(lat, lng))

        if any(result.status is CacheStatus.FAILED for result in results):
            raise ImageCacheError(f"could not cache images for listing {listing['id']}")
        if all(result.status is CacheStatus.HIT for result in results):
            return Outcome.SKIPPED
        return Outcome.UPDATED

    return cache_listing


def run_cache_images(args: argparse.Namespace, cacher: Optional[ImageCacher] = None) -> BatchResult:
    settings = get_settings()
    settings.require_database_url()
    cacher = cacher or ImageCacher(settings, settings.require_google_api_key())
    job_name = args.job_name or f"cache-images:{args.kind}"
    source = TableSource(partial(db.fetch_listings, filter_name="with_coordinates"))
    return execute(job_name, source, make_handler(cacher, args.kind), args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cache static map and street-view images on disk")
    parser.add_argument("--kind", dest="kind", choices=KINDS, default="all", help="Which images to cache")
    add_batch_arguments(parser, get_settings())
    return parser


def main() -> None:
    args = build_parser().parse_args()
    run_cli("Image caching", lambda: run_cache_images(args))


if __name__ == "__main__":
    main()
