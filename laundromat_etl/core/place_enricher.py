"""Attach Google Places details and nearby places to a listing."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from laundromat_etl.core.config import Settings, get_settings
from laundromat_etl.etl.nearby import build_category
from laundromat_etl.vendors import google_places

logger = logging.getLogger(__name__)

# (category key, place types searched, entries kept)
NEARBY_GROUPS = (
    ("food", ("restaurant", "cafe"), 3),
    ("activities", ("park", "library", "shopping_mall"), 3),
    ("transit", ("bus_station", "train_station", "subway_station"), 2),
)


@dataclass(slots=True)
class Enrichment:
    place_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    nearby: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    @property
    def periods(self) -> List[Dict[str, Any]]:
        hours = self.details.get("opening_hours") or {}
        periods = hours.get("periods") if isinstance(hours, dict) else None
        return periods if isinstance(periods, list) else []

    def is_empty(self) -> bool:
        return not self.details and not any(self.nearby.values())


class PlaceEnricher:
    """Look up a listing on Google Places, one request at a time with a fixed delay between calls."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        delay_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.api_key = api_key or self.settings.require_google_api_key()
        self.delay_seconds = self.settings.request_delay if delay_seconds is None else delay_seconds
        self._sleep = sleep
        self._calls = 0

    def _pause(self) -> None:
        if self._calls and self.delay_seconds > 0:
            self._sleep(self.delay_seconds)
        self._calls += 1

    def find_place_id(self, listing: Dict[str, Any]) -> Optional[str]:
        if listing.get("google_place_id"):
            return listing["google_place_id"]
        parts = [listing.get("name"), listing.get("address"), listing.get("city"), listing.get("state")]
        query = " ".join(str(part) for part in parts if part).strip()
        if not query:
            return None
        self._pause()
        response = google_places.text_search(query=query, api_key=self.api_key)
        results = response.get("results") or []
        if not results:
            logger.info("No Places match for %s", query)
            return None
        return results[0].get("place_id")

    def nearby(self, lat: float, lng: float) -> Dict[str, List[Dict[str, Any]]]:
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for key, place_types, keep in NEARBY_GROUPS:
            results: List[Dict[str, Any]] = []
            for place_type in place_types:
                self._pause()
                results.extend(
                    google_places.nearby_with_widening(
                        lat,
                        lng,
                        place_type,
                        self.api_key,
                        radius=self.settings.nearby_radius,
                        max_radius=self.settings.nearby_max_radius,
                    )
                )
            results.sort(key=lambda item: item["distance"] if item.get("distance") is not None else float("inf"))
            grouped[key] = build_category(results, keep)
        return grouped

    def enrich(self, listing: Dict[str, Any]) -> Enrichment:
        """Return details and nearby places; API or network failures yield an empty Enrichment."""
        try:
            place_id = self.find_place_id(listing)
            details: Dict[str, Any] = {}
            if place_id:
                self._pause()
                details = google_places.place_details(place_id=place_id, api_key=self.api_key)

            lat, lng = _coordinates(listing, details)
            nearby = self.nearby(lat, lng) if lat is not None and lng is not None else {}
        except (google_places.GooglePlacesError, requests.RequestException) as exc:
            logger.warning("Places enrichment failed for listing %s: %s", listing.get("id"), exc)
            return Enrichment()

        return Enrichment(place_id=place_id, details=details, nearby=nearby)


def _coordinates(listing: Dict[str, Any], details: Dict[str, Any]):
    lat, lng = listing.get("latitude"), listing.get("longitude")
    if lat is not None and lng is not None:
        return float(lat), float(lng)
    location = (details.get("geometry") or {}).get("location") or {}
    if location.get("lat") is not None and location.get("lng") is not None:
        return float(location["lat"]), float(location["lng"])
    return None, None
