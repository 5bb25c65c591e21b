"""Client utilities for the Google Places and Maps image APIs."""

import logging
from typing import Any, Dict, List, Optional

import requests

from laundromat_etl.etl.nearby import place_distance

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
_STATIC_MAP_URL = "https://maps.googleapis.com/maps/api/staticmap"
_STREETVIEW_URL = "https://maps.googleapis.com/maps/api/streetview"
_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

DETAIL_FIELDS = (
    "place_id,name,formatted_address,formatted_phone_number,geometry,website,rating,"
    "user_ratings_total,types,opening_hours,reviews,photos,wheelchair_accessible_entrance"
)
MAX_NEARBY_RESULTS = 5


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


def _get(path: str, params: Dict[str, Any], operation: str, url: Optional[str] = None) -> Dict[str, Any]:
    response = _SESSION.get(url or f"{_BASE_URL}/{path}", params=params, timeout=10)
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("%s failed: status=%s, error_message=%s", operation, status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    return payload


def text_search(query: str, api_key: str, pagetoken: Optional[str] = None) -> Dict[str, Any]:
    params = {"query": query, "key": api_key}
    if pagetoken:
        params["pagetoken"] = pagetoken
    return _get("textsearch/json", params, "text_search")


def place_details(place_id: str, api_key: str, fields: str = DETAIL_FIELDS) -> Dict[str, Any]:
    params = {"place_id": place_id, "key": api_key, "fields": fields}
    payload = _get("details/json", params, "place_details")
    return payload.get("result", {})


def nearby_search(lat: float, lng: float, place_type: str, radius: int, api_key: str) -> Dict[str, Any]:
    params = {"location": f"{lat},{lng}", "radius": radius, "type": place_type, "key": api_key}
    return _get("nearbysearch/json", params, "nearby_search")


def nearby_with_widening(
    lat: float,
    lng: float,
    place_type: str,
    api_key: str,
    *,
    radius: int = 500,
    max_radius: int = 10000,
    retries: int = 2,
) -> List[Dict[str, Any]]:
    """Nearby search that doubles the radius (up to ``max_radius``) on empty results.

    Each returned result carries a ``distance`` in meters from the origin.
    """
    current = min(radius, max_radius)
    payload = nearby_search(lat, lng, place_type, current, api_key)
    attempts = 0
    while payload.get("status") == "ZERO_RESULTS" and current < max_radius and attempts < retries:
        current = min(current * 2, max_radius)
        attempts += 1
        logger.info("No %s results near %s,%s; widening radius to %dm", place_type, lat, lng, current)
        payload = nearby_search(lat, lng, place_type, current, api_key)

    results = payload.get("results") or []
    trimmed = []
    for result in results[:MAX_NEARBY_RESULTS]:
        entry = dict(result)
        entry["distance"] = place_distance(result, lat, lng)
        trimmed.append(entry)
    if not trimmed:
        logger.debug("No %s places found within %dm", place_type, current)
    return trimmed


def reverse_geocode(lat: float, lng: float, api_key: str) -> Dict[str, Any]:
    """Addresses at a coordinate, most specific first."""
    params = {"latlng": f"{lat},{lng}", "key": api_key}
    return _get("", params, "reverse_geocode", url=_GEOCODE_URL)


def streetview_metadata(lat: float, lng: float, api_key: str, heading: Optional[int] = None) -> Dict[str, Any]:
    params: Dict[str, Any] = {"location": f"{lat},{lng}", "key": api_key}
    if heading is not None:
        params["heading"] = heading
    response = _SESSION.get(f"{_STREETVIEW_URL}/metadata", params=params, timeout=10)
    response.raise_for_status()
    return response.json()


def static_map_request(lat: float, lng: float, api_key: str, *, zoom: int, width: int, height: int) -> Dict[str, Any]:
    return {
        "url": _STATIC_MAP_URL,
        "params": {
            "center": f"{lat},{lng}",
            "zoom": zoom,
            "size": f"{width}x{height}",
            "scale": 2,
            "markers": f"color:red|{lat},{lng}",
            "key": api_key,
        },
    }


def streetview_request(lat: float, lng: float, api_key: str, *, heading: int, width: int, height: int) -> Dict[str, Any]:
    return {
        "url": _STREETVIEW_URL,
        "params": {
            "location": f"{lat},{lng}",
            "heading": heading,
            "pitch": 0,
            "fov": 90,
            "size": f"{width}x{height}",
            "key": api_key,
        },
    }
