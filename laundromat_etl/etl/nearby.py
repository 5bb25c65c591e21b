"""Shape nearby-search results into the entries shown on listing pages."""

import math
from typing import Any, Dict, Iterable, List, Optional

from laundromat_etl.core.models import NearbyPlace

_EARTH_RADIUS_M = 6371000.0

_CATEGORY_BY_TYPE = (
    ("restaurant", "Restaurant"),
    ("cafe", "Cafe"),
    ("bar", "Bar"),
    ("bakery", "Bakery"),
    ("grocery_or_supermarket", "Grocery"),
    ("convenience_store", "Grocery"),
    ("park", "Park"),
    ("library", "Library"),
    ("shopping_mall", "Mall"),
    ("bus_station", "Bus Stop"),
    ("subway_station", "Subway"),
    ("train_station", "Train"),
)
_GENERIC_TYPES = {"point_of_interest", "establishment", "food", "store"}


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * _EARTH_RADIUS_M * math.asin(math.sqrt(a))


def walking_distance(distance: Optional[float]) -> str:
    if distance is None:
        return "5-10 min walk"
    if distance < 100:
        return "1 min walk"
    if distance < 300:
        return "3-5 min walk"
    if distance < 500:
        return "5-7 min walk"
    if distance < 800:
        return "8-10 min walk"
    return "15+ min walk"


def categorize(types: Iterable[str]) -> str:
    types = list(types or [])
    for type_name, label in _CATEGORY_BY_TYPE:
        if type_name in types:
            return label
    specific = [t for t in types if t not in _GENERIC_TYPES]
    return specific[0].replace("_", " ") if specific else "Business"


def place_distance(result: Dict[str, Any], origin_lat: float, origin_lng: float) -> Optional[float]:
    location = (result.get("geometry") or {}).get("location") or {}
    lat, lng = location.get("lat"), location.get("lng")
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return None
    return haversine_meters(origin_lat, origin_lng, float(lat), float(lng))


def to_nearby_place(result: Dict[str, Any]) -> Optional[NearbyPlace]:
    """Convert one nearby-search result (already carrying ``distance``) into a NearbyPlace."""
    place = NearbyPlace.from_payload(result)
    if place is None:
        return None
    level = result.get("price_level")
    place.price_level = "$" * level if isinstance(level, int) and level > 0 else "$"
    place.category = categorize(place.types)
    place.walking_distance = walking_distance(place.distance)
    return place


def build_category(results: Iterable[Dict[str, Any]], keep: int) -> List[Dict[str, Any]]:
    """Turn raw results into at most ``keep`` entries, skipping repeated names."""
    entries: List[Dict[str, Any]] = []
    seen = set()
    for result in results:
        place = to_nearby_place(result)
        if place is None or place.name in seen:
            continue
        seen.add(place.name)
        entries.append(place.to_payload())
        if len(entries) >= keep:
            break
    return entries
