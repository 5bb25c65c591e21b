"""Convert stored Places payloads into the static ``places_text_data`` blob."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from laundromat_etl.core.models import NearbyPlace, OpeningPeriod, PlaceDetails

logger = logging.getLogger(__name__)

DAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
ALWAYS_OPEN = "Open 24 hours, 7 days a week"
_FULL_DAY = "12:00 AM – 11:59 PM"


def format_time(value: Optional[str]) -> str:
    """``"1730"`` -> ``"5:30 PM"``; anything unusable -> ``"Unknown"``."""
    if not value or len(value) < 4 or not value[:4].isdigit():
        return "Unknown"
    hour = int(value[:2])
    minute = value[2:4]
    suffix = "PM" if hour >= 12 else "AM"
    hour12 = hour % 12 or 12
    return f"{hour12}:{minute} {suffix}"


def weekday_text(periods: Sequence[OpeningPeriod]) -> List[str]:
    """Seven ``"Day: open – close"`` lines, Sunday first, ``Closed`` by default."""
    if not periods:
        return []

    # Places encodes "always open" as one period opening Sunday 0000 with no close.
    if len(periods) == 1 and periods[0].close_time is None and periods[0].open_time == "0000":
        return [ALWAYS_OPEN]

    day_map = {day: "Closed" for day in DAYS}
    for period in periods:
        if period.close_time is None:
            continue
        day_map[DAYS[period.open_day]] = f"{format_time(period.open_time)} – {format_time(period.close_time)}"

    values = set(day_map.values())
    if values == {_FULL_DAY}:
        return [ALWAYS_OPEN]
    return [f"{day}: {day_map[day]}" for day in DAYS]


def hours_text(periods: Sequence[OpeningPeriod]) -> str:
    return "\n".join(weekday_text(periods))


def parse_periods(raw: Any) -> List[OpeningPeriod]:
    if not isinstance(raw, list):
        return []
    parsed = (OpeningPeriod.from_payload(item) for item in raw)
    return [period for period in parsed if period is not None]


def _review_entries(details: PlaceDetails) -> List[Dict[str, Any]]:
    entries = []
    for review in details.reviews:
        timestamp = (
            datetime.fromtimestamp(review.time, tz=timezone.utc).isoformat() if review.time is not None else None
        )
        entries.append(
            {
                "author": review.author,
                "rating": review.rating,
                "text": review.text,
                "time": timestamp,
                "language": review.language,
            }
        )
    return entries


def _photo_entries(details: PlaceDetails) -> List[Dict[str, Any]]:
    return [
        {
            "id": index,
            "reference": photo.reference,
            "width": photo.width,
            "height": photo.height,
            "attribution": photo.attribution,
        }
        for index, photo in enumerate(details.photos)
    ]


def group_nearby_places(raw: Any) -> Dict[str, List[Dict[str, Any]]]:
    """Group nearby places by category.

    Accepts either a flat list of Places results (grouped by their first type)
    or the already-grouped mapping written by the enrichment job.
    """
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    if isinstance(raw, dict):
        for category, items in raw.items():
            places = [place for place in (NearbyPlace.from_payload(i) for i in items or []) if place]
            if places:
                grouped[str(category)] = [place.to_payload() for place in places]
        return grouped

    if isinstance(raw, list):
        for item in raw:
            place = NearbyPlace.from_payload(item)
            if place is None:
                continue
            key = place.types[0] if place.types else "other"
            grouped.setdefault(key, []).append(place.to_payload())
    return grouped


def extract_amenities(details: PlaceDetails) -> List[str]:
    amenities = ["Laundromat", "Local Service"]
    if details.wheelchair_accessible:
        amenities.append("Wheelchair Accessible")
    if details.raw.get("serves_beer") or details.raw.get("serves_wine"):
        amenities.append("Refreshments Available")
    if details.raw.get("has_tv") or details.raw.get("has_wifi"):
        amenities.append("Entertainment")
    return amenities


def has_source_data(listing: Dict[str, Any]) -> bool:
    return bool(listing.get("business_hours") or listing.get("google_details") or listing.get("nearby_places"))


def build_text_data(listing: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the text blob for one listing row as returned by ``fetch_listings``."""
    details = PlaceDetails.from_payload(listing.get("google_details"))

    periods = parse_periods(listing.get("business_hours")) or details.periods
    lines = weekday_text(periods) if periods else list(details.weekday_text)

    return {
        "weekdayText": lines,
        "reviews": _review_entries(details),
        "photoRefs": _photo_entries(details),
        "nearbyPlaces": group_nearby_places(listing.get("nearby_places")),
        "amenities": extract_amenities(details),
        "formattedAddress": details.formatted_address or listing.get("address"),
        "rating": details.rating,
        "userRatingsTotal": details.user_ratings_total,
        "lastUpdated": (now or datetime.now(timezone.utc)).isoformat(),
    }
