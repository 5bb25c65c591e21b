"""Core data models shared by the listing jobs."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


class Outcome(str, enum.Enum):
    """What happened to a single record inside a batch."""

    IMPORTED = "imported"
    UPDATED = "updated"
    DUPLICATE = "duplicate"
    INVALID = "invalid"
    SKIPPED = "skipped"


@dataclass(slots=True)
class ListingRow:
    """A laundromat listing shaped for the ``laundromats`` table."""

    name: str
    slug: str
    address: str
    city: str
    state: str
    state_name: str
    zip: str = ""
    phone: str = ""
    website: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = None
    review_count: int = 0
    hours: str = ""
    services: List[str] = field(default_factory=list)
    amenities: List[str] = field(default_factory=list)
    machine_count: Optional[Dict[str, int]] = None
    seo_title: str = ""
    seo_description: str = ""
    seo_tags: List[str] = field(default_factory=list)
    premium_score: int = 0
    listing_type: str = "basic"
    description: str = ""
    image_url: Optional[str] = None
    city_slug: str = ""


@dataclass(slots=True)
class Checkpoint:
    """Persisted progress of one job, stored in the ``sync_state`` table."""

    job_name: str
    cursor: int = 0
    total_processed: int = 0
    total_imported: int = 0
    total_skipped: int = 0
    total_errors: int = 0
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(slots=True)
class BatchResult:
    """Counts for one batch (or an aggregate of several)."""

    job_name: str
    start_cursor: int = 0
    end_cursor: int = 0
    processed: int = 0
    imported: int = 0
    updated: int = 0
    duplicates: int = 0
    invalid: int = 0
    skipped: int = 0
    errors: int = 0
    done: bool = False

    def record(self, outcome: Outcome) -> None:
        self.processed += 1
        if outcome is Outcome.IMPORTED:
            self.imported += 1
        elif outcome is Outcome.UPDATED:
            self.updated += 1
        elif outcome is Outcome.DUPLICATE:
            self.duplicates += 1
        elif outcome is Outcome.INVALID:
            self.invalid += 1
        else:
            self.skipped += 1

    def record_error(self) -> None:
        self.processed += 1
        self.errors += 1

    def merge(self, other: "BatchResult") -> "BatchResult":
        """Fold a later batch into this aggregate."""
        self.end_cursor = other.end_cursor
        self.processed += other.processed
        self.imported += other.imported
        self.updated += other.updated
        self.duplicates += other.duplicates
        self.invalid += other.invalid
        self.skipped += other.skipped
        self.errors += other.errors
        self.done = other.done
        return self

    def summary(self) -> str:
        return (
            f"processed={self.processed} imported={self.imported} updated={self.updated} "
            f"duplicates={self.duplicates} invalid={self.invalid} skipped={self.skipped} "
            f"errors={self.errors} cursor={self.start_cursor}->{self.end_cursor}"
        )


# ---------- Places payloads ----------


@dataclass(slots=True)
class OpeningPeriod:
    open_day: int
    open_time: str
    close_day: Optional[int] = None
    close_time: Optional[str] = None

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["OpeningPeriod"]:
        if not isinstance(raw, dict):
            return None
        opening = raw.get("open")
        if not isinstance(opening, dict):
            return None
        day = opening.get("day")
        if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
            return None
        open_time = opening.get("time")
        if not isinstance(open_time, str) or len(open_time) < 4:
            return None
        closing = raw.get("close")
        close_day = None
        close_time = None
        if isinstance(closing, dict):
            if isinstance(closing.get("day"), int):
                close_day = closing["day"]
            if isinstance(closing.get("time"), str) and len(closing["time"]) >= 4:
                close_time = closing["time"]
        return cls(open_day=day, open_time=open_time, close_day=close_day, close_time=close_time)


@dataclass(slots=True)
class Review:
    author: str
    rating: float
    text: str
    time: Optional[int]
    language: str

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["Review"]:
        if not isinstance(raw, dict):
            return None
        time_value = raw.get("time")
        return cls(
            author=raw.get("author_name") or raw.get("author") or "Anonymous",
            rating=_as_float(raw.get("rating")) or 0,
            text=raw.get("text") or "",
            time=int(time_value) if isinstance(time_value, (int, float)) else None,
            language=raw.get("language") or "en",
        )


@dataclass(slots=True)
class Photo:
    reference: str
    width: int
    height: int
    attribution: str

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["Photo"]:
        if not isinstance(raw, dict):
            return None
        attributions = raw.get("html_attributions")
        attribution = attributions[0] if isinstance(attributions, list) and attributions else ""
        return cls(
            reference=raw.get("photo_reference") or "",
            width=int(raw.get("width") or 0),
            height=int(raw.get("height") or 0),
            attribution=attribution,
        )


@dataclass(slots=True)
class NearbyPlace:
    name: str
    vicinity: str = ""
    category: str = ""
    types: List[str] = field(default_factory=list)
    price_level: str = ""
    rating: Optional[float] = None
    distance: Optional[float] = None
    walking_distance: str = ""
    place_id: Optional[str] = None

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["NearbyPlace"]:
        if not isinstance(raw, dict) or not raw.get("name"):
            return None
        types = raw.get("types")
        return cls(
            name=str(raw["name"]),
            vicinity=raw.get("vicinity") or "",
            category=raw.get("category") or "",
            types=[t for t in types if isinstance(t, str)] if isinstance(types, list) else [],
            price_level=raw.get("priceLevel") or raw.get("price_level") or "",
            rating=_as_float(raw.get("rating")),
            distance=_as_float(raw.get("distance")),
            walking_distance=raw.get("walkingDistance") or "",
            place_id=raw.get("place_id") or raw.get("placeId"),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "vicinity": self.vicinity,
            "category": self.category,
            "priceLevel": self.price_level,
            "rating": self.rating,
            "distance": self.distance,
            "walkingDistance": self.walking_distance,
            "placeId": self.place_id,
        }


@dataclass(slots=True)
class PlaceDetails:
    """Place details parsed once from the loosely typed API payload."""

    place_id: Optional[str] = None
    formatted_address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    user_ratings_total: int = 0
    periods: List[OpeningPeriod] = field(default_factory=list)
    weekday_text: List[str] = field(default_factory=list)
    reviews: List[Review] = field(default_factory=list)
    photos: List[Photo] = field(default_factory=list)
    wheelchair_accessible: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, raw: Any) -> "PlaceDetails":
        if not isinstance(raw, dict):
            return cls()
        hours = raw.get("opening_hours") if isinstance(raw.get("opening_hours"), dict) else {}
        periods = hours.get("periods") if isinstance(hours.get("periods"), list) else []
        weekday_text = hours.get("weekday_text") if isinstance(hours.get("weekday_text"), list) else []
        return cls(
            place_id=raw.get("place_id"),
            formatted_address=raw.get("formatted_address"),
            phone=raw.get("formatted_phone_number"),
            website=raw.get("website"),
            rating=_as_float(raw.get("rating")),
            user_ratings_total=int(raw.get("user_ratings_total") or 0),
            periods=_parse_all(OpeningPeriod, periods),
            weekday_text=[str(line) for line in weekday_text],
            reviews=_parse_all(Review, raw.get("reviews")),
            photos=_parse_all(Photo, raw.get("photos")),
            wheelchair_accessible=bool(raw.get("wheelchair_accessible_entrance")),
            raw=raw,
        )


@dataclass(slots=True)
class GeocodedAddress:
    """First reverse-geocoding result, flattened from its address components."""

    street_number: str = ""
    route: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    formatted_address: str = ""
    place_id: Optional[str] = None

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["GeocodedAddress"]:
        if not isinstance(raw, dict):
            return None
        results = raw.get("results")
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            return None
        first = results[0]
        address = cls(formatted_address=first.get("formatted_address") or "", place_id=first.get("place_id"))
        components = first.get("address_components")
        for component in components if isinstance(components, list) else []:
            if not isinstance(component, dict):
                continue
            types = component.get("types") or []
            long_name = component.get("long_name") or ""
            if "street_number" in types:
                address.street_number = long_name
            elif "route" in types:
                address.route = long_name
            elif "locality" in types:
                address.city = long_name
            elif "administrative_area_level_1" in types:
                address.state = component.get("short_name") or long_name
            elif "country" in types:
                address.country = component.get("short_name") or long_name
            elif "postal_code" in types:
                address.postal_code = long_name
        return address

    @property
    def street(self) -> str:
        if self.street_number and self.route:
            return f"{self.street_number} {self.route}"
        return self.route

    def to_payload(self) -> Dict[str, Any]:
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "country": self.country,
            "formattedAddress": self.formatted_address,
            "placeId": self.place_id,
        }


def _parse_all(model, items: Any) -> list:
    if not isinstance(items, list):
        return []
    parsed = (model.from_payload(item) for item in items)
    return [item for item in parsed if item is not None]


def _as_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None
