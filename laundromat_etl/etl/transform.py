"""Utilities for transforming spreadsheet rows into listing rows."""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

import phonenumbers

from laundromat_etl.core.models import ListingRow
from laundromat_etl.etl.states import normalize_state

logger = logging.getLogger(__name__)

# Column aliases seen across the Outscraper exports and hand-made JSON dumps.
_ALIASES = {
    "name": ("name", "title", "business_name"),
    "address": ("address", "full_address", "street", "street_address"),
    "city": ("city", "locality"),
    "state": ("state", "state_code", "us_state"),
    "zip": ("zip", "postal_code", "zipcode", "zip_code"),
    "phone": ("phone", "phone_number", "formatted_phone_number"),
    "website": ("website", "site", "url"),
    "rating": ("rating", "stars"),
    "review_count": ("review_count", "reviews", "reviews_count", "user_ratings_total"),
    "coordinates": ("gps_coordinates", "coordinates", "gps", "location"),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lng", "lon"),
    "services": ("services", "subtypes", "category", "categories", "type"),
    "hours": ("working_hours", "hours", "opening_hours"),
    "photo": ("photo", "image_url", "image"),
    "logo": ("logo",),
    "description": ("description", "about"),
    "washers": ("washers", "washer_count"),
    "dryers": ("dryers", "dryer_count"),
}

_CLOSING_TIME = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(pm|am)", re.IGNORECASE)


class InvalidRecord(ValueError):
    """Raised when a source record cannot become a listing row."""


def _pick(record: Dict[str, Any], field_name: str) -> Any:
    for key in _ALIASES[field_name]:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)

    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        if digits:
            return int(digits)
    return None


def slugify(text: Any) -> str:
    value = str(text or "").lower().strip()
    value = value.replace("&", " and ")
    value = re.sub(r"\s+", "-", value)
    value = re.sub(r"[^\w\-]+", "", value)
    value = value.replace("_", "-")
    value = re.sub(r"-{2,}", "-", value)
    return value.strip("-")


def listing_slug(name: str, city: str, state: str) -> str:
    return f"{slugify(name)}-{slugify(city)}-{slugify(state)}"


def parse_coordinates(value: Any) -> Tuple[Optional[float], Optional[float]]:
    """Parse a ``"lat,lng"`` string; anything malformed or out of range gives ``(None, None)``."""
    if not isinstance(value, str) or "," not in value:
        return None, None
    lat_raw, lng_raw = value.strip().strip("()[]").split(",", 1)
    lat = _safe_float(lat_raw.strip())
    lng = _safe_float(lng_raw.strip())
    if lat is None or lng is None:
        return None, None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None, None
    return lat, lng


def normalize_phone(value: Any, region: str = "US") -> str:
    raw = _strip_or_none(value)
    if not raw:
        return ""
    try:
        parsed = phonenumbers.parse(raw, region)
    except phonenumbers.NumberParseException:
        return raw
    if not phonenumbers.is_valid_number(parsed):
        return raw
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.NATIONAL)


def normalize_business_name(name: str) -> str:
    name = " ".join(name.split())
    if name.isupper():
        name = name.title()
    return re.sub(r"\s+-\s+[A-Z]{2}$", "", name).strip()


def format_working_hours(value: Any) -> str:
    """Flatten an Outscraper ``working_hours`` dict (or its JSON text) into one line."""
    if value is None:
        return ""
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("{"):
            try:
                value = json.loads(text)
            except ValueError:
                return text
        else:
            return text
    if isinstance(value, dict):
        parts = []
        for day, hours in value.items():
            if isinstance(hours, list):
                hours = ", ".join(str(item) for item in hours)
            parts.append(f"{day}: {hours}")
        return "; ".join(parts)
    return str(value)


def _split_services(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        items = value
    else:
        items = str(value).split(",")
    services: List[str] = []
    for item in items:
        cleaned = str(item).strip()
        if cleaned and cleaned not in services:
            services.append(cleaned)
    return services


def _closes_late(hours: str) -> bool:
    for part in hours.lower().split(";"):
        if "pm" not in part:
            continue
        closing = re.split(r"[–-]", part)[-1].strip()
        match = _CLOSING_TIME.search(closing)
        if not match:
            continue
        hour = int(match.group(1))
        if match.group(3).lower() == "pm" and hour < 12:
            hour += 12
        if hour >= 21:
            return True
    return False


def derive_features(name: str, services: Iterable[str], description: str, hours: str) -> Dict[str, bool]:
    blob = " ".join([name, " ".join(services), description]).lower()
    hours_lower = hours.lower()
    return {
        "24_hour": any(token in hours_lower or token in blob for token in ("24 hours", "24/7", "24 hour")),
        "coin": "coin" in blob or "self-service" in blob or "self service" in blob,
        "drop_off": "drop" in blob or "wash and fold" in blob or "wash & fold" in blob,
        "pickup": "pickup" in blob or "pick-up" in blob or "pick up" in blob,
        "delivery": "delivery" in blob,
        "wifi": "wifi" in blob or "wi-fi" in blob,
        "attendant": "attendant" in blob or "attended" in blob,
        "open_late": _closes_late(hours),
    }


MAX_SEO_DESCRIPTION = 395

_FEATURE_TAGS = {
    "24_hour": "24 hour laundromat",
    "coin": "coin laundry",
    "drop_off": "drop-off laundry",
    "pickup": "laundry pickup",
    "delivery": "laundry delivery",
    "wifi": "free wifi",
    "attendant": "attended laundromat",
    "open_late": "open late",
}

_FEATURE_AMENITIES = {
    "wifi": "WiFi",
    "attendant": "Attendant on Duty",
    "coin": "Coin Machines",
    "drop_off": "Drop-off Service",
    "pickup": "Pickup Service",
    "delivery": "Delivery Service",
    "24_hour": "Open 24 Hours",
}


def generate_seo_tags(city: str, state: str, zip_code: str, features: Dict[str, bool]) -> List[str]:
    tags = ["laundromat", "laundry service", "washing machine", "dryer"]
    if city:
        tags.append(f"laundromat in {city}")
    if state:
        tags.append(f"{state} laundromat")
    if city and state:
        tags.append(f"laundromat near {city} {state}")
    if zip_code:
        tags.append(f"laundromat {zip_code}")
    for key, tag in _FEATURE_TAGS.items():
        if features.get(key):
            tags.append(tag)
    return list(dict.fromkeys(tags))


def generate_seo_title(name: str, city: str, state: str) -> str:
    if city and state:
        return f"{name} - Laundromat in {city}, {state}"
    if city or state:
        return f"{name} - Laundromat in {city or state}"
    return name


def generate_seo_description(
    name: str,
    city: str,
    state_name: str,
    features: Dict[str, bool],
    rating: Optional[float],
    review_count: int,
) -> str:
    location = city or "the area"
    if state_name:
        location = f"{location}, {state_name}"
    description = f"{name} is a convenient laundromat located in {location}. "

    if features.get("24_hour"):
        description += "Open 24 hours a day for your convenience. "
    elif features.get("open_late"):
        description += "Extended hours to accommodate your busy schedule. "

    extras = [label.lower() for key, label in _FEATURE_AMENITIES.items() if features.get(key) and key != "24_hour"]
    if extras:
        description += f"Amenities include {', '.join(extras)}. "

    if rating and rating >= 4.5 and review_count > 20:
        description += f"Highly rated with {rating} stars from {review_count} customers. "
    elif rating and rating >= 4.0:
        description += f"Well-reviewed with a {rating}-star rating. "

    description += f"Find clean, well-maintained laundry equipment at this local laundromat in {city or 'your area'}."
    if len(description) > MAX_SEO_DESCRIPTION:
        description = description[:MAX_SEO_DESCRIPTION] + "..."
    return description


def calculate_premium_score(
    *,
    has_photo: bool,
    has_logo: bool,
    website: Optional[str],
    rating: Optional[float],
    review_count: int,
    tag_count: int,
) -> int:
    score = 0
    if has_photo:
        score += 30
    if has_logo:
        score += 10
    if website:
        score += 10
    if rating is not None and rating >= 4.5:
        score += 20
    elif rating is not None and rating >= 4.0:
        score += 10
    if review_count > 200:
        score += 10
    elif review_count > 50:
        score += 5
    if tag_count >= 3:
        score += 10
    return min(score, 100)


def premium_tier(score: int) -> str:
    if score >= 60:
        return "High"
    if score >= 35:
        return "Medium"
    return "Low"


def to_listing_row(record: Dict[str, Any]) -> ListingRow:
    """Validate and shape one source record; raises InvalidRecord with the reason."""
    name = _strip_or_none(_pick(record, "name"))
    if not name:
        raise InvalidRecord("missing name")
    address = _strip_or_none(_pick(record, "address"))
    if not address:
        raise InvalidRecord("missing address")
    city = _strip_or_none(_pick(record, "city"))
    if not city:
        raise InvalidRecord("missing city")
    state = normalize_state(_strip_or_none(_pick(record, "state")))
    if state is None:
        raise InvalidRecord(f"unknown state {_pick(record, 'state')!r}")
    state_abbr, state_name = state

    name = normalize_business_name(name)
    latitude, longitude = parse_coordinates(_pick(record, "coordinates"))
    if latitude is None:
        latitude = _safe_float(_pick(record, "latitude"))
        longitude = _safe_float(_pick(record, "longitude"))
        if latitude is None or longitude is None:
            latitude, longitude = None, None

    rating = _safe_float(_pick(record, "rating"))
    if rating is not None and not 0 <= rating <= 5:
        logger.debug("Dropping out-of-range rating %s for %s", rating, name)
        rating = None
    review_count = _safe_int(_pick(record, "review_count")) or 0

    zip_code = _strip_or_none(_pick(record, "zip")) or ""
    if zip_code.endswith(".0"):
        zip_code = zip_code[:-2]
    if zip_code.isdigit() and len(zip_code) < 5:
        zip_code = zip_code.zfill(5)
    website = _strip_or_none(_pick(record, "website"))
    services = _split_services(_pick(record, "services"))
    hours = format_working_hours(_pick(record, "hours"))
    source_description = _strip_or_none(_pick(record, "description")) or ""
    photo = _strip_or_none(_pick(record, "photo"))

    features = derive_features(name, services, source_description, hours)
    seo_tags = generate_seo_tags(city, state_abbr, zip_code, features)
    seo_description = generate_seo_description(name, city, state_name, features, rating, review_count)

    washers = _safe_int(_pick(record, "washers"))
    dryers = _safe_int(_pick(record, "dryers"))
    machine_count = {"washers": washers or 0, "dryers": dryers or 0} if washers or dryers else None

    premium_score = calculate_premium_score(
        has_photo=bool(photo),
        has_logo=bool(_strip_or_none(_pick(record, "logo"))),
        website=website,
        rating=rating,
        review_count=review_count,
        tag_count=len(seo_tags),
    )

    return ListingRow(
        name=name,
        slug=listing_slug(name, city, state_abbr),
        address=address,
        city=city,
        state=state_abbr,
        state_name=state_name,
        zip=zip_code,
        phone=normalize_phone(_pick(record, "phone")),
        website=website,
        latitude=latitude,
        longitude=longitude,
        rating=rating,
        review_count=review_count,
        hours=hours,
        services=services,
        amenities=[label for key, label in _FEATURE_AMENITIES.items() if features.get(key)],
        machine_count=machine_count,
        seo_title=generate_seo_title(name, city, state_abbr),
        seo_description=seo_description,
        seo_tags=seo_tags,
        premium_score=premium_score,
        description=source_description or seo_description,
        image_url=photo,
        city_slug=f"{slugify(city)}-{slugify(state_abbr)}",
    )
