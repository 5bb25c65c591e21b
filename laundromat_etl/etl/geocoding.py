"""Helpers for filling listing addresses from reverse-geocoding results."""

from typing import Dict, Optional

from laundromat_etl.core.models import GeocodedAddress
from laundromat_etl.etl.states import normalize_state

PLACEHOLDER_MARKERS = ("placeholder", "123 main")


def needs_address(address: Optional[str]) -> bool:
    """True for blank addresses and the stand-ins left by early imports."""
    if not address or not address.strip():
        return True
    lowered = address.lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


def address_fields(geocoded: GeocodedAddress) -> Dict[str, str]:
    state = normalize_state(geocoded.state)
    return {
        "address": geocoded.street or geocoded.formatted_address,
        "city": geocoded.city,
        "state": state[0] if state else "",
        "zip_code": geocoded.postal_code,
    }
