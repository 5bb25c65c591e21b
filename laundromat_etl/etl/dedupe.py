"""Duplicate detection for nearby-place payloads and listing addresses."""

import re
from typing import Any, Dict, Iterable, List, Tuple

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[.,#]")


def dedupe_nearby_places(payload: Any) -> Tuple[Any, bool]:
    """Keep the first place of each name within every category.

    Returns ``(payload, changed)``; non-mapping payloads come back untouched.
    """
    if not isinstance(payload, dict):
        return payload, False

    changed = False
    deduped: Dict[str, Any] = {}
    for category, places in payload.items():
        if not isinstance(places, list):
            deduped[category] = places
            continue
        seen = set()
        unique: List[Any] = []
        for place in places:
            if not isinstance(place, dict) or not place.get("name"):
                changed = True
                continue
            if place["name"] in seen:
                changed = True
                continue
            seen.add(place["name"])
            unique.append(place)
        deduped[category] = unique
    return deduped, changed


def normalize_address(address: Any) -> str:
    text = _PUNCTUATION.sub(" ", str(address or "").lower())
    return _WHITESPACE.sub(" ", text).strip()


def find_duplicate_addresses(rows: Iterable[Dict[str, Any]]) -> Dict[int, List[int]]:
    """Map the first listing id at each normalized address+zip to the later duplicate ids."""
    first_by_key: Dict[Tuple[str, str], int] = {}
    duplicates: Dict[int, List[int]] = {}
    for row in rows:
        address = normalize_address(row.get("address"))
        if not address:
            continue
        key = (address, str(row.get("zip") or "").strip())
        listing_id = row["id"]
        if key in first_by_key:
            duplicates.setdefault(first_by_key[key], []).append(listing_id)
        else:
            first_by_key[key] = listing_id
    return duplicates
