"""US state lookup used to normalize spreadsheet state values."""

from typing import Optional, Tuple

STATE_NAMES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
    "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
    "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi",
    "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
    "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
    "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma",
    "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VT": "Vermont", "VA": "Virginia", "WA": "Washington", "WV": "West Virginia",
    "WI": "Wisconsin", "WY": "Wyoming", "DC": "District of Columbia",
}

_ABBR_BY_NAME = {name.lower(): abbr for abbr, name in STATE_NAMES.items()}
_ABBR_BY_NAME["washington dc"] = "DC"
_ABBR_BY_NAME["washington d.c"] = "DC"


def normalize_state(value: Optional[str]) -> Optional[Tuple[str, str]]:
    """Return ``(abbr, full_name)`` for an abbreviation or a full state name."""
    if not value:
        return None
    cleaned = " ".join(str(value).split()).strip(" .")
    if not cleaned:
        return None
    upper = cleaned.upper()
    if upper in STATE_NAMES:
        return upper, STATE_NAMES[upper]
    abbr = _ABBR_BY_NAME.get(cleaned.lower())
    if abbr:
        return abbr, STATE_NAMES[abbr]
    return None
