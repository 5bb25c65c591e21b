from datetime import datetime, timezone

import pytest

from laundromat_etl.core.models import OpeningPeriod, PlaceDetails
from laundromat_etl.etl import text_data


def _period(day, open_time, close_time=None):
    raw = {"open": {"day": day, "time": open_time}}
    if close_time is not None:
        raw["close"] = {"day": day, "time": close_time}
    return raw


@pytest.mark.parametrize(
    "value,expected",
    [("0000", "12:00 AM"), ("2359", "11:59 PM"), ("1200", "12:00 PM"), ("0730", "7:30 AM"), ("", "Unknown"), (None, "Unknown")],
)
def test_format_time(value, expected):
    assert text_data.format_time(value) == expected


def test_weekday_text_lists_every_day_with_closed_default():
    periods = text_data.parse_periods([_period(1, "0000", "2359"), _period(6, "0800", "2130")])

    text = text_data.hours_text(periods)

    assert text == "\n".join(
        [
            "Sunday: Closed",
            "Monday: 12:00 AM – 11:59 PM",
            "Tuesday: Closed",
            "Wednesday: Closed",
            "Thursday: Closed",
            "Friday: Closed",
            "Saturday: 8:00 AM – 9:30 PM",
        ]
    )


def test_weekday_text_collapses_always_open():
    full_week = text_data.parse_periods([_period(day, "0000", "2359") for day in range(7)])
    single = text_data.parse_periods([_period(0, "0000")])

    assert text_data.weekday_text(full_week) == [text_data.ALWAYS_OPEN]
    assert text_data.weekday_text(single) == [text_data.ALWAYS_OPEN]
    assert text_data.weekday_text([]) == []


def test_weekday_text_leaves_days_without_close_closed():
    periods = text_data.parse_periods([_period(1, "0900", "1700"), _period(2, "0800")])

    lines = text_data.weekday_text(periods)

    assert lines[1] == "Monday: 9:00 AM – 5:00 PM"
    assert lines[2] == "Tuesday: Closed"


def test_parse_periods_drops_malformed_entries():
    periods = text_data.parse_periods(
        [
            _period(2, "0900", "1700"),
            {"open": {"day": 9, "time": "0900"}},
            {"open": {"day": True, "time": "0900"}},
            {"open": {"day": 3}},
            "closed",
        ]
    )

    assert periods == [OpeningPeriod(open_day=2, open_time="0900", close_day=2, close_time="1700")]
    assert text_data.parse_periods({"periods": []}) == []


def test_group_nearby_places_by_first_type():
    grouped = text_data.group_nearby_places(
        [
            {"name": "Cafe Uno", "types": ["cafe", "food"], "vicinity": "1 Main"},
            {"name": "Bus Stop 4", "types": ["bus_station"]},
            {"name": "Mystery"},
            {"vicinity": "nameless"},
        ]
    )

    assert set(grouped) == {"cafe", "bus_station", "other"}
    assert grouped["cafe"][0]["name"] == "Cafe Uno"
    assert grouped["other"][0]["name"] == "Mystery"


def test_group_nearby_places_keeps_existing_categories():
    grouped = text_data.group_nearby_places(
        {"food": [{"name": "Taco Hut", "priceLevel": "$$", "walkingDistance": "1 min walk"}], "transit": []}
    )

    assert list(grouped) == ["food"]
    assert grouped["food"][0]["priceLevel"] == "$$"
    assert grouped["food"][0]["walkingDistance"] == "1 min walk"


def test_extract_amenities():
    details = PlaceDetails.from_payload({"wheelchair_accessible_entrance": True, "has_wifi": True})

    assert text_data.extract_amenities(details) == [
        "Laundromat",
        "Local Service",
        "Wheelchair Accessible",
        "Entertainment",
    ]


def test_build_text_data_prefers_stored_periods():
    listing = {
        "id": 3,
        "address": "100 Main St",
        "business_hours": [_period(1, "0000", "2359")],
        "google_details": {
            "formatted_address": "100 Main St, Austin, TX 78701",
            "rating": 4.4,
            "user_ratings_total": 88,
            "opening_hours": {"weekday_text": ["Monday: Open 24 hours"]},
            "reviews": [
                {"author_name": "Dana", "rating": 5, "text": "Clean", "time": 0},
                "garbage",
            ],
            "photos": [{"photo_reference": "ref-1", "width": 800, "height": 600, "html_attributions": ["Dana"]}],
        },
        "nearby_places": {"food": [{"name": "Taco Hut"}]},
    }
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)

    result = text_data.build_text_data(listing, now=now)

    assert result["weekdayText"][1] == "Monday: 12:00 AM – 11:59 PM"
    assert len(result["weekdayText"]) == 7
    assert result["reviews"] == [
        {"author": "Dana", "rating": 5.0, "text": "Clean", "time": "1970-01-01T00:00:00+00:00", "language": "en"}
    ]
    assert result["photoRefs"] == [{"id": 0, "reference": "ref-1", "width": 800, "height": 600, "attribution": "Dana"}]
    assert result["nearbyPlaces"]["food"][0]["name"] == "Taco Hut"
    assert result["formattedAddress"] == "100 Main St, Austin, TX 78701"
    assert result["userRatingsTotal"] == 88
    assert result["lastUpdated"] == "2024-05-01T00:00:00+00:00"


def test_build_text_data_falls_back_to_weekday_text():
    listing = {"id": 4, "google_details": {"opening_hours": {"weekday_text": ["Monday: Open 24 hours"]}}}

    result = text_data.build_text_data(listing)

    assert result["weekdayText"] == ["Monday: Open 24 hours"]
    assert result["reviews"] == []
    assert result["nearbyPlaces"] == {}


def test_has_source_data():
    assert text_data.has_source_data({"google_details": {"name": "x"}}) is True
    assert text_data.has_source_data({"business_hours": [], "google_details": None}) is False
