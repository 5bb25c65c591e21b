import pytest

from laundromat_etl.etl import transform
from laundromat_etl.etl.states import normalize_state


def test_slugify():
    assert transform.slugify("Suds & Duds Laundry") == "suds-and-duds-laundry"
    assert transform.slugify("  Wash_N  Fold!! ") == "wash-n-fold"
    assert transform.slugify(None) == ""


def test_listing_slug_combines_name_city_state():
    assert transform.listing_slug("Bubbles Wash", "San Antonio", "TX") == "bubbles-wash-san-antonio-tx"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("30.2672, -97.7431", (30.2672, -97.7431)),
        ("(40.7, -74.0)", (40.7, -74.0)),
        ("95.0, 10.0", (None, None)),
        ("not,coords", (None, None)),
        ("30.2672", (None, None)),
        (None, (None, None)),
    ],
)
def test_parse_coordinates(value, expected):
    assert transform.parse_coordinates(value) == expected


def test_normalize_state_accepts_abbreviations_and_names():
    assert normalize_state("tx") == ("TX", "Texas")
    assert normalize_state("New York") == ("NY", "New York")
    assert normalize_state("Washington D.C.") == ("DC", "District of Columbia")
    assert normalize_state("Ontario") is None
    assert normalize_state("") is None


def test_normalize_phone():
    assert transform.normalize_phone("+1 512-472-1234") == "(512) 472-1234"
    assert transform.normalize_phone("call us") == "call us"
    assert transform.normalize_phone(None) == ""


def test_normalize_business_name():
    assert transform.normalize_business_name("SUDS  CITY LAUNDRY") == "Suds City Laundry"
    assert transform.normalize_business_name("Bubbles Wash - TX") == "Bubbles Wash"


def test_format_working_hours_from_dict_and_json():
    hours = {"Monday": "6AM-10PM", "Tuesday": ["6AM-10PM"]}
    assert transform.format_working_hours(hours) == "Monday: 6AM-10PM; Tuesday: 6AM-10PM"
    assert transform.format_working_hours('{"Sunday": "Closed"}') == "Sunday: Closed"
    assert transform.format_working_hours("Open daily") == "Open daily"
    assert transform.format_working_hours(None) == ""


def test_derive_features():
    features = transform.derive_features(
        "Suds Coin Laundry",
        ["Laundromat", "Wash and fold", "Free WiFi"],
        "Attendant on duty; pickup and delivery available",
        "Monday: 6AM-11PM",
    )

    assert features["coin"] is True
    assert features["drop_off"] is True
    assert features["wifi"] is True
    assert features["attendant"] is True
    assert features["pickup"] is True
    assert features["delivery"] is True
    assert features["open_late"] is True
    assert features["24_hour"] is False


def test_open_late_requires_closing_after_nine():
    assert transform.derive_features("A", [], "", "Monday: 7AM-8PM")["open_late"] is False
    assert transform.derive_features("A", [], "", "Monday: 7AM-9:30PM")["open_late"] is True


def test_seo_helpers():
    features = {"24_hour": True, "wifi": True}
    tags = transform.generate_seo_tags("Austin", "TX", "78701", features)

    assert tags[:4] == ["laundromat", "laundry service", "washing machine", "dryer"]
    assert "laundromat in Austin" in tags
    assert "laundromat 78701" in tags
    assert "24 hour laundromat" in tags
    assert len(tags) == len(set(tags))
    assert transform.generate_seo_title("Suds", "Austin", "TX") == "Suds - Laundromat in Austin, TX"

    description = transform.generate_seo_description("Suds", "Austin", "Texas", features, 4.7, 120)
    assert description.startswith("Suds is a convenient laundromat located in Austin, Texas.")
    assert "Open 24 hours" in description
    assert "Highly rated with 4.7 stars from 120 customers." in description


def test_premium_score_and_tier():
    full = transform.calculate_premium_score(
        has_photo=True, has_logo=True, website="https://suds.example", rating=4.8, review_count=300, tag_count=6
    )
    assert full == 90
    assert transform.premium_tier(full) == "High"

    medium = transform.calculate_premium_score(
        has_photo=True, has_logo=False, website=None, rating=4.2, review_count=60, tag_count=2
    )
    assert medium == 45
    assert transform.premium_tier(medium) == "Medium"
    assert transform.premium_tier(0) == "Low"


def test_premium_score_counts_seo_tags():
    row = transform.to_listing_row(
        {"name": "Plain Wash", "address": "1 Oak", "city": "Reno", "state": "NV", "photo": "https://x/p.jpg"}
    )

    assert len(row.seo_tags) >= 3
    assert row.premium_score == 40
    assert transform.premium_tier(row.premium_score) == "Medium"


def test_seo_description_is_capped():
    features = {key: True for key in ("24_hour", "wifi", "attendant", "coin", "drop_off", "pickup", "delivery")}

    description = transform.generate_seo_description("Suds " * 60, "Austin", "Texas", features, 4.8, 300)
    short = transform.generate_seo_description("Suds", "Austin", "Texas", {}, None, 0)

    assert len(description) == transform.MAX_SEO_DESCRIPTION + 3
    assert description.endswith("...")
    assert not short.endswith("...")


def test_to_listing_row_shapes_record():
    record = {
        "title": "SUDS CITY LAUNDROMAT",
        "full_address": "100 Main St",
        "city": "Austin",
        "state": "texas",
        "postal_code": 8701.0,
        "phone": "512-472-1234",
        "site": "https://suds.example",
        "rating": "4.6",
        "reviews": "1,204",
        "gps_coordinates": "30.2672,-97.7431",
        "category": "Laundromat, Wash and fold, Laundromat",
        "working_hours": {"Monday": "Open 24 hours"},
        "photo": "https://img.example/suds.jpg",
        "washers": 20,
    }

    row = transform.to_listing_row(record)

    assert row.name == "Suds City Laundromat"
    assert row.slug == "suds-city-laundromat-austin-tx"
    assert row.state == "TX"
    assert row.state_name == "Texas"
    assert row.city_slug == "austin-tx"
    assert row.zip == "08701"
    assert row.phone == "(512) 472-1234"
    assert (row.latitude, row.longitude) == (30.2672, -97.7431)
    assert row.rating == 4.6
    assert row.review_count == 1204
    assert row.services == ["Laundromat", "Wash and fold"]
    assert row.hours == "Monday: Open 24 hours"
    assert "Open 24 Hours" in row.amenities
    assert row.machine_count == {"washers": 20, "dryers": 0}
    assert row.seo_title == "Suds City Laundromat - Laundromat in Austin, TX"
    assert row.premium_score == 30 + 10 + 20 + 10 + 10
    assert row.listing_type == "basic"


def test_to_listing_row_uses_latitude_columns():
    row = transform.to_listing_row(
        {"name": "Bubbles", "address": "1 Oak", "city": "Reno", "state": "NV", "lat": "39.5", "lng": "-119.8"}
    )
    assert (row.latitude, row.longitude) == (39.5, -119.8)


def test_to_listing_row_drops_out_of_range_rating():
    row = transform.to_listing_row({"name": "A", "address": "1 Oak", "city": "Reno", "state": "NV", "rating": 7})
    assert row.rating is None


@pytest.mark.parametrize(
    "record,reason",
    [
        ({"address": "1 Oak", "city": "Reno", "state": "NV"}, "missing name"),
        ({"name": "A", "city": "Reno", "state": "NV"}, "missing address"),
        ({"name": "A", "address": "1 Oak", "city": "  ", "state": "NV"}, "missing city"),
        ({"name": "A", "address": "1 Oak", "city": "Reno", "state": "Narnia"}, "unknown state"),
    ],
)
def test_to_listing_row_rejects_incomplete_records(record, reason):
    with pytest.raises(transform.InvalidRecord, match=reason):
        transform.to_listing_row(record)
