import json

import pytest

from laundromat_etl.core import db
from laundromat_etl.core.config import Settings
from laundromat_etl.core.models import GeocodedAddress, Outcome
from laundromat_etl.etl.geocoding import address_fields, needs_address
from laundromat_etl.jobs import geocode_addresses
from laundromat_etl.vendors import google_places

RENO_PAYLOAD = {
    "status": "OK",
    "results": [
        {
            "formatted_address": "1 Oak St, Reno, NV 89501, USA",
            "place_id": "geo-1",
            "address_components": [
                {"long_name": "1", "short_name": "1", "types": ["street_number"]},
                {"long_name": "Oak Street", "short_name": "Oak St", "types": ["route"]},
                {"long_name": "Reno", "short_name": "Reno", "types": ["locality", "political"]},
                {"long_name": "Nevada", "short_name": "NV", "types": ["administrative_area_level_1", "political"]},
                {"long_name": "United States", "short_name": "US", "types": ["country", "political"]},
                {"long_name": "89501", "short_name": "89501", "types": ["postal_code"]},
            ],
        }
    ],
}


@pytest.fixture
def geocode_calls(monkeypatch):
    calls = []

    def fake_reverse_geocode(lat, lng, api_key):
        calls.append((lat, lng))
        return RENO_PAYLOAD

    monkeypatch.setattr(google_places, "reverse_geocode", fake_reverse_geocode)
    return calls


def _geocoder(tmp_path, sleeps=None):
    settings = Settings(database_url="", google_api_key="key", geocode_cache_dir=str(tmp_path), request_delay=0.5)
    return geocode_addresses.Geocoder(settings, "key", sleep=(sleeps if sleeps is not None else []).append)


def test_geocoded_address_from_payload():
    geocoded = GeocodedAddress.from_payload(RENO_PAYLOAD)

    assert geocoded.street == "1 Oak Street"
    assert (geocoded.city, geocoded.state, geocoded.postal_code, geocoded.country) == ("Reno", "NV", "89501", "US")
    assert geocoded.place_id == "geo-1"
    assert GeocodedAddress.from_payload({"status": "OK", "results": []}) is None


@pytest.mark.parametrize(
    "address,expected",
    [(None, True), ("  ", True), ("Placeholder address", True), ("123 Main St", True), ("1 Oak St", False)],
)
def test_needs_address(address, expected):
    assert needs_address(address) is expected


def test_address_fields_fall_back_to_formatted_address():
    fields = address_fields(GeocodedAddress(formatted_address="Reno, NV, USA", city="Reno", state="Nevada"))

    assert fields == {"address": "Reno, NV, USA", "city": "Reno", "state": "NV", "zip_code": ""}


def test_lookup_caches_result_on_disk(tmp_path, geocode_calls):
    sleeps = []
    geocoder = _geocoder(tmp_path, sleeps)

    first = geocoder.lookup(39.5, -119.8)
    second = geocoder.lookup(39.5, -119.8)

    assert first == second
    assert geocode_calls == [(39.5, -119.8)]
    cached = json.loads((tmp_path / "geo_39_5_-119_8.json").read_text(encoding="utf-8"))
    assert cached["results"][0]["place_id"] == "geo-1"
    assert sleeps == []


def test_lookup_without_results_is_not_cached(tmp_path, monkeypatch):
    monkeypatch.setattr(
        google_places, "reverse_geocode", lambda lat, lng, api_key: {"status": "ZERO_RESULTS", "results": []}
    )
    geocoder = _geocoder(tmp_path)

    assert geocoder.lookup(1.0, 2.0) is None
    assert list(tmp_path.iterdir()) == []


def test_lookup_pauses_between_requests(tmp_path, geocode_calls):
    sleeps = []
    geocoder = _geocoder(tmp_path, sleeps)

    geocoder.lookup(1.0, 2.0)
    geocoder.lookup(3.0, 4.0)

    assert sleeps == [0.5]


def test_handler_writes_geocoded_address(tmp_path, geocode_calls, monkeypatch):
    updates = []
    monkeypatch.setattr(db, "update_address", lambda conn, listing_id, **kwargs: updates.append((listing_id, kwargs)))
    handler = geocode_addresses.make_handler(_geocoder(tmp_path))

    outcome = handler(None, {"id": 9, "address": "Placeholder", "latitude": 39.5, "longitude": -119.8})

    assert outcome is Outcome.UPDATED
    listing_id, kwargs = updates[0]
    assert listing_id == 9
    assert kwargs["address"] == "1 Oak Street"
    assert (kwargs["city"], kwargs["state"], kwargs["zip_code"]) == ("Reno", "NV", "89501")
    assert kwargs["geocoded"]["placeId"] == "geo-1"


def test_handler_skips_good_addresses_and_missing_coordinates(tmp_path, geocode_calls, monkeypatch):
    monkeypatch.setattr(db, "update_address", lambda conn, listing_id, **kwargs: pytest.fail("unexpected write"))
    handler = geocode_addresses.make_handler(_geocoder(tmp_path))

    assert handler(None, {"id": 1, "address": "1 Oak St", "latitude": 1.0, "longitude": 2.0}) is Outcome.SKIPPED
    assert handler(None, {"id": 2, "address": "", "latitude": None, "longitude": 2.0}) is Outcome.SKIPPED
    assert geocode_calls == []


def test_handler_rejects_result_without_address(tmp_path, monkeypatch):
    monkeypatch.setattr(
        google_places, "reverse_geocode", lambda lat, lng, api_key: {"status": "OK", "results": [{"types": []}]}
    )
    handler = geocode_addresses.make_handler(_geocoder(tmp_path))

    with pytest.raises(geocode_addresses.GeocodeError):
        handler(None, {"id": 3, "address": None, "latitude": 1.0, "longitude": 2.0})


def test_run_geocode_walks_missing_addresses(fake_db, database_env, tmp_path, geocode_calls, monkeypatch):
    rows = [{"id": 4, "address": "", "latitude": 39.5, "longitude": -119.8}]
    filters = []

    def fake_fetch(conn, after_id, limit, filter_name="all"):
        filters.append(filter_name)
        return [row for row in rows if row["id"] > after_id][:limit]

    monkeypatch.setattr(db, "fetch_listings", fake_fetch)
    monkeypatch.setattr(db, "update_address", lambda conn, listing_id, **kwargs: None)
    args = geocode_addresses.build_parser().parse_args(["--batch-size", "5"])

    result = geocode_addresses.run_geocode(args, geocoder=_geocoder(tmp_path))

    assert result.updated == 1
    assert result.done is True
    assert filters == ["missing_address"]
    assert fake_db.committed["checkpoints"]["geocode"]["cursor"] == 4
