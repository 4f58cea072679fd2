"""
Tests for LocationResolver (free text -> H3 cell)
"""

from unittest.mock import MagicMock

import h3
import pytest

from conftest import CAMDEN, FakeGeocoder
from services.errors import (
    GeocodingUnavailable,
    LocationNotFound,
    LocationResolutionError,
)
from services.location import LocationResolver


@pytest.fixture
def store():
    store = MagicMock()
    store.sample_resolution.return_value = 9
    return store


def test_blank_input_returns_none_without_geocoding(store):
    geocoder = FakeGeocoder()
    resolver = LocationResolver(geocoder, store)

    assert resolver.resolve(None) is None
    assert resolver.resolve("") is None
    assert resolver.resolve("   ") is None
    assert geocoder.searched == []


def test_resolves_first_match_at_stored_resolution(store, camden_cell):
    store.sample_resolution.return_value = 9
    resolver = LocationResolver(FakeGeocoder(), store)

    assert resolver.resolve("Camden, London") == camden_cell


def test_follows_stored_resolution(store):
    store.sample_resolution.return_value = 11
    cell = LocationResolver(FakeGeocoder(), store).resolve("Camden, London")

    assert h3.get_resolution(cell) == 11
    assert cell == h3.latlng_to_cell(CAMDEN[0], CAMDEN[1], 11)


def test_empty_table_falls_back_to_resolution_9(store, camden_cell):
    store.sample_resolution.return_value = None
    assert LocationResolver(FakeGeocoder(), store).resolve("Camden") == camden_cell


def test_no_matches_raises_not_found(store):
    resolver = LocationResolver(FakeGeocoder(matches=[]), store)

    with pytest.raises(LocationNotFound) as exc:
        resolver.resolve("Nowhere-at-all")
    assert str(exc.value) == 'Location "Nowhere-at-all" not found'


def test_provider_failure_propagates(store):
    geocoder = MagicMock()
    geocoder.search.side_effect = GeocodingUnavailable()

    with pytest.raises(GeocodingUnavailable):
        LocationResolver(geocoder, store).resolve("Camden")


def test_bad_coordinates_raise_resolution_error(store):
    resolver = LocationResolver(FakeGeocoder(matches=[{"lat": "north", "lon": "-0.14"}]), store)

    with pytest.raises(LocationResolutionError) as exc:
        resolver.resolve("Camden")
    assert exc.value.stage == "geocode"
    assert str(exc.value).startswith("Error converting location to H3:")


def test_store_failure_raises_resolution_error(store):
    store.sample_resolution.side_effect = RuntimeError("table missing")

    with pytest.raises(LocationResolutionError) as exc:
        LocationResolver(FakeGeocoder(), store).resolve("Camden")
    assert exc.value.stage == "resolution"
    assert "table missing" in str(exc.value)


def test_out_of_range_coordinates_raise_resolution_error(store):
    resolver = LocationResolver(FakeGeocoder(matches=[{"lat": "51.5", "lon": "-0.1"}]), store)
    store.sample_resolution.return_value = 99

    with pytest.raises(LocationResolutionError) as exc:
        resolver.resolve("Camden")
    assert exc.value.stage == "cell"
