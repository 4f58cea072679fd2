"""
Tests for GraphsService (totals, trends, proportions)
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import FakeTable, incident
from db.dynamo import IncidentStore
from services.errors import LocationNotFound, ValidationError
from services.filters import NO_FILTER, WithinHops, empty_vector
from services.geocoding import Geocoder
from services.graphs import GraphsService
from services.location import LocationResolver
from services.radius import RadiusConverter


def _vector(**counts):
    return {**empty_vector(), **counts}


@pytest.fixture
def incidents():
    store = MagicMock()
    store.aggregate_totals.return_value = _vector(burglary=30, violent=10, drugs=0)
    store.aggregate_by_period.return_value = {
        date(2024, 1, 1): _vector(burglary=3, violent=1),
        date(2024, 2, 1): _vector(drugs=2),
    }
    return store


@pytest.fixture
def resolver(camden_cell):
    resolver = MagicMock()
    resolver.resolve.return_value = camden_cell
    return resolver


@pytest.fixture
def radius():
    radius = MagicMock()
    radius.grid_distance.return_value = 4
    return radius


@pytest.fixture
def service(incidents, resolver, radius):
    return GraphsService(incidents, resolver, radius)


class TestLocationFilter:
    def test_no_location_means_no_filter(self, service, resolver):
        assert service.location_filter(None, 5) is NO_FILTER
        resolver.resolve.assert_not_called()

    def test_location_becomes_hop_filter(self, service, radius, camden_cell):
        spatial = service.location_filter("Camden", 2.5)

        assert spatial == WithinHops(camden_cell, 4)
        radius.grid_distance.assert_called_once_with(2.5, camden_cell)

    def test_resolution_failure_degrades_to_no_filter(self, service, resolver):
        resolver.resolve.side_effect = LocationNotFound("Atlantis")
        assert service.location_filter("Atlantis", 5) is NO_FILTER


class TestTotals:
    def test_labels_and_zero_categories_dropped(self, service):
        result = service.get_crime_totals("2024-01-01", "2024-12-31")

        assert result == [
            {"category": "Burglary", "count": 30},
            {"category": "Violent Crime", "count": 10},
        ]

    def test_crime_type_filter(self, service):
        assert service.get_crime_totals("2024-01-01", "2024-12-31", crime_types="violent") == [
            {"category": "Violent Crime", "count": 10},
        ]

    def test_location_filter_is_passed_to_store(self, service, incidents, camden_cell):
        service.get_crime_totals("2024-01-01", "2024-12-31", location="Camden", radius_km=2)

        args = incidents.aggregate_totals.call_args[0]
        assert args[2] == WithinHops(camden_cell, 4)

    def test_missing_end_date_defaults_to_today(self, service, incidents):
        service.get_crime_totals("2024-01-01")
        assert isinstance(incidents.aggregate_totals.call_args[0][1], date)

    def test_bad_dates_are_validation_errors(self, service, incidents):
        incidents.aggregate_totals.side_effect = ValueError("Invalid isoformat string")
        with pytest.raises(ValidationError):
            service.get_crime_totals("soon")


class TestTrends:
    def test_rows_carry_period_total_and_categories(self, service, incidents):
        rows = service.get_crime_trends("2024-01-01", "2024-12-31", group_by="month")

        assert incidents.aggregate_by_period.call_args[1]["group_by"] == "month"
        assert rows[0]["period"] == date(2024, 1, 1)
        assert rows[0]["total_crimes"] == 4
        assert rows[0]["burglary"] == 3
        assert rows[1]["total_crimes"] == 2

    def test_filtered_totals(self, service):
        rows = service.get_crime_trends("2024-01-01", "2024-12-31", crime_types="burglary")

        assert [r["total_crimes"] for r in rows] == [3, 0]
        assert rows[0]["violent"] == 0

    def test_unknown_grouping_falls_back_to_day(self, service, incidents):
        service.get_crime_trends("2024-01-01", "2024-12-31", group_by="fortnight")
        assert incidents.aggregate_by_period.call_args[1]["group_by"] == "day"


class TestProportions:
    def test_percentages_are_two_decimal_strings(self, service):
        result = service.get_crime_proportions("2024-01-01", "2024-12-31")

        assert result == [
            {"category": "Burglary", "count": 30, "percentage": "75.00"},
            {"category": "Violent Crime", "count": 10, "percentage": "25.00"},
        ]

    def test_percentages_sum_to_about_100(self, service, incidents):
        incidents.aggregate_totals.return_value = _vector(burglary=1, violent=1, drugs=1)
        result = service.get_crime_proportions("2024-01-01", "2024-12-31")

        assert [r["percentage"] for r in result] == ["33.33", "33.33", "33.33"]
        assert abs(sum(float(r["percentage"]) for r in result) - 100) < 0.05

    def test_no_crimes_is_empty(self, service, incidents):
        incidents.aggregate_totals.return_value = empty_vector()
        assert service.get_crime_proportions("2024-01-01", "2024-12-31") == []


def test_available_locations(service, incidents, london_cell, camden_cell):
    incidents.distinct_cells.return_value = [london_cell, camden_cell]

    assert service.get_available_locations() == [
        {"h3": london_cell, "name": "Location 1"},
        {"h3": camden_cell, "name": "Location 2"},
    ]
    incidents.distinct_cells.assert_called_once_with(9, 50)


def test_crime_types_are_canonical():
    types = GraphsService.get_crime_types()
    assert types[0] == "burglary"
    assert types[-1] == "vehicle_crime"
    assert len(types) == 11


@patch("services.geocoding.requests.get")
def test_unreadable_geocoder_reply_runs_unfiltered(mock_get, london_cell):
    """A non-JSON geocoder body drops the location filter instead of failing the chart."""
    resp = MagicMock(ok=True, status_code=200)
    resp.json.side_effect = requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)
    mock_get.return_value = resp

    store = IncidentStore(table=FakeTable([incident(london_cell, "burglary", "2024-03-01T10:00:00")]))
    service = GraphsService(store, LocationResolver(Geocoder(), store), RadiusConverter())

    result = service.get_crime_totals("2024-01-01", "2024-12-31", location="Camden", radius_km=3)

    assert result == [{"category": "Burglary", "count": 1}]
    assert [op for op, _ in store.table.calls] == ["scan"]
