"""
Tests for ProximityLocator
"""

from unittest.mock import MagicMock

import h3
import pytest

from services.emergency import ProximityLocator
from services.errors import PersistenceError, ValidationError


def _locator(rows):
    store = MagicMock()
    store.get_by_types.return_value = rows
    return ProximityLocator(store)


def test_closest_of_each_type(london_cell):
    near = h3.grid_ring(london_cell, 1)[0]
    mid = h3.grid_ring(london_cell, 4)[0]
    far = h3.grid_ring(london_cell, 9)[0]
    locator = _locator([
        {"name": "Far Police", "type": "police", "h3": far},
        {"name": "Near Police", "type": "police", "h3": near},
        {"name": "St Thomas'", "type": "NHS Hospital", "h3": mid},
    ])

    result = locator.find_closest(london_cell)

    assert result["police"] == {"name": "Near Police", "type": "police", "h3": near, "distance": 1}
    assert result["hospital"]["name"] == "St Thomas'"
    assert result["hospital"]["distance"] == 4


def test_first_row_wins_ties(london_cell):
    ring = h3.grid_ring(london_cell, 2)
    locator = _locator([
        {"name": "A", "type": "police", "h3": ring[0]},
        {"name": "B", "type": "police", "h3": ring[1]},
    ])
    assert locator.find_closest(london_cell)["police"]["name"] == "A"


def test_missing_type_is_none(london_cell):
    result = _locator([{"name": "A", "type": "police", "h3": london_cell}]).find_closest(london_cell)

    assert result["police"]["distance"] == 0
    assert result["hospital"] is None


def test_finer_inputs_and_integer_ids_are_normalized(london_cell):
    child = h3.cell_to_children(london_cell, 11)[0]
    locator = _locator([{"name": "A", "type": "NHS Hospital", "h3": h3.str_to_int(london_cell)}])

    result = locator.find_closest(child)
    assert result["hospital"]["h3"] == london_cell
    assert result["hospital"]["distance"] == 0


def test_bad_rows_are_skipped(london_cell):
    locator = _locator([
        {"name": "Broken", "type": "police", "h3": "nope"},
        {"name": "Too far", "type": "police", "h3": h3.latlng_to_cell(-33.86, 151.2, 9)},
        {"name": "Fine", "type": "police", "h3": h3.grid_ring(london_cell, 3)[0]},
        {"name": "Ignored", "type": "fire", "h3": london_cell},
    ])
    assert locator.find_closest(london_cell)["police"]["name"] == "Fine"


def test_invalid_query_cell():
    with pytest.raises(ValidationError):
        _locator([]).find_closest("zzz")


def test_store_errors_propagate(london_cell):
    store = MagicMock()
    store.get_by_types.side_effect = PersistenceError("boom")
    with pytest.raises(PersistenceError):
        ProximityLocator(store).find_closest(london_cell)


def test_asks_store_for_stored_type_names(london_cell):
    store = MagicMock()
    store.get_by_types.return_value = []
    ProximityLocator(store).find_closest(london_cell)
    assert sorted(store.get_by_types.call_args[0][0]) == ["NHS Hospital", "police"]
