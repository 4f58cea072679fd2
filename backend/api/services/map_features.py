# backend/api/services/map_features.py
from __future__ import annotations

import logging
import os
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Hashable, List, Optional, Tuple

from cachetools import LRUCache

from models.crime import CRIME_TYPES
from services import h3_utils
from services.errors import ValidationError
from services.filters import CategoryVector, category_vector

logger = logging.getLogger(__name__)

MAP_CACHE_MAX_ENTRIES = int(os.getenv("MAP_CACHE_MAX_ENTRIES", "128"))
HEXAGON_WINDOW_DAYS = 365


def month_floor(value: Any) -> datetime:
    """First instant (UTC) of the calendar month `value` falls in."""
    if isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        value = datetime.fromisoformat(s)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
    elif not isinstance(value, date):
        raise ValueError(f"Unsupported date: {value!r}")
    return datetime(value.year, value.month, 1, tzinfo=timezone.utc)


def cache_key(start: Any, end: Any) -> Tuple[datetime, datetime]:
    return month_floor(start), month_floor(end)


class MapFeatureCache:
    """
    Bounded LRU map for formatted map features. No TTL: an entry lives until
    it is the least recently used one and room is needed.
    """

    def __init__(self, maxsize: int = MAP_CACHE_MAX_ENTRIES):
        self.maxsize = max(1, int(maxsize))
        self._data = LRUCache(maxsize=self.maxsize)
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        # a hit refreshes the entry's recency
        with self._lock:
            return self._data.get(key)

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


def format_crime_data(raw: Dict[str, CategoryVector]) -> List[List[Any]]:
    """{h3: vector} -> [[h3, burglary, personal_theft, ...], ...]"""
    rows = []
    for h3_index, vector in raw.items():
        vec = category_vector(vector)
        rows.append([h3_index, *(vec[c] for c in CRIME_TYPES)])
    return rows


class MapService:
    def __init__(self, incident_store, geocoder, proximity_locator, cache: Optional[MapFeatureCache] = None):
        self.incidents = incident_store
        self.geocoder = geocoder
        self.proximity = proximity_locator
        self.cache = cache if cache is not None else MapFeatureCache()

    def get_map_features(self, start_date: Any, end_date: Any = None) -> List[List[Any]]:
        """
        Per-cell crime counts for the map. Requests whose bounds land in the
        same (start month, end month) pair share one cached result.
        """
        end_date = end_date or datetime.now(timezone.utc)
        try:
            key = cache_key(start_date, end_date)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Map cache hit %s", key)
            return cached

        logger.debug("Map cache miss %s", key)
        raw = self.incidents.aggregate_by_cell(
            start_date, end_date, parent_resolution=h3_utils.REFERENCE_RESOLUTION
        )
        formatted = format_crime_data(raw)
        self.cache.put(key, formatted)
        return formatted

    def format_crime_data_with_location(self, raw: Dict[str, CategoryVector]) -> List[Dict[str, Any]]:
        cells = list(raw)
        names = self.geocoder.location_names(cells)
        out = []
        for h3_index, name in zip(cells, names):
            vec = category_vector(raw[h3_index])
            out.append({"h3": h3_index, "name": name, "crimes": [vec[c] for c in CRIME_TYPES]})
        return out

    def get_hexagon_data(self, h3_index: Optional[str], start_date: Any = None, end_date: Any = None) -> Optional[Dict[str, Any]]:
        """
        Detail view for one cell: counts, place name and nearest emergency
        services. None when the cell has no incidents in the window.
        """
        if not h3_index:
            raise ValidationError("H3 index is required")
        try:
            cell = h3_utils.parent_at(h3_index, h3_utils.REFERENCE_RESOLUTION)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        end_date = end_date or datetime.now(timezone.utc)
        start_date = start_date or (datetime.now(timezone.utc) - timedelta(days=HEXAGON_WINDOW_DAYS))

        try:
            vector = self.incidents.aggregate_for_cell(cell, start_date, end_date)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if vector is None:
            return None

        formatted = self.format_crime_data_with_location({cell: vector})[0]
        formatted["emergencyServices"] = self.proximity.find_closest(cell)
        return formatted
