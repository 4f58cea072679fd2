# backend/api/services/graphs.py
"""
Chart data: per-category totals (bar), trends over time (line) and
proportions (pie), each optionally narrowed to a radius around a free-text
location and to a subset of crime types.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from models.crime import CRIME_LABELS, CRIME_TYPES
from services import h3_utils
from services.errors import StreetSafeError, ValidationError
from services.filters import (
    NO_FILTER,
    SpatialFilter,
    build_location_filter,
    filter_crime_types,
    vector_total,
)
from services.radius import DEFAULT_GRID_DISTANCE

logger = logging.getLogger(__name__)

GROUP_BY_OPTIONS = ("day", "month", "year")
MAX_LOCATIONS = 50


def _today() -> date:
    return datetime.now(timezone.utc).date()


class GraphsService:
    def __init__(self, incident_store, location_resolver, radius_converter):
        self.incidents = incident_store
        self.resolver = location_resolver
        self.radius = radius_converter

    def location_filter(self, location: Optional[str], radius_km: Any) -> SpatialFilter:
        """
        Spatial filter for the request. Resolution problems are not fatal: the
        query just runs without a location constraint.
        """
        if not location:
            return NO_FILTER
        try:
            h3_index = self.resolver.resolve(location)
        except StreetSafeError as e:
            logger.warning("Location processing failed for %r: %s", location, e)
            return NO_FILTER
        grid_distance = self.radius.grid_distance(radius_km, h3_index)
        return build_location_filter(h3_index, grid_distance)

    def get_crime_totals(
        self,
        start_date: Any,
        end_date: Any = None,
        location: Optional[str] = None,
        radius_km: Any = DEFAULT_GRID_DISTANCE,
        crime_types: Any = None,
    ) -> List[Dict[str, Any]]:
        end_date = end_date or _today()
        spatial = self.location_filter(location, radius_km)
        try:
            totals = self.incidents.aggregate_totals(start_date, end_date, spatial)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        filtered = filter_crime_types(totals, crime_types)
        result = [
            {"category": CRIME_LABELS[c], "count": int(filtered.get(c) or 0)}
            for c in CRIME_TYPES
        ]
        return [item for item in result if item["count"] > 0]

    def get_crime_trends(
        self,
        start_date: Any,
        end_date: Any = None,
        location: Optional[str] = None,
        radius_km: Any = DEFAULT_GRID_DISTANCE,
        crime_types: Any = None,
        group_by: str = "month",
    ) -> List[Dict[str, Any]]:
        end_date = end_date or _today()
        if group_by not in GROUP_BY_OPTIONS:
            group_by = "day"
        spatial = self.location_filter(location, radius_km)
        try:
            buckets = self.incidents.aggregate_by_period(start_date, end_date, group_by=group_by, spatial=spatial)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        rows = []
        for period, vector in buckets.items():
            filtered = filter_crime_types(vector, crime_types)
            rows.append({"period": period, "total_crimes": vector_total(filtered), **filtered})
        return rows

    def get_crime_proportions(
        self,
        start_date: Any,
        end_date: Any = None,
        location: Optional[str] = None,
        radius_km: Any = DEFAULT_GRID_DISTANCE,
        crime_types: Any = None,
    ) -> List[Dict[str, Any]]:
        totals = self.get_crime_totals(start_date, end_date, location, radius_km, crime_types)
        total_crimes = sum(item["count"] for item in totals)
        if total_crimes == 0:
            return []
        return [
            {**item, "percentage": f"{item['count'] / total_crimes * 100:.2f}"}
            for item in totals
        ]

    def get_available_locations(self) -> List[Dict[str, str]]:
        cells = self.incidents.distinct_cells(h3_utils.REFERENCE_RESOLUTION, MAX_LOCATIONS)
        return [{"h3": cell, "name": f"Location {i + 1}"} for i, cell in enumerate(cells)]

    def get_date_range(self) -> Dict[str, Optional[date]]:
        return self.incidents.date_range()

    @staticmethod
    def get_crime_types() -> List[str]:
        return list(CRIME_TYPES)
