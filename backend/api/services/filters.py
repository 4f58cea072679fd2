# backend/api/services/filters.py
"""
Spatial and categorical filters for aggregate queries.

Spatial filters are plain values (NO_FILTER or WithinHops) that the store
renders into boto3 key conditions. Nothing here builds expression strings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from models.crime import CRIME_TYPES
from services import h3_utils

logger = logging.getLogger(__name__)

CategoryVector = Dict[str, int]


# ---------- Category vectors ----------
def to_count(value: Any) -> int:
    """None / '' / garbage / negatives -> 0. Accepts Decimal from DynamoDB."""
    if value is None or value == "":
        return 0
    try:
        n = int(value)
    except (TypeError, ValueError):
        try:
            n = int(float(value))
        except (TypeError, ValueError):
            return 0
    return max(n, 0)


def empty_vector() -> CategoryVector:
    return {c: 0 for c in CRIME_TYPES}


def category_vector(row: Optional[Mapping[str, Any]]) -> CategoryVector:
    """Normalize any mapping (DB row, cached dict) to the 11-category vector."""
    row = row or {}
    return {c: to_count(row.get(c)) for c in CRIME_TYPES}


def vector_total(vector: Mapping[str, Any]) -> int:
    return sum(to_count(vector.get(c)) for c in CRIME_TYPES)


def add_vectors(a: CategoryVector, b: Mapping[str, Any]) -> CategoryVector:
    return {c: a.get(c, 0) + to_count(b.get(c)) for c in CRIME_TYPES}


# ---------- Categorical filter ----------
def parse_crime_types(crime_types: Union[None, str, Iterable[str]]) -> Optional[Set[str]]:
    """
    'burglary,violent' / ['burglary', 'violent'] / {'burglary'} -> set of names.
    None or empty -> None (no filter).
    """
    if crime_types is None:
        return None
    if isinstance(crime_types, str):
        parts = [p.strip() for p in crime_types.split(",")]
    else:
        parts = [str(p).strip() for p in crime_types]
    wanted = {p for p in parts if p}
    return wanted or None


def filter_crime_types(row: Mapping[str, Any], crime_types: Union[None, str, Iterable[str]]) -> Dict[str, Any]:
    """
    Zero every category not in `crime_types`; wanted categories keep their
    value and non-category keys (period, h3, ...) pass through. No filter
    returns the row unchanged.
    """
    wanted = parse_crime_types(crime_types)
    if wanted is None:
        return row  # type: ignore[return-value]

    filtered = dict(row)
    for column in CRIME_TYPES:
        if column not in wanted:
            filtered[column] = 0
    return filtered


# ---------- Spatial filter ----------
@dataclass(frozen=True)
class NoSpatialFilter:
    """Matches every cell."""

    def matches(self, cell: str) -> bool:
        return True

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class WithinHops:
    center: str
    hops: int

    @property
    def resolution(self) -> int:
        return h3_utils.resolution_of(self.center)

    def cells(self) -> List[str]:
        """Explicit grid disk: every cell within `hops` of center."""
        return h3_utils.grid_disk(self.center, self.hops)

    def matches(self, cell: str) -> bool:
        try:
            norm = h3_utils.parent_at(cell, self.resolution)
            return h3_utils.grid_distance(norm, self.center) <= self.hops
        except Exception:
            # too far apart, pentagon distortion or a bad id: outside the filter
            return False


SpatialFilter = Union[NoSpatialFilter, WithinHops]

NO_FILTER = NoSpatialFilter()


def build_location_filter(h3_index: Optional[str], grid_distance: int) -> SpatialFilter:
    if not h3_index:
        logger.debug("No H3 index, no location filter")
        return NO_FILTER
    spatial = WithinHops(center=h3_index, hops=int(grid_distance))
    logger.debug("Location filter built: %s", spatial)
    return spatial


def parse_tags(value: Optional[str]) -> List[str]:
    """'violent, drugs' / 'violent drugs' -> ['violent', 'drugs']."""
    if not value:
        return []
    return [t for t in str(value).replace(",", " ").split() if t]
