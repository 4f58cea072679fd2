# backend/api/services/radius.py
from __future__ import annotations

import logging
import math
from typing import Any, Callable, Optional

from services import h3_utils

logger = logging.getLogger(__name__)

DEFAULT_GRID_DISTANCE = 3
MAX_GRID_DISTANCE = 50

# area of a regular hexagon is (3*sqrt(3)/2) * r^2 with r the circumradius
_HEX_AREA_FACTOR = 3 * math.sqrt(3) / 2


class RadiusConverter:
    """
    Turn a radius in km into an H3 grid-distance bound around a center cell.
    Never raises: anything unusable falls back to DEFAULT_GRID_DISTANCE.
    """

    def __init__(self, area_lookup: Optional[Callable[[str], Optional[float]]] = None):
        self._area_lookup = area_lookup or h3_utils.cell_area_km2

    def grid_distance(self, radius_km: Any, center_h3: Optional[str]) -> int:
        if not radius_km or not center_h3:
            logger.debug("Missing radius or center, using default of %d", DEFAULT_GRID_DISTANCE)
            return DEFAULT_GRID_DISTANCE

        try:
            radius = float(radius_km)
        except (TypeError, ValueError):
            return DEFAULT_GRID_DISTANCE
        if math.isnan(radius) or radius <= 0:
            return DEFAULT_GRID_DISTANCE

        try:
            area = self._area_lookup(center_h3)
        except Exception as e:
            logger.warning("Cell area lookup failed for %s: %s", center_h3, e)
            return DEFAULT_GRID_DISTANCE
        if area is None:
            return DEFAULT_GRID_DISTANCE

        try:
            cell_radius_km = math.sqrt(float(area) / _HEX_AREA_FACTOR)
            hops = math.ceil(radius / cell_radius_km)
        except (TypeError, ValueError, ZeroDivisionError, OverflowError):
            return DEFAULT_GRID_DISTANCE

        final = max(1, min(hops, MAX_GRID_DISTANCE))
        logger.debug(
            "radius=%.3fkm area=%.4fkm2 cell_radius=%.4fkm hops=%d final=%d",
            radius, float(area), cell_radius_km, hops, final,
        )
        return final
