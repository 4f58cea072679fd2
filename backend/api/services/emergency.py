# backend/api/services/emergency.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from services import h3_utils
from services.errors import ValidationError

logger = logging.getLogger(__name__)

# response key -> value of the stored `type` attribute
FACILITY_TYPES: Dict[str, str] = {
    "police": "police",
    "hospital": "NHS Hospital",
}


class ProximityLocator:
    """
    Nearest police station / hospital to a cell by H3 grid distance.

    Every facility is scanned (no spatial pruning), which is fine while the
    table holds a few hundred rows.
    """

    def __init__(self, service_store, *, resolution: int = h3_utils.REFERENCE_RESOLUTION):
        self.services = service_store
        self.resolution = resolution

    def find_closest(self, h3_index: Any) -> Dict[str, Optional[Dict[str, Any]]]:
        try:
            origin = h3_utils.parent_at(h3_index, self.resolution)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        by_type = {stored: key for key, stored in FACILITY_TYPES.items()}
        closest: Dict[str, Optional[Dict[str, Any]]] = {key: None for key in FACILITY_TYPES}

        for row in self.services.get_by_types(list(by_type)):
            key = by_type.get(row.get("type"))
            if key is None:
                continue
            try:
                cell = h3_utils.parent_at(row.get("h3"), self.resolution)
                distance = h3_utils.grid_distance(origin, cell)
            except Exception as e:
                logger.warning("Error processing facility row %r: %s", row, e)
                continue

            best = closest[key]
            # strict '<' keeps the first row seen on ties
            if best is None or distance < best["distance"]:
                closest[key] = {
                    "name": row.get("name"),
                    "type": row.get("type"),
                    "h3": cell,
                    "distance": int(distance),
                }
        return closest
