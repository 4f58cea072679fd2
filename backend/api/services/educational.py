# backend/api/services/educational.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from models.crime import CRIME_TYPES
from services import h3_utils
from services.errors import ValidationError
from services.filters import category_vector, parse_tags

logger = logging.getLogger(__name__)

TOP_CRIME_LIMIT = 5
LOOKBACK_DAYS = 365
# one level coarser than the reference resolution, tried once when the home
# cell has no data
WIDER_AREA_RESOLUTION = h3_utils.REFERENCE_RESOLUTION - 1


def top_crime_types(vector: Optional[Mapping[str, Any]], limit: int = TOP_CRIME_LIMIT) -> List[str]:
    """Category names by descending count, zeros dropped, ties in canonical order."""
    if not vector:
        return []
    vec = category_vector(vector)
    ranked = sorted((c for c in CRIME_TYPES if vec[c] > 0), key=lambda c: -vec[c])
    return ranked[:limit]


def calculate_relevance_score(resource_crime_types: Any, user_top_crimes: Sequence[str]) -> int:
    """
    Each tag found in the ranked list scores (len(list) - position) * 2,
    so the most prevalent local crime weighs most.
    """
    tags = resource_crime_types if isinstance(resource_crime_types, (list, tuple, set)) else parse_tags(resource_crime_types)
    top = list(user_top_crimes)
    score = 0
    for tag in tags:
        if tag in top:
            score += (len(top) - top.index(tag)) * 2
    return score


class EducationalService:
    def __init__(self, resource_store, incident_store):
        self.resources = resource_store
        self.incidents = incident_store

    def get_all_resources(self) -> List[Dict[str, Any]]:
        return self.resources.get_all()

    def get_resources_by_crime_types(self, crime_types: Optional[Iterable[str]]) -> List[Dict[str, Any]]:
        return self.resources.get_by_crime_types(crime_types)

    def get_resources_by_crime_type(self, crime_type: Optional[str]) -> List[Dict[str, Any]]:
        if not crime_type:
            raise ValidationError("Crime type is required")
        return self.resources.get_by_crime_types([crime_type])

    def get_user_top_crime_types(self, user_h3: Any) -> List[str]:
        """
        Top local crimes over the last year around the user's home cell. An
        empty list means no personalisation is possible; it is never an error.
        """
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=LOOKBACK_DAYS)
        try:
            home = h3_utils.parent_at(user_h3, h3_utils.REFERENCE_RESOLUTION)
            vector = self.incidents.aggregate_for_cell(home, start, end)
            if not vector:
                logger.info("No crime data for %s, trying wider area", home)
                wider = h3_utils.parent_at(home, WIDER_AREA_RESOLUTION)
                vector = self.incidents.aggregate_for_cell(wider, start, end)
        except Exception:
            logger.exception("Error getting top crime types for %r", user_h3)
            return []

        if not vector:
            logger.info("No crime data for user area or wider region")
            return []
        return top_crime_types(vector)

    def get_tailored_resources(self, user_h3: Any) -> List[Dict[str, Any]]:
        top = self.get_user_top_crime_types(user_h3)
        if not top:
            return self.get_all_resources()

        return [
            {
                **resource,
                "relevance_score": calculate_relevance_score(resource.get("target_crime_type"), top),
                "top_local_crimes": top,
            }
            for resource in self.get_resources_by_crime_types(top)
        ]
