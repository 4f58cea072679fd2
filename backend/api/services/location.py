# backend/api/services/location.py
from __future__ import annotations

import logging
from typing import Optional

from services import h3_utils
from services.errors import LocationNotFound, LocationResolutionError

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 9


class LocationResolver:
    """
    Free text ("Camden, London") -> H3 cell at the resolution the incident
    data is stored at.
    """

    def __init__(self, geocoder, incident_store):
        self.geocoder = geocoder
        self.incidents = incident_store

    def resolve(self, location: Optional[str]) -> Optional[str]:
        if not location or not location.strip():
            return None

        # GeocodingUnavailable / LocationNotFound go out as they are
        matches = self.geocoder.search(location)
        if not matches:
            raise LocationNotFound(location)

        first = matches[0]
        try:
            lat, lon = float(first["lat"]), float(first["lon"])
        except (KeyError, TypeError, ValueError) as e:
            raise LocationResolutionError("geocode", f"bad coordinates in geocoder response: {e}") from e

        try:
            resolution = self.incidents.sample_resolution()
        except Exception as e:
            raise LocationResolutionError("resolution", str(e)) from e
        if resolution is None:
            resolution = DEFAULT_RESOLUTION

        try:
            cell = h3_utils.point_to_hex(lat, lon, resolution)
        except Exception as e:
            raise LocationResolutionError("cell", str(e)) from e

        logger.debug("Resolved %r to %s (res %s)", location, cell, resolution)
        return cell
