# backend/api/services/geocoding.py
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List

import requests

from services import h3_utils
from services.errors import GeocodingUnavailable

logger = logging.getLogger(__name__)

NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org").rstrip("/")
USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "StreetSafe-App/1.0")
GEOCODER_TIMEOUT = float(os.getenv("GEOCODER_TIMEOUT", "10"))
REVERSE_GEOCODE_WORKERS = int(os.getenv("REVERSE_GEOCODE_WORKERS", "4"))

UNKNOWN_LOCATION = "Unknown Location"


class Geocoder:
    """
    Nominatim (OpenStreetMap) client. Forward search raises on provider
    failure; everything on the reverse side degrades to UNKNOWN_LOCATION.
    """

    def __init__(
        self,
        base_url: str = NOMINATIM_URL,
        *,
        user_agent: str = USER_AGENT,
        timeout: float = GEOCODER_TIMEOUT,
        max_workers: int = REVERSE_GEOCODE_WORKERS,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"User-Agent": user_agent}
        self.timeout = timeout
        self.max_workers = max(1, int(max_workers))

    # ---------- forward ----------
    def search(self, text: str) -> List[Dict[str, Any]]:
        """Return Nominatim matches for `text` (possibly empty)."""
        params = {"format": "json", "q": text, "limit": 1}
        try:
            r = requests.get(f"{self.base_url}/search", params=params, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Geocoder request failed for %r: %s", text, e)
            raise GeocodingUnavailable() from e

        if not r.ok:
            logger.warning("Geocoding response not ok: %s", r.status_code)
            raise GeocodingUnavailable()

        try:
            data = r.json()
        except ValueError as e:
            # HTML rate-limit or proxy pages come back as 200
            logger.warning("Geocoding response for %r is not JSON", text)
            raise GeocodingUnavailable() from e
        return data if isinstance(data, list) else []

    # ---------- reverse ----------
    def reverse(self, lat: float, lon: float) -> Dict[str, Any]:
        """Address parts for a point; {} when the provider has nothing."""
        params = {"format": "json", "lat": lat, "lon": lon, "zoom": 14, "addressdetails": 1}
        r = requests.get(f"{self.base_url}/reverse", params=params, headers=self.headers, timeout=self.timeout)
        if not r.ok:
            return {}
        return (r.json() or {}).get("address") or {}

    def location_name(self, h3_index: str) -> str:
        """
        'Neighbourhood, City, County' for the center of a cell, duplicates
        removed, or UNKNOWN_LOCATION when anything goes wrong.
        """
        try:
            lat, lng = h3_utils.hex_to_center(h3_utils.to_cell(h3_index))
            address = self.reverse(lat, lng)
        except Exception as e:
            logger.warning("Error getting location name for %s: %s", h3_index, e)
            return UNKNOWN_LOCATION

        parts = [
            address.get("neighbourhood") or address.get("suburb"),
            address.get("city") or address.get("town") or address.get("village"),
            address.get("county"),
        ]
        unique: List[str] = []
        for part in parts:
            if part and part not in unique:
                unique.append(part)
        return ", ".join(unique) if unique else UNKNOWN_LOCATION

    def location_names(self, h3_indexes: Iterable[str]) -> List[str]:
        """Reverse-geocode many cells with bounded concurrency; output follows input order."""
        cells = list(h3_indexes)
        if not cells:
            return []
        workers = min(self.max_workers, len(cells))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self.location_name, cells))
