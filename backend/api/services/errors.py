# backend/api/services/errors.py
from __future__ import annotations


class StreetSafeError(RuntimeError):
    pass


class ValidationError(StreetSafeError):
    """A required parameter is missing or malformed."""


class PersistenceError(StreetSafeError):
    """Any failure raised by the underlying store, message kept verbatim."""

    def __init__(self, message: str):
        self.detail = message
        super().__init__(f"Database error: {message}")


class GeocodingUnavailable(StreetSafeError):
    def __init__(self, message: str = "Geocoding service unavailable"):
        super().__init__(message)


class LocationNotFound(StreetSafeError):
    def __init__(self, location: str):
        self.location = location
        super().__init__(f'Location "{location}" not found')


class LocationResolutionError(StreetSafeError):
    """Wraps a failure in one stage of text -> cell conversion."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"Error converting location to H3: {message}")
