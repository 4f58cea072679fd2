# backend/api/deps.py
"""
Process-wide service instances for FastAPI `Depends`. Tests swap them with
`app.dependency_overrides`.
"""
from __future__ import annotations

from functools import lru_cache

from db.dynamo import EducationalStore, EmergencyServiceStore, IncidentStore
from services.educational import EducationalService
from services.emergency import ProximityLocator
from services.geocoding import Geocoder
from services.graphs import GraphsService
from services.location import LocationResolver
from services.map_features import MapService
from services.radius import RadiusConverter


@lru_cache(maxsize=1)
def get_incident_store() -> IncidentStore:
    return IncidentStore()


@lru_cache(maxsize=1)
def get_geocoder() -> Geocoder:
    return Geocoder()


@lru_cache(maxsize=1)
def get_proximity_locator() -> ProximityLocator:
    return ProximityLocator(EmergencyServiceStore())


@lru_cache(maxsize=1)
def get_graphs_service() -> GraphsService:
    incidents = get_incident_store()
    return GraphsService(
        incidents,
        LocationResolver(get_geocoder(), incidents),
        RadiusConverter(),
    )


@lru_cache(maxsize=1)
def get_map_service() -> MapService:
    # one instance means one cache for the whole process
    return MapService(get_incident_store(), get_geocoder(), get_proximity_locator())


@lru_cache(maxsize=1)
def get_educational_service() -> EducationalService:
    return EducationalService(EducationalStore(), get_incident_store())
