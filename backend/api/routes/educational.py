# backend/api/routes/educational.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from deps import get_educational_service, get_geocoder
from models.educational import ResourcesResponse
from services.educational import EducationalService
from services.errors import StreetSafeError, ValidationError
from services.geocoding import Geocoder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/educational", tags=["educational"])


@router.get("/", response_model=ResourcesResponse)
def list_resources(
    h3: Optional[str] = Query(None, description="User's home H3 cell"),
    personalised: bool = Query(True),
    svc: EducationalService = Depends(get_educational_service),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """
    All resources, or, when a home cell is given, the ones matching the
    user's top local crimes ranked by relevance_score.
    """
    personalisation = {"isPersonalised": False, "userLocation": None, "topLocalCrimes": None}
    try:
        resources = None
        if h3 and personalised:
            try:
                resources = svc.get_tailored_resources(h3)
                resources.sort(key=lambda r: r.get("relevance_score", 0), reverse=True)
                personalisation["isPersonalised"] = True
                personalisation["userLocation"] = geocoder.location_name(h3)
                if resources and resources[0].get("top_local_crimes"):
                    personalisation["topLocalCrimes"] = resources[0]["top_local_crimes"]
            except StreetSafeError as e:
                logger.warning("Personalisation failed for %s: %s", h3, e)
                personalisation = {"isPersonalised": False, "userLocation": None, "topLocalCrimes": None}
                resources = None
        if resources is None:
            resources = svc.get_all_resources()
    except StreetSafeError as e:
        raise HTTPException(status_code=500, detail={"error": "Internal server error", "message": str(e)})

    return {"resources": resources, "personalisation": personalisation}


@router.get("/{crime_type}", response_model=ResourcesResponse)
def resources_by_crime_type(crime_type: str, svc: EducationalService = Depends(get_educational_service)):
    try:
        resources = svc.get_resources_by_crime_type(crime_type)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StreetSafeError as e:
        raise HTTPException(status_code=500, detail={"error": "Internal server error", "message": str(e)})
    return {"resources": resources, "crimeType": crime_type, "personalisation": {"isPersonalised": False}}
