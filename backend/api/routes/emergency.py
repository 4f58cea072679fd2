# backend/api/routes/emergency.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from deps import get_proximity_locator
from models.emergency import ClosestServicesResponse
from services.emergency import ProximityLocator
from services.errors import StreetSafeError, ValidationError

router = APIRouter(prefix="/emergency-services", tags=["emergency"])


@router.get("/closest", response_model=ClosestServicesResponse)
def closest_services(
    h3_index: Optional[str] = Query(None, alias="h3Index", description="H3 cell, any resolution"),
    locator: ProximityLocator = Depends(get_proximity_locator),
):
    """Nearest police station and hospital by grid distance at resolution 9."""
    if not h3_index:
        raise HTTPException(status_code=400, detail="Missing h3Index")
    try:
        return {"success": True, "data": locator.find_closest(h3_index)}
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StreetSafeError as e:
        raise HTTPException(status_code=500, detail=str(e))
