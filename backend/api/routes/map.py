# backend/api/routes/map.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from deps import get_map_service
from models.crime import HexagonDetail
from services.errors import StreetSafeError, ValidationError
from services.map_features import MapService

router = APIRouter(prefix="/map", tags=["map"])


@router.get("/")
def map_features(
    start_date: date = Query(date(2025, 1, 1), alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    svc: MapService = Depends(get_map_service),
):
    """
    [[h3, burglary, personal_theft, ...], ...] for every resolution-9 cell
    with incidents in the window. Cached per (start month, end month).
    """
    try:
        return svc.get_map_features(start_date, end_date)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StreetSafeError as e:
        raise HTTPException(status_code=500, detail={"error": "Internal server error", "message": str(e)})


@router.get("/hexagon/{h3_index}", response_model=HexagonDetail)
def hexagon_detail(
    h3_index: str = Path(..., description="H3 cell"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    svc: MapService = Depends(get_map_service),
):
    try:
        data = svc.get_hexagon_data(h3_index, start_date, end_date)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StreetSafeError as e:
        raise HTTPException(status_code=500, detail={"error": "Internal server error", "message": str(e)})

    if data is None:
        raise HTTPException(status_code=404, detail="No data found for the specified H3 index")
    return data
