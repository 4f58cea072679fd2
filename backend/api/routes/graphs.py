# backend/api/routes/graphs.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from deps import get_graphs_service
from models.crime import CategoryProportion, CategoryTotal, DateRange, LocationOption
from services.errors import StreetSafeError, ValidationError
from services.graphs import GraphsService

router = APIRouter(prefix="/graphs", tags=["graphs"])


class _Filters:
    """Query parameters shared by the three chart endpoints."""

    def __init__(
        self,
        start_date: date = Query(date(2020, 1, 1), alias="startDate"),
        end_date: Optional[date] = Query(None, alias="endDate"),
        location: Optional[str] = Query(None, description="Free-text place, e.g. 'Camden, London'"),
        radius: float = Query(3, description="Radius around location in km"),
        crime_types: Optional[str] = Query(None, alias="crimeTypes", description="Comma-separated, e.g. burglary,violent"),
    ):
        self.start_date = start_date
        self.end_date = end_date
        self.location = location
        self.radius = radius
        self.crime_types = crime_types

    def args(self):
        return (self.start_date, self.end_date, self.location, self.radius, self.crime_types)


def _fail(e: StreetSafeError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail={"error": "Internal server error", "message": str(e)})


@router.get("/totals", response_model=List[CategoryTotal])
def crime_totals(f: _Filters = Depends(), svc: GraphsService = Depends(get_graphs_service)):
    """Bar chart: total crimes per category (zero categories omitted)."""
    try:
        return svc.get_crime_totals(*f.args())
    except StreetSafeError as e:
        raise _fail(e)


@router.get("/trends")
def crime_trends(
    f: _Filters = Depends(),
    group_by: str = Query("month", alias="groupBy", description="day|month|year"),
    svc: GraphsService = Depends(get_graphs_service),
):
    """Line chart: per-period totals plus one column per category."""
    try:
        return svc.get_crime_trends(*f.args(), group_by=group_by)
    except StreetSafeError as e:
        raise _fail(e)


@router.get("/proportions", response_model=List[CategoryProportion])
def crime_proportions(f: _Filters = Depends(), svc: GraphsService = Depends(get_graphs_service)):
    """Pie chart: totals with their percentage of the grand total."""
    try:
        return svc.get_crime_proportions(*f.args())
    except StreetSafeError as e:
        raise _fail(e)


@router.get("/locations", response_model=List[LocationOption])
def available_locations(svc: GraphsService = Depends(get_graphs_service)):
    try:
        return svc.get_available_locations()
    except StreetSafeError as e:
        raise _fail(e)


@router.get("/date-range", response_model=DateRange)
def date_range(svc: GraphsService = Depends(get_graphs_service)):
    try:
        return svc.get_date_range()
    except StreetSafeError as e:
        raise _fail(e)


@router.get("/crime-types", response_model=List[str])
def crime_types():
    return GraphsService.get_crime_types()
