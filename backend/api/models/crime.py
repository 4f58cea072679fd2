from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

# Canonical category order. Map rows, trend rows and category vectors all
# follow it, so never reorder.
CRIME_TYPES: List[str] = [
    "burglary",
    "personal_theft",
    "weapon_crime",
    "bicycle_theft",
    "damage",
    "robbery",
    "shoplifting",
    "violent",
    "anti_social",
    "drugs",
    "vehicle_crime",
]

CRIME_LABELS: dict[str, str] = {
    "burglary": "Burglary",
    "personal_theft": "Personal Theft",
    "weapon_crime": "Weapon Crime",
    "bicycle_theft": "Bicycle Theft",
    "damage": "Damage",
    "robbery": "Robbery",
    "shoplifting": "Shoplifting",
    "violent": "Violent Crime",
    "anti_social": "Anti-Social",
    "drugs": "Drugs",
    "vehicle_crime": "Vehicle Crime",
}


class CategoryTotal(BaseModel):
    category: str = Field(..., description="Display label, e.g. 'Violent Crime'")
    count: int = Field(..., ge=0)


class CategoryProportion(CategoryTotal):
    # two decimals, kept as a string so clients render it verbatim
    percentage: str


class LocationOption(BaseModel):
    h3: str
    name: str


class DateRange(BaseModel):
    min_date: Optional[date] = None
    max_date: Optional[date] = None


class HexagonDetail(BaseModel):
    h3: str = Field(..., description="H3 cell at the reference resolution")
    name: str = Field(..., description="Reverse-geocoded place name")
    crimes: List[int] = Field(..., description="Counts in CRIME_TYPES order")
    emergencyServices: Optional[dict] = None


class IncidentIn(BaseModel):
    """One incident record as accepted by the bulk upload script."""

    zone_id: str = Field(..., description="H3 cell at the finest stored resolution")
    incident_type: str = Field(..., description="One of CRIME_TYPES")
    timestamp: datetime = Field(..., description="UTC time when incident occurred")
    count: int = Field(1, ge=0, description="Incidents this record stands for")
