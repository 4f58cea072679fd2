from typing import Optional

from pydantic import BaseModel, Field


class FacilityMatch(BaseModel):
    name: str
    type: str = Field(..., description="Stored facility type, e.g. 'police' or 'NHS Hospital'")
    h3: str
    distance: int = Field(..., ge=0, description="Grid distance at the reference resolution")


class ClosestServices(BaseModel):
    police: Optional[FacilityMatch] = None
    hospital: Optional[FacilityMatch] = None


class ClosestServicesResponse(BaseModel):
    success: bool = True
    data: ClosestServices
