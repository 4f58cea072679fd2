from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class Personalisation(BaseModel):
    isPersonalised: bool = False
    userLocation: Optional[str] = None
    topLocalCrimes: Optional[List[str]] = None


class ResourcesResponse(BaseModel):
    # resources are passed through as stored, plus relevance fields when tailored
    resources: List[Dict[str, Any]]
    personalisation: Personalisation
    crimeType: Optional[str] = None
