from pydantic import BaseModel
from typing import Optional, List
from ..models import PlaceCategory

class PlaceSearchQuery(BaseModel):
    query: str = ""

class PlaceCandidate(BaseModel):
    place_id: str
    name: str
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    category: PlaceCategory = PlaceCategory.RESTAURANT
    primary_type: str = ""
    city: Optional[str] = None
    province: Optional[str] = None
    region: Optional[str] = None
    photo_url: Optional[str] = None

class PlaceSearchResponse(BaseModel):
    results: List[PlaceCandidate]
