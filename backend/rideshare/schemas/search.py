"""
Pydantic schemas for trip search results.
"""
from pydantic import BaseModel
from typing import List, Optional
from rideshare.schemas.trip import TripResponse, RouteResponse
from rideshare.schemas.booking import ProfileResponse


class CarResponse(BaseModel):
    """Schema for car response."""
    id: str
    make: str
    model: str
    seats: int
    amenity_list: List[str] = []

    class Config:
        from_attributes = True


class TripSearchResultResponse(BaseModel):
    """A matched trip with everything needed to show it."""
    trip: TripResponse
    route: RouteResponse
    driver_profile: ProfileResponse
    car: Optional[CarResponse] = None

    class Config:
        from_attributes = True
