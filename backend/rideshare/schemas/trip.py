"""
Pydantic schemas for Trip and Route entities.
"""
from pydantic import BaseModel, Field
from typing import Optional
from rideshare.models.trip import TripStatus, RecurrencePattern


class RouteCreate(BaseModel):
    """Route details supplied with a new trip."""
    start_location: str
    start_address: str
    start_lat: float = Field(ge=-90, le=90)
    start_lng: float = Field(ge=-180, le=180)
    end_location: str
    end_address: str
    end_lat: float = Field(ge=-90, le=90)
    end_lng: float = Field(ge=-180, le=180)
    distance: Optional[float] = None  # km; computed when omitted
    duration: Optional[int] = None  # minutes; estimated when omitted
    polyline: Optional[str] = None


class RouteResponse(BaseModel):
    """Schema for route response."""
    id: str
    start_location: str
    start_address: str
    start_lat: float
    start_lng: float
    end_location: str
    end_address: str
    end_lat: float
    end_lng: float
    distance: float
    duration: int
    polyline: Optional[str] = None

    class Config:
        from_attributes = True


class TripCreate(BaseModel):
    """Schema for trip creation."""
    route: RouteCreate
    departure_time: int  # epoch ms
    price: float
    available_seats: int
    car_id: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    notes: Optional[str] = None


class TripUpdate(BaseModel):
    """Schema for trip update."""
    price: Optional[float] = None
    departure_time: Optional[int] = None
    notes: Optional[str] = None


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: str
    driver_id: str
    car_id: Optional[str] = None
    route_id: str
    departure_time: int
    price: float
    available_seats: int
    status: TripStatus
    is_recurring: bool
    recurrence_pattern: Optional[RecurrencePattern] = None
    notes: Optional[str] = None
    created_at: int
    updated_at: int

    class Config:
        from_attributes = True
