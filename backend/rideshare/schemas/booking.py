"""
Pydantic schemas for TripBooking entity.
"""
from pydantic import BaseModel, Field
from typing import Optional
from rideshare.models.booking import BookingStatus, PaymentStatus
from rideshare.schemas.trip import TripResponse, RouteResponse


class BookingCreate(BaseModel):
    """Schema for a booking request."""
    seats: int = 1
    pickup_location: Optional[str] = None
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    dropoff_location: Optional[str] = None
    dropoff_latitude: Optional[float] = None
    dropoff_longitude: Optional[float] = None


class BookingReject(BaseModel):
    """Optional reason given by the driver."""
    reason: Optional[str] = None


class PaymentUpdate(BaseModel):
    """Schema for payment status update."""
    payment_status: PaymentStatus


class ReviewCreate(BaseModel):
    """Schema for a passenger review."""
    rating: float = Field(ge=0, le=5)
    review: Optional[str] = None


class BookingResponse(BaseModel):
    """Schema for booking response."""
    id: str
    trip_id: str
    passenger_id: str
    seats: int
    pickup_location: Optional[str] = None
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    dropoff_location: Optional[str] = None
    dropoff_latitude: Optional[float] = None
    dropoff_longitude: Optional[float] = None
    status: BookingStatus
    payment_status: PaymentStatus
    rating: Optional[float] = None
    review: Optional[str] = None
    created_at: int
    updated_at: int

    class Config:
        from_attributes = True


class ProfileResponse(BaseModel):
    """Public profile shown next to bookings and search results."""
    user_id: str
    first_name: str
    last_name: str
    full_name: str
    rating: float
    trips_count: int

    class Config:
        from_attributes = True


class BookingRequestResponse(BaseModel):
    """Booking joined with its trip, route and passenger."""
    booking: BookingResponse
    trip: TripResponse
    route: RouteResponse
    passenger_profile: ProfileResponse

    class Config:
        from_attributes = True


class EligibilityResponse(BaseModel):
    """Whether a user can book a trip, and why not."""
    code: str
    eligible: bool
    status: Optional[BookingStatus] = None
    message: Optional[str] = None
