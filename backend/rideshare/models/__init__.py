"""Models package - Import all models for SQLAlchemy registration."""
from rideshare.models.profile import Profile, Car
from rideshare.models.route import Route
from rideshare.models.trip import Trip, TripStatus, RecurrencePattern
from rideshare.models.booking import TripBooking, BookingStatus, PaymentStatus, SEAT_HOLDING_STATUSES

__all__ = [
    "Profile",
    "Car",
    "Route",
    "Trip",
    "TripStatus",
    "RecurrencePattern",
    "TripBooking",
    "BookingStatus",
    "PaymentStatus",
    "SEAT_HOLDING_STATUSES",
]
