"""
TripBooking model: a passenger's request to occupy seats on a trip.
"""
from sqlalchemy import (
    Column, String, Float, Integer, Text,
    Enum as SQLEnum, ForeignKey, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from rideshare.db.base import BaseModel
import enum


class BookingStatus(str, enum.Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    @property
    def holds_seats(self) -> bool:
        """PENDING and APPROVED bookings keep their seats reserved."""
        return self in (BookingStatus.PENDING, BookingStatus.APPROVED)


class PaymentStatus(str, enum.Enum):
    """Payment flag; settlement happens elsewhere."""
    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


# Statuses that still occupy seats on the trip
SEAT_HOLDING_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)


class TripBooking(BaseModel):
    """A passenger's seats on a trip, with its approval status."""
    __tablename__ = "trip_bookings"

    trip_id = Column(String(36), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    passenger_id = Column(String(36), ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    seats = Column(Integer, nullable=False, default=1)

    pickup_location = Column(String(250), nullable=True)
    pickup_latitude = Column(Float, nullable=True)
    pickup_longitude = Column(Float, nullable=True)
    dropoff_location = Column(String(250), nullable=True)
    dropoff_latitude = Column(Float, nullable=True)
    dropoff_longitude = Column(Float, nullable=True)

    status = Column(SQLEnum(BookingStatus, name="booking_status"), default=BookingStatus.PENDING, nullable=False, index=True)
    payment_status = Column(SQLEnum(PaymentStatus, name="payment_status"), default=PaymentStatus.PENDING, nullable=False)
    rating = Column(Float, nullable=True)
    review = Column(Text, nullable=True)

    # Relationships
    trip = relationship("Trip", back_populates="bookings")
    passenger = relationship("Profile")

    __table_args__ = (
        # One record per passenger per trip; re-requests update it
        UniqueConstraint("trip_id", "passenger_id", name="uq_trip_booking_passenger"),
        CheckConstraint("seats >= 1", name="check_booking_seats_positive"),
    )
