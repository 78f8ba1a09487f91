"""
Trip model for scheduled ride offers.
"""
from sqlalchemy import (
    Column, String, Float, Integer, BigInteger, Boolean, Text,
    Enum as SQLEnum, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from rideshare.db.base import BaseModel
import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RecurrencePattern(str, enum.Enum):
    """How often a recurring trip repeats."""
    DAILY = "DAILY"
    WEEKDAYS = "WEEKDAYS"
    WEEKLY = "WEEKLY"


class Trip(BaseModel):
    """A driver's ride offer with a finite seat counter."""
    __tablename__ = "trips"

    driver_id = Column(String(36), ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    car_id = Column(String(36), ForeignKey("cars.id", ondelete="SET NULL"), nullable=True, index=True)
    route_id = Column(String(36), ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    departure_time = Column(BigInteger, nullable=False, index=True)  # epoch ms
    price = Column(Float, nullable=False)
    available_seats = Column(Integer, nullable=False)  # Mutated only by SeatInventoryCoordinator
    status = Column(SQLEnum(TripStatus, name="trip_status"), default=TripStatus.SCHEDULED, nullable=False, index=True)
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(SQLEnum(RecurrencePattern, name="recurrence_pattern"), nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    route = relationship("Route")
    car = relationship("Car")
    driver = relationship("Profile")
    bookings = relationship(
        "TripBooking",
        back_populates="trip",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_trip_available_seats_non_negative"),
    )
