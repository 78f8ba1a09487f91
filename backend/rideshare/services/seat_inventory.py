"""
Seat inventory coordinator: the only code that changes Trip.available_seats.

Both operations are single conditional UPDATE statements checked by
rows-affected, so concurrent callers cannot drive the counter negative or
double-reserve. They run in the caller's session and commit with it.
"""
import logging

from sqlalchemy import select, update, and_, or_
from sqlalchemy.orm import Session

from rideshare.core.exceptions import (
    ValidationError,
    NotFoundError,
    ConflictError,
    InsufficientSeatsError,
    InventoryCorruptionError,
)
from rideshare.core.utils import now_ms
from rideshare.db.session import touch
from rideshare.models.profile import Car
from rideshare.models.trip import Trip, TripStatus

logger = logging.getLogger(__name__)


def check_seat_count(seats: int) -> None:
    if isinstance(seats, bool) or not isinstance(seats, int) or seats < 1:
        raise ValidationError("Seat count must be a positive integer")


class SeatInventoryCoordinator:
    """Atomic reserve/release on a trip's seat counter."""

    def __init__(self, clamp_to_capacity: bool = True):
        self.clamp_to_capacity = clamp_to_capacity

    def available(self, db: Session, trip_id: str) -> int:
        seats = db.execute(
            select(Trip.available_seats).where(Trip.id == trip_id)
        ).scalar_one_or_none()
        if seats is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        return seats

    def reserve(self, db: Session, trip_id: str, seats: int, require_scheduled: bool = False) -> int:
        """
        Take `seats` from the trip, only if that many are free.

        With `require_scheduled`, the same statement also requires the trip
        to still be SCHEDULED, so a trip cancelled after the caller read it
        cannot take a reservation.

        Returns the remaining seat count.

        Raises:
            ValidationError: seats < 1
            NotFoundError: trip does not exist
            ConflictError: require_scheduled and the trip is no longer SCHEDULED
            InsufficientSeatsError: fewer than `seats` are free
        """
        check_seat_count(seats)

        conditions = [Trip.id == trip_id, Trip.available_seats >= seats]
        if require_scheduled:
            conditions.append(Trip.status == TripStatus.SCHEDULED)

        result = db.execute(
            update(Trip)
            .where(*conditions)
            .values(available_seats=Trip.available_seats - seats, updated_at=now_ms())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            row = db.execute(
                select(Trip.status, Trip.available_seats).where(Trip.id == trip_id)
            ).one_or_none()
            if row is None:
                raise NotFoundError(f"Trip {trip_id} not found")
            status, remaining = row
            if require_scheduled and status != TripStatus.SCHEDULED:
                logger.info("Reservation on trip %s refused: trip is %s", trip_id, status.value)
                raise ConflictError(f"Trip {trip_id} is {status.value} and cannot be booked")
            logger.info("Reservation of %d seat(s) on trip %s refused (%d free)", seats, trip_id, remaining)
            raise InsufficientSeatsError(trip_id, seats, remaining)

        touch(db, Trip.__tablename__)
        remaining = self.available(db, trip_id)
        logger.debug("Reserved %d seat(s) on trip %s, %d left", seats, trip_id, remaining)
        return remaining

    def release(self, db: Session, trip_id: str, seats: int) -> int:
        """
        Give `seats` back to the trip.

        With capacity clamping on, a trip with a car never goes above the
        car's seat count; such a release changes nothing and raises
        InventoryCorruptionError.
        """
        check_seat_count(seats)

        conditions = [Trip.id == trip_id]
        if self.clamp_to_capacity:
            capacity = (
                select(Car.seats)
                .where(Car.id == Trip.car_id)
                .correlate(Trip)
                .scalar_subquery()
            )
            conditions.append(
                or_(Trip.car_id.is_(None), capacity.is_(None), Trip.available_seats + seats <= capacity)
            )

        result = db.execute(
            update(Trip)
            .where(and_(*conditions))
            .values(available_seats=Trip.available_seats + seats, updated_at=now_ms())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = self.available(db, trip_id)
            logger.error(
                "Release of %d seat(s) on trip %s would exceed car capacity (currently %d free)",
                seats, trip_id, current,
            )
            raise InventoryCorruptionError(
                f"Releasing {seats} seat(s) would exceed the car capacity of trip {trip_id}"
            )

        touch(db, Trip.__tablename__)
        remaining = self.available(db, trip_id)
        logger.debug("Released %d seat(s) on trip %s, %d free", seats, trip_id, remaining)
        return remaining
