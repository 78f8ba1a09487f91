"""
Booking workflow: request, accept, reject, cancel, delete.

Every mutating operation is one transaction. The booking status write and
the matching seat reservation/release commit together or not at all, and
each status change is a conditional UPDATE on the expected prior status so
two callers racing on the same booking cannot both win.

    (none) -> PENDING -> APPROVED -> COMPLETED
              PENDING -> REJECTED | CANCELLED
              APPROVED -> REJECTED | CANCELLED
"""
import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Union

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from rideshare.core.exceptions import (
    ValidationError,
    NotFoundError,
    ConflictError,
    PermissionDeniedError,
    DataAccessError,
)
from rideshare.core.geo import is_valid_coordinate
from rideshare.core.live import LiveQueryHub, Subscription
from rideshare.core.utils import now_ms
from rideshare.db.session import session_scope, touch
from rideshare.models.booking import TripBooking, BookingStatus, PaymentStatus, SEAT_HOLDING_STATUSES
from rideshare.models.profile import Profile
from rideshare.models.route import Route
from rideshare.models.trip import Trip, TripStatus
from rideshare.services.collaborators import ProfileDirectory, SqlProfileDirectory
from rideshare.services.seat_inventory import SeatInventoryCoordinator, check_seat_count

logger = logging.getLogger(__name__)

BOOKINGS_TOPIC = TripBooking.__tablename__
TRIPS_TOPIC = Trip.__tablename__


@dataclass
class Location:
    """A pickup or dropoff point. Coordinates are optional but come in pairs."""
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def validate(self, label: str) -> None:
        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError(f"{label} latitude and longitude must be given together")
        if self.latitude is not None and not is_valid_coordinate(self.latitude, self.longitude):
            raise ValidationError(f"{label} coordinates are out of range")


@dataclass
class BookingRequestData:
    """A booking joined with what a driver or passenger needs to see."""
    booking: TripBooking
    trip: Trip
    route: Route
    passenger_profile: Profile


# ===================== Eligibility =====================

@dataclass(frozen=True)
class Eligible:
    code: ClassVar[str] = "ELIGIBLE"
    eligible: ClassVar[bool] = True


@dataclass(frozen=True)
class TripNotFound:
    code: ClassVar[str] = "TRIP_NOT_FOUND"
    eligible: ClassVar[bool] = False


@dataclass(frozen=True)
class CannotBookOwnTrip:
    code: ClassVar[str] = "CANNOT_BOOK_OWN_TRIP"
    eligible: ClassVar[bool] = False


@dataclass(frozen=True)
class TripNotAvailable:
    code: ClassVar[str] = "TRIP_NOT_AVAILABLE"
    eligible: ClassVar[bool] = False


@dataclass(frozen=True)
class NoSeatsAvailable:
    code: ClassVar[str] = "NO_SEATS_AVAILABLE"
    eligible: ClassVar[bool] = False


@dataclass(frozen=True)
class AlreadyBooked:
    status: BookingStatus
    code: ClassVar[str] = "ALREADY_BOOKED"
    eligible: ClassVar[bool] = False


@dataclass(frozen=True)
class EligibilityError:
    message: str
    code: ClassVar[str] = "ERROR"
    eligible: ClassVar[bool] = False


BookingEligibility = Union[
    Eligible, TripNotFound, CannotBookOwnTrip, TripNotAvailable,
    NoSeatsAvailable, AlreadyBooked, EligibilityError,
]
ELIGIBILITY_TYPES = (
    Eligible, TripNotFound, CannotBookOwnTrip, TripNotAvailable,
    NoSeatsAvailable, AlreadyBooked, EligibilityError,
)


def describe_eligibility(result: BookingEligibility) -> Dict[str, Any]:
    """Flatten an eligibility result for API responses."""
    if not isinstance(result, ELIGIBILITY_TYPES):
        raise TypeError(f"Unknown eligibility result: {result!r}")
    payload: Dict[str, Any] = {"code": result.code, "eligible": result.eligible}
    if isinstance(result, AlreadyBooked):
        payload["status"] = result.status.value
    elif isinstance(result, EligibilityError):
        payload["message"] = result.message
    return payload


# ===================== Controller =====================

def _require_id(value: Optional[str], label: str) -> None:
    if value is None or not str(value).strip():
        raise ValidationError(f"{label} is required")


class BookingWorkflowController:
    """Drives TripBooking records through their state machine."""

    def __init__(
        self,
        session_factory: sessionmaker,
        inventory: SeatInventoryCoordinator,
        profiles: Optional[ProfileDirectory] = None,
        hub: Optional[LiveQueryHub] = None,
    ):
        self._session_factory = session_factory
        self._inventory = inventory
        self._profiles = profiles or SqlProfileDirectory()
        self._hub = hub

    def _scope(self):
        return session_scope(self._session_factory, self._hub)

    # ----- loading helpers -----

    @staticmethod
    def _load_booking(db: Session, booking_id: str) -> TripBooking:
        booking = db.get(TripBooking, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    def _load_trip(db: Session, trip_id: str) -> Trip:
        trip = db.get(Trip, trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        return trip

    @staticmethod
    def _require_actor(actor_id: Optional[str], allowed: Iterable[str], action: str) -> None:
        if actor_id is None:
            return
        if actor_id not in set(allowed):
            raise PermissionDeniedError(f"User {actor_id} may not {action}")

    def _transition(
        self,
        db: Session,
        booking: TripBooking,
        allowed_from: Iterable[BookingStatus],
        target: BookingStatus,
    ) -> BookingStatus:
        """Move `booking` to `target` if it is still in the status we loaded. Returns the prior status."""
        previous = booking.status
        allowed = tuple(allowed_from)
        if previous not in allowed:
            raise ConflictError(
                f"Booking {booking.id} is {previous.value}; cannot move to {target.value}"
            )

        result = db.execute(
            update(TripBooking)
            .where(TripBooking.id == booking.id, TripBooking.status == previous)
            .values(status=target, updated_at=now_ms())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"Booking {booking.id} was changed by another request")

        touch(db, BOOKINGS_TOPIC)
        db.refresh(booking)
        return previous

    @staticmethod
    def _flag_refund(db: Session, booking: TripBooking) -> None:
        """A paid booking that loses its seats is flagged REFUNDED, as the trip cancellation cascade does."""
        result = db.execute(
            update(TripBooking)
            .where(TripBooking.id == booking.id, TripBooking.payment_status == PaymentStatus.PAID)
            .values(payment_status=PaymentStatus.REFUNDED, updated_at=now_ms())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            db.refresh(booking)
            logger.info("Booking %s flagged for refund", booking.id)

    # ----- mutations -----

    def create_booking_request(
        self,
        trip_id: str,
        passenger_id: str,
        seats: int = 1,
        pickup: Optional[Location] = None,
        dropoff: Optional[Location] = None,
    ) -> TripBooking:
        """
        Request `seats` on a trip. Seats are reserved now, not at approval.

        A passenger has at most one booking per trip: asking again updates
        the existing record (same id) and puts it back to PENDING, reserving
        or releasing only the difference in seats it already holds.

        Raises:
            ValidationError: bad seat count, ids or coordinates
            NotFoundError: trip or passenger profile missing
            ConflictError: trip not SCHEDULED, self-booking, completed booking
            InsufficientSeatsError: not enough free seats
        """
        _require_id(trip_id, "Trip id")
        _require_id(passenger_id, "Passenger id")
        check_seat_count(seats)
        pickup = pickup or Location()
        dropoff = dropoff or Location()
        pickup.validate("Pickup")
        dropoff.validate("Dropoff")

        with self._scope() as db:
            trip = self._load_trip(db, trip_id)
            if trip.status != TripStatus.SCHEDULED:
                raise ConflictError(f"Trip {trip_id} is {trip.status.value} and cannot be booked")
            if trip.driver_id == passenger_id:
                raise ConflictError("Drivers cannot book their own trip")
            if self._profiles.get_profile(db, passenger_id) is None:
                raise NotFoundError(f"Passenger profile {passenger_id} not found")

            existing = db.execute(
                select(TripBooking).where(
                    TripBooking.trip_id == trip_id,
                    TripBooking.passenger_id == passenger_id,
                )
            ).scalar_one_or_none()

            if existing is not None:
                booking = self._rerequest(db, existing, seats, pickup, dropoff)
            else:
                self._inventory.reserve(db, trip_id, seats, require_scheduled=True)
                booking = TripBooking(
                    trip_id=trip_id,
                    passenger_id=passenger_id,
                    seats=seats,
                    pickup_location=pickup.name,
                    pickup_latitude=pickup.latitude,
                    pickup_longitude=pickup.longitude,
                    dropoff_location=dropoff.name,
                    dropoff_latitude=dropoff.latitude,
                    dropoff_longitude=dropoff.longitude,
                    status=BookingStatus.PENDING,
                    payment_status=PaymentStatus.PENDING,
                )
                db.add(booking)
                try:
                    db.flush()
                except IntegrityError as exc:
                    # A concurrent request for the same pair got in first;
                    # rolling back also undoes our reservation.
                    raise ConflictError(
                        f"Passenger {passenger_id} already has a booking on trip {trip_id}"
                    ) from exc
                touch(db, BOOKINGS_TOPIC)
                logger.info(
                    "Booking %s created: %d seat(s) on trip %s for passenger %s",
                    booking.id, seats, trip_id, passenger_id,
                )

        return booking

    def _rerequest(
        self,
        db: Session,
        existing: TripBooking,
        seats: int,
        pickup: Location,
        dropoff: Location,
    ) -> TripBooking:
        previous_status = existing.status
        previous_seats = existing.seats
        if previous_status == BookingStatus.COMPLETED:
            raise ConflictError(f"Booking {existing.id} is already completed")

        if previous_status.holds_seats:
            delta = seats - previous_seats
            if delta > 0:
                self._inventory.reserve(db, existing.trip_id, delta, require_scheduled=True)
            elif delta < 0:
                self._inventory.release(db, existing.trip_id, -delta)
        else:
            self._inventory.reserve(db, existing.trip_id, seats, require_scheduled=True)

        result = db.execute(
            update(TripBooking)
            .where(
                TripBooking.id == existing.id,
                TripBooking.status == previous_status,
                TripBooking.seats == previous_seats,
            )
            .values(
                seats=seats,
                pickup_location=pickup.name,
                pickup_latitude=pickup.latitude,
                pickup_longitude=pickup.longitude,
                dropoff_location=dropoff.name,
                dropoff_latitude=dropoff.latitude,
                dropoff_longitude=dropoff.longitude,
                status=BookingStatus.PENDING,
                updated_at=now_ms(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"Booking {existing.id} was changed by another request")

        touch(db, BOOKINGS_TOPIC)
        db.refresh(existing)
        logger.info(
            "Booking %s re-requested: %s/%d seat(s) -> PENDING/%d seat(s)",
            existing.id, previous_status.value, previous_seats, seats,
        )
        return existing

    def accept_booking_request(self, booking_id: str, actor_id: Optional[str] = None) -> TripBooking:
        """PENDING -> APPROVED. Seats were already reserved at request time."""
        _require_id(booking_id, "Booking id")
        with self._scope() as db:
            booking = self._load_booking(db, booking_id)
            trip = self._load_trip(db, booking.trip_id)
            self._require_actor(actor_id, [trip.driver_id], "accept this booking")
            self._transition(db, booking, [BookingStatus.PENDING], BookingStatus.APPROVED)
            logger.info("Booking %s approved", booking_id)
        return booking

    def reject_booking_request(
        self,
        booking_id: str,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> TripBooking:
        """PENDING or APPROVED -> REJECTED; the seats go back to the trip and a PAID booking is flagged REFUNDED."""
        _require_id(booking_id, "Booking id")
        with self._scope() as db:
            booking = self._load_booking(db, booking_id)
            trip = self._load_trip(db, booking.trip_id)
            self._require_actor(actor_id, [trip.driver_id], "reject this booking")
            self._transition(db, booking, SEAT_HOLDING_STATUSES, BookingStatus.REJECTED)
            self._inventory.release(db, booking.trip_id, booking.seats)
            self._flag_refund(db, booking)
            logger.info("Booking %s rejected (reason: %s)", booking_id, reason or "none given")
        return booking

    def cancel_booking_request(self, booking_id: str, actor_id: Optional[str] = None) -> TripBooking:
        """PENDING or APPROVED -> CANCELLED; the seats go back to the trip and a PAID booking is flagged REFUNDED."""
        _require_id(booking_id, "Booking id")
        with self._scope() as db:
            booking = self._load_booking(db, booking_id)
            trip = self._load_trip(db, booking.trip_id)
            self._require_actor(actor_id, [booking.passenger_id, trip.driver_id], "cancel this booking")
            self._transition(db, booking, SEAT_HOLDING_STATUSES, BookingStatus.CANCELLED)
            self._inventory.release(db, booking.trip_id, booking.seats)
            self._flag_refund(db, booking)
            logger.info("Booking %s cancelled", booking_id)
        return booking

    def complete_booking(self, booking_id: str, actor_id: Optional[str] = None) -> TripBooking:
        """APPROVED -> COMPLETED. The seats stay taken."""
        _require_id(booking_id, "Booking id")
        with self._scope() as db:
            booking = self._load_booking(db, booking_id)
            trip = self._load_trip(db, booking.trip_id)
            self._require_actor(actor_id, [trip.driver_id], "complete this booking")
            self._transition(db, booking, [BookingStatus.APPROVED], BookingStatus.COMPLETED)
            logger.info("Booking %s completed", booking_id)
        return booking

    def delete_booking(self, booking_id: str, actor_id: Optional[str] = None) -> None:
        """Hard delete. Seats are released only if the booking still held them."""
        _require_id(booking_id, "Booking id")
        with self._scope() as db:
            booking = self._load_booking(db, booking_id)
            trip = self._load_trip(db, booking.trip_id)
            self._require_actor(actor_id, [booking.passenger_id, trip.driver_id], "delete this booking")

            status = booking.status
            result = db.execute(
                delete(TripBooking)
                .where(TripBooking.id == booking_id, TripBooking.status == status)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(f"Booking {booking_id} was changed by another request")
            db.expunge(booking)
            touch(db, BOOKINGS_TOPIC)

            if status.holds_seats:
                self._inventory.release(db, booking.trip_id, booking.seats)
            logger.info("Booking %s deleted (was %s)", booking_id, status.value)

    def update_payment_status(
        self,
        booking_id: str,
        payment_status: Union[PaymentStatus, str],
    ) -> TripBooking:
        """Set the payment flag. REFUNDED is only reachable from PAID."""
        _require_id(booking_id, "Booking id")
        try:
            target = PaymentStatus(payment_status)
        except ValueError:
            raise ValidationError(f"Unknown payment status: {payment_status}")

        with self._scope() as db:
            booking = self._load_booking(db, booking_id)
            current = booking.payment_status
            if target == PaymentStatus.REFUNDED and current != PaymentStatus.PAID:
                raise ConflictError("Only a paid booking can be refunded")

            result = db.execute(
                update(TripBooking)
                .where(TripBooking.id == booking_id, TripBooking.payment_status == current)
                .values(payment_status=target, updated_at=now_ms())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(f"Booking {booking_id} was changed by another request")
            touch(db, BOOKINGS_TOPIC)
            db.refresh(booking)
            logger.info("Booking %s payment %s -> %s", booking_id, current.value, target.value)
        return booking

    def add_review(
        self,
        booking_id: str,
        rating: float,
        review: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> TripBooking:
        """Rate a completed ride (0-5)."""
        _require_id(booking_id, "Booking id")
        if rating is None or not 0 <= rating <= 5:
            raise ValidationError("Rating must be between 0 and 5")

        with self._scope() as db:
            booking = self._load_booking(db, booking_id)
            self._require_actor(actor_id, [booking.passenger_id], "review this booking")
            if booking.status != BookingStatus.COMPLETED:
                raise ConflictError("Only completed bookings can be reviewed")
            booking.rating = float(rating)
            booking.review = review.strip() if review else None
            touch(db, BOOKINGS_TOPIC)
        return booking

    # ----- eligibility -----

    def can_user_book_trip(self, trip_id: str, user_id: str) -> BookingEligibility:
        """Check, in order: trip exists, not own trip, SCHEDULED, seats left, not already booked."""
        try:
            with self._scope() as db:
                trip = db.get(Trip, trip_id)
                if trip is None:
                    return TripNotFound()
                if trip.driver_id == user_id:
                    return CannotBookOwnTrip()
                if trip.status != TripStatus.SCHEDULED:
                    return TripNotAvailable()
                if trip.available_seats <= 0:
                    return NoSeatsAvailable()
                existing = db.execute(
                    select(TripBooking.status).where(
                        TripBooking.trip_id == trip_id,
                        TripBooking.passenger_id == user_id,
                    )
                ).scalar_one_or_none()
                if existing is not None:
                    return AlreadyBooked(existing)
                return Eligible()
        except DataAccessError as exc:
            logger.warning("Eligibility check for trip %s failed: %s", trip_id, exc)
            return EligibilityError(str(exc))

    # ----- reads -----

    def get_booking(self, booking_id: str) -> TripBooking:
        with self._scope() as db:
            return self._load_booking(db, booking_id)

    def list_bookings_for_trip(self, trip_id: str) -> List[TripBooking]:
        with self._scope() as db:
            return self._bookings_for_trip(db, trip_id)

    def list_bookings_for_passenger(
        self,
        passenger_id: str,
        status: Optional[BookingStatus] = None,
    ) -> List[TripBooking]:
        with self._scope() as db:
            return self._bookings_for_passenger(db, passenger_id, status)

    @staticmethod
    def _bookings_for_trip(db: Session, trip_id: str) -> List[TripBooking]:
        return list(
            db.execute(
                select(TripBooking)
                .where(TripBooking.trip_id == trip_id)
                .order_by(TripBooking.created_at)
            ).scalars()
        )

    @staticmethod
    def _bookings_for_passenger(
        db: Session,
        passenger_id: str,
        status: Optional[BookingStatus] = None,
    ) -> List[TripBooking]:
        query = select(TripBooking).where(TripBooking.passenger_id == passenger_id)
        if status is not None:
            query = query.where(TripBooking.status == status)
        return list(db.execute(query.order_by(TripBooking.created_at.desc())).scalars())

    def list_incoming_requests(self, driver_id: str) -> List[BookingRequestData]:
        """Pending and approved requests on the driver's trips, newest first."""
        with self._scope() as db:
            rows = db.execute(
                select(TripBooking, Trip)
                .join(Trip, TripBooking.trip_id == Trip.id)
                .where(
                    Trip.driver_id == driver_id,
                    TripBooking.status.in_(SEAT_HOLDING_STATUSES),
                )
                .order_by(TripBooking.created_at.desc())
            ).all()
            return self._join_requests(db, rows)

    def list_passenger_requests(self, passenger_id: str) -> List[BookingRequestData]:
        """All of a passenger's bookings with trip and route, newest first."""
        with self._scope() as db:
            rows = db.execute(
                select(TripBooking, Trip)
                .join(Trip, TripBooking.trip_id == Trip.id)
                .where(TripBooking.passenger_id == passenger_id)
                .order_by(TripBooking.created_at.desc())
            ).all()
            return self._join_requests(db, rows)

    def _join_requests(self, db: Session, rows) -> List[BookingRequestData]:
        requests = []
        for booking, trip in rows:
            try:
                route = db.get(Route, trip.route_id)
                profile = self._profiles.get_profile(db, booking.passenger_id)
            except Exception:
                logger.exception("Failed to load details for booking %s; skipping", booking.id)
                continue
            if route is None or profile is None:
                logger.warning(
                    "Skipping booking %s: route found=%s, passenger profile found=%s",
                    booking.id, route is not None, profile is not None,
                )
                continue
            requests.append(BookingRequestData(booking=booking, trip=trip, route=route, passenger_profile=profile))
        return requests

    # ----- live queries -----

    def _require_hub(self) -> LiveQueryHub:
        if self._hub is None:
            raise RuntimeError("Live queries need a LiveQueryHub")
        return self._hub

    def watch_booking(self, booking_id: str) -> Subscription:
        def query():
            with self._scope() as db:
                return db.get(TripBooking, booking_id)
        return self._require_hub().watch([BOOKINGS_TOPIC], query, name=f"booking:{booking_id}")

    def watch_trip_bookings(self, trip_id: str) -> Subscription:
        def query():
            with self._scope() as db:
                return self._bookings_for_trip(db, trip_id)
        return self._require_hub().watch([BOOKINGS_TOPIC], query, name=f"trip-bookings:{trip_id}")

    def watch_passenger_bookings(self, passenger_id: str) -> Subscription:
        def query():
            with self._scope() as db:
                return self._bookings_for_passenger(db, passenger_id)
        return self._require_hub().watch([BOOKINGS_TOPIC], query, name=f"passenger-bookings:{passenger_id}")

    def watch_incoming_requests(self, driver_id: str) -> Subscription:
        return self._require_hub().watch(
            [BOOKINGS_TOPIC, TRIPS_TOPIC],
            lambda: self.list_incoming_requests(driver_id),
            name=f"incoming-requests:{driver_id}",
        )
