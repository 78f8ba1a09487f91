"""
Trip lifecycle: create, start, complete, cancel, edit, delete.

Trip transitions never touch the seat counter. Completing or cancelling a
trip moves its open bookings along with it.
"""
import logging
from typing import List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session, sessionmaker

from rideshare.core.config import Settings, settings as default_settings
from rideshare.core.exceptions import ValidationError, NotFoundError, ConflictError, PermissionDeniedError
from rideshare.core.geo import is_valid_coordinate
from rideshare.core.live import LiveQueryHub, Subscription
from rideshare.core.utils import now_ms
from rideshare.db.session import session_scope, touch
from rideshare.models.booking import TripBooking, BookingStatus, PaymentStatus, SEAT_HOLDING_STATUSES
from rideshare.models.trip import Trip, TripStatus, RecurrencePattern
from rideshare.services.collaborators import (
    RouteDraft,
    ProfileDirectory,
    CarCatalog,
    RouteRegistry,
    SqlProfileDirectory,
    SqlCarCatalog,
    SqlRouteRegistry,
)

logger = logging.getLogger(__name__)

TRIPS_TOPIC = Trip.__tablename__
BOOKINGS_TOPIC = TripBooking.__tablename__


def _validate_route_draft(draft: RouteDraft) -> None:
    if draft is None:
        raise ValidationError("Route is required")
    if not (draft.start_location or "").strip() or not (draft.end_location or "").strip():
        raise ValidationError("Start and end location are required")
    if not (draft.start_address or "").strip() or not (draft.end_address or "").strip():
        raise ValidationError("Start and end address are required")
    for label, lat, lng in (("Start", draft.start_lat, draft.start_lng), ("End", draft.end_lat, draft.end_lng)):
        if lat is None or lng is None or not is_valid_coordinate(lat, lng):
            raise ValidationError(f"{label} coordinates are missing or out of range")
    if draft.distance is not None and draft.distance < 0:
        raise ValidationError("Route distance cannot be negative")


class TripLifecycleController:
    """Owns Trip status transitions and driver-side trip edits."""

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Optional[Settings] = None,
        hub: Optional[LiveQueryHub] = None,
        profiles: Optional[ProfileDirectory] = None,
        cars: Optional[CarCatalog] = None,
        routes: Optional[RouteRegistry] = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or default_settings
        self._hub = hub
        self._profiles = profiles or SqlProfileDirectory()
        self._cars = cars or SqlCarCatalog()
        self._routes = routes or SqlRouteRegistry()

    def _scope(self):
        return session_scope(self._session_factory, self._hub)

    @staticmethod
    def _load_trip(db: Session, trip_id: str) -> Trip:
        trip = db.get(Trip, trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        return trip

    @staticmethod
    def _require_driver(trip: Trip, actor_id: Optional[str], action: str) -> None:
        if actor_id is not None and actor_id != trip.driver_id:
            raise PermissionDeniedError(f"Only the driver may {action} trip {trip.id}")

    def _transition(self, db: Session, trip: Trip, expected: TripStatus, target: TripStatus) -> None:
        if trip.status != expected:
            raise ConflictError(
                f"Trip {trip.id} is {trip.status.value}; expected {expected.value} to move to {target.value}"
            )
        result = db.execute(
            update(Trip)
            .where(Trip.id == trip.id, Trip.status == expected)
            .values(status=target, updated_at=now_ms())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"Trip {trip.id} was changed by another request")
        touch(db, TRIPS_TOPIC)

    def create_trip(
        self,
        driver_id: str,
        route: RouteDraft,
        departure_time: int,
        price: float,
        available_seats: int,
        car_id: Optional[str] = None,
        is_recurring: bool = False,
        recurrence_pattern: Optional[RecurrencePattern] = None,
        notes: Optional[str] = None,
    ) -> Trip:
        """
        Publish a new trip with its route.

        The route and the trip are written in one transaction. When a car is
        given it must belong to the driver and the seat count cannot exceed
        the car's seats.
        """
        if not driver_id:
            raise ValidationError("Driver id is required")
        _validate_route_draft(route)
        if isinstance(available_seats, bool) or not isinstance(available_seats, int) or available_seats < 1:
            raise ValidationError("A trip must offer at least one seat")
        if price is None or price < 0:
            raise ValidationError("Price cannot be negative")
        if departure_time is None or departure_time <= now_ms():
            raise ValidationError("Departure time must be in the future")
        if recurrence_pattern is not None:
            try:
                recurrence_pattern = RecurrencePattern(recurrence_pattern)
            except ValueError:
                raise ValidationError(f"Unknown recurrence pattern: {recurrence_pattern}")
        if is_recurring and recurrence_pattern is None:
            raise ValidationError("Recurring trips need a recurrence pattern")
        if not is_recurring and recurrence_pattern is not None:
            raise ValidationError("Recurrence pattern given for a one-off trip")

        with self._scope() as db:
            if self._profiles.get_profile(db, driver_id) is None:
                raise NotFoundError(f"Driver profile {driver_id} not found")

            if car_id is not None:
                car = self._cars.get_car(db, car_id)
                if car is None:
                    raise NotFoundError(f"Car {car_id} not found")
                if car.owner_id != driver_id:
                    raise PermissionDeniedError(f"Car {car_id} does not belong to driver {driver_id}")
                if available_seats > car.seats:
                    raise ValidationError(
                        f"Cannot offer {available_seats} seats in a car with {car.seats}"
                    )

            db_route = self._routes.create_route(db, route)
            trip = Trip(
                driver_id=driver_id,
                car_id=car_id,
                route_id=db_route.id,
                departure_time=departure_time,
                price=float(price),
                available_seats=available_seats,
                status=TripStatus.SCHEDULED,
                is_recurring=is_recurring,
                recurrence_pattern=recurrence_pattern,
                notes=notes.strip() if notes else None,
            )
            db.add(trip)
            db.flush()
            touch(db, TRIPS_TOPIC, db_route.__tablename__)
            logger.info(
                "Trip %s created by %s: %s -> %s, %d seat(s)",
                trip.id, driver_id, db_route.start_location, db_route.end_location, available_seats,
            )
        return trip

    def start_trip(self, trip_id: str, actor_id: Optional[str] = None) -> Trip:
        with self._scope() as db:
            trip = self._load_trip(db, trip_id)
            self._require_driver(trip, actor_id, "start")
            self._transition(db, trip, TripStatus.SCHEDULED, TripStatus.IN_PROGRESS)
            db.refresh(trip)
            logger.info("Trip %s started", trip_id)
        return trip

    def complete_trip(self, trip_id: str, actor_id: Optional[str] = None) -> Trip:
        """IN_PROGRESS -> COMPLETED. Approved bookings complete, pending ones are cancelled."""
        with self._scope() as db:
            trip = self._load_trip(db, trip_id)
            self._require_driver(trip, actor_id, "complete")
            self._transition(db, trip, TripStatus.IN_PROGRESS, TripStatus.COMPLETED)

            stamp = now_ms()
            completed = db.execute(
                update(TripBooking)
                .where(TripBooking.trip_id == trip_id, TripBooking.status == BookingStatus.APPROVED)
                .values(status=BookingStatus.COMPLETED, updated_at=stamp)
                .execution_options(synchronize_session=False)
            ).rowcount
            dropped = db.execute(
                update(TripBooking)
                .where(TripBooking.trip_id == trip_id, TripBooking.status == BookingStatus.PENDING)
                .values(status=BookingStatus.CANCELLED, updated_at=stamp)
                .execution_options(synchronize_session=False)
            ).rowcount
            if completed or dropped:
                touch(db, BOOKINGS_TOPIC)
            db.refresh(trip)
            logger.info(
                "Trip %s completed: %d booking(s) completed, %d pending cancelled",
                trip_id, completed, dropped,
            )
        return trip

    def cancel_trip(self, trip_id: str, actor_id: Optional[str] = None) -> Trip:
        """SCHEDULED -> CANCELLED, cascading to the trip's open bookings when enabled."""
        with self._scope() as db:
            trip = self._load_trip(db, trip_id)
            self._require_driver(trip, actor_id, "cancel")
            self._transition(db, trip, TripStatus.SCHEDULED, TripStatus.CANCELLED)

            if self._settings.CASCADE_TRIP_CANCELLATION:
                stamp = now_ms()
                open_bookings = (
                    TripBooking.trip_id == trip_id,
                    TripBooking.status.in_(SEAT_HOLDING_STATUSES),
                )
                refunded = db.execute(
                    update(TripBooking)
                    .where(*open_bookings, TripBooking.payment_status == PaymentStatus.PAID)
                    .values(payment_status=PaymentStatus.REFUNDED, updated_at=stamp)
                    .execution_options(synchronize_session=False)
                ).rowcount
                cancelled = db.execute(
                    update(TripBooking)
                    .where(*open_bookings)
                    .values(status=BookingStatus.CANCELLED, updated_at=stamp)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if cancelled:
                    touch(db, BOOKINGS_TOPIC)
                logger.info(
                    "Trip %s cancelled: %d booking(s) cancelled, %d flagged for refund",
                    trip_id, cancelled, refunded,
                )
            else:
                logger.info("Trip %s cancelled", trip_id)
            db.refresh(trip)
        return trip

    def update_trip(
        self,
        trip_id: str,
        actor_id: Optional[str] = None,
        price: Optional[float] = None,
        departure_time: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Trip:
        """Edit a scheduled trip. Seats are managed by bookings only."""
        values = {}
        if price is not None:
            if price < 0:
                raise ValidationError("Price cannot be negative")
            values["price"] = float(price)
        if departure_time is not None:
            if departure_time <= now_ms():
                raise ValidationError("Departure time must be in the future")
            values["departure_time"] = departure_time
        if notes is not None:
            values["notes"] = notes.strip() or None

        with self._scope() as db:
            trip = self._load_trip(db, trip_id)
            self._require_driver(trip, actor_id, "edit")
            if trip.status != TripStatus.SCHEDULED:
                raise ConflictError(f"Trip {trip_id} is {trip.status.value} and can no longer be edited")
            if not values:
                return trip

            values["updated_at"] = now_ms()
            result = db.execute(
                update(Trip)
                .where(Trip.id == trip_id, Trip.status == TripStatus.SCHEDULED)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(f"Trip {trip_id} was changed by another request")
            touch(db, TRIPS_TOPIC)
            db.refresh(trip)
        return trip

    def delete_trip(self, trip_id: str, actor_id: Optional[str] = None) -> None:
        """Hard delete; the store cascades the trip's bookings."""
        with self._scope() as db:
            trip = self._load_trip(db, trip_id)
            self._require_driver(trip, actor_id, "delete")
            db.expunge(trip)
            db.execute(
                delete(Trip).where(Trip.id == trip_id).execution_options(synchronize_session=False)
            )
            touch(db, TRIPS_TOPIC, BOOKINGS_TOPIC)
            logger.info("Trip %s deleted", trip_id)

    # ----- reads -----

    def get_trip(self, trip_id: str) -> Trip:
        with self._scope() as db:
            return self._load_trip(db, trip_id)

    def list_trips_for_driver(self, driver_id: str, status: Optional[TripStatus] = None) -> List[Trip]:
        with self._scope() as db:
            return self._trips_for_driver(db, driver_id, status)

    @staticmethod
    def _trips_for_driver(db: Session, driver_id: str, status: Optional[TripStatus] = None) -> List[Trip]:
        query = select(Trip).where(Trip.driver_id == driver_id)
        if status is not None:
            query = query.where(Trip.status == status)
        return list(db.execute(query.order_by(Trip.departure_time)).scalars())

    def _require_hub(self) -> LiveQueryHub:
        if self._hub is None:
            raise RuntimeError("Live queries need a LiveQueryHub")
        return self._hub

    def watch_trip(self, trip_id: str) -> Subscription:
        def query():
            with self._scope() as db:
                return db.get(Trip, trip_id)
        return self._require_hub().watch([TRIPS_TOPIC], query, name=f"trip:{trip_id}")

    def watch_driver_trips(self, driver_id: str) -> Subscription:
        def query():
            with self._scope() as db:
                return self._trips_for_driver(db, driver_id)
        return self._require_hub().watch([TRIPS_TOPIC], query, name=f"driver-trips:{driver_id}")
