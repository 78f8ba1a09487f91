"""
Trip search and matching.

Candidates are scheduled, upcoming trips with enough free seats. Each one is
joined with its route, driver profile and (optionally) car, then matched by
text or by area and filtered by rating, price and departure day. A candidate
whose route or profile cannot be loaded is logged and skipped.
"""
import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from rideshare.core.config import Settings, settings as default_settings
from rideshare.core.exceptions import ValidationError, SearchCancelledError
from rideshare.core.geo import BoundingBox, is_valid_coordinate
from rideshare.core.utils import now_ms, resolve_timezone, same_local_day
from rideshare.db.session import session_scope
from rideshare.models.profile import Profile, Car
from rideshare.models.route import Route
from rideshare.models.trip import Trip, TripStatus
from rideshare.services.collaborators import ProfileDirectory, CarCatalog, SqlProfileDirectory, SqlCarCatalog

logger = logging.getLogger(__name__)


class SortOption(str, enum.Enum):
    """Result ordering."""
    DEPARTURE_TIME = "DEPARTURE_TIME"
    PRICE_LOW_TO_HIGH = "PRICE_LOW_TO_HIGH"
    PRICE_HIGH_TO_LOW = "PRICE_HIGH_TO_LOW"
    RATING = "RATING"
    DISTANCE = "DISTANCE"


@dataclass
class AreaQuery:
    """Pickup and dropoff points with a search radius around each."""
    start_lat: float
    start_lng: float
    end_lat: float
    end_lng: float
    radius_km: float = 5.0

    def validate(self) -> None:
        if self.radius_km is None or self.radius_km <= 0:
            raise ValidationError("Search radius must be positive")
        if not is_valid_coordinate(self.start_lat, self.start_lng):
            raise ValidationError("Start coordinates are out of range")
        if not is_valid_coordinate(self.end_lat, self.end_lng):
            raise ValidationError("End coordinates are out of range")

    def boxes(self) -> Tuple[BoundingBox, BoundingBox]:
        return (
            BoundingBox.around(self.start_lat, self.start_lng, self.radius_km),
            BoundingBox.around(self.end_lat, self.end_lng, self.radius_km),
        )


@dataclass
class SearchQuery:
    from_query: Optional[str] = None
    to_query: Optional[str] = None
    area: Optional[AreaQuery] = None
    departure_date: Optional[int] = None  # epoch ms; any instant on the wanted day
    required_seats: int = 1
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    sort_by: SortOption = SortOption.DEPARTURE_TIME

    def validate(self) -> None:
        if isinstance(self.required_seats, bool) or not isinstance(self.required_seats, int) or self.required_seats < 1:
            raise ValidationError("Required seats must be at least 1")
        if self.max_price is not None and self.max_price < 0:
            raise ValidationError("Maximum price cannot be negative")
        if self.min_rating is not None and not 0 <= self.min_rating <= 5:
            raise ValidationError("Minimum rating must be between 0 and 5")
        if self.area is not None:
            if (self.from_query or "").strip() or (self.to_query or "").strip():
                raise ValidationError("Search by text or by area, not both")
            self.area.validate()
        try:
            self.sort_by = SortOption(self.sort_by)
        except ValueError:
            raise ValidationError(f"Unknown sort option: {self.sort_by}")


@dataclass
class SearchFilters:
    """Refinements applied to results already in hand."""
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    earliest_departure: Optional[int] = None
    latest_departure: Optional[int] = None
    amenities: List[str] = field(default_factory=list)
    sort_by: SortOption = SortOption.DEPARTURE_TIME


@dataclass
class TripSearchResult:
    trip: Trip
    route: Route
    driver_profile: Profile
    car: Optional[Car] = None


def _text_matches(needle: Optional[str], *haystack: Optional[str]) -> bool:
    """Blank needle matches anything; otherwise containment either way, ignoring case."""
    needle = (needle or "").strip().lower()
    if not needle:
        return True
    for value in haystack:
        value = (value or "").strip().lower()
        if value and (needle in value or value in needle):
            return True
    return False


def sort_results(results: Iterable[TripSearchResult], sort_by: SortOption) -> List[TripSearchResult]:
    """Order results; ties fall back to departure time."""
    sort_by = SortOption(sort_by)
    if sort_by == SortOption.PRICE_LOW_TO_HIGH:
        key = lambda r: (r.trip.price, r.trip.departure_time)
    elif sort_by == SortOption.PRICE_HIGH_TO_LOW:
        key = lambda r: (-r.trip.price, r.trip.departure_time)
    elif sort_by == SortOption.RATING:
        key = lambda r: (-(r.driver_profile.rating or 0.0), r.trip.departure_time)
    elif sort_by == SortOption.DISTANCE:
        key = lambda r: (r.route.distance, r.trip.departure_time)
    else:
        key = lambda r: r.trip.departure_time
    return sorted(results, key=key)


class TripSearchEngine:
    """Read-only trip discovery."""

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Optional[Settings] = None,
        profiles: Optional[ProfileDirectory] = None,
        cars: Optional[CarCatalog] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._session_factory = session_factory
        self._settings = settings or default_settings
        self._profiles = profiles or SqlProfileDirectory()
        self._cars = cars or SqlCarCatalog()
        self._clock = clock
        self._tz = resolve_timezone(self._settings.SEARCH_TIMEZONE)

    def _candidates(self, db: Session, required_seats: int):
        return db.execute(
            select(Trip)
            .where(
                Trip.status == TripStatus.SCHEDULED,
                Trip.available_seats >= required_seats,
                Trip.departure_time > self._clock(),
            )
            .order_by(Trip.departure_time)
        ).scalars().all()

    def _load_route(self, db: Session, trip: Trip) -> Optional[Route]:
        try:
            route = db.get(Route, trip.route_id)
        except Exception:
            logger.exception("Route lookup failed for trip %s; skipping", trip.id)
            return None
        if route is None:
            logger.warning("Trip %s references missing route %s; skipping", trip.id, trip.route_id)
        return route

    def _load_profile(self, db: Session, trip: Trip) -> Optional[Profile]:
        try:
            profile = self._profiles.get_profile(db, trip.driver_id)
        except Exception:
            logger.exception("Profile lookup failed for driver %s of trip %s; skipping", trip.driver_id, trip.id)
            return None
        if profile is None:
            logger.warning("Driver profile %s for trip %s not found; skipping", trip.driver_id, trip.id)
        return profile

    def _load_car(self, db: Session, trip: Trip) -> Optional[Car]:
        if trip.car_id is None:
            return None
        try:
            return self._cars.get_car(db, trip.car_id)
        except Exception:
            logger.exception("Car lookup failed for trip %s; continuing without car", trip.id)
            return None

    def search(self, query: SearchQuery, cancel_event: Optional[threading.Event] = None) -> List[TripSearchResult]:
        """
        Run a text or area search.

        Args:
            query: what to look for
            cancel_event: when set, the search stops before the next candidate

        Raises:
            ValidationError: malformed query
            SearchCancelledError: `cancel_event` was set
        """
        query.validate()
        boxes = query.area.boxes() if query.area is not None else None
        results = []

        with session_scope(self._session_factory) as db:
            for trip in self._candidates(db, query.required_seats):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Search cancelled after %d match(es)", len(results))
                    raise SearchCancelledError("Search was cancelled")

                route = self._load_route(db, trip)
                if route is None:
                    continue
                if boxes is not None:
                    start_box, end_box = boxes
                    if not (start_box.contains(route.start_lat, route.start_lng)
                            and end_box.contains(route.end_lat, route.end_lng)):
                        continue
                elif not (_text_matches(query.from_query, route.start_location, route.start_address)
                          and _text_matches(query.to_query, route.end_location, route.end_address)):
                    continue

                profile = self._load_profile(db, trip)
                if profile is None:
                    continue
                if query.min_rating is not None and (profile.rating or 0.0) < query.min_rating:
                    continue
                if query.max_price is not None and trip.price > query.max_price:
                    continue
                if query.departure_date is not None and not same_local_day(
                    trip.departure_time, query.departure_date, self._tz
                ):
                    continue

                results.append(TripSearchResult(trip, route, profile, self._load_car(db, trip)))

        logger.debug("Search matched %d trip(s)", len(results))
        return sort_results(results, query.sort_by)

    def popular_trips(self, limit: Optional[int] = None) -> List[TripSearchResult]:
        """The next `limit` upcoming scheduled trips by departure time."""
        limit = limit if limit is not None else self._settings.POPULAR_TRIPS_LIMIT
        if limit < 1:
            raise ValidationError("Limit must be at least 1")

        results = []
        with session_scope(self._session_factory) as db:
            for trip in self._candidates(db, 1):
                route = self._load_route(db, trip)
                profile = self._load_profile(db, trip) if route is not None else None
                if profile is None:
                    continue
                results.append(TripSearchResult(trip, route, profile, self._load_car(db, trip)))
                if len(results) >= limit:
                    break
        return results

    def apply_filters(self, results: Iterable[TripSearchResult], filters: SearchFilters) -> List[TripSearchResult]:
        """Narrow existing results by price, rating, departure window and amenities."""
        wanted = {a.strip().lower() for a in filters.amenities if a and a.strip()}
        kept = []
        for result in results:
            trip = result.trip
            if filters.max_price is not None and trip.price > filters.max_price:
                continue
            if filters.min_rating is not None and (result.driver_profile.rating or 0.0) < filters.min_rating:
                continue
            if filters.earliest_departure is not None and trip.departure_time < filters.earliest_departure:
                continue
            if filters.latest_departure is not None and trip.departure_time > filters.latest_departure:
                continue
            if wanted:
                have = {a.lower() for a in result.car.amenity_list} if result.car is not None else set()
                if not wanted <= have:
                    continue
            kept.append(result)
        return sort_results(kept, filters.sort_by)
