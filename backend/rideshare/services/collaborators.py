"""
Interfaces to the services the core depends on but does not own.

Profiles, cars and route geocoding live outside the booking core. The
defaults here read and write the local copies kept in the same store.
"""
from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from rideshare.core.geo import calculate_distance_km, estimate_duration_minutes
from rideshare.models.profile import Profile, Car
from rideshare.models.route import Route


@dataclass
class RouteDraft:
    """Route details supplied by the driver (usually from a geocoder)."""
    start_location: str
    start_address: str
    start_lat: float
    start_lng: float
    end_location: str
    end_address: str
    end_lat: float
    end_lng: float
    distance: Optional[float] = None  # km; computed when missing
    duration: Optional[int] = None  # minutes; estimated when missing
    polyline: Optional[str] = None


class ProfileDirectory(Protocol):
    def get_profile(self, db: Session, user_id: str) -> Optional[Profile]:
        ...


class CarCatalog(Protocol):
    def get_car(self, db: Session, car_id: str) -> Optional[Car]:
        ...


class RouteRegistry(Protocol):
    def create_route(self, db: Session, draft: RouteDraft) -> Route:
        ...


class SqlProfileDirectory:
    """Profile lookup against the local `profiles` table."""

    def get_profile(self, db: Session, user_id: str) -> Optional[Profile]:
        return db.get(Profile, user_id)


class SqlCarCatalog:
    """Car lookup against the local `cars` table."""

    def get_car(self, db: Session, car_id: str) -> Optional[Car]:
        return db.get(Car, car_id)


class SqlRouteRegistry:
    """Persists routes in the caller's unit of work."""

    def create_route(self, db: Session, draft: RouteDraft) -> Route:
        distance = draft.distance
        if distance is None:
            distance = round(calculate_distance_km(draft.start_lat, draft.start_lng, draft.end_lat, draft.end_lng), 3)
        duration = draft.duration
        if duration is None:
            duration = estimate_duration_minutes(distance)

        route = Route(
            start_location=draft.start_location.strip(),
            start_address=draft.start_address.strip(),
            start_lat=draft.start_lat,
            start_lng=draft.start_lng,
            end_location=draft.end_location.strip(),
            end_address=draft.end_address.strip(),
            end_lat=draft.end_lat,
            end_lng=draft.end_lng,
            distance=distance,
            duration=duration,
            polyline=draft.polyline,
        )
        db.add(route)
        db.flush()
        return route
