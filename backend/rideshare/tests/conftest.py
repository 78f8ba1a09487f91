"""
Shared fixtures: a fresh SQLite file and service container per test.
"""
import pytest

from rideshare.core.config import Settings
from rideshare.core.utils import now_ms
from rideshare.db.session import session_scope
from rideshare.models import Profile, Car
from rideshare.services.collaborators import RouteDraft
from rideshare.services.container import ServiceContainer

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

DOWNTOWN = ("Downtown", "100 Main St", 40.7128, -74.0060)
AIRPORT = ("Airport", "JFK Terminal 4", 40.6413, -73.7781)
UPTOWN = ("Uptown", "5th Ave & 110th St", 40.7967, -73.9493)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'rideshare_test.db'}",
        WORKER_POOL_SIZE=4,
        DB_BUSY_TIMEOUT=30.0,
        SEARCH_TIMEZONE="UTC",
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def container(settings):
    with ServiceContainer(settings) as services:
        yield services


class Factory:
    """Creates profiles, cars and trips directly in the test store."""

    def __init__(self, services: ServiceContainer):
        self.services = services

    def profile(self, user_id: str, first_name: str = "Test", rating: float = 4.5) -> Profile:
        with session_scope(self.services.session_factory) as db:
            profile = Profile(user_id=user_id, first_name=first_name, last_name="User", rating=rating)
            db.add(profile)
        return profile

    def car(self, owner_id: str, seats: int = 4, amenities: str = None) -> Car:
        with session_scope(self.services.session_factory) as db:
            car = Car(owner_id=owner_id, make="Toyota", model="Prius", seats=seats, amenities=amenities)
            db.add(car)
        return car

    def trip(
        self,
        driver_id: str,
        seats: int = 4,
        car_id: str = None,
        price: float = 20.0,
        departure_time: int = None,
        start=DOWNTOWN,
        end=AIRPORT,
    ):
        route = RouteDraft(
            start_location=start[0],
            start_address=start[1],
            start_lat=start[2],
            start_lng=start[3],
            end_location=end[0],
            end_address=end[1],
            end_lat=end[2],
            end_lng=end[3],
        )
        return self.services.trips.create_trip(
            driver_id=driver_id,
            route=route,
            departure_time=departure_time or now_ms() + DAY_MS,
            price=price,
            available_seats=seats,
            car_id=car_id,
        )


@pytest.fixture
def factory(container):
    return Factory(container)


@pytest.fixture
def driver(factory):
    return factory.profile("driver-1", first_name="Dana", rating=4.8)


@pytest.fixture
def passengers(factory):
    return [factory.profile(f"passenger-{i}", first_name=f"Pat{i}") for i in range(1, 11)]


@pytest.fixture
def car(factory, driver):
    return factory.car(driver.user_id, seats=4, amenities="WiFi, Air Conditioning")


@pytest.fixture
def trip(factory, driver, car):
    """A scheduled trip with four free seats in a four-seat car."""
    return factory.trip(driver.user_id, seats=4, car_id=car.id)
