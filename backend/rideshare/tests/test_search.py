"""
Tests for trip search and matching.
"""
import threading

import pytest

from rideshare.core.exceptions import ValidationError, SearchCancelledError
from rideshare.core.utils import now_ms
from rideshare.models import Profile
from rideshare.services.search import (
    AreaQuery,
    SearchQuery,
    SearchFilters,
    SortOption,
    TripSearchEngine,
)
from rideshare.tests.conftest import HOUR_MS, DAY_MS, DOWNTOWN, AIRPORT, UPTOWN


@pytest.fixture
def second_driver(factory):
    return factory.profile("driver-2", first_name="Sam", rating=3.9)


@pytest.fixture
def trips(factory, driver, car, second_driver):
    """A small timetable between Downtown, Uptown and the Airport."""
    base = now_ms()
    return {
        "tomorrow": factory.trip(driver.user_id, car_id=car.id, price=25.0, departure_time=base + DAY_MS),
        "day_after": factory.trip(second_driver.user_id, price=15.0, departure_time=base + 2 * DAY_MS),
        "soon": factory.trip(second_driver.user_id, price=30.0, departure_time=base + HOUR_MS),
        "uptown": factory.trip(driver.user_id, start=UPTOWN, end=AIRPORT, departure_time=base + 3 * HOUR_MS),
        "reverse": factory.trip(driver.user_id, start=AIRPORT, end=DOWNTOWN, departure_time=base + 4 * HOUR_MS),
    }


def ids(results):
    return [result.trip.id for result in results]


def test_text_search_matches_scheduled_upcoming_trips(container, trips):
    """Downtown -> Airport, case-insensitive, soonest first."""
    container.trips.cancel_trip(trips["day_after"].id)

    results = container.search.search(SearchQuery(from_query="downtown", to_query="AIRPORT"))

    assert ids(results) == [trips["soon"].id, trips["tomorrow"].id]
    for result in results:
        assert result.route.start_location == "Downtown"
        assert result.driver_profile is not None


def test_text_search_skips_departed_trips(container, settings, trips):
    two_hours_later = lambda: now_ms() + 2 * HOUR_MS
    engine = TripSearchEngine(container.session_factory, settings=settings, clock=two_hours_later)

    results = engine.search(SearchQuery(from_query="Downtown", to_query="Airport"))

    assert trips["soon"].id not in ids(results)
    assert ids(results) == [trips["tomorrow"].id, trips["day_after"].id]


def test_text_search_matches_address_and_containment_either_way(container, trips):
    by_address = container.search.search(SearchQuery(from_query="main st", to_query="terminal"))
    assert trips["tomorrow"].id in ids(by_address)

    # The route name is contained in the longer query
    wider = container.search.search(SearchQuery(from_query="Downtown Manhattan"))
    assert set(ids(wider)) == {trips["tomorrow"].id, trips["day_after"].id, trips["soon"].id}


def test_blank_text_matches_every_route(container, trips):
    results = container.search.search(SearchQuery())
    assert len(results) == len(trips)


def test_area_search_contains_route_endpoints(container, trips):
    area = AreaQuery(DOWNTOWN[2], DOWNTOWN[3], AIRPORT[2], AIRPORT[3], radius_km=5.0)

    results = container.search.search(SearchQuery(area=area))

    assert set(ids(results)) == {trips["tomorrow"].id, trips["day_after"].id, trips["soon"].id}


def test_area_search_excluding_an_endpoint_excludes_route(container, trips):
    # Dropoff box around Uptown does not contain the Airport
    area = AreaQuery(DOWNTOWN[2], DOWNTOWN[3], UPTOWN[2], UPTOWN[3], radius_km=1.0)
    assert container.search.search(SearchQuery(area=area)) == []

    # Pickup box around the Airport does not contain Downtown
    area = AreaQuery(AIRPORT[2], AIRPORT[3], AIRPORT[2], AIRPORT[3], radius_km=5.0)
    assert trips["tomorrow"].id not in ids(container.search.search(SearchQuery(area=area)))


def test_required_seats_price_and_rating_filters(container, trips, passengers):
    container.bookings.create_booking_request(trips["soon"].id, passengers[0].user_id, seats=3)

    roomy = container.search.search(SearchQuery(from_query="Downtown", to_query="Airport", required_seats=2))
    assert trips["soon"].id not in ids(roomy)

    cheap = container.search.search(SearchQuery(from_query="Downtown", max_price=20.0))
    assert ids(cheap) == [trips["day_after"].id]

    rated = container.search.search(SearchQuery(from_query="Downtown", min_rating=4.5))
    assert ids(rated) == [trips["tomorrow"].id]


def test_departure_date_filter_uses_calendar_day(container, trips):
    day = trips["day_after"].departure_time
    results = container.search.search(SearchQuery(from_query="Downtown", departure_date=day))
    assert ids(results) == [trips["day_after"].id]


@pytest.mark.parametrize("sort_by, expected", [
    (SortOption.PRICE_LOW_TO_HIGH, ["day_after", "tomorrow", "soon"]),
    (SortOption.PRICE_HIGH_TO_LOW, ["soon", "tomorrow", "day_after"]),
    (SortOption.RATING, ["tomorrow", "soon", "day_after"]),
    (SortOption.DEPARTURE_TIME, ["soon", "tomorrow", "day_after"]),
])
def test_sort_options(container, trips, sort_by, expected):
    results = container.search.search(SearchQuery(from_query="Downtown", to_query="Airport", sort_by=sort_by))
    assert ids(results) == [trips[name].id for name in expected]


def test_sort_by_distance(container, trips):
    results = container.search.search(SearchQuery(to_query="Airport", sort_by="DISTANCE"))
    distances = [result.route.distance for result in results]
    assert len(results) == 4
    assert distances == sorted(distances)


def test_search_validation(container):
    search = container.search.search
    with pytest.raises(ValidationError):
        search(SearchQuery(required_seats=0))
    with pytest.raises(ValidationError):
        search(SearchQuery(max_price=-1))
    with pytest.raises(ValidationError):
        search(SearchQuery(min_rating=6))
    with pytest.raises(ValidationError):
        search(SearchQuery(area=AreaQuery(0, 0, 1, 1, radius_km=0)))
    with pytest.raises(ValidationError):
        search(SearchQuery(area=AreaQuery(95, 0, 1, 1)))
    with pytest.raises(ValidationError):
        search(SearchQuery(from_query="Downtown", area=AreaQuery(0, 0, 1, 1)))
    with pytest.raises(ValidationError):
        search(SearchQuery(sort_by="CHEAPEST"))


def test_unresolvable_profile_is_skipped(container, settings, trips, second_driver, caplog):
    class PartialDirectory:
        def get_profile(self, db, user_id):
            if user_id == second_driver.user_id:
                raise ConnectionError("profile service down")
            return db.get(Profile, user_id)

    engine = TripSearchEngine(container.session_factory, settings=settings, profiles=PartialDirectory())
    results = engine.search(SearchQuery(from_query="Downtown", to_query="Airport"))

    assert ids(results) == [trips["tomorrow"].id]
    assert "Profile lookup failed" in caplog.text


def test_car_is_optional_in_results(container, trips):
    results = {r.trip.id: r for r in container.search.search(SearchQuery(from_query="Downtown"))}
    assert results[trips["tomorrow"].id].car is not None
    assert results[trips["day_after"].id].car is None


def test_popular_trips_returns_next_departures(container, trips):
    popular = container.search.popular_trips(limit=3)
    assert ids(popular) == [trips["soon"].id, trips["uptown"].id, trips["reverse"].id]

    assert len(container.search.popular_trips()) == len(trips)
    with pytest.raises(ValidationError):
        container.search.popular_trips(limit=0)


def test_apply_filters_narrows_existing_results(container, trips):
    results = container.search.search(SearchQuery(from_query="Downtown", to_query="Airport"))

    with_wifi = container.search.apply_filters(results, SearchFilters(amenities=["wifi"]))
    assert ids(with_wifi) == [trips["tomorrow"].id]

    window = SearchFilters(
        earliest_departure=trips["tomorrow"].departure_time,
        latest_departure=trips["day_after"].departure_time,
        sort_by=SortOption.PRICE_LOW_TO_HIGH,
    )
    assert ids(container.search.apply_filters(results, window)) == [trips["day_after"].id, trips["tomorrow"].id]

    assert container.search.apply_filters(results, SearchFilters(max_price=10.0)) == []


def test_cancelled_search_raises(container, trips):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(SearchCancelledError):
        container.search.search(SearchQuery(), cancel_event=cancel)
