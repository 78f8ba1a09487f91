"""
Tests for live query subscriptions.
"""
import queue

import pytest

from rideshare.core.exceptions import InsufficientSeatsError
from rideshare.core.live import LiveQueryHub, SubscriptionClosed


def test_subscription_gets_current_value_then_updates(container, trip, passengers):
    with container.bookings.watch_trip_bookings(trip.id) as subscription:
        assert subscription.get(timeout=1) == []

        booking = container.bookings.create_booking_request(trip.id, passengers[0].user_id)
        update = subscription.get(timeout=1)
        assert [b.id for b in update] == [booking.id]

        container.bookings.accept_booking_request(booking.id)
        assert subscription.latest(timeout=1)[0].status.value == "APPROVED"


def test_failed_write_publishes_nothing(container, trip, passengers):
    subscription = container.bookings.watch_trip_bookings(trip.id)
    subscription.get(timeout=1)

    with pytest.raises(InsufficientSeatsError):
        container.bookings.create_booking_request(trip.id, passengers[0].user_id, seats=10)

    with pytest.raises(queue.Empty):
        subscription.get(timeout=0.2)
    subscription.close()


def test_closed_subscription_receives_nothing(container, trip, passengers):
    subscription = container.trips.watch_trip(trip.id)
    assert subscription.get(timeout=1).available_seats == 4
    subscription.close()

    container.bookings.create_booking_request(trip.id, passengers[0].user_id)

    with pytest.raises(SubscriptionClosed):
        subscription.get(timeout=0.2)
    assert container.hub.subscriber_count() == 0


def test_trip_watch_sees_seat_changes(container, trip, passengers):
    with container.trips.watch_trip(trip.id) as subscription:
        subscription.get(timeout=1)
        container.bookings.create_booking_request(trip.id, passengers[0].user_id, seats=3)
        assert subscription.latest(timeout=1).available_seats == 1


def test_incoming_requests_watch(container, trip, passengers):
    with container.bookings.watch_incoming_requests(trip.driver_id) as subscription:
        assert subscription.get(timeout=1) == []
        container.bookings.create_booking_request(trip.id, passengers[0].user_id)
        requests = subscription.latest(timeout=1)
        assert len(requests) == 1
        assert requests[0].passenger_profile.user_id == passengers[0].user_id


def test_driver_trips_watch(container, factory, driver, trip):
    with container.trips.watch_driver_trips(driver.user_id) as subscription:
        assert [t.id for t in subscription.get(timeout=1)] == [trip.id]
        factory.trip(driver.user_id)
        assert len(subscription.latest(timeout=1)) == 2


def test_hub_routes_by_topic():
    hub = LiveQueryHub()
    counter = {"calls": 0}

    def query():
        counter["calls"] += 1
        return counter["calls"]

    subscription = hub.watch(["trips"], query)
    assert subscription.get(timeout=1) == 1

    hub.publish("trip_bookings")
    with pytest.raises(queue.Empty):
        subscription.get(timeout=0.1)

    hub.publish("trips", "trip_bookings")
    assert subscription.get(timeout=1) == 2
    assert hub.subscriber_count("trips") == 1

    hub.close_all()
    assert hub.subscriber_count() == 0
    assert list(subscription) == []


def test_failing_query_is_logged_and_skipped(caplog):
    hub = LiveQueryHub()
    state = {"fail": True}

    def query():
        if state["fail"]:
            raise RuntimeError("store unavailable")
        return "ok"

    subscription = hub.watch(["trips"], query, name="flaky")
    assert "Live query flaky failed" in caplog.text
    with pytest.raises(queue.Empty):
        subscription.get(timeout=0.1)

    state["fail"] = False
    hub.publish("trips")
    assert subscription.get(timeout=1) == "ok"
    subscription.close()


def test_unread_subscription_keeps_only_newest_value():
    hub = LiveQueryHub()
    counter = {"calls": 0}

    def query():
        counter["calls"] += 1
        return counter["calls"]

    subscription = hub.watch(["trips"], query)
    for _ in range(50):
        hub.publish("trips")

    assert subscription.get(timeout=1) == 51
    with pytest.raises(queue.Empty):
        subscription.get(timeout=0.1)

    subscription.close()
    with pytest.raises(SubscriptionClosed):
        subscription.get(timeout=0.1)
