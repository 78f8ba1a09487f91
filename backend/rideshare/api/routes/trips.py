"""
Trip management routes.
"""
from fastapi import APIRouter, Depends, status
from typing import List, Optional
from rideshare.api.dependencies import get_container, get_current_user_id
from rideshare.core.exceptions import PermissionDeniedError
from rideshare.models.trip import TripStatus
from rideshare.schemas.booking import BookingCreate, BookingResponse, EligibilityResponse
from rideshare.schemas.trip import TripCreate, TripUpdate, TripResponse
from rideshare.services.booking_workflow import Location, describe_eligibility
from rideshare.services.collaborators import RouteDraft
from rideshare.services.container import ServiceContainer

router = APIRouter(prefix="/trips", tags=["trips"])


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Publish a new trip offer."""
    return await container.executor.run(
        container.trips.create_trip,
        driver_id=current_user_id,
        route=RouteDraft(**trip_data.route.model_dump()),
        departure_time=trip_data.departure_time,
        price=trip_data.price,
        available_seats=trip_data.available_seats,
        car_id=trip_data.car_id,
        is_recurring=trip_data.is_recurring,
        recurrence_pattern=trip_data.recurrence_pattern,
        notes=trip_data.notes,
    )


@router.get("/mine", response_model=List[TripResponse])
async def get_my_trips(
    trip_status: Optional[TripStatus] = None,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """List trips offered by the current user."""
    return await container.executor.run(container.trips.list_trips_for_driver, current_user_id, trip_status)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: str,
    container: ServiceContainer = Depends(get_container)
):
    """Get trip details."""
    return await container.executor.run(container.trips.get_trip, trip_id)


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_id: str,
    trip_data: TripUpdate,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Edit price, departure time or notes of a scheduled trip."""
    return await container.executor.run(
        container.trips.update_trip,
        trip_id,
        actor_id=current_user_id,
        price=trip_data.price,
        departure_time=trip_data.departure_time,
        notes=trip_data.notes,
    )


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Delete a trip and its bookings."""
    await container.executor.run(container.trips.delete_trip, trip_id, actor_id=current_user_id)
    return None


@router.post("/{trip_id}/start", response_model=TripResponse)
async def start_trip(
    trip_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Mark a scheduled trip as in progress."""
    return await container.executor.run(container.trips.start_trip, trip_id, actor_id=current_user_id)


@router.post("/{trip_id}/complete", response_model=TripResponse)
async def complete_trip(
    trip_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Finish a trip in progress."""
    return await container.executor.run(container.trips.complete_trip, trip_id, actor_id=current_user_id)


@router.post("/{trip_id}/cancel", response_model=TripResponse)
async def cancel_trip(
    trip_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Cancel a scheduled trip."""
    return await container.executor.run(container.trips.cancel_trip, trip_id, actor_id=current_user_id)


@router.get("/{trip_id}/eligibility", response_model=EligibilityResponse)
async def check_eligibility(
    trip_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Check whether the current user can book this trip."""
    result = await container.executor.run(container.bookings.can_user_book_trip, trip_id, current_user_id)
    return describe_eligibility(result)


def _driver_bookings(container: ServiceContainer, trip_id: str, user_id: str):
    trip = container.trips.get_trip(trip_id)
    if trip.driver_id != user_id:
        raise PermissionDeniedError("Only the driver can see a trip's bookings")
    return container.bookings.list_bookings_for_trip(trip_id)


@router.get("/{trip_id}/bookings", response_model=List[BookingResponse])
async def get_trip_bookings(
    trip_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """List all bookings on a trip (driver only)."""
    return await container.executor.run(_driver_bookings, container, trip_id, current_user_id)


@router.post("/{trip_id}/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def request_booking(
    trip_id: str,
    booking_data: BookingCreate,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Request seats on a trip. Requesting again updates the existing booking."""
    pickup = Location(booking_data.pickup_location, booking_data.pickup_latitude, booking_data.pickup_longitude)
    dropoff = Location(booking_data.dropoff_location, booking_data.dropoff_latitude, booking_data.dropoff_longitude)
    return await container.executor.run(
        container.bookings.create_booking_request,
        trip_id,
        current_user_id,
        seats=booking_data.seats,
        pickup=pickup,
        dropoff=dropoff,
    )
