"""
Booking workflow routes.
"""
from fastapi import APIRouter, Depends, status
from typing import List, Optional
from rideshare.api.dependencies import get_container, get_current_user_id
from rideshare.core.exceptions import PermissionDeniedError
from rideshare.schemas.booking import (
    BookingResponse, BookingReject, PaymentUpdate, ReviewCreate, BookingRequestResponse
)
from rideshare.services.container import ServiceContainer

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _to_request_responses(items) -> List[BookingRequestResponse]:
    return [BookingRequestResponse.model_validate(item, from_attributes=True) for item in items]


@router.get("/incoming", response_model=List[BookingRequestResponse])
async def get_incoming_requests(
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Open requests on the current user's trips, newest first."""
    items = await container.executor.run(container.bookings.list_incoming_requests, current_user_id)
    return _to_request_responses(items)


@router.get("/mine", response_model=List[BookingRequestResponse])
async def get_my_requests(
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """The current user's bookings as a passenger, newest first."""
    items = await container.executor.run(container.bookings.list_passenger_requests, current_user_id)
    return _to_request_responses(items)


def _visible_booking(container: ServiceContainer, booking_id: str, user_id: str):
    booking = container.bookings.get_booking(booking_id)
    if user_id != booking.passenger_id:
        trip = container.trips.get_trip(booking.trip_id)
        if user_id != trip.driver_id:
            raise PermissionDeniedError("Access denied to this booking")
    return booking


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Get booking details (passenger or driver)."""
    return await container.executor.run(_visible_booking, container, booking_id, current_user_id)


@router.post("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Driver approves a pending request."""
    return await container.executor.run(
        container.bookings.accept_booking_request, booking_id, actor_id=current_user_id
    )


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: str,
    reject_data: Optional[BookingReject] = None,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Driver rejects a request; its seats are released."""
    reason = reject_data.reason if reject_data else None
    return await container.executor.run(
        container.bookings.reject_booking_request, booking_id, reason=reason, actor_id=current_user_id
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Passenger or driver cancels a booking; its seats are released."""
    return await container.executor.run(
        container.bookings.cancel_booking_request, booking_id, actor_id=current_user_id
    )


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Driver marks an approved booking as completed."""
    return await container.executor.run(
        container.bookings.complete_booking, booking_id, actor_id=current_user_id
    )


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: str,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Delete a booking."""
    await container.executor.run(container.bookings.delete_booking, booking_id, actor_id=current_user_id)
    return None


def _update_payment(container: ServiceContainer, booking_id: str, user_id: str, payment_status):
    _visible_booking(container, booking_id, user_id)
    return container.bookings.update_payment_status(booking_id, payment_status)


@router.put("/{booking_id}/payment", response_model=BookingResponse)
async def update_payment(
    booking_id: str,
    payment_data: PaymentUpdate,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Set the payment status of a booking."""
    return await container.executor.run(
        _update_payment, container, booking_id, current_user_id, payment_data.payment_status
    )


@router.post("/{booking_id}/review", response_model=BookingResponse)
async def review_booking(
    booking_id: str,
    review_data: ReviewCreate,
    current_user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container)
):
    """Passenger rates a completed ride."""
    return await container.executor.run(
        container.bookings.add_review,
        booking_id,
        review_data.rating,
        review=review_data.review,
        actor_id=current_user_id,
    )
