"""Exception hierarchy for the ride-sharing core."""
from typing import Optional


class RideShareError(Exception):
    """Base class for every error raised by the core."""
    pass


class ValidationError(RideShareError):
    """Raised when input is malformed. Always raised before touching the store."""
    pass


class NotFoundError(RideShareError):
    """Raised when a referenced trip, booking, route, profile or car is absent."""
    pass


class ConflictError(RideShareError):
    """Raised when a business rule forbids the operation."""
    pass


class InsufficientSeatsError(ConflictError):
    """Raised when a trip does not have enough unreserved seats."""

    def __init__(self, trip_id: str, requested: int, available: Optional[int] = None):
        self.trip_id = trip_id
        self.requested = requested
        self.available = available
        if available is None:
            message = f"Not enough seats available on trip {trip_id} (requested {requested})"
        else:
            message = (
                f"Not enough seats available on trip {trip_id} "
                f"(requested {requested}, available {available})"
            )
        super().__init__(message)


class InventoryCorruptionError(RideShareError):
    """Raised when a release would push a trip above its car's seat capacity."""
    pass


class PermissionDeniedError(RideShareError):
    """Raised when the acting user may not perform the operation."""
    pass


class DataAccessError(RideShareError):
    """Raised when the underlying store fails."""
    pass


class SearchCancelledError(RideShareError):
    """Raised when a running search is cancelled by its caller."""
    pass
