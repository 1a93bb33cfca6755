"""
Business-rule failures of the reservation engine.

Engine operations return these as values (`Reservation | BookingError`)
rather than raising them at callers. They subclass Exception only so the
engine can raise one inside a transaction block to force the rollback and
then hand it back at the boundary.
"""

from typing import Optional, Union

from transit_booking.models.reservation import Reservation


class BookingError(Exception):
    """Base class for every rejection the engine can report."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class ValidationError(BookingError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field}


class TripNotFoundOrInactive(BookingError):
    def __init__(self, trip_id: int):
        super().__init__(f"Trip {trip_id} not found or not available for reservation")
        self.trip_id = trip_id

    def to_dict(self) -> dict:
        return {**super().to_dict(), "trip_id": self.trip_id}


class InsufficientSeats(BookingError):
    def __init__(self, requested: int, available: int):
        super().__init__(f"Requested {requested} seats but only {available} available")
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict:
        return {**super().to_dict(), "requested": self.requested, "available": self.available}


class ReservationNotFound(BookingError):
    def __init__(self, reservation_id: int):
        super().__init__(f"Reservation {reservation_id} not found")
        self.reservation_id = reservation_id

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reservation_id": self.reservation_id}


class CodeGenerationExhausted(BookingError):
    def __init__(self, attempts: int):
        super().__init__(f"Could not allocate a unique reservation code after {attempts} attempts")
        self.attempts = attempts


BookingResult = Union[Reservation, BookingError]


class ReservationCodeConflict(Exception):
    """Raised by repositories when an insert violates reservation code uniqueness."""

    def __init__(self, code: str):
        super().__init__(f"Reservation code {code} already exists")
        self.code = code
