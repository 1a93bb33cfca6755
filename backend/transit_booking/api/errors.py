"""
Translate engine rejections into HTTP errors.
"""

from typing import TypeVar, Union

from fastapi import HTTPException, status

from transit_booking.services.errors import (
    BookingError,
    CodeGenerationExhausted,
    InsufficientSeats,
    ReservationNotFound,
    TripNotFoundOrInactive,
    ValidationError,
)

T = TypeVar("T")

STATUS_BY_ERROR = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    TripNotFoundOrInactive: status.HTTP_404_NOT_FOUND,
    ReservationNotFound: status.HTTP_404_NOT_FOUND,
    InsufficientSeats: status.HTTP_409_CONFLICT,
    CodeGenerationExhausted: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap(result: Union[T, BookingError]) -> T:
    """Return the successful value or raise the matching HTTPException."""
    if isinstance(result, BookingError):
        raise HTTPException(
            status_code=STATUS_BY_ERROR.get(type(result), status.HTTP_400_BAD_REQUEST),
            detail=result.to_dict(),
        )
    return result
