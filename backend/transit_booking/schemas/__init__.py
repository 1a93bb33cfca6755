from transit_booking.schemas.reservation import (
    AvailabilityResponse,
    BookingCreate,
    ReservationData,
    ReservationDeleteResponse,
    ReservationDetailResponse,
    ReservationFilters,
    ReservationListResponse,
    ReservationResponse,
    ReservationStatsResponse,
)

__all__ = [
    "ReservationData", "BookingCreate", "ReservationFilters",
    "ReservationResponse", "ReservationDetailResponse", "ReservationListResponse",
    "ReservationDeleteResponse", "ReservationStatsResponse", "AvailabilityResponse",
]
