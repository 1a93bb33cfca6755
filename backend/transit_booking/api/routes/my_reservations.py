"""
End-user reservation endpoints: book seats, list and cancel own reservations.
"""

from fastapi import APIRouter, Depends, Query, status

from transit_booking.api.dependencies import (
    get_current_user_id,
    get_query_service,
    get_reservation_filters,
    get_reservation_service,
)
from transit_booking.api.errors import unwrap
from transit_booking.api.routes.reservations import page_response
from transit_booking.schemas.reservation import (
    BookingCreate,
    ReservationFilters,
    ReservationListResponse,
    ReservationResponse,
)
from transit_booking.services.cache_service import invalidate_availability
from transit_booking.services.reservation_query_service import ReservationQueryService
from transit_booking.services.reservation_service import ReservationService

router = APIRouter(prefix="/me/reservations", tags=["My Reservations"])


@router.post("/", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def book_endpoint(
    booking: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Book seats on an upcoming trip. The price is taken from the trip.
    Returns 409 when fewer seats are left than requested.
    """
    reservation = unwrap(await service.book(user_id, booking.trip_id, booking.seat_count))
    await invalidate_availability([reservation.trip_id])
    return reservation


@router.get("/", response_model=ReservationListResponse)
async def list_my_reservations_endpoint(
    filters: ReservationFilters = Depends(get_reservation_filters),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    queries: ReservationQueryService = Depends(get_query_service),
):
    page_result = await queries.list_user_reservations(user_id, filters, page, page_size)
    return page_response(page_result)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_my_reservation_endpoint(
    reservation_id: int,
    user_id: int = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """Cancel one of your reservations before the trip departs."""
    reservation = unwrap(await service.cancel_for_user(reservation_id, user_id))
    await invalidate_availability([reservation.trip_id])
    return reservation
