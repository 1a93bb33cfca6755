"""
Administrative reservation endpoints: full create/update/cancel/delete
through the lifecycle engine, plus filtered listings.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from transit_booking.api.dependencies import (
    get_query_service,
    get_reservation_filters,
    get_reservation_service,
)
from transit_booking.api.errors import unwrap
from transit_booking.core.logging import get_logger
from transit_booking.schemas.reservation import (
    ReservationData,
    ReservationDeleteResponse,
    ReservationDetailResponse,
    ReservationFilters,
    ReservationListResponse,
    ReservationResponse,
    ReservationStatsResponse,
)
from transit_booking.services.cache_service import invalidate_availability
from transit_booking.services.reservation_query_service import (
    ReservationPage,
    ReservationQueryService,
)
from transit_booking.services.reservation_service import ReservationService

logger = get_logger(__name__)
router = APIRouter(prefix="/reservations", tags=["Reservations"])


def page_response(page: ReservationPage) -> ReservationListResponse:
    return ReservationListResponse(
        reservations=[ReservationResponse.model_validate(r) for r in page.items],
        total=page.total,
        page=page.page,
        page_size=page.page_size,
        pages=page.pages,
    )


async def load_reservation(reservation_id: int, queries: ReservationQueryService):
    reservation = await queries.get_reservation(reservation_id)
    if reservation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Reservation {reservation_id} not found",
        )
    return reservation


@router.get("/", response_model=ReservationListResponse)
async def list_reservations_endpoint(
    filters: ReservationFilters = Depends(get_reservation_filters),
    page: int = Query(1, ge=1),
    queries: ReservationQueryService = Depends(get_query_service),
):
    """List reservations, newest first, 15 per page. All filters combine with AND."""
    return page_response(await queries.list_reservations(filters, page))


@router.get("/stats", response_model=ReservationStatsResponse)
async def reservation_stats_endpoint(
    queries: ReservationQueryService = Depends(get_query_service),
):
    return await queries.statistics()


@router.get("/{reservation_id}", response_model=ReservationDetailResponse)
async def get_reservation_endpoint(
    reservation_id: int,
    queries: ReservationQueryService = Depends(get_query_service),
):
    reservation = await load_reservation(reservation_id, queries)
    seat_numbers = await queries.seat_numbers(reservation_id)
    return ReservationDetailResponse(
        **ReservationResponse.model_validate(reservation).model_dump(),
        seat_numbers=seat_numbers,
    )


@router.post("/", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation_endpoint(
    data: ReservationData,
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Create a reservation. Confirmed reservations must fit the trip's remaining
    capacity (409 otherwise); cancelled ones are recorded without using seats.
    """
    reservation = unwrap(await service.create(data))
    await invalidate_availability([reservation.trip_id])
    return reservation


@router.put("/{reservation_id}", response_model=ReservationResponse)
async def update_reservation_endpoint(
    reservation_id: int,
    data: ReservationData,
    service: ReservationService = Depends(get_reservation_service),
    queries: ReservationQueryService = Depends(get_query_service),
):
    """Update a reservation. Moving trips, adding seats or reactivating re-checks capacity."""
    existing = await load_reservation(reservation_id, queries)
    previous_trip_id = existing.trip_id
    reservation = unwrap(await service.update(existing, data))
    await invalidate_availability([previous_trip_id, reservation.trip_id])
    return reservation


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation_endpoint(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
    queries: ReservationQueryService = Depends(get_query_service),
):
    existing = await load_reservation(reservation_id, queries)
    reservation = unwrap(await service.cancel(existing))
    await invalidate_availability([reservation.trip_id])
    return reservation


@router.delete("/{reservation_id}", response_model=ReservationDeleteResponse)
async def delete_reservation_endpoint(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
    queries: ReservationQueryService = Depends(get_query_service),
):
    """Hard delete. Removes the reservation and its seat records."""
    existing = await load_reservation(reservation_id, queries)
    deleted = unwrap(await service.delete(existing))
    await invalidate_availability([deleted.trip_id])
    return ReservationDeleteResponse(
        message="Reservation deleted successfully",
        reservation_id=reservation_id,
        reservation_code=deleted.reservation_code,
    )
