"""
Trip availability for display. Served from Redis when cached; the value
may lag a booking by up to the cache TTL and is never used to accept one.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from transit_booking.api.dependencies import get_reservation_service
from transit_booking.api.errors import unwrap
from transit_booking.core.logging import get_logger
from transit_booking.schemas.reservation import AvailabilityResponse
from transit_booking.services.cache_service import get_cached_availability, set_cached_availability
from transit_booking.services.reservation_service import ReservationService

logger = get_logger(__name__)
router = APIRouter(prefix="/trips", tags=["Trips"])


@router.get("/{trip_id}/availability", response_model=AvailabilityResponse)
async def trip_availability_endpoint(
    trip_id: int,
    exclude_reservation_id: Optional[int] = Query(None, ge=1),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Seats still available on a trip. With exclude_reservation_id (used by the
    edit form) the count is not cached, since it is specific to one booking.
    """
    if exclude_reservation_id is None:
        cached = await get_cached_availability(trip_id)
        if cached is not None:
            logger.debug("availability_cache_hit", trip_id=trip_id)
            return AvailabilityResponse(trip_id=trip_id, available_seats=cached, cached=True)

    available = unwrap(await service.available_seats(trip_id, exclude_reservation_id))

    if exclude_reservation_id is None:
        await set_cached_availability(trip_id, available)
    return AvailabilityResponse(trip_id=trip_id, available_seats=available)
