"""
FastAPI dependencies wiring the engine to a per-request repository.

Tests override `get_reservation_repository` to run the same routes against
the in-memory repository.
"""

from datetime import date
from typing import Literal, Optional

from fastapi import Depends, Header, HTTPException, Query, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from transit_booking.db.session import get_db
from transit_booking.infrastructure.sqlalchemy_repository import SqlAlchemyReservationRepository
from transit_booking.models.reservation import ReservationStatus
from transit_booking.schemas.reservation import ReservationFilters
from transit_booking.services.interfaces import ReservationRepository
from transit_booking.services.reservation_query_service import ReservationQueryService
from transit_booking.services.reservation_service import ReservationService


async def get_reservation_repository(db: AsyncSession = Depends(get_db)) -> ReservationRepository:
    return SqlAlchemyReservationRepository(db)


def get_reservation_service(
    repository: ReservationRepository = Depends(get_reservation_repository),
) -> ReservationService:
    return ReservationService(repository)


def get_query_service(
    repository: ReservationRepository = Depends(get_reservation_repository),
) -> ReservationQueryService:
    return ReservationQueryService(repository)


def get_current_user_id(x_user_id: Optional[int] = Header(None, alias="X-User-ID")) -> int:
    """
    Caller identity as asserted by the upstream auth gateway.
    Authentication itself happens before requests reach this service.
    """
    if x_user_id is None or x_user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid X-User-ID header",
        )
    return x_user_id


def get_reservation_filters(
    search: Optional[str] = Query(None, max_length=100, description="Reservation code substring"),
    reservation_status: Optional[ReservationStatus] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None, ge=1),
    trip_id: Optional[int] = Query(None, ge=1),
    reserved_from: Optional[date] = Query(None),
    reserved_to: Optional[date] = Query(None),
    upcoming: Optional[bool] = Query(None),
    order_by: Literal["created_at", "departure_time"] = Query("created_at"),
    direction: Literal["asc", "desc"] = Query("desc"),
) -> ReservationFilters:
    try:
        return ReservationFilters(
            search=search,
            status=reservation_status,
            user_id=user_id,
            trip_id=trip_id,
            reserved_from=reserved_from,
            reserved_to=reserved_to,
            upcoming=upcoming,
            order_by=order_by,
            direction=direction,
        )
    except PydanticValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=[error["msg"] for error in exc.errors()],
        )
