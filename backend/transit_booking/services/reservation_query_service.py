"""
Read side for reservation listings (admin and "my reservations" pages).

Reads committed state with the database's default isolation; nothing here
takes locks or participates in booking decisions.
"""

import math
from dataclasses import dataclass
from typing import Optional

from transit_booking.core.clock import Clock, utc_now
from transit_booking.core.config import get_settings
from transit_booking.models.reservation import Reservation, ReservationStatus
from transit_booking.schemas.reservation import ReservationFilters
from transit_booking.services.interfaces import ReservationRepository

settings = get_settings()


@dataclass
class ReservationPage:
    items: list[Reservation]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


class ReservationQueryService:

    def __init__(
        self,
        repository: ReservationRepository,
        clock: Clock = utc_now,
        page_size: int = settings.RESERVATIONS_PAGE_SIZE,
    ):
        self.repository = repository
        self.clock = clock
        self.page_size = page_size

    async def list_reservations(
        self,
        filters: ReservationFilters,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> ReservationPage:
        """
        Filtered, paginated listing. Default order is newest first; "upcoming"
        compares trip departure against the clock at call time.
        """
        page = max(page, 1)
        page_size = page_size or self.page_size
        items, total = await self.repository.list_reservations(
            filters,
            now=self.clock(),
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        return ReservationPage(items=items, total=total, page=page, page_size=page_size)

    async def list_user_reservations(
        self,
        user_id: int,
        filters: ReservationFilters,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> ReservationPage:
        scoped = filters.model_copy(update={"user_id": user_id})
        return await self.list_reservations(scoped, page, page_size)

    async def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        return await self.repository.get_reservation(reservation_id)

    async def seat_numbers(self, reservation_id: int) -> list[int]:
        return await self.repository.list_seat_numbers(reservation_id)

    async def statistics(self, user_id: Optional[int] = None) -> dict[str, int]:
        counts = await self.repository.count_by_status(user_id)
        confirmed = counts.get(ReservationStatus.CONFIRMED.value, 0)
        cancelled = counts.get(ReservationStatus.CANCELLED.value, 0)
        return {"total": confirmed + cancelled, "confirmed": confirmed, "cancelled": cancelled}
