"""
PostgreSQL-backed reservation repository.

LOCKING
=======
- get_trip(for_update=True) issues SELECT ... FOR UPDATE on the trip row.
  The engine takes it before summing confirmed seats, so two writers on the
  same trip run check-then-write one after the other. The lock lives until
  transaction() commits or rolls back.
- get_reservation(for_update=True) locks the reservation under edit so two
  admins updating the same booking cannot interleave.
- Both use populate_existing so a locked read never serves a stale object
  from the session's identity map.

The reservation code insert runs inside a SAVEPOINT: a unique violation
rolls back only the insert, keeping the trip lock and letting the engine
retry with a fresh code in the same transaction.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from transit_booking.core.logging import get_logger
from transit_booking.models.reservation import Reservation, ReservationSeat, ReservationStatus
from transit_booking.models.trip import Trip
from transit_booking.models.user import User
from transit_booking.schemas.reservation import ReservationFilters
from transit_booking.services.errors import ReservationCodeConflict
from transit_booking.services.interfaces import ReservationRepository

logger = get_logger(__name__)

CODE_UNIQUE_CONSTRAINT = "uq_reservations_code"


class SqlAlchemyReservationRepository(ReservationRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        try:
            yield
        except Exception:
            await self.db.rollback()
            raise
        await self.db.commit()

    async def get_trip(self, trip_id: int, for_update: bool = False) -> Optional[Trip]:
        query = select(Trip).where(Trip.id == trip_id)
        if for_update:
            query = query.with_for_update(of=Trip).execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def sum_confirmed_seats(
        self, trip_id: int, exclude_reservation_id: Optional[int] = None
    ) -> int:
        query = select(func.coalesce(func.sum(Reservation.seat_count), 0)).where(
            Reservation.trip_id == trip_id,
            Reservation.status == ReservationStatus.CONFIRMED.value,
        )
        if exclude_reservation_id is not None:
            query = query.where(Reservation.id != exclude_reservation_id)
        result = await self.db.execute(query)
        return int(result.scalar_one())

    async def user_exists(self, user_id: int) -> bool:
        result = await self.db.execute(select(User.id).where(User.id == user_id))
        return result.scalar_one_or_none() is not None

    async def get_reservation(
        self, reservation_id: int, for_update: bool = False
    ) -> Optional[Reservation]:
        query = select(Reservation).where(Reservation.id == reservation_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def add_reservation(self, reservation: Reservation) -> Reservation:
        try:
            async with self.db.begin_nested():
                self.db.add(reservation)
                await self.db.flush()
        except IntegrityError as exc:
            if CODE_UNIQUE_CONSTRAINT in str(exc.orig):
                raise ReservationCodeConflict(reservation.reservation_code) from exc
            raise
        await self.db.refresh(reservation)
        return reservation

    async def save_reservation(self, reservation: Reservation) -> Reservation:
        await self.db.flush()
        await self.db.refresh(reservation)
        return reservation

    async def replace_seats(self, reservation: Reservation) -> None:
        await self.db.execute(
            delete(ReservationSeat).where(ReservationSeat.reservation_id == reservation.id)
        )
        self.db.add_all(
            ReservationSeat(reservation_id=reservation.id, seat_number=number)
            for number in range(1, reservation.seat_count + 1)
        )
        await self.db.flush()

    async def delete_reservation(self, reservation: Reservation) -> int:
        seats = await self.db.execute(
            delete(ReservationSeat).where(ReservationSeat.reservation_id == reservation.id)
        )
        await self.db.execute(delete(Reservation).where(Reservation.id == reservation.id))
        logger.debug("reservation_rows_deleted", reservation_id=reservation.id, seat_rows=seats.rowcount)
        return seats.rowcount

    async def list_seat_numbers(self, reservation_id: int) -> list[int]:
        result = await self.db.execute(
            select(ReservationSeat.seat_number)
            .where(ReservationSeat.reservation_id == reservation_id)
            .order_by(ReservationSeat.seat_number)
        )
        return list(result.scalars().all())

    async def list_reservations(
        self,
        filters: ReservationFilters,
        now: datetime,
        offset: int,
        limit: int,
    ) -> tuple[list[Reservation], int]:
        query = select(Reservation)

        if filters.upcoming is not None or filters.order_by == "departure_time":
            query = query.join(Trip, Trip.id == Reservation.trip_id)
        if filters.search:
            query = query.where(Reservation.reservation_code.icontains(filters.search, autoescape=True))
        if filters.status is not None:
            query = query.where(Reservation.status == filters.status.value)
        if filters.user_id is not None:
            query = query.where(Reservation.user_id == filters.user_id)
        if filters.trip_id is not None:
            query = query.where(Reservation.trip_id == filters.trip_id)
        if filters.reserved_after is not None:
            query = query.where(Reservation.reserved_at >= filters.reserved_after)
        if filters.reserved_before is not None:
            query = query.where(Reservation.reserved_at < filters.reserved_before)
        if filters.upcoming is True:
            query = query.where(Trip.departure_time > now)
        elif filters.upcoming is False:
            query = query.where(Trip.departure_time <= now)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar_one()

        sort_column = Trip.departure_time if filters.order_by == "departure_time" else Reservation.created_at
        if filters.direction == "asc":
            query = query.order_by(sort_column.asc(), Reservation.id.asc())
        else:
            query = query.order_by(sort_column.desc(), Reservation.id.desc())

        result = await self.db.execute(query.offset(offset).limit(limit))
        return list(result.scalars().all()), total

    async def count_by_status(self, user_id: Optional[int] = None) -> dict[str, int]:
        query = select(Reservation.status, func.count()).group_by(Reservation.status)
        if user_id is not None:
            query = query.where(Reservation.user_id == user_id)
        result = await self.db.execute(query)
        return {status: count for status, count in result.all()}
