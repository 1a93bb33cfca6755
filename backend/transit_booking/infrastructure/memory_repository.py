"""
In-memory reservation repository.

Same contract as the PostgreSQL repository, backed by dicts. One asyncio.Lock
serializes transactions (a coarser version of the per-trip row lock), and a
snapshot taken on entry is restored if the block raises, so rejected or
failed operations leave no trace. Used by the test suite and for running the
API without a database.
"""

import asyncio
import itertools
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

from transit_booking.core.clock import Clock, utc_now
from transit_booking.models.reservation import Reservation, ReservationStatus
from transit_booking.models.trip import Trip
from transit_booking.models.user import User
from transit_booking.schemas.reservation import ReservationFilters
from transit_booking.services.errors import ReservationCodeConflict
from transit_booking.services.interfaces import ReservationRepository

RESERVATION_FIELDS = tuple(column.key for column in Reservation.__table__.columns)


class InMemoryReservationRepository(ReservationRepository):

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self.users: dict[int, User] = {}
        self.trips: dict[int, Trip] = {}
        self.reservations: dict[int, Reservation] = {}
        self.seats: dict[int, list[int]] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    # Fixture helpers: users and trips are owned by other services in production

    def add_user(self, user: User) -> User:
        self.users[user.id] = user
        return user

    def add_trip(self, trip: Trip) -> Trip:
        self.trips[trip.id] = trip
        return trip

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            snapshot = self._snapshot()
            try:
                yield
            except BaseException:
                self._restore(snapshot)
                raise

    async def get_trip(self, trip_id: int, for_update: bool = False) -> Optional[Trip]:
        return self.trips.get(trip_id)

    async def sum_confirmed_seats(
        self, trip_id: int, exclude_reservation_id: Optional[int] = None
    ) -> int:
        # Yield like a real driver round-trip so concurrent callers interleave
        await asyncio.sleep(0)
        return sum(
            reservation.seat_count
            for reservation in self.reservations.values()
            if reservation.trip_id == trip_id
            and reservation.status == ReservationStatus.CONFIRMED
            and reservation.id != exclude_reservation_id
        )

    async def user_exists(self, user_id: int) -> bool:
        return user_id in self.users

    async def get_reservation(
        self, reservation_id: int, for_update: bool = False
    ) -> Optional[Reservation]:
        return self.reservations.get(reservation_id)

    async def add_reservation(self, reservation: Reservation) -> Reservation:
        await asyncio.sleep(0)
        if any(
            existing.reservation_code == reservation.reservation_code
            for existing in self.reservations.values()
        ):
            raise ReservationCodeConflict(reservation.reservation_code)

        now = self.clock()
        reservation.id = next(self._ids)
        reservation.created_at = now
        reservation.updated_at = now
        self.reservations[reservation.id] = reservation
        return reservation

    async def save_reservation(self, reservation: Reservation) -> Reservation:
        reservation.updated_at = self.clock()
        self.reservations[reservation.id] = reservation
        return reservation

    async def replace_seats(self, reservation: Reservation) -> None:
        self.seats[reservation.id] = list(range(1, reservation.seat_count + 1))

    async def delete_reservation(self, reservation: Reservation) -> int:
        removed = len(self.seats.pop(reservation.id, []))
        del self.reservations[reservation.id]
        return removed

    async def list_seat_numbers(self, reservation_id: int) -> list[int]:
        return list(self.seats.get(reservation_id, []))

    async def list_reservations(
        self,
        filters: ReservationFilters,
        now: datetime,
        offset: int,
        limit: int,
    ) -> tuple[list[Reservation], int]:
        matches = [r for r in self.reservations.values() if self._matches(r, filters, now)]

        if filters.order_by == "departure_time":
            def sort_key(r):
                return (self.trips[r.trip_id].departure_time, r.id)
        else:
            def sort_key(r):
                return (r.created_at, r.id)
        matches.sort(key=sort_key, reverse=filters.direction == "desc")

        return matches[offset:offset + limit], len(matches)

    async def count_by_status(self, user_id: Optional[int] = None) -> dict[str, int]:
        counts: dict[str, int] = {}
        for reservation in self.reservations.values():
            if user_id is not None and reservation.user_id != user_id:
                continue
            counts[reservation.status] = counts.get(reservation.status, 0) + 1
        return counts

    def _matches(self, reservation: Reservation, filters: ReservationFilters, now: datetime) -> bool:
        if filters.search and filters.search.lower() not in reservation.reservation_code.lower():
            return False
        if filters.status is not None and reservation.status != filters.status:
            return False
        if filters.user_id is not None and reservation.user_id != filters.user_id:
            return False
        if filters.trip_id is not None and reservation.trip_id != filters.trip_id:
            return False
        if filters.reserved_after is not None and reservation.reserved_at < filters.reserved_after:
            return False
        if filters.reserved_before is not None and reservation.reserved_at >= filters.reserved_before:
            return False
        if filters.upcoming is not None:
            departs_later = self.trips[reservation.trip_id].departure_time > now
            if departs_later != filters.upcoming:
                return False
        return True

    def _snapshot(self) -> dict:
        return {
            "reservations": {
                reservation_id: (
                    reservation,
                    {field: getattr(reservation, field) for field in RESERVATION_FIELDS},
                )
                for reservation_id, reservation in self.reservations.items()
            },
            "seats": {reservation_id: list(numbers) for reservation_id, numbers in self.seats.items()},
        }

    def _restore(self, snapshot: dict) -> None:
        self.reservations = {}
        for reservation_id, (reservation, values) in snapshot["reservations"].items():
            for field, value in values.items():
                setattr(reservation, field, value)
            self.reservations[reservation_id] = reservation
        self.seats = snapshot["seats"]
