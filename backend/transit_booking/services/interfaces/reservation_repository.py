"""
Persistence interface for the reservation engine.

The engine's capacity logic talks only to this interface, so the same rules
run against PostgreSQL in production and against an in-memory fake in tests.

Implementations:
- SqlAlchemyReservationRepository: row locks + one DB transaction per call
- InMemoryReservationRepository: asyncio.Lock-serialized dict store
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, Optional

from transit_booking.models.reservation import Reservation
from transit_booking.models.trip import Trip
from transit_booking.schemas.reservation import ReservationFilters


class ReservationRepository(ABC):

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """
        Scope one atomic unit of work.

        Commits when the block exits normally and rolls back every write made
        inside it when the block raises. Locks taken inside are held until exit.
        """

    @abstractmethod
    async def get_trip(self, trip_id: int, for_update: bool = False) -> Optional[Trip]:
        """
        Load a trip with its bus. With for_update=True the trip is locked so
        concurrent capacity checks on it serialize until the transaction ends.
        """

    @abstractmethod
    async def sum_confirmed_seats(
        self, trip_id: int, exclude_reservation_id: Optional[int] = None
    ) -> int:
        """Total seat_count of confirmed reservations on a trip, minus one excluded reservation."""

    @abstractmethod
    async def user_exists(self, user_id: int) -> bool:
        pass

    @abstractmethod
    async def get_reservation(
        self, reservation_id: int, for_update: bool = False
    ) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def add_reservation(self, reservation: Reservation) -> Reservation:
        """
        Insert a new reservation and assign its id.

        Raises:
            ReservationCodeConflict: reservation_code is already taken. The
                surrounding transaction stays usable so the caller can retry.
        """

    @abstractmethod
    async def save_reservation(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def replace_seats(self, reservation: Reservation) -> None:
        """Rewrite the seat sub-records so there is exactly one per seat, numbered 1..N."""

    @abstractmethod
    async def delete_reservation(self, reservation: Reservation) -> int:
        """Delete the seat sub-records, then the reservation. Returns seat rows removed."""

    @abstractmethod
    async def list_seat_numbers(self, reservation_id: int) -> list[int]:
        pass

    @abstractmethod
    async def list_reservations(
        self,
        filters: ReservationFilters,
        now: datetime,
        offset: int,
        limit: int,
    ) -> tuple[list[Reservation], int]:
        """Return one page of matching reservations and the total match count."""

    @abstractmethod
    async def count_by_status(self, user_id: Optional[int] = None) -> dict[str, int]:
        pass
