"""
Reservation lifecycle engine with concurrency-safe seat allocation.

CONCURRENCY STRATEGY: Pessimistic Row Lock on the Trip
=======================================================

Problem:
  Two requests book the last seats of a trip at the same time.
  Both sum the confirmed seats, both see room, both insert.
  Result: Overbooking.

Solution:
  Every capacity-affecting write runs inside one repository transaction:

  1. SELECT the trip ... FOR UPDATE (serializes writers per trip)
  2. SUM(seat_count) of confirmed reservations on it, inside the same transaction
  3. Reject with InsufficientSeats, or insert/update the reservation
  4. COMMIT releases the trip lock

  A second writer on the same trip blocks at step 1 until the first commits,
  so its sum at step 2 already includes the first writer's seats. Writers on
  different trips never wait on each other.

  Cancellations and deletes only free seats, so they lock the reservation row
  but not the trip.

Why not an optimistic seat counter?
  There is no stored "available seats" column to compare-and-swap: availability
  is derived from reservations, so cancel, reactivate and move between trips
  stay consistent without a denormalized counter.

Error model:
  Operations return `Reservation | BookingError`. A rejection is raised
  inside the transaction block (forcing rollback, so nothing is partially
  written) and handed back as a value at the boundary. Infrastructure errors
  propagate as exceptions.
"""

import time
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from transit_booking.core.clock import Clock, utc_now
from transit_booking.core.config import get_settings
from transit_booking.core.logging import get_logger
from transit_booking.core.metrics import (
    record_code_collision,
    record_reservation_operation,
    reservation_latency,
)
from transit_booking.models.reservation import Reservation, ReservationStatus
from transit_booking.models.trip import Trip
from transit_booking.schemas.reservation import ReservationData
from transit_booking.services.capacity_service import TripCapacityResolver
from transit_booking.services.code_generator import ReservationCodeGenerator
from transit_booking.services.errors import (
    BookingError,
    BookingResult,
    CodeGenerationExhausted,
    InsufficientSeats,
    ReservationCodeConflict,
    ReservationNotFound,
    TripNotFoundOrInactive,
    ValidationError,
)
from transit_booking.services.interfaces import ReservationRepository

logger = get_logger(__name__)
settings = get_settings()

CENTS = Decimal("0.01")


class ReservationService:

    def __init__(
        self,
        repository: ReservationRepository,
        clock: Clock = utc_now,
        code_generator: Optional[ReservationCodeGenerator] = None,
        max_code_attempts: int = settings.RESERVATION_CODE_MAX_ATTEMPTS,
        max_seats_per_reservation: int = settings.MAX_SEATS_PER_RESERVATION,
    ):
        self.repository = repository
        self.capacity = TripCapacityResolver(repository)
        self.clock = clock
        self.code_generator = code_generator or ReservationCodeGenerator()
        self.max_code_attempts = max_code_attempts
        self.max_seats_per_reservation = max_seats_per_reservation

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def available_seats(
        self, trip_id: int, exclude_reservation_id: Optional[int] = None
    ) -> Union[int, TripNotFoundOrInactive]:
        """Seats still sellable on a trip. Reads committed state; takes no lock."""
        trip = await self.repository.get_trip(trip_id)
        if trip is None:
            return TripNotFoundOrInactive(trip_id)
        return await self.capacity.available_seats(trip, exclude_reservation_id)

    async def create(self, data: ReservationData) -> BookingResult:
        """
        Create a reservation. A confirmed reservation must fit in the trip's
        remaining capacity; one recorded as cancelled consumes none.
        """
        return await self._run("create", self._create, data, False)

    async def book(self, user_id: int, trip_id: int, seat_count: int) -> BookingResult:
        """User-facing create: always confirmed, priced from the trip, upcoming trips only."""
        # Unvalidated construct: seat range and user checks are the engine's to report
        data = ReservationData.model_construct(user_id=user_id, trip_id=trip_id, seat_count=seat_count)
        return await self._run("book", self._create, data, True)

    async def update(self, reservation: Reservation, data: ReservationData) -> BookingResult:
        """
        Replace a reservation's fields. Capacity is re-validated only when the
        result holds seats it did not hold before: a different trip, a
        different seat count, or cancelled -> confirmed.
        """
        return await self._run("update", self._update, reservation.id, data)

    async def cancel(
        self, reservation: Reservation, cancelled_at: Optional[datetime] = None
    ) -> BookingResult:
        """Soft-cancel: status -> cancelled. The seats are free as soon as this commits."""
        return await self._run("cancel", self._cancel, reservation.id, cancelled_at)

    async def cancel_for_user(self, reservation_id: int, user_id: int) -> BookingResult:
        """Cancel on behalf of the owner, only while the trip has not departed."""
        return await self._run("cancel", self._cancel_for_user, reservation_id, user_id)

    async def delete(self, reservation: Reservation) -> BookingResult:
        """Hard delete of the reservation and its seat sub-records. Returns the deleted row."""
        return await self._run("delete", self._delete, reservation.id)

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    async def _run(self, operation: str, handler, *args) -> BookingResult:
        start = time.perf_counter()
        try:
            async with self.repository.transaction():
                result = await handler(*args)
        except BookingError as exc:
            record_reservation_operation(operation, exc.code)
            logger.warning("reservation_rejected", operation=operation, **exc.to_dict())
            return exc
        finally:
            reservation_latency.labels(operation=operation).observe(time.perf_counter() - start)

        record_reservation_operation(operation, "success")
        return result

    # ------------------------------------------------------------------
    # Operation bodies (always called inside a transaction)
    # ------------------------------------------------------------------

    async def _create(self, data: ReservationData, upcoming_only: bool) -> Reservation:
        now = self.clock()
        await self._validate(data)

        holds_seats = data.status.holds_seats
        trip = await self._load_bookable_trip(
            data.trip_id,
            lock=holds_seats,
            departing_after=now if upcoming_only else None,
        )

        if holds_seats:
            await self._ensure_capacity(trip, data.seat_count)

        reserved_at = data.reserved_at or now
        cancelled_at = None if holds_seats else (data.cancelled_at or now)
        self._validate_timestamps(reserved_at, cancelled_at)

        reservation = Reservation(
            user_id=data.user_id,
            trip_id=trip.id,
            seat_count=data.seat_count,
            total_price=self._price(data.total_price, trip, data.seat_count),
            status=data.status.value,
            reserved_at=reserved_at,
            cancelled_at=cancelled_at,
        )
        reservation = await self._insert_with_unique_code(reservation)
        await self.repository.replace_seats(reservation)

        logger.info(
            "reservation_created",
            reservation_id=reservation.id,
            code=reservation.reservation_code,
            user_id=reservation.user_id,
            trip_id=reservation.trip_id,
            seats=reservation.seat_count,
            status=reservation.status,
        )
        return reservation

    async def _update(self, reservation_id: int, data: ReservationData) -> Reservation:
        current = await self._lock_reservation(reservation_id)
        if data.status == ReservationStatus.CANCELLED and data.cancelled_at is None:
            raise ValidationError(
                "Cancellation date is required when status is cancelled.",
                field="cancelled_at",
            )
        return await self._apply_update(current, data, self.clock())

    async def _cancel(self, reservation_id: int, cancelled_at: Optional[datetime]) -> Reservation:
        current = await self._lock_reservation(reservation_id)
        data = self._as_data(current, status=ReservationStatus.CANCELLED, cancelled_at=cancelled_at)
        return await self._apply_update(current, data, self.clock())

    async def _cancel_for_user(self, reservation_id: int, user_id: int) -> Reservation:
        now = self.clock()
        current = await self.repository.get_reservation(reservation_id, for_update=True)
        # Someone else's reservation is reported exactly like a missing one
        if current is None or current.user_id != user_id:
            raise ReservationNotFound(reservation_id)

        if current.status == ReservationStatus.CANCELLED:
            raise ValidationError("Reservation is already cancelled.", field="status")

        trip = await self.repository.get_trip(current.trip_id)
        if trip is not None and trip.departure_time <= now:
            raise ValidationError(
                "Cannot cancel reservation for a trip that has already departed.",
                field="trip_id",
            )

        data = self._as_data(current, status=ReservationStatus.CANCELLED, cancelled_at=now)
        return await self._apply_update(current, data, now)

    async def _delete(self, reservation_id: int) -> Reservation:
        current = await self._lock_reservation(reservation_id)
        seats_removed = await self.repository.delete_reservation(current)

        logger.info(
            "reservation_deleted",
            reservation_id=reservation_id,
            code=current.reservation_code,
            trip_id=current.trip_id,
            seat_rows_removed=seats_removed,
        )
        return current

    async def _apply_update(
        self, current: Reservation, data: ReservationData, now: datetime
    ) -> Reservation:
        await self._validate(data, current)

        previous_status = current.status
        trip_changed = data.trip_id != current.trip_id
        seats_changed = data.seat_count != current.seat_count
        reactivating = (
            previous_status == ReservationStatus.CANCELLED and data.status.holds_seats
        )
        needs_capacity = data.status.holds_seats and (trip_changed or seats_changed or reactivating)

        trip: Optional[Trip] = None
        if trip_changed or needs_capacity:
            trip = await self._load_bookable_trip(data.trip_id, lock=needs_capacity)
        if needs_capacity:
            await self._ensure_capacity(trip, data.seat_count, exclude_reservation_id=current.id)

        reserved_at = data.reserved_at or current.reserved_at
        if data.status.holds_seats:
            cancelled_at = None
        elif previous_status == ReservationStatus.CANCELLED:
            cancelled_at = data.cancelled_at or current.cancelled_at
        else:
            cancelled_at = data.cancelled_at or now
        self._validate_timestamps(reserved_at, cancelled_at)

        if data.total_price is not None:
            total_price = data.total_price
        elif trip_changed or seats_changed:
            if trip is None:
                trip = await self.repository.get_trip(data.trip_id)
                if trip is None:
                    raise TripNotFoundOrInactive(data.trip_id)
            total_price = self._price(None, trip, data.seat_count)
        else:
            total_price = current.total_price

        # Every check has passed; from here on the row is mutated
        current.user_id = data.user_id
        current.trip_id = data.trip_id
        current.seat_count = data.seat_count
        current.total_price = total_price
        current.status = data.status.value
        current.reserved_at = reserved_at
        current.cancelled_at = cancelled_at
        current = await self.repository.save_reservation(current)
        if seats_changed:
            await self.repository.replace_seats(current)

        logger.info(
            "reservation_updated",
            reservation_id=current.id,
            code=current.reservation_code,
            trip_id=current.trip_id,
            seats=current.seat_count,
            previous_status=previous_status,
            status=current.status,
            capacity_checked=needs_capacity,
        )
        return current

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _validate(self, data: ReservationData, current: Optional[Reservation] = None) -> None:
        if current is None or data.seat_count != current.seat_count:
            if not 1 <= data.seat_count <= self.max_seats_per_reservation:
                raise ValidationError(
                    f"Seat count must be between 1 and {self.max_seats_per_reservation}.",
                    field="seat_count",
                )
        if data.total_price is not None and data.total_price < 0:
            raise ValidationError("Price cannot be negative.", field="total_price")
        if current is None or data.user_id != current.user_id:
            if not await self.repository.user_exists(data.user_id):
                raise ValidationError(f"User {data.user_id} does not exist.", field="user_id")

    @staticmethod
    def _validate_timestamps(reserved_at: datetime, cancelled_at: Optional[datetime]) -> None:
        if cancelled_at is not None and cancelled_at < reserved_at:
            raise ValidationError(
                "Cancellation date must be after or equal to reservation date.",
                field="cancelled_at",
            )

    async def _lock_reservation(self, reservation_id: int) -> Reservation:
        current = await self.repository.get_reservation(reservation_id, for_update=True)
        if current is None:
            raise ReservationNotFound(reservation_id)
        return current

    async def _load_bookable_trip(
        self,
        trip_id: int,
        lock: bool,
        departing_after: Optional[datetime] = None,
    ) -> Trip:
        trip = await self.repository.get_trip(trip_id, for_update=lock)
        if trip is None or not trip.is_active:
            raise TripNotFoundOrInactive(trip_id)
        if departing_after is not None and trip.departure_time <= departing_after:
            raise TripNotFoundOrInactive(trip_id)
        return trip

    async def _ensure_capacity(
        self, trip: Trip, requested: int, exclude_reservation_id: Optional[int] = None
    ) -> None:
        available = await self.capacity.available_seats(trip, exclude_reservation_id)
        if requested > available:
            raise InsufficientSeats(requested, available)

    async def _insert_with_unique_code(self, reservation: Reservation) -> Reservation:
        for attempt in range(1, self.max_code_attempts + 1):
            reservation.reservation_code = self.code_generator.generate()
            try:
                return await self.repository.add_reservation(reservation)
            except ReservationCodeConflict as exc:
                record_code_collision()
                logger.warning("reservation_code_collision", code=exc.code, attempt=attempt)

        raise CodeGenerationExhausted(self.max_code_attempts)

    @staticmethod
    def _price(total_price: Optional[Decimal], trip: Trip, seat_count: int) -> Decimal:
        if total_price is not None:
            return total_price
        return (Decimal(trip.price) * seat_count).quantize(CENTS)

    @staticmethod
    def _as_data(
        reservation: Reservation,
        status: ReservationStatus,
        cancelled_at: Optional[datetime],
    ) -> ReservationData:
        return ReservationData.model_construct(
            user_id=reservation.user_id,
            trip_id=reservation.trip_id,
            seat_count=reservation.seat_count,
            total_price=reservation.total_price,
            status=status,
            reserved_at=reservation.reserved_at,
            cancelled_at=cancelled_at,
        )
