"""
Tests for the reservation lifecycle engine: capacity checks, code
allocation, cancellation rules and overbooking under concurrent load.
"""

import asyncio
import re
from datetime import timedelta
from decimal import Decimal

import pytest

from transit_booking.models.reservation import Reservation, ReservationStatus
from transit_booking.schemas.reservation import ReservationData
from transit_booking.services.errors import (
    CodeGenerationExhausted,
    InsufficientSeats,
    ReservationNotFound,
    TripNotFoundOrInactive,
    ValidationError,
)
from transit_booking.services.reservation_service import ReservationService


class ScriptedCodes:
    """Code generator that hands out a fixed sequence, repeating the last one."""

    def __init__(self, *codes: str):
        self.codes = list(codes)

    def generate(self) -> str:
        if len(self.codes) > 1:
            return self.codes.pop(0)
        return self.codes[0]


async def confirmed(service: ReservationService, trip_id: int, seats: int, user_id: int = 1) -> Reservation:
    result = await service.create(ReservationData(user_id=user_id, trip_id=trip_id, seat_count=seats))
    assert isinstance(result, Reservation), result
    return result


def changed(reservation: Reservation, **changes) -> ReservationData:
    fields = {
        "user_id": reservation.user_id,
        "trip_id": reservation.trip_id,
        "seat_count": reservation.seat_count,
        "total_price": reservation.total_price,
        "status": ReservationStatus(reservation.status),
        "reserved_at": reservation.reserved_at,
        "cancelled_at": reservation.cancelled_at,
    }
    fields.update(changes)
    return ReservationData(**fields)


# ------------------------------------------------------------------
# Capacity
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_fills_remaining_seats_then_rejects(service, add_trip):
    trip = add_trip(capacity=10)
    await confirmed(service, trip.id, 7)

    assert isinstance(await service.create(ReservationData(user_id=2, trip_id=trip.id, seat_count=3)), Reservation)

    trip = add_trip(capacity=10)
    await confirmed(service, trip.id, 7)
    result = await service.create(ReservationData(user_id=2, trip_id=trip.id, seat_count=4))
    assert isinstance(result, InsufficientSeats)
    assert (result.requested, result.available) == (4, 3)
    assert result.message == "Requested 4 seats but only 3 available"


@pytest.mark.asyncio
async def test_full_trip_rejects_single_seat(service, repository, add_trip):
    trip = add_trip(capacity=10)
    await confirmed(service, trip.id, 6)
    await confirmed(service, trip.id, 4, user_id=2)

    result = await service.create(ReservationData(user_id=3, trip_id=trip.id, seat_count=1))

    assert isinstance(result, InsufficientSeats)
    assert (result.requested, result.available) == (1, 0)
    assert len(repository.reservations) == 2


@pytest.mark.asyncio
async def test_move_to_fuller_trip_is_rejected_and_original_untouched(service, add_trip):
    trip_a = add_trip(capacity=10)
    trip_b = add_trip(capacity=10)
    reservation = await confirmed(service, trip_a.id, 5)
    await confirmed(service, trip_b.id, 8, user_id=2)
    original_price = reservation.total_price

    result = await service.update(reservation, changed(reservation, trip_id=trip_b.id, total_price=None))

    assert isinstance(result, InsufficientSeats)
    assert (result.requested, result.available) == (5, 2)
    assert reservation.trip_id == trip_a.id
    assert reservation.seat_count == 5
    assert reservation.total_price == original_price


@pytest.mark.asyncio
async def test_reactivation_checks_capacity_at_reactivation_time(service, repository):
    reservation = await confirmed(service, 2, 4)
    cancelled = await service.cancel(reservation)
    assert cancelled.status == ReservationStatus.CANCELLED

    other = await confirmed(service, 2, 3, user_id=2)

    result = await service.update(
        reservation, changed(reservation, status=ReservationStatus.CONFIRMED, cancelled_at=None)
    )
    assert isinstance(result, InsufficientSeats)
    assert (result.requested, result.available) == (4, 2)
    assert repository.reservations[reservation.id].status == ReservationStatus.CANCELLED

    await service.cancel(other)
    reactivated = await service.update(
        reservation, changed(reservation, status=ReservationStatus.CONFIRMED, cancelled_at=None)
    )
    assert isinstance(reactivated, Reservation)
    assert reactivated.status == ReservationStatus.CONFIRMED
    assert reactivated.cancelled_at is None


@pytest.mark.asyncio
async def test_update_excludes_own_seats_from_capacity(service):
    reservation = await confirmed(service, 2, 4)

    grown = await service.update(reservation, changed(reservation, seat_count=5, total_price=None))

    assert isinstance(grown, Reservation)
    assert grown.seat_count == 5
    assert grown.total_price == Decimal("62.50")
    assert await service.available_seats(2) == 0
    assert await service.available_seats(2, exclude_reservation_id=reservation.id) == 5


@pytest.mark.asyncio
async def test_excluding_a_reservation_that_holds_no_seats_here_changes_nothing(service):
    on_other_trip = await confirmed(service, 2, 2)
    await confirmed(service, 1, 3, user_id=2)
    cancelled = await service.create(
        ReservationData(user_id=3, trip_id=1, seat_count=4, status=ReservationStatus.CANCELLED)
    )

    baseline = await service.available_seats(1)

    assert baseline == 37
    assert await service.available_seats(1, exclude_reservation_id=on_other_trip.id) == baseline
    assert await service.available_seats(1, exclude_reservation_id=999) == baseline
    assert await service.available_seats(1, exclude_reservation_id=cancelled.id) == baseline


@pytest.mark.asyncio
async def test_update_without_seat_changes_skips_capacity_check(service, repository):
    reservation = await confirmed(service, 2, 5)
    # Shrink the bus below what is already booked
    repository.trips[2].bus.capacity = 3

    result = await service.update(reservation, changed(reservation, user_id=2))

    assert isinstance(result, Reservation)
    assert result.user_id == 2


@pytest.mark.asyncio
async def test_cancelled_reservation_does_not_consume_capacity(service, clock):
    await confirmed(service, 2, 5)

    result = await service.create(
        ReservationData(user_id=2, trip_id=2, seat_count=3, status=ReservationStatus.CANCELLED)
    )

    assert isinstance(result, Reservation)
    assert result.status == ReservationStatus.CANCELLED
    assert result.cancelled_at == clock()
    assert await service.available_seats(2) == 0


@pytest.mark.asyncio
async def test_cancel_frees_seats(service, clock):
    reservation = await confirmed(service, 2, 5)
    assert await service.available_seats(2) == 0

    clock.advance(timedelta(hours=1))
    result = await service.cancel(reservation)

    assert result.status == ReservationStatus.CANCELLED
    assert result.cancelled_at == clock()
    assert await service.available_seats(2) == 5


@pytest.mark.asyncio
async def test_available_seats_for_unknown_trip(service):
    result = await service.available_seats(999)
    assert isinstance(result, TripNotFoundOrInactive)


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_inactive_or_missing_trip_is_rejected(service):
    inactive = await service.create(ReservationData(user_id=1, trip_id=3, seat_count=1))
    missing = await service.create(ReservationData(user_id=1, trip_id=999, seat_count=1))

    assert isinstance(inactive, TripNotFoundOrInactive)
    assert inactive.trip_id == 3
    assert isinstance(missing, TripNotFoundOrInactive)


@pytest.mark.asyncio
async def test_seat_count_above_limit_is_rejected(service):
    result = await service.create(ReservationData(user_id=1, trip_id=1, seat_count=11))

    assert isinstance(result, ValidationError)
    assert result.field == "seat_count"


@pytest.mark.asyncio
async def test_unknown_user_is_rejected(service):
    result = await service.create(ReservationData(user_id=42, trip_id=1, seat_count=1))

    assert isinstance(result, ValidationError)
    assert result.field == "user_id"


@pytest.mark.asyncio
async def test_cancellation_before_reservation_is_rejected(service, clock):
    result = await service.create(
        ReservationData(
            user_id=1,
            trip_id=1,
            seat_count=1,
            status=ReservationStatus.CANCELLED,
            reserved_at=clock(),
            cancelled_at=clock() - timedelta(minutes=1),
        )
    )

    assert isinstance(result, ValidationError)
    assert result.field == "cancelled_at"


@pytest.mark.asyncio
async def test_update_to_cancelled_requires_cancellation_date(service, repository, clock):
    reservation = await confirmed(service, 1, 2)

    result = await service.update(
        reservation, changed(reservation, status=ReservationStatus.CANCELLED, cancelled_at=None)
    )

    assert isinstance(result, ValidationError)
    assert result.field == "cancelled_at"
    assert result.message == "Cancellation date is required when status is cancelled."
    assert repository.reservations[reservation.id].status == ReservationStatus.CONFIRMED

    dated = await service.update(
        reservation, changed(reservation, status=ReservationStatus.CANCELLED, cancelled_at=clock())
    )
    assert isinstance(dated, Reservation)
    assert dated.cancelled_at == clock()


@pytest.mark.asyncio
async def test_price_defaults_to_trip_price_times_seats(service):
    result = await service.create(ReservationData(user_id=1, trip_id=2, seat_count=3))
    assert result.total_price == Decimal("37.50")

    explicit = await service.create(
        ReservationData(user_id=1, trip_id=1, seat_count=2, total_price=Decimal("10.00"))
    )
    assert explicit.total_price == Decimal("10.00")


# ------------------------------------------------------------------
# Reservation codes and seat records
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reservation_code_format(service):
    reservation = await confirmed(service, 1, 1)
    assert re.fullmatch(r"RES-[A-Z0-9]{8}", reservation.reservation_code)


@pytest.mark.asyncio
async def test_code_collision_is_retried(repository, clock):
    service = ReservationService(
        repository, clock=clock, code_generator=ScriptedCodes("RES-AAAAAAAA", "RES-AAAAAAAA", "RES-BBBBBBBB")
    )

    first = await confirmed(service, 1, 1)
    second = await confirmed(service, 1, 1)

    assert first.reservation_code == "RES-AAAAAAAA"
    assert second.reservation_code == "RES-BBBBBBBB"


@pytest.mark.asyncio
async def test_code_generation_gives_up_after_max_attempts(repository, clock):
    service = ReservationService(
        repository, clock=clock, code_generator=ScriptedCodes("RES-AAAAAAAA"), max_code_attempts=3
    )
    await confirmed(service, 1, 1)

    result = await service.create(ReservationData(user_id=2, trip_id=1, seat_count=2))

    assert isinstance(result, CodeGenerationExhausted)
    assert result.attempts == 3
    assert len(repository.reservations) == 1


@pytest.mark.asyncio
async def test_seat_records_follow_seat_count(service, repository):
    reservation = await confirmed(service, 1, 3)
    assert await repository.list_seat_numbers(reservation.id) == [1, 2, 3]

    await service.update(reservation, changed(reservation, seat_count=2, total_price=None))
    assert await repository.list_seat_numbers(reservation.id) == [1, 2]


@pytest.mark.asyncio
async def test_delete_removes_only_its_own_seat_records(service, repository):
    doomed = await confirmed(service, 1, 4)
    kept = await confirmed(service, 1, 2, user_id=2)

    result = await service.delete(doomed)

    assert result.id == doomed.id
    assert doomed.id not in repository.reservations
    assert doomed.id not in repository.seats
    assert await repository.list_seat_numbers(kept.id) == [1, 2]
    assert kept.id in repository.reservations

    again = await service.delete(doomed)
    assert isinstance(again, ReservationNotFound)


# ------------------------------------------------------------------
# User-facing booking and cancellation
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_book_prices_from_trip(service):
    result = await service.book(user_id=1, trip_id=2, seat_count=2)

    assert isinstance(result, Reservation)
    assert result.status == ReservationStatus.CONFIRMED
    assert result.total_price == Decimal("25.00")


@pytest.mark.asyncio
async def test_book_departed_trip_is_rejected(service):
    result = await service.book(user_id=1, trip_id=4, seat_count=1)
    assert isinstance(result, TripNotFoundOrInactive)


@pytest.mark.asyncio
async def test_book_rejects_zero_seats(service):
    result = await service.book(user_id=1, trip_id=1, seat_count=0)
    assert isinstance(result, ValidationError)


@pytest.mark.asyncio
async def test_cancel_for_user_hides_other_users_reservations(service, repository):
    reservation = await confirmed(service, 1, 2, user_id=1)

    result = await service.cancel_for_user(reservation.id, user_id=2)

    assert isinstance(result, ReservationNotFound)
    assert repository.reservations[reservation.id].status == ReservationStatus.CONFIRMED


@pytest.mark.asyncio
async def test_cancel_for_user_twice(service):
    reservation = await confirmed(service, 1, 2)

    first = await service.cancel_for_user(reservation.id, user_id=1)
    second = await service.cancel_for_user(reservation.id, user_id=1)

    assert first.status == ReservationStatus.CANCELLED
    assert isinstance(second, ValidationError)
    assert second.message == "Reservation is already cancelled."


@pytest.mark.asyncio
async def test_cancel_for_user_after_departure(service, clock):
    reservation = await confirmed(service, 1, 2)
    clock.advance(timedelta(days=11))

    result = await service.cancel_for_user(reservation.id, user_id=1)

    assert isinstance(result, ValidationError)
    assert result.field == "trip_id"


# ------------------------------------------------------------------
# Concurrency
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_concurrent_bookings_never_overbook(service, repository):
    """Ten simultaneous single-seat bookings on a 5-seat trip: exactly five win."""
    for user_id in range(10, 20):
        repository.users[user_id] = repository.users[1]

    results = await asyncio.gather(
        *(service.book(user_id=user_id, trip_id=2, seat_count=1) for user_id in range(10, 20))
    )

    successes = [r for r in results if isinstance(r, Reservation)]
    rejections = [r for r in results if isinstance(r, InsufficientSeats)]
    assert len(successes) == 5
    assert len(rejections) == 5
    assert await repository.sum_confirmed_seats(2) == 5
    assert len({r.reservation_code for r in successes}) == 5


@pytest.mark.asyncio
async def test_task_cancelled_mid_transaction_leaves_no_writes(repository, clock):
    inserted = asyncio.Event()

    async def interrupted_booking():
        async with repository.transaction():
            await repository.add_reservation(
                Reservation(
                    reservation_code="RES-HALFDONE",
                    user_id=1,
                    trip_id=1,
                    seat_count=2,
                    total_price=Decimal("50.00"),
                    status=ReservationStatus.CONFIRMED.value,
                    reserved_at=clock(),
                )
            )
            inserted.set()
            await asyncio.Event().wait()

    task = asyncio.create_task(interrupted_booking())
    await inserted.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert repository.reservations == {}
    assert await repository.sum_confirmed_seats(1) == 0
