"""
Pytest fixtures for the reservation engine, the in-memory repository and
an HTTP client wired to it.

Engine and API tests run against InMemoryReservationRepository so they need
no database; test_sqlalchemy_repository.py covers PostgreSQL separately.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from transit_booking.api.dependencies import get_reservation_repository
from transit_booking.infrastructure.memory_repository import InMemoryReservationRepository
from transit_booking.main import app
from transit_booking.models.bus import Bus
from transit_booking.models.trip import Trip
from transit_booking.models.user import User
from transit_booking.services.reservation_query_service import ReservationQueryService
from transit_booking.services.reservation_service import ReservationService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Settable clock; tests move it forward to simulate departures."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def make_trip(trip_id: int, capacity: int, departure: datetime, price: str = "25.00", is_active: bool = True) -> Trip:
    bus = Bus(id=trip_id, bus_code=f"BUS-{trip_id:03d}", capacity=capacity, bus_type="standard", is_active=True)
    return Trip(
        id=trip_id,
        origin_city_id=1,
        destination_city_id=2,
        departure_time=departure,
        arrival_time=departure + timedelta(hours=4),
        price=Decimal(price),
        bus_id=bus.id,
        bus=bus,
        is_active=is_active,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def repository(clock: FixedClock) -> InMemoryReservationRepository:
    """
    Users 1-3, plus:
      trip 1: capacity 40, departs in 10 days
      trip 2: capacity 5, departs in 10 days
      trip 3: capacity 40, inactive
      trip 4: capacity 40, departed yesterday
    """
    repo = InMemoryReservationRepository(clock=clock)
    for user_id in (1, 2, 3):
        repo.add_user(User(id=user_id, email=f"user{user_id}@example.com", name=f"User {user_id}", is_active=True))

    repo.add_trip(make_trip(1, capacity=40, departure=NOW + timedelta(days=10)))
    repo.add_trip(make_trip(2, capacity=5, departure=NOW + timedelta(days=10), price="12.50"))
    repo.add_trip(make_trip(3, capacity=40, departure=NOW + timedelta(days=10), is_active=False))
    repo.add_trip(make_trip(4, capacity=40, departure=NOW - timedelta(days=1)))
    return repo


@pytest.fixture
def add_trip(repository: InMemoryReservationRepository, clock: FixedClock):
    """Factory for extra trips departing in 10 days, ids from 100 upwards."""
    next_id = iter(range(100, 1000))

    def factory(capacity: int, price: str = "25.00") -> Trip:
        return repository.add_trip(
            make_trip(next(next_id), capacity=capacity, departure=clock() + timedelta(days=10), price=price)
        )

    return factory


@pytest.fixture
def service(repository: InMemoryReservationRepository, clock: FixedClock) -> ReservationService:
    return ReservationService(repository, clock=clock)


@pytest.fixture
def queries(repository: InMemoryReservationRepository, clock: FixedClock) -> ReservationQueryService:
    return ReservationQueryService(repository, clock=clock)


@pytest_asyncio.fixture
async def api_repository() -> InMemoryReservationRepository:
    """
    Repository for HTTP tests. Routes use the real clock, so trips are
    scheduled relative to the current time.
    """
    now = datetime.now(timezone.utc)
    repo = InMemoryReservationRepository()
    for user_id in (1, 2):
        repo.add_user(User(id=user_id, email=f"user{user_id}@example.com", name=f"User {user_id}", is_active=True))
    repo.add_trip(make_trip(1, capacity=40, departure=now + timedelta(days=10)))
    repo.add_trip(make_trip(2, capacity=3, departure=now + timedelta(days=10)))
    repo.add_trip(make_trip(4, capacity=40, departure=now - timedelta(days=1)))
    return repo


@pytest_asyncio.fixture
async def client(api_repository: InMemoryReservationRepository) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the repository dependency with the in-memory one."""

    async def override_repository():
        return api_repository

    app.dependency_overrides[get_reservation_repository] = override_repository

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def user_headers() -> dict:
    return {"X-User-ID": "1"}
