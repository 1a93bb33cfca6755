"""
Trip capacity resolver.

available = bus capacity - sum(seat_count of confirmed reservations on the trip)

Cancelled reservations never count. `exclude_reservation_id` drops one
reservation from the sum so an update can re-check a reservation's new seat
count without double-counting its current allocation.

The resolver is read-only and never caches: callers making a booking decision
must call it inside the same repository transaction as the write, after the
trip has been locked.
"""

from typing import Optional

from transit_booking.models.trip import Trip
from transit_booking.services.interfaces import ReservationRepository


class TripCapacityResolver:
    def __init__(self, repository: ReservationRepository):
        self.repository = repository

    async def committed_seats(self, trip: Trip, exclude_reservation_id: Optional[int] = None) -> int:
        return await self.repository.sum_confirmed_seats(trip.id, exclude_reservation_id)

    async def available_seats(self, trip: Trip, exclude_reservation_id: Optional[int] = None) -> int:
        committed = await self.committed_seats(trip, exclude_reservation_id)
        return max(0, trip.capacity - committed)
