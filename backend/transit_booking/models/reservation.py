"""
Reservation model: N seats on one trip held by one user.

Key design decisions:
- `reservation_code` is unique at the DB level; the engine retries code
  generation when an insert trips that constraint
- `cancelled_at` is set if and only if the status is cancelled (CHECK below)
- Seat sub-records are deleted by the repository with an explicit statement,
  not through an ORM cascade
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from transit_booking.db.base import Base, TimestampMixin


class ReservationStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    @property
    def holds_seats(self) -> bool:
        return self is ReservationStatus.CONFIRMED


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    reservation_code = Column(String(32), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    seat_count = Column(Integer, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=ReservationStatus.CONFIRMED.value)
    reserved_at = Column(DateTime(timezone=True), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="reservations")
    trip = relationship("Trip", back_populates="reservations")

    __table_args__ = (
        UniqueConstraint("reservation_code", name="uq_reservations_code"),
        CheckConstraint("seat_count > 0", name="check_reservation_seat_count_positive"),
        CheckConstraint("total_price >= 0", name="check_reservation_total_price_non_negative"),
        CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_reservation_status"),
        CheckConstraint(
            "(status = 'cancelled' AND cancelled_at IS NOT NULL)"
            " OR (status = 'confirmed' AND cancelled_at IS NULL)",
            name="check_reservation_cancelled_at_matches_status",
        ),
        # Capacity sums filter on (trip_id, status); user listings on (user_id, status)
        Index("ix_reservations_trip_status", "trip_id", "status"),
        Index("ix_reservations_user_status", "user_id", "status"),
        Index("ix_reservations_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, code={self.reservation_code}, "
            f"trip={self.trip_id}, seats={self.seat_count}, status={self.status})>"
        )


class ReservationSeat(Base, TimestampMixin):
    __tablename__ = "reservation_seats"

    id = Column(Integer, primary_key=True, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=False, index=True)
    seat_number = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("reservation_id", "seat_number", name="uq_reservation_seat_number"),
    )

    def __repr__(self) -> str:
        return f"<ReservationSeat(reservation={self.reservation_id}, seat={self.seat_number})>"
