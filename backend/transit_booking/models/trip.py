"""
Trip model: one scheduled departure of a single bus on a route.

Key design decisions:
- No denormalized seat counter: available seats are always derived from the
  confirmed reservations, so cancelling or deleting can never drift a counter
- The trip row doubles as the per-trip lock: capacity-affecting writes take
  SELECT ... FOR UPDATE on it before summing confirmed seats
"""

from sqlalchemy import Column, Integer, DateTime, Numeric, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from transit_booking.db.base import Base, TimestampMixin


class Trip(Base, TimestampMixin):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    origin_city_id = Column(Integer, ForeignKey("cities.id"), nullable=False)
    destination_city_id = Column(Integer, ForeignKey("cities.id"), nullable=False)
    departure_time = Column(DateTime(timezone=True), nullable=False)
    arrival_time = Column(DateTime(timezone=True), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    bus_id = Column(Integer, ForeignKey("buses.id"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    bus = relationship("Bus", back_populates="trips", lazy="selectin")
    origin_city = relationship("City", foreign_keys=[origin_city_id])
    destination_city = relationship("City", foreign_keys=[destination_city_id])
    reservations = relationship("Reservation", back_populates="trip")

    __table_args__ = (
        Index("ix_trips_departure_time", "departure_time"),
    )

    @property
    def capacity(self) -> int:
        return self.bus.capacity

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, bus={self.bus_id}, departs={self.departure_time})>"
