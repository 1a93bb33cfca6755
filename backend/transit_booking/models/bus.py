"""
Bus model. `capacity` is the hard ceiling for confirmed seats on every trip
the bus is assigned to; the booking engine only ever reads it.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from transit_booking.db.base import Base, TimestampMixin


class BusType(str, enum.Enum):
    STANDARD = "standard"
    PREMIUM = "premium"


class Bus(Base, TimestampMixin):
    __tablename__ = "buses"

    id = Column(Integer, primary_key=True, index=True)
    bus_code = Column(String(50), unique=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    bus_type = Column(String(20), nullable=False, default=BusType.STANDARD.value)
    is_active = Column(Boolean, default=True, nullable=False)

    trips = relationship("Trip", back_populates="bus")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_bus_capacity_positive"),
        CheckConstraint("bus_type IN ('standard', 'premium')", name="check_bus_type"),
    )

    def __repr__(self) -> str:
        return f"<Bus(id={self.id}, code={self.bus_code}, capacity={self.capacity})>"
