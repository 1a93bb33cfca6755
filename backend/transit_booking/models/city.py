"""
City model used as trip origin and destination.
"""

from sqlalchemy import Column, Integer, String

from transit_booking.db.base import Base, TimestampMixin


class City(Base, TimestampMixin):
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(10), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<City(id={self.id}, code={self.code})>"
