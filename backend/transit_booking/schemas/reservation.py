"""
Pydantic schemas for reservation engine input, listing filters and responses.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from transit_booking.models.reservation import ReservationStatus


class ReservationData(BaseModel):
    """
    Full set of reservation fields accepted by create and update.

    `total_price` and `reserved_at` may be omitted: the engine fills them from
    the trip price and the clock. The per-booking seat cap is enforced by the
    engine, not here, so it can be configured without touching the schema.
    """

    user_id: int = Field(..., gt=0)
    trip_id: int = Field(..., gt=0)
    seat_count: int = Field(..., gt=0)
    total_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    status: ReservationStatus = ReservationStatus.CONFIRMED
    reserved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class BookingCreate(BaseModel):
    trip_id: int = Field(..., gt=0)
    seat_count: int = Field(default=1, gt=0)


class ReservationFilters(BaseModel):
    """All filters are optional and combine with AND."""

    search: Optional[str] = Field(None, max_length=100)
    status: Optional[ReservationStatus] = None
    user_id: Optional[int] = Field(None, gt=0)
    trip_id: Optional[int] = Field(None, gt=0)
    reserved_from: Optional[date] = None
    reserved_to: Optional[date] = None
    upcoming: Optional[bool] = None
    order_by: Literal["created_at", "departure_time"] = "created_at"
    direction: Literal["asc", "desc"] = "desc"

    @field_validator("search")
    @classmethod
    def blank_search_is_no_search(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def check_date_range(self) -> "ReservationFilters":
        if self.reserved_from and self.reserved_to and self.reserved_from > self.reserved_to:
            raise ValueError("reserved_from must be on or before reserved_to")
        return self

    @property
    def reserved_after(self) -> Optional[datetime]:
        """Inclusive lower bound: start of reserved_from (UTC)."""
        if self.reserved_from is None:
            return None
        return datetime.combine(self.reserved_from, time.min, tzinfo=timezone.utc)

    @property
    def reserved_before(self) -> Optional[datetime]:
        """Exclusive upper bound: start of the day after reserved_to (UTC)."""
        if self.reserved_to is None:
            return None
        return datetime.combine(self.reserved_to + timedelta(days=1), time.min, tzinfo=timezone.utc)


class ReservationResponse(BaseModel):
    id: int
    reservation_code: str
    user_id: int
    trip_id: int
    seat_count: int
    total_price: Decimal
    status: ReservationStatus
    reserved_at: datetime
    cancelled_at: Optional[datetime]

    model_config = {"from_attributes": True}


class ReservationDetailResponse(ReservationResponse):
    seat_numbers: list[int]


class ReservationListResponse(BaseModel):
    reservations: list[ReservationResponse]
    total: int
    page: int
    page_size: int
    pages: int


class ReservationDeleteResponse(BaseModel):
    message: str
    reservation_id: int
    reservation_code: str


class ReservationStatsResponse(BaseModel):
    total: int
    confirmed: int
    cancelled: int


class AvailabilityResponse(BaseModel):
    trip_id: int
    available_seats: int
    cached: bool = False
