from transit_booking.models.user import User
from transit_booking.models.city import City
from transit_booking.models.bus import Bus, BusType
from transit_booking.models.trip import Trip
from transit_booking.models.reservation import Reservation, ReservationSeat, ReservationStatus

__all__ = [
    "User", "City", "Bus", "BusType", "Trip",
    "Reservation", "ReservationSeat", "ReservationStatus",
]
