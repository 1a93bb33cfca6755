"""
Human-readable booking references: prefix + fixed-length uppercase
alphanumeric suffix, e.g. RES-7K2QX9PM.

Codes are random, not unique by construction. The reservations table's
unique constraint is the real guarantee; the engine retries on collision.
"""

import secrets
import string

from transit_booking.core.config import get_settings

settings = get_settings()

CODE_ALPHABET = string.ascii_uppercase + string.digits


class ReservationCodeGenerator:
    def __init__(
        self,
        prefix: str = settings.RESERVATION_CODE_PREFIX,
        length: int = settings.RESERVATION_CODE_LENGTH,
    ):
        if length <= 0:
            raise ValueError("Reservation code length must be positive")
        self.prefix = prefix
        self.length = length

    def generate(self) -> str:
        suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(self.length))
        return f"{self.prefix}{suffix}"
