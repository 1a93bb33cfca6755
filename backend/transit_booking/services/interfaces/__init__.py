"""
Service interfaces for dependency inversion.
Allows swapping persistence without changing business logic.
"""

from .reservation_repository import ReservationRepository

__all__ = ['ReservationRepository']
