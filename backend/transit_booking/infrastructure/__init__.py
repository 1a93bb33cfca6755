"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .memory_repository import InMemoryReservationRepository
from .redis_client import close_redis, get_redis
from .sqlalchemy_repository import SqlAlchemyReservationRepository

__all__ = [
    'InMemoryReservationRepository',
    'SqlAlchemyReservationRepository',
    'get_redis',
    'close_redis',
]
