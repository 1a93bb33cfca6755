"""
Redis caching for trip availability shown on listing and trip pages.

CACHING STRATEGY
================

What we cache:
  - The available seat count per trip, for display only
  - Key pattern: "trips:availability:{trip_id}"

Why it is safe:
  - The booking engine never reads this cache. Every create/update re-sums
    confirmed seats inside its own locked transaction, so a stale cached
    number can mislead a page for a few seconds but can never cause an
    overbooking.

Invalidation strategy:
  - After every successful reservation write, delete the keys of the trips
    it touched (both trips when a reservation moves)
  - Short TTL as a safety net for writes made outside the API
"""

from typing import Iterable, Optional

from redis.exceptions import RedisError

from transit_booking.core.config import get_settings
from transit_booking.core.logging import get_logger
from transit_booking.core.metrics import record_cache_lookup
from transit_booking.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()


def _make_availability_key(trip_id: int) -> str:
    return f"trips:availability:{trip_id}"


async def get_cached_availability(trip_id: int) -> Optional[int]:
    client = await get_redis()
    if not client:
        return None

    key = _make_availability_key(trip_id)
    try:
        data = await client.get(key)
    except RedisError as e:
        record_cache_lookup("error")
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    if data is None:
        record_cache_lookup("miss")
        return None
    record_cache_lookup("hit")
    return int(data)


async def set_cached_availability(trip_id: int, available_seats: int) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_availability_key(trip_id)
    try:
        await client.setex(key, settings.AVAILABILITY_CACHE_TTL, available_seats)
        logger.debug("cache_set", key=key, ttl=settings.AVAILABILITY_CACHE_TTL)
    except RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_availability(trip_ids: Iterable[int]) -> None:
    client = await get_redis()
    if not client:
        return

    keys = [_make_availability_key(trip_id) for trip_id in set(trip_ids)]
    if not keys:
        return
    try:
        deleted = await client.delete(*keys)
        logger.info("cache_invalidated", keys=keys, keys_deleted=deleted)
    except RedisError as e:
        logger.error("cache_invalidation_error", keys=keys, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
