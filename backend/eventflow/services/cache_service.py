"""
Redis caching for the event availability view.

CACHING STRATEGY
================

What we cache:
  - The display-only availability snapshot of one event
  - Cache key pattern: "availability:{event_id}"

Why:
  - Seat counters are polled far more often than they change
  - Serving from Redis keeps those reads off the contended event row

Invalidation strategy:
  - The HTTP layer deletes the event's key after every committed
    reservation or cancellation
  - Short TTL as safety net (REDIS_CACHE_TTL)

What we never do:
  - The coordinators never read this cache. A cached count is only a hint;
    the locked re-read inside the transaction is the only authority.

Redis being down or disabled means no caching, never a failed request.
"""

import json
from typing import Optional

import redis.asyncio as redis
from eventflow.core.config import get_settings
from eventflow.core.logging import get_logger
from eventflow.core.metrics import record_cache_operation

logger = get_logger(__name__)

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or unreachable."""
    global _redis_client
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except (redis.RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_availability_key(event_id: int) -> str:
    return f"availability:{event_id}"


async def get_cached_availability(event_id: int) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_availability_key(event_id)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_availability(event_id: int, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    settings = get_settings()
    key = _make_availability_key(event_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_availability(event_id: int) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_availability_key(event_id)
    try:
        await client.delete(key)
        logger.debug("cache_invalidated", key=key)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", key=key, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
