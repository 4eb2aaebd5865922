"""
Redis caching service for public event listings.

CACHING STRATEGY
================

What we cache:
  - The active/upcoming listing, per event type filter
  - The past-events listing
  - Key pattern: "events:list:{kind}:type={type}"

Why:
  - Listings are the most frequent read and every entry needs its status
    recomputed from the date/time text, which is wasted work per request

Invalidation strategy:
  - Any booking, cancellation, completed payment or event change deletes all
    "events:list:*" keys (spotsLeft and membership of the listing change)
  - Short TTL as safety net: an event crosses from upcoming to active to past
    with no write at all, so a cached listing is at most one TTL behind

What is NOT cached:
  - Single-event reads and bookability checks; the booking path needs the
    real spotsLeft

Redis being disabled or unreachable turns every call into a no-op.
"""

import json
from typing import Optional

import redis.asyncio as redis
from huntbook.core.config import get_settings
from huntbook.core.logging import get_logger
from huntbook.core.metrics import record_cache_operation

logger = get_logger(__name__)

LISTING_PREFIX = "events:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


def _make_listing_key(kind: str, event_type: Optional[str]) -> str:
    return f"{LISTING_PREFIX}{kind}:type={event_type or 'all'}"


async def get_cached_events(kind: str, event_type: Optional[str] = None) -> Optional[dict]:
    """Retrieve a cached listing response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_listing_key(kind, event_type)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_events(kind: str, event_type: Optional[str], data: dict) -> None:
    """Cache a listing response with TTL."""
    client = await get_redis()
    if not client:
        return

    settings = get_settings()
    key = _make_listing_key(kind, event_type)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """
    Invalidate all cached listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{LISTING_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Redis hit/miss counters for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
