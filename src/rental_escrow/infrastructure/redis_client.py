"""Redis client for idempotency keys on agreement creation.

Usage:
    from rental_escrow.infrastructure.redis_client import get_redis, close_redis

    redis = get_redis()
    await redis.set("key", "value", ex=3600)
"""

from __future__ import annotations

import redis.asyncio as aioredis

from rental_escrow.config import get_settings
from rental_escrow.logging_config import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None


async def init_redis() -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    settings = get_settings()
    client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    await client.ping()
    _redis_client = client
    logger.info("redis.connected", url=settings.redis_url)
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Idempotency Helpers ---
#
# A key moves through: absent -> PENDING (reserved by one request) -> the id
# of the agreement it created. A failed create deletes the reservation.

PENDING = "pending"


def _idempotency_key(registry_address: str, key: str) -> str:
    return f"idempotency:{registry_address}:{key}"


async def check_idempotency(redis: aioredis.Redis, registry_address: str, key: str) -> str | None:
    """Return the value stored for a used idempotency key, or None if the key is new."""
    return await redis.get(_idempotency_key(registry_address, key))


async def set_idempotency(
    redis: aioredis.Redis, registry_address: str, key: str, value: str = "1"
) -> None:
    """Record the outcome of a reserved key, keeping the TTL fresh."""
    settings = get_settings()
    await redis.set(
        _idempotency_key(registry_address, key),
        value,
        ex=settings.redis_idempotency_ttl_seconds,
    )


async def reserve_idempotency(redis: aioredis.Redis, registry_address: str, key: str) -> bool:
    """Atomically claim an unused key. Returns False when another request holds it."""
    settings = get_settings()
    reserved = await redis.set(
        _idempotency_key(registry_address, key),
        PENDING,
        nx=True,
        ex=settings.redis_idempotency_ttl_seconds,
    )
    return bool(reserved)


async def release_idempotency(redis: aioredis.Redis, registry_address: str, key: str) -> None:
    """Drop a reservation whose create did not commit, so the key can be retried."""
    await redis.delete(_idempotency_key(registry_address, key))
