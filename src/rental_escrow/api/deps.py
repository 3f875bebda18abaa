"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the registry service, the sender identity, the ledger clock, Redis and
configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends, Header

from rental_escrow.config import Settings, get_settings
from rental_escrow.infrastructure.database.engine import get_async_session
from rental_escrow.infrastructure.redis_client import get_redis
from rental_escrow.services.registry_service import RegistryService, system_clock

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    import redis.asyncio as aioredis
    from sqlalchemy.ext.asyncio import AsyncSession


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request (one message)."""
    async for session in get_async_session():
        yield session


def get_clock() -> Callable[[], int]:
    """Provide the ledger time oracle."""
    return system_clock


def get_sender(x_sender: str | None = Header(default=None, alias="X-Sender")) -> str:
    """Sender identity of the inbound message; validated by the service."""
    return x_sender or ""


async def get_registry_service(
    session: AsyncSession = Depends(get_db_session),
    clock: Callable[[], int] = Depends(get_clock),
) -> RegistryService:
    """Provide a RegistryService bound to the current session."""
    return RegistryService(session, clock=clock)


def get_redis_client() -> aioredis.Redis | None:
    """Provide the Redis client, or None when Redis is not connected."""
    try:
        return get_redis()
    except RuntimeError:
        return None


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()
