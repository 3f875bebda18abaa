"""Liveness of the registry store and the idempotency cache.

The database check counts deployed registries, so a reachable server whose
schema was never created reports unhealthy. Redis only backs idempotency
keys; without it the service is degraded, not down.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from sqlalchemy import func, select

from rental_escrow.logging_config import get_logger
from rental_escrow.schemas.registry import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)

HEALTHY = "healthy"


async def _check_database() -> tuple[str, int | None]:
    from rental_escrow.infrastructure.database.engine import _get_engine
    from rental_escrow.infrastructure.database.orm_models import RegistryInstance

    try:
        async with _get_engine().connect() as conn:
            registries = await conn.scalar(select(func.count()).select_from(RegistryInstance))
    except Exception as exc:
        logger.error("health.database_unreachable", error=str(exc))
        return f"unhealthy: {type(exc).__name__}", None
    return HEALTHY, registries


async def _check_redis() -> str:
    from rental_escrow.infrastructure.redis_client import get_redis

    try:
        await get_redis().ping()
    except Exception as exc:
        logger.warning("health.redis_unreachable", error=str(exc))
        return f"unhealthy: {type(exc).__name__}"
    return HEALTHY


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(request: Request) -> HealthResponse:
    database, registries = await _check_database()
    redis = await _check_redis()
    return HealthResponse(
        status="ok" if database == redis == HEALTHY else "degraded",
        version=request.app.version,
        database=database,
        redis=redis,
        registries=registries,
    )
