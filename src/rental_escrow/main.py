"""ASGI entry point: the REST API under /api/v1 and the MCP tools under /mcp.

Both surfaces call the same RegistryService, so a keeper polling over MCP
and a landlord posting over REST see one registry state.

Run with:
    uvicorn rental_escrow.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from rental_escrow.config import get_settings
from rental_escrow.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

VERSION = "0.1.0"

logger = get_logger(__name__)


async def _open_stores() -> None:
    from rental_escrow.infrastructure.database.engine import init_db
    from rental_escrow.infrastructure.redis_client import init_redis

    await init_db()
    try:
        await init_redis()
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc), idempotency="disabled")


async def _close_stores() -> None:
    from rental_escrow.infrastructure.database.engine import close_db
    from rental_escrow.infrastructure.redis_client import close_redis

    await close_db()
    await close_redis()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    setup_logging(log_level=settings.app_log_level, json_logs=not settings.is_development)

    await _open_stores()
    logger.info(
        "app.started",
        env=settings.app_env,
        keepers=len(settings.keeper_address_set),
        sqlite=settings.is_sqlite,
    )
    yield
    await _close_stores()
    logger.info("app.stopped")


def _attach_surfaces(app: FastAPI) -> None:
    from rental_escrow.api.middleware import setup_middleware
    from rental_escrow.api.routes.health import router as health_router
    from rental_escrow.api.routes.registry import router as registry_router
    from rental_escrow.mcp_server.tools import mcp

    setup_middleware(app)
    app.include_router(health_router)
    app.include_router(registry_router)
    app.mount("/mcp", mcp.sse_app())


def create_app() -> FastAPI:
    """Build the registry application; docs are served in development only."""
    settings = get_settings()
    docs = settings.is_development

    app = FastAPI(
        title="Rental Escrow Registry",
        description=(
            "Landlords register agreements, tenants accept, deposits are "
            "staked and released at term end."
        ),
        version=VERSION,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
    )
    _attach_surfaces(app)
    return app


app = create_app()
