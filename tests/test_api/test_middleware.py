"""Tests for the request log context and error mapping middleware."""

from __future__ import annotations

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from rental_escrow.api.middleware import setup_middleware
from rental_escrow.domain.exceptions import TooEarlyError
from rental_escrow.logging_config import bind_message_context


@pytest_asyncio.fixture
async def client():
    app = FastAPI()
    setup_middleware(app)

    @app.get("/api/v1/registries/{address}/context")
    async def registry_context(address: str) -> dict:
        return structlog.contextvars.get_contextvars()

    @app.get("/context")
    async def plain_context() -> dict:
        return structlog.contextvars.get_contextvars()

    @app.get("/api/v1/registries/{address}/claim")
    async def claim(address: str) -> dict:
        raise TooEarlyError(1, 2_000, 1_000)

    @app.get("/boom")
    async def boom() -> dict:
        raise RuntimeError("password=hunter2")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class TestRequestContext:
    @pytest.mark.asyncio
    async def test_binds_sender_and_registry(self, client) -> None:
        resp = await client.get(
            "/api/v1/registries/0:abcd/context",
            headers={"X-Sender": "EQ-tenant", "X-Request-ID": "req-1"},
        )

        assert resp.json() == {"request_id": "req-1", "sender": "EQ-tenant", "registry": "0:abcd"}
        assert resp.headers["X-Request-ID"] == "req-1"

    @pytest.mark.asyncio
    async def test_context_does_not_leak_between_requests(self, client) -> None:
        await client.get("/api/v1/registries/0:abcd/context", headers={"X-Sender": "EQ-tenant"})

        context = (await client.get("/context")).json()
        assert set(context) == {"request_id"}

    @pytest.mark.asyncio
    async def test_generates_request_id(self, client) -> None:
        resp = await client.get("/context")
        assert resp.headers["X-Request-ID"] == resp.json()["request_id"]


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_domain_error_status(self, client) -> None:
        resp = await client.get("/api/v1/registries/0:abcd/claim")
        assert resp.status_code == 425
        assert resp.json()["error"] == "TOO_EARLY"

    @pytest.mark.asyncio
    async def test_unexpected_error_hides_details(self, client) -> None:
        resp = await client.get("/boom")
        assert resp.status_code == 500
        assert resp.json() == {"error": "INTERNAL_ERROR", "message": "An unexpected error occurred"}


class TestBindMessageContext:
    def test_replaces_previous_context_and_skips_none(self) -> None:
        bind_message_context(request_id="a", sender="EQ-owner")
        bind_message_context(tool="set_paused", registry=None)

        assert structlog.contextvars.get_contextvars() == {"tool": "set_paused"}
        structlog.contextvars.clear_contextvars()
