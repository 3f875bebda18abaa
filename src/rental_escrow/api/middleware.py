"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestContextMiddleware — binds request id, sender and registry address
       into the log context; echoes X-Request-ID on the response
    2. ErrorHandlerMiddleware — catches domain exceptions -> structured JSON errors
    3. CORSMiddleware — handles browser-based clients
"""

from __future__ import annotations

import re
import uuid
from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from rental_escrow.domain.exceptions import (
    InvalidStateError,
    NotFoundError,
    RegistryError,
)
from rental_escrow.logging_config import bind_message_context, get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = get_logger(__name__)

_REGISTRY_PATH = re.compile(r"^/api/v1/registries/(?P<address>[^/]+)")

# One HTTP status per error kind.
STATUS_BY_CODE = {
    "INVALID_PARAMETER": 400,
    "UNAUTHORIZED": 403,
    "NOT_FOUND": 404,
    "INVALID_STATE": 409,
    "DUPLICATE_OPERATION": 409,
    "AMOUNT_MISMATCH": 422,
    "CONTRACT_PAUSED": 423,
    "TOO_EARLY": 425,
}


def error_response(exc: RegistryError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_CODE.get(exc.code, 400),
        content={"error": exc.code, "message": exc.message},
    )


# ---------------------------------------------------------------------------
# 1. Request Context Middleware
# ---------------------------------------------------------------------------
class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every log entry of a request with who sent it and which registry it targets."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        match = _REGISTRY_PATH.match(request.url.path)

        bind_message_context(
            request_id=request_id,
            sender=request.headers.get("X-Sender"),
            registry=match["address"] if match else None,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.debug(
            "request.handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
        )
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except NotFoundError as exc:
            logger.warning("registry.not_found", error=exc.message)
            return error_response(exc)
        except InvalidStateError as exc:
            logger.warning(
                "state_machine.invalid_transition",
                current=exc.current_state,
                attempted=exc.attempted_event,
            )
            return error_response(exc)
        except RegistryError as exc:
            logger.warning("message.rejected", error=exc.message, code=exc.code)
            return error_response(exc)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                },
            )


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware on the FastAPI application.

    Middleware is applied bottom-up, so the last added middleware runs first.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(ErrorHandlerMiddleware)

    app.add_middleware(RequestContextMiddleware)
