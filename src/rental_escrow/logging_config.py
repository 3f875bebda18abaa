"""Structured logging for the registry, built on structlog over stdlib logging.

Entries are JSON outside development and colored console lines in
development. Every entry emitted while one message is handled carries the
context bound for it by bind_message_context: the request id, the sender
and the registry address, whether the message arrived over REST or MCP.
Records from third-party stdlib loggers (uvicorn, SQLAlchemy) go through
the same pre-chain, so they carry that context too.

Usage:
    from rental_escrow.logging_config import bind_message_context, get_logger
    bind_message_context(sender="EQ-landlord", registry="0:ab12...")
    get_logger(__name__).info("agreement.created", agreement_id=1)
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import Processor

QUIET_LOGGERS = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "aiosqlite",
    "httpx",
    "httpcore",
    "mcp.server.lowlevel",
)


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderers(json_logs: bool) -> list[Processor]:
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def setup_logging(log_level: str = "DEBUG", json_logs: bool = False) -> None:
    """Route structlog and stdlib records through one stdout handler.

    Args:
        log_level: Root level name (DEBUG, INFO, WARNING, ...); unknown names fall back to DEBUG.
        json_logs: Render JSON lines instead of the console format.
    """
    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderers(json_logs),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_message_context(**fields: object) -> None:
    """Start the log context of a new inbound message.

    Replaces whatever the previous message bound; fields passed as None are
    left out.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in fields.items() if value is not None}
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
