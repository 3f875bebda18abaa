"""Database infrastructure — engine, ORM models, and repositories."""

from rental_escrow.infrastructure.database.engine import (
    close_db,
    get_async_session,
    init_db,
    make_session_factory,
    serialize_sqlite_writes,
)
from rental_escrow.infrastructure.database.orm_models import (
    AgreementEvent,
    AgreementRecord,
    Base,
    RegistryInstance,
)
from rental_escrow.infrastructure.database.repositories import (
    AgreementStore,
    EventRepository,
    RegistryRepository,
)

__all__ = [
    "Base",
    "AgreementEvent",
    "AgreementRecord",
    "RegistryInstance",
    "AgreementStore",
    "EventRepository",
    "RegistryRepository",
    "get_async_session",
    "init_db",
    "close_db",
    "make_session_factory",
    "serialize_sqlite_writes",
]
