"""Shared test fixtures for the Rental Escrow Registry test suite.

Provides:
    - An in-memory SQLite database (aiosqlite) with the schema created
    - A file-backed SQLite database for tests that run messages concurrently
    - A controllable ledger clock
    - Identities for the owner, landlord, tenant and keeper
    - A deployed registry and a service bound to it
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from rental_escrow.infrastructure.database.engine import make_session_factory, serialize_sqlite_writes
from rental_escrow.infrastructure.database.orm_models import Base
from rental_escrow.services.registry_service import RegistryService

NOW = 1_700_000_000
ONE_YEAR = 31_536_000

OWNER = "EQ-owner"
LANDLORD = "EQ-landlord"
TENANT = "EQ-tenant"
KEEPER = "EQ-keeper"
STRANGER = "EQ-stranger"


class FakeClock:
    """Ledger time that tests move by hand."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    serialize_sqlite_writes(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def shared_engine(tmp_path):
    """File-backed engine with a real connection pool: one connection per session."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}")
    serialize_sqlite_writes(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def shared_session_factory(shared_engine):
    return make_session_factory(shared_engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Domain Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(session, clock) -> RegistryService:
    return RegistryService(session, clock=clock, keepers=[KEEPER])


@pytest_asyncio.fixture
async def registry(service) -> str:
    """Address of a registry deployed with id 1 by OWNER."""
    info = await service.deploy(1, sender=OWNER)
    return info.address


@pytest.fixture
def agreement_terms(clock) -> dict:
    """Valid CreateAgreement parameters: deposit 1000, rent 100, one-year term."""
    return {
        "tenant": TENANT,
        "deposit_amount": 1000,
        "rent_amount": 100,
        "start_date": clock.now + 3600,
        "term_length": ONE_YEAR,
    }
