#!/usr/bin/env python3
"""Rental Escrow Registry — End-to-End Simulation.

Drives registry instances with LandlordBot, TenantBot and a Keeper under a
simulated ledger clock:

    Scenario 1: Happy Path
        - Landlord creates an agreement (deposit 1000, rent 100, one year)
        - Tenant accepts, deposit is confirmed and staked (1050 shares)
        - Early claim is rejected (TOO_EARLY); after the term -> COMPLETED

    Scenario 2: Rejected Messages
        - Zero deposit -> INVALID_PARAMETER, counter unchanged
        - Wrong tenant accepts -> UNAUTHORIZED
        - Wrong deposit amount -> AMOUNT_MISMATCH
        - Landlord cancels before the deposit -> CANCELLED

    Scenario 3: Independent Instances
        - Registries deployed with ids 100 and 200 keep disjoint counters
        - Re-deploying id 100 returns the same address and owner

    Scenario 4: Pause Gate
        - Owner pauses; every mutating message -> CONTRACT_PAUSED
        - Reads keep working; owner unpauses and the flow resumes

Usage:
    # With PostgreSQL (DATABASE_URL from .env):
    python simulation.py

    # Without Docker (SQLite in-memory):
    python simulation.py --sqlite

    # Run a specific scenario:
    python simulation.py --sqlite --scenario 1
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from rental_escrow.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

_sqlite_engine = None
_sqlite_session_factory = None

ONE_YEAR = 31_536_000
GENESIS = 1_700_000_000


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False):
    """Initialize database engine and create tables."""
    global _sqlite_engine, _sqlite_session_factory

    if use_sqlite:
        from sqlalchemy.ext.asyncio import create_async_engine

        from rental_escrow.infrastructure.database.engine import (
            make_session_factory,
            serialize_sqlite_writes,
        )
        from rental_escrow.infrastructure.database.orm_models import Base

        _sqlite_engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
        serialize_sqlite_writes(_sqlite_engine)
        _sqlite_session_factory = make_session_factory(_sqlite_engine)
        async with _sqlite_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.sqlite_initialized")
    else:
        from rental_escrow.infrastructure.database.engine import init_db
        await init_db()


async def get_session():
    """Get a fresh database session."""
    if _sqlite_session_factory is not None:
        return _sqlite_session_factory()

    from rental_escrow.infrastructure.database.engine import _get_session_factory
    return _get_session_factory()()


async def shutdown_database():
    """Close database connections."""
    global _sqlite_engine, _sqlite_session_factory

    if _sqlite_engine is not None:
        await _sqlite_engine.dispose()
        _sqlite_engine = None
        _sqlite_session_factory = None
    else:
        from rental_escrow.infrastructure.database.engine import close_db
        await close_db()


# ---------------------------------------------------------------------------
# Simulated ledger
# ---------------------------------------------------------------------------
@dataclass
class LedgerClock:
    """Block time that only moves when the simulation says so."""

    now: int = GENESIS

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds
        logger.info("⏱️  LEDGER: Time advanced", seconds=seconds, now=self.now)


def service(session: Any, clock: LedgerClock):
    from rental_escrow.services.registry_service import RegistryService

    return RegistryService(session, clock=clock, keepers=[Keeper.identity])


async def send(session: Any, message) -> Any:
    """Deliver one message: commit on success, roll back and re-raise on rejection."""
    try:
        result = await message
    except Exception:
        await session.rollback()
        raise
    await session.commit()
    return result


async def expect_rejection(session: Any, message, code: str) -> None:
    """Deliver a message that must bounce with the given error code."""
    from rental_escrow.domain.exceptions import RegistryError

    try:
        await send(session, message)
    except RegistryError as exc:
        assert exc.code == code, f"Expected {code}, got {exc.code}"
        print(f"  ⛔ Rejected as expected: {exc.code} ({exc.message})")
        return
    raise AssertionError(f"Expected {code}, but the message was accepted")


# ---------------------------------------------------------------------------
# Bot Agents
# ---------------------------------------------------------------------------
@dataclass
class Owner:
    """Deploys registry instances and controls the pause switch."""

    identity: str = "EQ-owner"

    async def deploy(self, session: Any, clock: LedgerClock, registry_id: int) -> str:
        info = await send(session, service(session, clock).deploy(registry_id, sender=self.identity))
        logger.info("🟣 OWNER: Registry deployed", id=registry_id, address=info.address[:18] + "...")
        return info.address

    def set_paused(self, session: Any, clock: LedgerClock, address: str, paused: bool):
        return service(session, clock).set_paused(address, sender=self.identity, paused=paused)


@dataclass
class LandlordBot:
    """Simulated landlord that registers and cancels agreements."""

    identity: str = "EQ-landlord"

    def create(
        self,
        session: Any,
        clock: LedgerClock,
        address: str,
        tenant: str,
        deposit_amount: int = 1000,
        rent_amount: int = 100,
        term_length: int = ONE_YEAR,
    ):
        return service(session, clock).create_agreement(
            address,
            sender=self.identity,
            tenant=tenant,
            deposit_amount=deposit_amount,
            rent_amount=rent_amount,
            start_date=clock.now + 3600,
            term_length=term_length,
        )

    def cancel(self, session: Any, clock: LedgerClock, address: str, agreement_id: int):
        return service(session, clock).cancel_agreement(
            address, sender=self.identity, agreement_id=agreement_id
        )


@dataclass
class TenantBot:
    """Simulated tenant that accepts agreements."""

    identity: str = "EQ-tenant"

    def accept(self, session: Any, clock: LedgerClock, address: str, agreement_id: int):
        return service(session, clock).accept_agreement(
            address, sender=self.identity, agreement_id=agreement_id
        )


@dataclass
class Keeper:
    """Confirms deposits and claims agreements whose term has ended."""

    identity: str = "EQ-keeper"

    def confirm_deposit(
        self, session: Any, clock: LedgerClock, address: str, agreement_id: int, amount: int
    ):
        return service(session, clock).deposit_received(
            address, sender=self.identity, agreement_id=agreement_id, amount=amount
        )

    def claim(self, session: Any, clock: LedgerClock, address: str, agreement_id: int):
        return service(session, clock).claim_at_term_end(
            address, sender=self.identity, agreement_id=agreement_id
        )


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def print_agreement(agreement_id: int, agreement) -> None:
    print(f"  📄 Agreement #{agreement_id}: {agreement.status.value} (code {agreement.status.code})")
    print(f"     deposit={agreement.deposit_amount} rent={agreement.rent_amount}")
    print(f"     staked_shares={agreement.staked_shares} yield={agreement.generated_yield}")


async def print_audit_trail(session: Any, clock: LedgerClock, address: str, agreement_id: int) -> None:
    """Print the full audit trail for an agreement."""
    events = await service(session, clock).get_agreement_events(address, agreement_id)
    print("\n  📜 Audit Trail:")
    for i, evt in enumerate(events, 1):
        old = evt.old_status or "-"
        print(f"    {i}. [{evt.event_type}] {old} -> {evt.new_status} (by {evt.actor} @ {evt.ledger_time})")
    print()


# ===========================================================================
# Scenario 1: Happy Path
# ===========================================================================
async def scenario_1_happy_path() -> None:
    """Create, accept, stake, claim after the term."""
    banner("SCENARIO 1: Happy Path — One-Year Lease")

    clock = LedgerClock()
    owner, landlord, tenant, keeper = Owner(), LandlordBot(), TenantBot(), Keeper()

    session = await get_session()
    async with session:
        address = await owner.deploy(session, clock, 1)

        section("Step 1: Landlord creates agreement")
        agreement_id = await send(session, landlord.create(session, clock, address, tenant.identity))
        print(f"  ✅ Created agreement #{agreement_id}")

        section("Step 2: Tenant accepts")
        await send(session, tenant.accept(session, clock, address, agreement_id))

        section("Step 3: Keeper confirms the deposit")
        staked = await send(session, keeper.confirm_deposit(session, clock, address, agreement_id, 1000))
        assert staked.staked_shares == 1050, staked.staked_shares
        print_agreement(agreement_id, staked)

        section("Step 4: Claim before the term ends")
        await expect_rejection(session, keeper.claim(session, clock, address, agreement_id), "TOO_EARLY")

        section("Step 5: Claim after the term")
        clock.advance(3600 + ONE_YEAR)
        completed = await send(session, keeper.claim(session, clock, address, agreement_id))
        assert completed.status.value == "COMPLETED"
        print_agreement(agreement_id, completed)

        await print_audit_trail(session, clock, address, agreement_id)


# ===========================================================================
# Scenario 2: Rejected Messages
# ===========================================================================
async def scenario_2_rejections() -> None:
    """Every bounced message leaves the registry untouched."""
    banner("SCENARIO 2: Rejected Messages")

    clock = LedgerClock()
    owner, landlord, tenant, keeper = Owner(), LandlordBot(), TenantBot(), Keeper()
    intruder = TenantBot(identity="EQ-intruder")

    session = await get_session()
    async with session:
        address = await owner.deploy(session, clock, 2)
        svc = service(session, clock)

        section("Attempt 1: Zero deposit")
        await expect_rejection(
            session,
            landlord.create(session, clock, address, tenant.identity, deposit_amount=0),
            "INVALID_PARAMETER",
        )
        assert await svc.get_agreement_counter(address) == 0
        print("  ✅ Counter still 0")

        agreement_id = await send(session, landlord.create(session, clock, address, tenant.identity))

        section("Attempt 2: Someone else accepts")
        await expect_rejection(
            session, intruder.accept(session, clock, address, agreement_id), "UNAUTHORIZED"
        )

        section("Attempt 3: Deposit confirmed with the wrong amount")
        await send(session, tenant.accept(session, clock, address, agreement_id))
        await expect_rejection(
            session,
            keeper.confirm_deposit(session, clock, address, agreement_id, 999),
            "AMOUNT_MISMATCH",
        )
        print_agreement(agreement_id, await svc.get_agreement(address, agreement_id))

        section("Step 4: Landlord cancels before the deposit")
        cancelled = await send(session, landlord.cancel(session, clock, address, agreement_id))
        print_agreement(agreement_id, cancelled)

        await print_audit_trail(session, clock, address, agreement_id)


# ===========================================================================
# Scenario 3: Independent Instances
# ===========================================================================
async def scenario_3_instances() -> None:
    """Two deploy ids, two registries, two counters."""
    banner("SCENARIO 3: Independent Registry Instances")

    clock = LedgerClock()
    owner, landlord, tenant = Owner(), LandlordBot(), TenantBot()

    session = await get_session()
    async with session:
        first = await owner.deploy(session, clock, 100)
        second = await owner.deploy(session, clock, 200)
        assert first != second

        for _ in range(2):
            await send(session, landlord.create(session, clock, first, tenant.identity))
        await send(session, landlord.create(session, clock, second, tenant.identity))

        svc = service(session, clock)
        print(f"  Registry 100: counter={await svc.get_agreement_counter(first)}")
        print(f"  Registry 200: counter={await svc.get_agreement_counter(second)}")

        section("Re-deploy id 100 from another sender")
        again = await send(session, service(session, clock).deploy(100, sender="EQ-someone-else"))
        assert again.address == first and again.owner == owner.identity
        print(f"  ✅ Same address, owner still {again.owner}")


# ===========================================================================
# Scenario 4: Pause Gate
# ===========================================================================
async def scenario_4_pause() -> None:
    """Owner pauses the registry, then resumes it."""
    banner("SCENARIO 4: Pause Gate")

    clock = LedgerClock()
    owner, landlord, tenant = Owner(), LandlordBot(), TenantBot()

    session = await get_session()
    async with session:
        address = await owner.deploy(session, clock, 4)
        agreement_id = await send(session, landlord.create(session, clock, address, tenant.identity))

        section("Owner pauses")
        await send(session, owner.set_paused(session, clock, address, True))
        await expect_rejection(
            session, landlord.create(session, clock, address, tenant.identity), "CONTRACT_PAUSED"
        )
        await expect_rejection(
            session, tenant.accept(session, clock, address, agreement_id), "CONTRACT_PAUSED"
        )
        info = await service(session, clock).get_contract_info(address)
        print(f"  📖 Reads still work: paused={info.paused} total={info.total_agreements}")

        section("Owner unpauses")
        await send(session, owner.set_paused(session, clock, address, False))
        accepted = await send(session, tenant.accept(session, clock, address, agreement_id))
        print_agreement(agreement_id, accepted)


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_rejections,
    3: scenario_3_instances,
    4: scenario_4_pause,
}


async def run_all(use_sqlite: bool = False) -> None:
    """Run all scenarios sequentially."""
    await init_database(use_sqlite=use_sqlite)

    try:
        print("\n" + "🏠" * 35)
        print("  RENTAL ESCROW REGISTRY — SIMULATION")
        db_type = "SQLite (in-memory)" if use_sqlite else "PostgreSQL"
        print(f"  Database: {db_type}")
        print("🏠" * 35 + "\n")

        for scenario in SCENARIOS.values():
            await scenario()

        print("\n" + "=" * 70)
        print("  ✅ ALL SCENARIOS COMPLETED SUCCESSFULLY")
        print("=" * 70 + "\n")

    finally:
        await shutdown_database()


async def run_scenario(num: int, use_sqlite: bool = False) -> None:
    """Run a specific scenario."""
    await init_database(use_sqlite=use_sqlite)

    try:
        if num not in SCENARIOS:
            print(f"Unknown scenario {num}. Available: {', '.join(map(str, SCENARIOS))}")
            return
        await SCENARIOS[num]()
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rental Escrow Registry Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1-4). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use SQLite in-memory instead of PostgreSQL (no Docker needed).",
    )
    args = parser.parse_args()

    if args.scenario == 0:
        asyncio.run(run_all(use_sqlite=args.sqlite))
    else:
        asyncio.run(run_scenario(args.scenario, use_sqlite=args.sqlite))
