"""Tests for the MCP tools, called directly against the SQLite session factory."""

from __future__ import annotations

import pytest

from conftest import LANDLORD, ONE_YEAR, OWNER, TENANT
from rental_escrow.mcp_server import tools
from rental_escrow.services import registry_service


@pytest.fixture(autouse=True)
def _bind_sessions(session_factory, clock, monkeypatch) -> None:
    monkeypatch.setattr(tools, "_session_factory", lambda: session_factory)
    monkeypatch.setattr(registry_service, "system_clock", clock)


async def _deploy_with_draft(clock, registry_id: int) -> str:
    info = await tools.deploy_registry(sender=OWNER, registry_id=registry_id)
    created = await tools.create_agreement(
        registry=info["address"],
        sender=LANDLORD,
        tenant=TENANT,
        deposit_amount=1000,
        rent_amount=100,
        start_date=clock.now + 3600,
        term_length=ONE_YEAR,
    )
    assert created["agreement_id"] == 1
    return info["address"]


class TestMcpTools:
    @pytest.mark.asyncio
    async def test_create_and_read_back(self, clock) -> None:
        info = await tools.deploy_registry(sender=OWNER, registry_id=9)
        registry = info["address"]

        created = await tools.create_agreement(
            registry=registry,
            sender=LANDLORD,
            tenant=TENANT,
            deposit_amount=500,
            rent_amount=50,
            start_date=clock.now + 86_400,
            term_length=86_400,
        )
        assert created["agreement_id"] == 1
        assert created["status"] == "DRAFT"

        accepted = await tools.accept_agreement(registry=registry, sender=TENANT, agreement_id=1)
        assert accepted["status"] == "ACCEPTED"

        fetched = await tools.get_agreement(registry=registry, agreement_id=1)
        assert fetched["agreement"]["tenant"] == TENANT

        listed = await tools.list_agreements_by_status(registry=registry, status="accepted")
        assert list(listed["agreements"]) == ["1"]

    @pytest.mark.asyncio
    async def test_errors_are_returned_as_data(self) -> None:
        info = await tools.deploy_registry(sender=OWNER, registry_id=10)

        result = await tools.set_paused(registry=info["address"], sender=TENANT, paused=True)
        assert result["error"] == "UNAUTHORIZED"

        result = await tools.get_contract_info(registry="0:" + "11" * 32)
        assert result["error"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unknown_agreement(self) -> None:
        info = await tools.deploy_registry(sender=OWNER, registry_id=11)
        assert await tools.get_agreement(registry=info["address"], agreement_id=3) == {"agreement": None}


class TestKeeperFlow:
    @pytest.mark.asyncio
    async def test_deposit_then_claim_at_term_end(self, clock) -> None:
        registry = await _deploy_with_draft(clock, 20)
        await tools.accept_agreement(registry=registry, sender=TENANT, agreement_id=1)

        staked = await tools.confirm_deposit(registry=registry, sender=OWNER, agreement_id=1, amount=1000)
        assert staked["status"] == "DEPOSIT_STAKED"
        assert staked["staked_shares"] == 1050

        early = await tools.claim_at_term_end(registry=registry, sender=TENANT, agreement_id=1)
        assert early["error"] == "TOO_EARLY"

        clock.advance(3600 + ONE_YEAR)
        claimed = await tools.claim_at_term_end(registry=registry, sender=TENANT, agreement_id=1)
        assert claimed["status"] == "COMPLETED"

        listed = await tools.list_agreements_by_status(registry=registry, status="COMPLETED")
        assert list(listed["agreements"]) == ["1"]

    @pytest.mark.asyncio
    async def test_wrong_deposit_amount(self, clock) -> None:
        registry = await _deploy_with_draft(clock, 21)
        await tools.accept_agreement(registry=registry, sender=TENANT, agreement_id=1)

        result = await tools.confirm_deposit(registry=registry, sender=OWNER, agreement_id=1, amount=999)
        assert result["error"] == "AMOUNT_MISMATCH"

    @pytest.mark.asyncio
    async def test_cancel_agreement(self, clock) -> None:
        registry = await _deploy_with_draft(clock, 22)

        result = await tools.cancel_agreement(registry=registry, sender=TENANT, agreement_id=1)
        assert result["error"] == "UNAUTHORIZED"

        cancelled = await tools.cancel_agreement(registry=registry, sender=LANDLORD, agreement_id=1)
        assert cancelled["status"] == "CANCELLED"

        listed = await tools.list_agreements_by_status(registry=registry, status="cancelled")
        assert list(listed["agreements"]) == ["1"]
        assert (await tools.list_agreements_by_status(registry=registry, status="DRAFT"))["agreements"] == {}

    @pytest.mark.asyncio
    async def test_unknown_status_filter(self, clock) -> None:
        registry = await _deploy_with_draft(clock, 23)

        result = await tools.list_agreements_by_status(registry=registry, status="bogus")
        assert result == {"error": "INVALID_PARAMETER", "message": "Unknown status 'bogus'"}


class TestUnexpectedFailures:
    @pytest.mark.asyncio
    async def test_internal_error_hides_details(self) -> None:
        async def handler(svc) -> dict:
            raise RuntimeError("connection to postgres://admin:hunter2@db failed")

        result = await tools._run("get_contract_info", handler)
        assert result == {"error": "INTERNAL_ERROR", "message": "An unexpected error occurred"}
