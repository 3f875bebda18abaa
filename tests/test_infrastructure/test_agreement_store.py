"""Tests for the AgreementStore and event repository against SQLite."""

from __future__ import annotations

from dataclasses import replace

import pytest

from rental_escrow.domain.enums import AgreementStatus, EventType
from rental_escrow.domain.exceptions import RegistryNotFoundError
from rental_escrow.domain.models import Agreement
from rental_escrow.infrastructure.database.repositories import (
    AgreementStore,
    EventRepository,
    RegistryRepository,
)


def _draft(**overrides) -> Agreement:
    fields = {
        "landlord": "EQ-landlord",
        "tenant": "EQ-tenant",
        "deposit_amount": 1000,
        "rent_amount": 100,
        "start_date": 2_000_000_000,
        "term_length": 86_400,
        "status": AgreementStatus.DRAFT,
        "created_at": 1_700_000_000,
    }
    fields.update(overrides)
    return Agreement(**fields)


class TestAllocate:
    @pytest.mark.asyncio
    async def test_ids_are_sequential_from_one(self, session, registry) -> None:
        store = AgreementStore(session, registry)
        assert await store.counter() == 0
        assert [await store.allocate() for _ in range(3)] == [1, 2, 3]
        assert await store.counter() == 3

    @pytest.mark.asyncio
    async def test_unknown_registry(self, session) -> None:
        store = AgreementStore(session, "0:" + "ab" * 32)
        with pytest.raises(RegistryNotFoundError):
            await store.allocate()


class TestGetPut:
    @pytest.mark.asyncio
    async def test_get_unknown_returns_none(self, session, registry) -> None:
        store = AgreementStore(session, registry)
        assert await store.get(0) is None
        assert await store.get(99) is None

    @pytest.mark.asyncio
    async def test_put_then_get(self, session, registry) -> None:
        store = AgreementStore(session, registry)
        agreement_id = await store.allocate()
        await store.put(agreement_id, _draft())
        assert await store.get(agreement_id) == _draft()

    @pytest.mark.asyncio
    async def test_replace_status(self, session, registry) -> None:
        store = AgreementStore(session, registry)
        agreement_id = await store.allocate()
        await store.put(agreement_id, _draft())
        await store.put(agreement_id, _draft(status=AgreementStatus.ACCEPTED))

        stored = await store.get(agreement_id)
        assert stored.status is AgreementStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_immutable_fields_rejected(self, session, registry) -> None:
        store = AgreementStore(session, registry)
        agreement_id = await store.allocate()
        await store.put(agreement_id, _draft())

        with pytest.raises(ValueError, match="deposit_amount"):
            await store.put(agreement_id, _draft(deposit_amount=1))

    @pytest.mark.asyncio
    async def test_create_never_replaces(self, session, registry) -> None:
        store = AgreementStore(session, registry)
        agreement_id = await store.allocate()
        await store.put(agreement_id, _draft(), create=True)

        with pytest.raises(ValueError, match="already exists"):
            await store.put(agreement_id, _draft(), create=True)
        assert (await store.get(agreement_id)).status is AgreementStatus.DRAFT

    @pytest.mark.asyncio
    async def test_snapshot_is_detached(self, session, registry) -> None:
        store = AgreementStore(session, registry)
        agreement_id = await store.allocate()
        await store.put(agreement_id, _draft())

        snapshot = await store.get(agreement_id)
        await store.put(agreement_id, replace(snapshot, status=AgreementStatus.CANCELLED))
        assert snapshot.status is AgreementStatus.DRAFT


class TestListByStatus:
    @pytest.mark.asyncio
    async def test_filters_and_orders_by_id(self, session, registry) -> None:
        store = AgreementStore(session, registry)
        for status in (
            AgreementStatus.DRAFT,
            AgreementStatus.ACCEPTED,
            AgreementStatus.DRAFT,
            AgreementStatus.DRAFT,
        ):
            await store.put(await store.allocate(), _draft(status=status))

        drafts = await store.list_by_status(AgreementStatus.DRAFT)
        assert [agreement_id for agreement_id, _ in drafts] == [1, 3, 4]
        assert await store.list_by_status(AgreementStatus.COMPLETED) == []


class TestEventRepository:
    @pytest.mark.asyncio
    async def test_events_in_recording_order(self, session, registry) -> None:
        repo = EventRepository(session)
        await repo.record(
            registry_address=registry,
            agreement_id=1,
            event_type=EventType.AGREEMENT_CREATED,
            new_status=AgreementStatus.DRAFT,
            actor="EQ-landlord",
            ledger_time=10,
        )
        await repo.record(
            registry_address=registry,
            agreement_id=1,
            event_type=EventType.AGREEMENT_ACCEPTED,
            old_status=AgreementStatus.DRAFT,
            new_status=AgreementStatus.ACCEPTED,
            actor="EQ-tenant",
            ledger_time=20,
            metadata={"note": "ok"},
        )

        events = await repo.get_by_agreement(registry, 1)
        assert [e.event_type for e in events] == ["AGREEMENT_CREATED", "AGREEMENT_ACCEPTED"]
        assert events[1].old_status == "DRAFT"
        assert events[1].metadata == {"note": "ok"}


class TestRegistryLock:
    @pytest.mark.asyncio
    async def test_locked_read_returns_current_row(self, session, registry) -> None:
        repo = RegistryRepository(session)
        await AgreementStore(session, registry).allocate()

        instance = await repo.get_for_update(registry)
        assert instance.agreement_counter == 1

    @pytest.mark.asyncio
    async def test_locked_read_of_unknown_address(self, session) -> None:
        assert await RegistryRepository(session).get_for_update("0:" + "cd" * 32) is None
