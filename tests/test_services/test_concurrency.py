"""Concurrent messages on one registry, each in its own session.

Uses the file-backed SQLite engine so every session holds its own
connection, the way separate API requests do.
"""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from conftest import KEEPER, LANDLORD, OWNER, TENANT
from rental_escrow.domain.enums import AgreementStatus
from rental_escrow.domain.exceptions import RegistryError
from rental_escrow.services.registry_service import RegistryService


async def _deliver(factory, clock, handler):
    """Run one message in a fresh session: commit on success, roll back on rejection."""
    async with factory() as session:
        svc = RegistryService(session, clock=clock, keepers=[KEEPER])
        try:
            result = await handler(svc)
        except RegistryError as exc:
            await session.rollback()
            return ("rejected", exc.code)
        await session.commit()
        return ("ok", result)


@pytest.fixture
def deliver(shared_session_factory, clock):
    return lambda handler: _deliver(shared_session_factory, clock, handler)


@pytest_asyncio.fixture
async def address(deliver) -> str:
    _, info = await deliver(lambda svc: svc.deploy(1, sender=OWNER))
    return info.address


def _create(address, terms):
    return lambda svc: svc.create_agreement(address, sender=LANDLORD, **terms)


class TestConflictingTransitions:
    @pytest.mark.asyncio
    async def test_cancel_and_deposit_race(self, deliver, address, agreement_terms) -> None:
        _, agreement_id = await deliver(_create(address, agreement_terms))
        await deliver(lambda svc: svc.accept_agreement(address, sender=TENANT, agreement_id=agreement_id))

        results = await asyncio.gather(
            deliver(lambda svc: svc.cancel_agreement(address, sender=LANDLORD, agreement_id=agreement_id)),
            deliver(
                lambda svc: svc.deposit_received(
                    address, sender=KEEPER, agreement_id=agreement_id, amount=1000
                )
            ),
        )

        outcomes = sorted(kind for kind, _ in results)
        assert outcomes == ["ok", "rejected"]
        winner = next(value for kind, value in results if kind == "ok")
        loser = next(value for kind, value in results if kind == "rejected")
        assert loser == "INVALID_STATE"

        _, events = await deliver(lambda svc: svc.get_agreement_events(address, agreement_id))
        assert [e.old_status for e in events] == [None, "DRAFT", "ACCEPTED"]

        _, stored = await deliver(lambda svc: svc.get_agreement(address, agreement_id))
        assert stored.status is winner.status
        if stored.status is AgreementStatus.CANCELLED:
            assert stored.staked_shares == 0
        else:
            assert stored.staked_shares == 1050

    @pytest.mark.asyncio
    async def test_double_accept_race(self, deliver, address, agreement_terms) -> None:
        _, agreement_id = await deliver(_create(address, agreement_terms))

        def accept(svc):
            return svc.accept_agreement(address, sender=TENANT, agreement_id=agreement_id)

        results = await asyncio.gather(deliver(accept), deliver(accept))

        assert sorted(kind for kind, _ in results) == ["ok", "rejected"]


class TestConcurrentCreation:
    @pytest.mark.asyncio
    async def test_ids_are_never_shared(self, deliver, address, agreement_terms) -> None:
        results = await asyncio.gather(*(deliver(_create(address, agreement_terms)) for _ in range(5)))

        ids = sorted(agreement_id for _, agreement_id in results)
        assert ids == [1, 2, 3, 4, 5]

        _, counter = await deliver(lambda svc: svc.get_agreement_counter(address))
        assert counter == 5
        _, drafts = await deliver(
            lambda svc: svc.get_agreements_by_status(address, AgreementStatus.DRAFT)
        )
        assert list(drafts) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_concurrent_deploys_share_one_owner(self, deliver) -> None:
        results = await asyncio.gather(
            deliver(lambda svc: svc.deploy(77, sender=OWNER)),
            deliver(lambda svc: svc.deploy(77, sender=LANDLORD)),
        )

        infos = [info for _, info in results]
        assert infos[0].address == infos[1].address
        assert infos[0].owner == infos[1].owner
