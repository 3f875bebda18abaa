"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface to the
service layer. They accept an AsyncSession and never manage their own
transactions (that's the caller's responsibility).

AgreementStore is the keyed agreement collection of one registry instance:
storage and lookup only, no business rules.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from rental_escrow.domain.enums import AgreementStatus
from rental_escrow.domain.exceptions import RegistryNotFoundError
from rental_escrow.domain.models import (
    IMMUTABLE_FIELDS,
    Agreement,
    AgreementEventRecord,
    ContractInfo,
)
from rental_escrow.infrastructure.database.orm_models import (
    AgreementEvent,
    AgreementRecord,
    RegistryInstance,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from rental_escrow.domain.enums import EventType


def _to_agreement(row: AgreementRecord) -> Agreement:
    return Agreement(
        landlord=row.landlord,
        tenant=row.tenant,
        deposit_amount=row.deposit_amount,
        rent_amount=row.rent_amount,
        start_date=row.start_date,
        term_length=row.term_length,
        status=AgreementStatus(row.status),
        created_at=row.created_at,
        staked_shares=row.staked_shares,
    )


async def _locked_instance(session: AsyncSession, address: str) -> RegistryInstance | None:
    result = await session.execute(
        select(RegistryInstance)
        .where(RegistryInstance.address == address)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def to_contract_info(instance: RegistryInstance) -> ContractInfo:
    return ContractInfo(
        id=instance.registry_id,
        address=instance.address,
        owner=instance.owner,
        paused=instance.paused,
        total_agreements=instance.agreement_counter,
    )


class RegistryRepository:
    """Data access for deployed registry instances."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, address: str) -> RegistryInstance | None:
        """Fetch a registry instance by address."""
        return await self._session.get(RegistryInstance, address)

    async def get_for_update(self, address: str) -> RegistryInstance | None:
        """Fetch a registry instance and lock its row until the transaction ends.

        Every state-changing message takes this lock first, so messages on
        one registry run one at a time. SQLite ignores FOR UPDATE and relies
        on BEGIN IMMEDIATE instead (see engine.serialize_sqlite_writes).
        """
        return await _locked_instance(self._session, address)

    async def create(self, instance: RegistryInstance) -> RegistryInstance:
        """Insert a newly deployed registry instance."""
        self._session.add(instance)
        await self._session.flush()
        return instance

    async def set_paused(self, instance: RegistryInstance, paused: bool) -> RegistryInstance:
        instance.paused = paused
        await self._session.flush()
        return instance


class AgreementStore:
    """Keyed collection of agreements for one registry instance."""

    def __init__(self, session: AsyncSession, registry_address: str) -> None:
        self._session = session
        self._address = registry_address

    @property
    def address(self) -> str:
        return self._address

    async def _instance(self, for_update: bool = False) -> RegistryInstance:
        if for_update:
            instance = await _locked_instance(self._session, self._address)
        else:
            instance = await self._session.get(RegistryInstance, self._address)
        if instance is None:
            raise RegistryNotFoundError(self._address)
        return instance

    async def counter(self) -> int:
        """Return the highest agreement id assigned so far."""
        return (await self._instance()).agreement_counter

    async def allocate(self) -> int:
        """Return the next unused agreement id and advance the counter.

        The registry row stays locked until the caller's transaction ends,
        so no two messages can draw the same id.
        """
        instance = await self._instance(for_update=True)
        instance.agreement_counter += 1
        await self._session.flush()
        return instance.agreement_counter

    async def get(self, agreement_id: int) -> Agreement | None:
        """Look up an agreement. Returns None when the id is unknown."""
        row = await self._session.get(AgreementRecord, (self._address, agreement_id))
        if row is None:
            return None
        return _to_agreement(row)

    async def put(self, agreement_id: int, agreement: Agreement, create: bool = False) -> None:
        """Insert or replace the record stored under ``agreement_id``.

        With ``create=True`` the id must be unused; an existing record is
        never replaced.

        Raises:
            ValueError: If the replacement changes an immutable field, or
                ``create`` is set and the id is already taken.
        """
        row = await self._session.get(AgreementRecord, (self._address, agreement_id))
        if row is not None and create:
            raise ValueError(f"Agreement {agreement_id} already exists")
        if row is None:
            row = AgreementRecord(
                registry_address=self._address,
                agreement_id=agreement_id,
                landlord=agreement.landlord,
                tenant=agreement.tenant,
                deposit_amount=agreement.deposit_amount,
                rent_amount=agreement.rent_amount,
                start_date=agreement.start_date,
                term_length=agreement.term_length,
                created_at=agreement.created_at,
            )
            self._session.add(row)
        else:
            for field in IMMUTABLE_FIELDS:
                if getattr(row, field) != getattr(agreement, field):
                    raise ValueError(f"Agreement {agreement_id}: '{field}' is immutable")
        row.status = agreement.status.value
        row.staked_shares = agreement.staked_shares
        await self._session.flush()

    async def list_by_status(self, status: AgreementStatus) -> list[tuple[int, Agreement]]:
        """Return (id, agreement) pairs with the given status in id order."""
        result = await self._session.execute(
            select(AgreementRecord)
            .where(
                AgreementRecord.registry_address == self._address,
                AgreementRecord.status == status.value,
            )
            .order_by(AgreementRecord.agreement_id.asc())
        )
        return [(row.agreement_id, _to_agreement(row)) for row in result.scalars().all()]


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        registry_address: str,
        event_type: EventType,
        actor: str,
        ledger_time: int,
        agreement_id: int | None = None,
        old_status: AgreementStatus | None = None,
        new_status: AgreementStatus | None = None,
        metadata: dict | None = None,
    ) -> AgreementEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = AgreementEvent(
            registry_address=registry_address,
            agreement_id=agreement_id,
            event_type=event_type.value,
            old_status=old_status.value if old_status else None,
            new_status=new_status.value if new_status else None,
            actor=actor,
            metadata_json=metadata,
            ledger_time=ledger_time,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_agreement(
        self, registry_address: str, agreement_id: int
    ) -> list[AgreementEventRecord]:
        """Fetch all events for an agreement in the order they were recorded."""
        result = await self._session.execute(
            select(AgreementEvent)
            .where(
                AgreementEvent.registry_address == registry_address,
                AgreementEvent.agreement_id == agreement_id,
            )
            .order_by(AgreementEvent.id.asc())
        )
        return [
            AgreementEventRecord(
                event_type=evt.event_type,
                old_status=evt.old_status,
                new_status=evt.new_status,
                actor=evt.actor,
                ledger_time=evt.ledger_time,
                metadata=evt.metadata_json,
            )
            for evt in result.scalars().all()
        ]
