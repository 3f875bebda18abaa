"""Registry Service — the message handlers of a rental escrow registry.

This is the application layer that coordinates between:
    - Domain state machine (transition guard)
    - Access-control guards (sender roles, pause gate)
    - AgreementStore and RegistryRepository (data access)
    - Event log (audit trail)

Both REST routes and MCP tools call into this service. Every handler
validates everything before its first write, and callers run each message
in its own session, so a failed message leaves no trace.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from statemachine.exceptions import TransitionNotAllowed

from rental_escrow.config import get_settings
from rental_escrow.domain.enums import AgreementStatus, EventType
from rental_escrow.domain.exceptions import (
    AgreementNotFoundError,
    AmountMismatchError,
    InvalidParameterError,
    InvalidStateError,
    RegistryNotFoundError,
    TooEarlyError,
)
from rental_escrow.domain.identity import (
    REGISTRY_CODE_HASH,
    registry_address,
    validate_registry_id,
)
from rental_escrow.domain.models import Agreement
from rental_escrow.domain.staking import MAX_AMOUNT, compute_staked_shares
from rental_escrow.domain.state_machine import AgreementStateMachine
from rental_escrow.infrastructure.database.orm_models import RegistryInstance
from rental_escrow.infrastructure.database.repositories import (
    AgreementStore,
    EventRepository,
    RegistryRepository,
    to_contract_info,
)
from rental_escrow.logging_config import get_logger
from rental_escrow.services import access

if TYPE_CHECKING:
    from collections.abc import Callable, Collection

    from sqlalchemy.ext.asyncio import AsyncSession

    from rental_escrow.domain.models import AgreementEventRecord, ContractInfo

logger = get_logger(__name__)


def system_clock() -> int:
    """Current ledger time in unix seconds."""
    return int(time.time())


def _require_int(field: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(field, "must be an integer")
    if value > MAX_AMOUNT:
        raise InvalidParameterError(field, f"must not exceed {MAX_AMOUNT}")
    return value


def _require_positive(field: str, value: object) -> int:
    number = _require_int(field, value)
    if number <= 0:
        raise InvalidParameterError(field, "must be greater than zero")
    return number


class RegistryService:
    """Handles registry messages and read queries."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], int] | None = None,
        keepers: Collection[str] | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or system_clock
        self._keepers = frozenset(keepers) if keepers is not None else get_settings().keeper_address_set
        self._registry_repo = RegistryRepository(session)
        self._event_repo = EventRepository(session)

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    async def deploy(self, registry_id: int, sender: str, query_id: int = 0) -> ContractInfo:
        """Deploy a registry instance; deploying an existing id is a no-op."""
        sender = access.authenticate(sender)
        validate_registry_id(registry_id)
        address = registry_address(registry_id)

        instance = await self._registry_repo.get(address)
        if instance is not None:
            logger.info("registry.already_deployed", address=address, query_id=query_id)
            return to_contract_info(instance)

        now = self._clock()
        try:
            async with self._session.begin_nested():
                instance = await self._registry_repo.create(
                    RegistryInstance(
                        address=address,
                        registry_id=registry_id,
                        code_hash=REGISTRY_CODE_HASH,
                        owner=sender,
                        paused=False,
                        agreement_counter=0,
                        deployed_at=now,
                    )
                )
        except IntegrityError:
            # A concurrent Deploy of the same id committed first.
            instance = await self._get_instance_or_raise(address)
            logger.info("registry.already_deployed", address=address, query_id=query_id)
            return to_contract_info(instance)
        await self._event_repo.record(
            registry_address=address,
            event_type=EventType.REGISTRY_DEPLOYED,
            actor=sender,
            ledger_time=now,
            metadata={"id": registry_id, "query_id": query_id},
        )

        logger.info("registry.deployed", address=address, id=registry_id, owner=sender)
        return to_contract_info(instance)

    # ------------------------------------------------------------------
    # Agreement Creation
    # ------------------------------------------------------------------

    async def create_agreement(
        self,
        address: str,
        sender: str,
        tenant: str,
        deposit_amount: int,
        rent_amount: int,
        start_date: int,
        term_length: int,
    ) -> int:
        """Create a DRAFT agreement with the sender as landlord. Returns its id."""
        sender = access.authenticate(sender)
        info = await self._lock_info_or_raise(address)
        access.require_not_paused(info)

        tenant = tenant.strip() if isinstance(tenant, str) else ""
        if not tenant or len(tenant) > access.MAX_IDENTITY_LENGTH:
            raise InvalidParameterError("tenant", "must be a non-empty identity")
        deposit_amount = _require_positive("deposit_amount", deposit_amount)
        rent_amount = _require_positive("rent_amount", rent_amount)
        term_length = _require_positive("term_length", term_length)
        start_date = _require_int("start_date", start_date)

        now = self._clock()
        if start_date <= now:
            raise InvalidParameterError("start_date", f"must be after the current time {now}")

        store = AgreementStore(self._session, address)
        agreement_id = await store.allocate()
        agreement = Agreement(
            landlord=sender,
            tenant=tenant,
            deposit_amount=deposit_amount,
            rent_amount=rent_amount,
            start_date=start_date,
            term_length=term_length,
            status=AgreementStatus.DRAFT,
            created_at=now,
        )
        await store.put(agreement_id, agreement, create=True)

        await self._event_repo.record(
            registry_address=address,
            agreement_id=agreement_id,
            event_type=EventType.AGREEMENT_CREATED,
            new_status=AgreementStatus.DRAFT,
            actor=sender,
            ledger_time=now,
            metadata={"deposit_amount": deposit_amount, "rent_amount": rent_amount},
        )

        logger.info(
            "agreement.created",
            registry=address,
            agreement_id=agreement_id,
            deposit=deposit_amount,
        )
        return agreement_id

    # ------------------------------------------------------------------
    # Acceptance
    # ------------------------------------------------------------------

    async def accept_agreement(self, address: str, sender: str, agreement_id: int) -> Agreement:
        """Tenant accepts a DRAFT agreement."""
        sender = access.authenticate(sender)
        info = await self._lock_info_or_raise(address)
        access.require_not_paused(info)

        store = AgreementStore(self._session, address)
        agreement = await self._get_agreement_or_raise(store, agreement_id)
        access.require_tenant(agreement, sender)

        new_status = self._fire_transition(agreement, "tenant_accepts")
        return await self._commit_transition(
            store, agreement_id, agreement, replace(agreement, status=new_status),
            EventType.AGREEMENT_ACCEPTED, sender,
        )

    # ------------------------------------------------------------------
    # Deposit Confirmation + Staking
    # ------------------------------------------------------------------

    async def deposit_received(
        self,
        address: str,
        sender: str,
        agreement_id: int,
        amount: int,
    ) -> Agreement:
        """Confirm the deposit of an ACCEPTED agreement and stake it."""
        sender = access.authenticate(sender)
        info = await self._lock_info_or_raise(address)
        access.require_not_paused(info)
        access.require_deposit_confirmer(info, sender, self._keepers)

        store = AgreementStore(self._session, address)
        agreement = await self._get_agreement_or_raise(store, agreement_id)

        new_status = self._fire_transition(agreement, "deposit_staked")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount != agreement.deposit_amount:
            raise AmountMismatchError(agreement.deposit_amount, amount)

        staked = replace(agreement, status=new_status, staked_shares=compute_staked_shares(amount))
        return await self._commit_transition(
            store, agreement_id, agreement, staked,
            EventType.DEPOSIT_STAKED, sender,
            metadata={"amount": amount, "staked_shares": staked.staked_shares},
        )

    # ------------------------------------------------------------------
    # Term End
    # ------------------------------------------------------------------

    async def claim_at_term_end(self, address: str, sender: str, agreement_id: int) -> Agreement:
        """Complete a staked agreement once its term has elapsed."""
        sender = access.authenticate(sender)
        info = await self._lock_info_or_raise(address)
        access.require_not_paused(info)
        access.allow_any_caller(sender)

        store = AgreementStore(self._session, address)
        agreement = await self._get_agreement_or_raise(store, agreement_id)

        new_status = self._fire_transition(agreement, "term_claimed")
        now = self._clock()
        if now < agreement.term_end:
            raise TooEarlyError(agreement_id, agreement.term_end, now)

        return await self._commit_transition(
            store, agreement_id, agreement, replace(agreement, status=new_status),
            EventType.TERM_CLAIMED, sender,
            metadata={
                "staked_shares": agreement.staked_shares,
                "generated_yield": agreement.generated_yield,
            },
        )

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel_agreement(self, address: str, sender: str, agreement_id: int) -> Agreement:
        """Landlord cancels an agreement before any deposit is confirmed."""
        sender = access.authenticate(sender)
        info = await self._lock_info_or_raise(address)
        access.require_not_paused(info)

        store = AgreementStore(self._session, address)
        agreement = await self._get_agreement_or_raise(store, agreement_id)
        access.require_landlord(agreement, sender)

        new_status = self._fire_transition(agreement, "landlord_cancels")
        return await self._commit_transition(
            store, agreement_id, agreement, replace(agreement, status=new_status),
            EventType.AGREEMENT_CANCELLED, sender,
        )

    # ------------------------------------------------------------------
    # Pause Control
    # ------------------------------------------------------------------

    async def set_paused(self, address: str, sender: str, paused: bool) -> ContractInfo:
        """Owner sets the paused flag. Allowed while paused."""
        sender = access.authenticate(sender)
        instance = await self._lock_instance_or_raise(address)
        access.require_owner(to_contract_info(instance), sender)

        await self._registry_repo.set_paused(instance, bool(paused))
        await self._event_repo.record(
            registry_address=address,
            event_type=EventType.REGISTRY_PAUSED if paused else EventType.REGISTRY_UNPAUSED,
            actor=sender,
            ledger_time=self._clock(),
        )

        logger.info("registry.paused" if paused else "registry.unpaused", registry=address)
        return to_contract_info(instance)

    # ------------------------------------------------------------------
    # Read queries
    # ------------------------------------------------------------------

    async def get_contract_info(self, address: str) -> ContractInfo:
        return await self._get_info_or_raise(address)

    async def get_agreement_counter(self, address: str) -> int:
        await self._get_instance_or_raise(address)
        return await AgreementStore(self._session, address).counter()

    async def get_agreement(self, address: str, agreement_id: int) -> Agreement | None:
        """Return the agreement, or None when the id is unknown."""
        await self._get_instance_or_raise(address)
        return await AgreementStore(self._session, address).get(agreement_id)

    async def get_agreements_by_status(
        self, address: str, status: AgreementStatus
    ) -> dict[int, Agreement]:
        """Return a snapshot mapping of id -> agreement for one status, in id order."""
        await self._get_instance_or_raise(address)
        pairs = await AgreementStore(self._session, address).list_by_status(status)
        return dict(pairs)

    async def get_status(self, address: str, agreement_id: int) -> dict:
        """Get agreement status with the events allowed from it."""
        await self._get_instance_or_raise(address)
        agreement = await self._get_agreement_or_raise(
            AgreementStore(self._session, address), agreement_id
        )
        sm = AgreementStateMachine(current_status=agreement.status.value)
        return {
            "agreement_id": agreement_id,
            "status": agreement.status.value,
            "status_code": agreement.status.code,
            "term_end": agreement.term_end,
            "allowed_events": sm.get_allowed_events(),
        }

    async def get_agreement_events(
        self, address: str, agreement_id: int
    ) -> list[AgreementEventRecord]:
        """Get the audit trail of an agreement."""
        await self._get_instance_or_raise(address)
        await self._get_agreement_or_raise(AgreementStore(self._session, address), agreement_id)
        return await self._event_repo.get_by_agreement(address, agreement_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_instance_or_raise(self, address: str) -> RegistryInstance:
        instance = await self._registry_repo.get(address)
        if instance is None:
            raise RegistryNotFoundError(address)
        return instance

    async def _lock_instance_or_raise(self, address: str) -> RegistryInstance:
        """Lock the registry row for the rest of this message."""
        instance = await self._registry_repo.get_for_update(address)
        if instance is None:
            raise RegistryNotFoundError(address)
        return instance

    async def _get_info_or_raise(self, address: str) -> ContractInfo:
        return to_contract_info(await self._get_instance_or_raise(address))

    async def _lock_info_or_raise(self, address: str) -> ContractInfo:
        return to_contract_info(await self._lock_instance_or_raise(address))

    async def _get_agreement_or_raise(self, store: AgreementStore, agreement_id: int) -> Agreement:
        agreement = await store.get(agreement_id)
        if agreement is None:
            raise AgreementNotFoundError(agreement_id)
        return agreement

    def _fire_transition(self, agreement: Agreement, event_name: str) -> AgreementStatus:
        """Validate a transition and return the resulting status.

        Raises InvalidStateError if the transition is illegal.
        """
        sm = AgreementStateMachine(current_status=agreement.status.value)
        try:
            getattr(sm, event_name)()
        except TransitionNotAllowed as err:
            raise InvalidStateError(agreement.status.value, event_name) from err
        return AgreementStatus(sm.status)

    async def _commit_transition(
        self,
        store: AgreementStore,
        agreement_id: int,
        old: Agreement,
        new: Agreement,
        event_type: EventType,
        actor: str,
        metadata: dict | None = None,
    ) -> Agreement:
        await store.put(agreement_id, new)
        await self._event_repo.record(
            registry_address=store.address,
            agreement_id=agreement_id,
            event_type=event_type,
            old_status=old.status,
            new_status=new.status,
            actor=actor,
            ledger_time=self._clock(),
            metadata=metadata,
        )
        logger.info(
            "agreement.transition",
            registry=store.address,
            agreement_id=agreement_id,
            old=old.status.value,
            new=new.status.value,
            by=actor,
        )
        return new
