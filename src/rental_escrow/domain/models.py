"""Domain records for the Rental Escrow Registry.

Frozen dataclasses returned by the AgreementStore and the service layer.
They are snapshots: mutating a stored agreement means building a new record
(``dataclasses.replace``) and handing it back to ``AgreementStore.put``.
"""

from __future__ import annotations

from dataclasses import dataclass

from rental_escrow.domain.enums import AgreementStatus

# Fields that never change once an agreement has been created.
IMMUTABLE_FIELDS = ("landlord", "tenant", "deposit_amount", "rent_amount", "start_date", "term_length", "created_at")


@dataclass(frozen=True)
class ContractInfo:
    """Metadata of one deployed registry instance."""

    id: int
    address: str
    owner: str
    paused: bool
    total_agreements: int


@dataclass(frozen=True)
class Agreement:
    """One rental contract tracked by a registry."""

    landlord: str
    tenant: str
    deposit_amount: int
    rent_amount: int
    start_date: int
    term_length: int
    status: AgreementStatus
    created_at: int
    staked_shares: int = 0

    @property
    def term_end(self) -> int:
        return self.start_date + self.term_length

    @property
    def generated_yield(self) -> int:
        """Simulated yield earned on the deposit (0 until staked)."""
        if self.staked_shares == 0:
            return 0
        return self.staked_shares - self.deposit_amount


@dataclass(frozen=True)
class AgreementEventRecord:
    """Read-only view of an audit trail entry."""

    event_type: str
    old_status: str | None
    new_status: str | None
    actor: str
    ledger_time: int
    metadata: dict | None = None
