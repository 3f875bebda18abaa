"""Domain enumerations for the Rental Escrow Registry.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class AgreementStatus(enum.StrEnum):
    """Lifecycle states of a rental agreement.

    State transitions are enforced by the AgreementStateMachine guard.
    See domain/state_machine.py for the transition table.

    Wire code 2 belonged to a transient "deposit received" status that is
    never stored: deposit confirmation and staking happen in one step.
    The code stays reserved so existing tooling keeps decoding 3/4/5.
    """

    DRAFT = "DRAFT"
    ACCEPTED = "ACCEPTED"
    DEPOSIT_STAKED = "DEPOSIT_STAKED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def code(self) -> int:
        """Numeric status code used on the wire."""
        return _STATUS_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "AgreementStatus":
        for status, value in _STATUS_CODES.items():
            if value == code:
                return status
        raise ValueError(f"Unknown status code {code}")


_STATUS_CODES = {
    AgreementStatus.DRAFT: 0,
    AgreementStatus.ACCEPTED: 1,
    AgreementStatus.DEPOSIT_STAKED: 3,
    AgreementStatus.COMPLETED: 4,
    AgreementStatus.CANCELLED: 5,
}


class EventType(enum.StrEnum):
    """Types of audit events recorded in the agreement_events table.

    Every successful state-changing message produces exactly one event.
    """

    # Registry events
    REGISTRY_DEPLOYED = "REGISTRY_DEPLOYED"
    REGISTRY_PAUSED = "REGISTRY_PAUSED"
    REGISTRY_UNPAUSED = "REGISTRY_UNPAUSED"

    # Agreement lifecycle events
    AGREEMENT_CREATED = "AGREEMENT_CREATED"
    AGREEMENT_ACCEPTED = "AGREEMENT_ACCEPTED"
    DEPOSIT_STAKED = "DEPOSIT_STAKED"
    TERM_CLAIMED = "TERM_CLAIMED"
    AGREEMENT_CANCELLED = "AGREEMENT_CANCELLED"
