"""Domain layer — pure business logic with zero framework dependencies."""

from rental_escrow.domain.enums import (
    AgreementStatus,
    EventType,
)
from rental_escrow.domain.exceptions import (
    AgreementNotFoundError,
    AmountMismatchError,
    ContractPausedError,
    DuplicateOperationError,
    InvalidParameterError,
    InvalidStateError,
    NotFoundError,
    RegistryError,
    RegistryNotFoundError,
    TooEarlyError,
    UnauthorizedError,
)
from rental_escrow.domain.identity import registry_address
from rental_escrow.domain.models import Agreement, AgreementEventRecord, ContractInfo
from rental_escrow.domain.staking import compute_staked_shares
from rental_escrow.domain.state_machine import (
    AgreementStateMachine,
    validate_transition,
)

__all__ = [
    "AgreementStatus",
    "EventType",
    "AgreementNotFoundError",
    "AmountMismatchError",
    "ContractPausedError",
    "DuplicateOperationError",
    "InvalidParameterError",
    "InvalidStateError",
    "NotFoundError",
    "RegistryError",
    "RegistryNotFoundError",
    "TooEarlyError",
    "UnauthorizedError",
    "registry_address",
    "Agreement",
    "AgreementEventRecord",
    "ContractInfo",
    "compute_staked_shares",
    "AgreementStateMachine",
    "validate_transition",
]
