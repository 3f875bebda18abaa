"""Domain exceptions for the Rental Escrow Registry.

These exceptions are framework-agnostic and represent business rule violations.
Each maps to exactly one error kind through its ``code``. They are translated
to HTTP responses by the API layer's middleware.
"""


class RegistryError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "REGISTRY_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Parameter Errors ---


class InvalidParameterError(RegistryError):
    """Raised when a message carries an out-of-range or malformed argument."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(
            message=f"Invalid parameter '{field}': {reason}",
            code="INVALID_PARAMETER",
        )
        self.field = field


# --- Access Errors ---


class UnauthorizedError(RegistryError):
    """Raised when the sender lacks the role an operation requires."""

    def __init__(self, sender: str, required_role: str) -> None:
        super().__init__(
            message=f"Sender {sender} is not the {required_role}",
            code="UNAUTHORIZED",
        )
        self.sender = sender
        self.required_role = required_role


class ContractPausedError(RegistryError):
    """Raised when a state-mutating message reaches a paused registry."""

    def __init__(self, address: str) -> None:
        super().__init__(
            message=f"Registry is paused: {address}",
            code="CONTRACT_PAUSED",
        )
        self.address = address


# --- State Machine Errors ---


class InvalidStateError(RegistryError):
    """Raised when an operation is not valid for the agreement's status.

    Example: DRAFT -> COMPLETED (must go through ACCEPTED and DEPOSIT_STAKED)
    """

    def __init__(self, current_state: str, attempted_event: str) -> None:
        super().__init__(
            message=f"Operation '{attempted_event}' not allowed in state {current_state}",
            code="INVALID_STATE",
        )
        self.current_state = current_state
        self.attempted_event = attempted_event


# --- Funds Errors ---


class AmountMismatchError(RegistryError):
    """Raised when a confirmed deposit differs from the agreed amount."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            message=f"Deposit amount mismatch: expected {expected}, received {received}",
            code="AMOUNT_MISMATCH",
        )
        self.expected = expected
        self.received = received


class TooEarlyError(RegistryError):
    """Raised when a term-end claim arrives before the term has elapsed."""

    def __init__(self, agreement_id: int, term_end: int, now: int) -> None:
        super().__init__(
            message=(
                f"Agreement {agreement_id} term ends at {term_end}, "
                f"{term_end - now}s remaining"
            ),
            code="TOO_EARLY",
        )
        self.term_end = term_end
        self.now = now


# --- Lookup Errors ---


class NotFoundError(RegistryError):
    """Base for unknown registry or agreement lookups."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="NOT_FOUND")


class RegistryNotFoundError(NotFoundError):
    """Raised when no registry instance is deployed at an address."""

    def __init__(self, address: str) -> None:
        super().__init__(f"Registry not found: {address}")
        self.address = address


class AgreementNotFoundError(NotFoundError):
    """Raised when an agreement id does not exist in a registry."""

    def __init__(self, agreement_id: int) -> None:
        super().__init__(f"Agreement not found: {agreement_id}")
        self.agreement_id = agreement_id


# --- Idempotency Errors ---


class DuplicateOperationError(RegistryError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str, existing: str | None = None) -> None:
        message = f"Duplicate operation detected for key: {idempotency_key}"
        if existing:
            message += f" (already created agreement {existing})"
        super().__init__(message=message, code="DUPLICATE_OPERATION")
        self.idempotency_key = idempotency_key
        self.existing = existing
