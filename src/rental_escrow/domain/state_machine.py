"""Rental Agreement State Machine Guard.

Uses python-statemachine to enforce legal status transitions at the domain
level. Whatever the API or MCP layer asks for, an illegal transition
(e.g., DRAFT -> COMPLETED) raises TransitionNotAllowed.

The state machine is instantiated per message and validates the transition
before the stored agreement status is replaced.

Transition table:
    DRAFT           -> ACCEPTED        (tenant_accepts)
    DRAFT           -> CANCELLED       (landlord_cancels)
    ACCEPTED        -> CANCELLED       (landlord_cancels)
    ACCEPTED        -> DEPOSIT_STAKED  (deposit_staked)
    DEPOSIT_STAKED  -> COMPLETED       (term_claimed)
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

EVENT_NAMES = ("tenant_accepts", "deposit_staked", "term_claimed", "landlord_cancels")


class AgreementStateMachine(StateMachine):
    """State machine that guards rental agreement lifecycle transitions.

    Usage:
        sm = AgreementStateMachine(current_status="ACCEPTED")
        sm.deposit_staked()  # transitions to DEPOSIT_STAKED
        sm.status            # "DEPOSIT_STAKED"
    """

    # --- States ---
    DRAFT = State("DRAFT", initial=True)
    ACCEPTED = State("ACCEPTED")
    DEPOSIT_STAKED = State("DEPOSIT_STAKED")
    COMPLETED = State("COMPLETED", final=True)
    CANCELLED = State("CANCELLED", final=True)

    # --- Events / Transitions ---
    tenant_accepts = DRAFT.to(ACCEPTED)
    deposit_staked = ACCEPTED.to(DEPOSIT_STAKED)
    term_claimed = DEPOSIT_STAKED.to(COMPLETED)
    landlord_cancels = DRAFT.to(CANCELLED) | ACCEPTED.to(CANCELLED)

    def __init__(self, current_status: str = "DRAFT") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current AgreementStatus value (e.g., "ACCEPTED").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches AgreementStatus)."""
        return str(self.current_state_value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        allowed = []
        for name in EVENT_NAMES:
            trial = type(self)(current_status=self.status)
            try:
                getattr(trial, name)()
            except TransitionNotAllowed:
                continue
            allowed.append(name)
        return allowed


def validate_transition(current_status: str, event_name: str) -> str:
    """Validate a status transition and return the new status.

    Creates a temporary state machine, fires the named event, and returns
    the resulting status string.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = AgreementStateMachine(current_status=current_status)

    event_method = getattr(sm, event_name, None) if event_name in EVENT_NAMES else None
    if event_method is None:
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status
