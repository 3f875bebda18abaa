"""Tests for the AgreementStateMachine domain guard.

These tests verify that:
    1. All valid transitions are allowed.
    2. All invalid transitions are blocked.
    3. The convenience function validate_transition works.
    4. Terminal states accept nothing.
"""

from __future__ import annotations

import warnings

import pytest
from statemachine.exceptions import TransitionNotAllowed

from rental_escrow.domain.state_machine import (
    AgreementStateMachine,
    validate_transition,
)


class TestHappyPath:
    """Test the full lifecycle: DRAFT -> COMPLETED."""

    def test_full_lifecycle(self) -> None:
        sm = AgreementStateMachine("DRAFT")
        assert sm.status == "DRAFT"

        sm.tenant_accepts()
        assert sm.status == "ACCEPTED"

        sm.deposit_staked()
        assert sm.status == "DEPOSIT_STAKED"

        sm.term_claimed()
        assert sm.status == "COMPLETED"

    def test_default_status_is_draft(self) -> None:
        assert AgreementStateMachine().status == "DRAFT"

    def test_status_read_emits_no_deprecation(self) -> None:
        sm = AgreementStateMachine("ACCEPTED")
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            assert sm.status == "ACCEPTED"
            sm.deposit_staked()
            assert sm.status == "DEPOSIT_STAKED"


class TestCancelPath:
    def test_cancel_from_draft(self) -> None:
        sm = AgreementStateMachine("DRAFT")
        sm.landlord_cancels()
        assert sm.status == "CANCELLED"

    def test_cancel_from_accepted(self) -> None:
        sm = AgreementStateMachine("ACCEPTED")
        sm.landlord_cancels()
        assert sm.status == "CANCELLED"

    def test_cancel_after_stake_blocked(self) -> None:
        sm = AgreementStateMachine("DEPOSIT_STAKED")
        with pytest.raises(TransitionNotAllowed):
            sm.landlord_cancels()


class TestIllegalTransitions:
    """Verify that illegal transitions raise TransitionNotAllowed."""

    def test_draft_to_staked(self) -> None:
        sm = AgreementStateMachine("DRAFT")
        with pytest.raises(TransitionNotAllowed):
            sm.deposit_staked()

    def test_accepted_to_completed(self) -> None:
        sm = AgreementStateMachine("ACCEPTED")
        with pytest.raises(TransitionNotAllowed):
            sm.term_claimed()

    def test_accept_twice(self) -> None:
        sm = AgreementStateMachine("ACCEPTED")
        with pytest.raises(TransitionNotAllowed):
            sm.tenant_accepts()

    def test_completed_is_final(self) -> None:
        assert AgreementStateMachine("COMPLETED").get_allowed_events() == []

    def test_cancelled_is_final(self) -> None:
        assert AgreementStateMachine("CANCELLED").get_allowed_events() == []


class TestAllowedEvents:
    def test_draft_allowed(self) -> None:
        allowed = AgreementStateMachine("DRAFT").get_allowed_events()
        assert allowed == ["tenant_accepts", "landlord_cancels"]

    def test_accepted_allowed(self) -> None:
        allowed = AgreementStateMachine("ACCEPTED").get_allowed_events()
        assert allowed == ["deposit_staked", "landlord_cancels"]

    def test_staked_allowed(self) -> None:
        assert AgreementStateMachine("DEPOSIT_STAKED").get_allowed_events() == ["term_claimed"]

    def test_probing_does_not_move_the_machine(self) -> None:
        sm = AgreementStateMachine("DRAFT")
        sm.get_allowed_events()
        assert sm.status == "DRAFT"


class TestValidateTransitionFunction:
    def test_valid_transition(self) -> None:
        assert validate_transition("ACCEPTED", "deposit_staked") == "DEPOSIT_STAKED"

    def test_illegal_transition(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition("DRAFT", "term_claimed")

    def test_invalid_event_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition("DRAFT", "nonexistent_event")

    def test_invalid_status(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            AgreementStateMachine("DEPOSIT_RECEIVED")
