"""Tests for staking arithmetic, instance addressing and agreement records."""

from __future__ import annotations

import dataclasses

import pytest

from rental_escrow.domain.enums import AgreementStatus
from rental_escrow.domain.exceptions import InvalidParameterError
from rental_escrow.domain.identity import MAX_REGISTRY_ID, registry_address, validate_registry_id
from rental_escrow.domain.models import Agreement
from rental_escrow.domain.staking import compute_staked_shares


def _agreement(**overrides) -> Agreement:
    fields = {
        "landlord": "L",
        "tenant": "T",
        "deposit_amount": 1000,
        "rent_amount": 100,
        "start_date": 1_000,
        "term_length": 500,
        "status": AgreementStatus.DRAFT,
        "created_at": 900,
    }
    fields.update(overrides)
    return Agreement(**fields)


class TestStaking:
    def test_five_percent_yield(self) -> None:
        assert compute_staked_shares(1000) == 1050

    def test_yield_rounds_down(self) -> None:
        assert compute_staked_shares(19) == 19

    def test_zero(self) -> None:
        assert compute_staked_shares(0) == 0

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            compute_staked_shares(-1)


class TestRegistryAddress:
    def test_deterministic(self) -> None:
        assert registry_address(42) == registry_address(42)

    def test_distinct_ids_distinct_addresses(self) -> None:
        assert registry_address(100) != registry_address(200)

    def test_raw_address_format(self) -> None:
        address = registry_address(1)
        assert address.startswith("0:")
        assert len(address) == 66

    @pytest.mark.parametrize("bad", [-1, MAX_REGISTRY_ID + 1, True, "1"])
    def test_invalid_ids(self, bad) -> None:
        with pytest.raises(InvalidParameterError):
            validate_registry_id(bad)


class TestAgreement:
    def test_term_end(self) -> None:
        assert _agreement().term_end == 1_500

    def test_yield_zero_until_staked(self) -> None:
        assert _agreement().generated_yield == 0

    def test_yield_after_stake(self) -> None:
        staked = _agreement(status=AgreementStatus.DEPOSIT_STAKED, staked_shares=1050)
        assert staked.generated_yield == 50

    def test_records_are_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            _agreement().status = AgreementStatus.ACCEPTED
