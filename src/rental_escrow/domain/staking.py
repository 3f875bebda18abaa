"""Simulated staking of confirmed deposits.

A confirmed deposit earns a flat 5% once, with no compounding. Everything is
integer arithmetic in the ledger's smallest unit.
"""

from __future__ import annotations

YIELD_PERCENT = 5

# Upper bound for every numeric agreement parameter. Keeps the staked amount
# (at most 105% of the deposit) inside a signed 64-bit column.
MAX_AMOUNT = 2**62


def compute_staked_shares(amount: int) -> int:
    """Return ``amount`` plus the floored simulated yield."""
    if amount < 0:
        raise ValueError("amount must be non-negative")
    return amount + amount * YIELD_PERCENT // 100
