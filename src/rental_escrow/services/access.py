"""Access-control guards for registry messages.

Every guard either returns silently or raises the single error kind that
describes the failure. Handlers call them before touching storage.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rental_escrow.domain.exceptions import ContractPausedError, UnauthorizedError

if TYPE_CHECKING:
    from collections.abc import Collection

    from rental_escrow.domain.models import Agreement, ContractInfo

MAX_IDENTITY_LENGTH = 128


def authenticate(sender: str | None) -> str:
    """Return the normalized sender identity or reject an anonymous message."""
    identity = (sender or "").strip()
    if not identity or len(identity) > MAX_IDENTITY_LENGTH:
        raise UnauthorizedError(repr(sender), "authenticated sender")
    return identity


def require_not_paused(info: ContractInfo) -> None:
    if info.paused:
        raise ContractPausedError(info.address)


def require_owner(info: ContractInfo, sender: str) -> None:
    if sender != info.owner:
        raise UnauthorizedError(sender, "registry owner")


def require_tenant(agreement: Agreement, sender: str) -> None:
    if sender != agreement.tenant:
        raise UnauthorizedError(sender, "tenant")


def require_landlord(agreement: Agreement, sender: str) -> None:
    if sender != agreement.landlord:
        raise UnauthorizedError(sender, "landlord")


def require_deposit_confirmer(info: ContractInfo, sender: str, keepers: Collection[str]) -> None:
    """Deposits may only be confirmed by the owner or a configured keeper."""
    if sender != info.owner and sender not in keepers:
        raise UnauthorizedError(sender, "registry owner or keeper")


def allow_any_caller(sender: str) -> None:
    """Guard for time-triggered transitions: any authenticated sender may submit them."""
    return None
