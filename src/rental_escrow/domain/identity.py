"""Registry instance addressing.

An instance address is derived from the registry code and its init data (the
deploy-time ``id``), so deploying the same code with the same id twice
lands on the same address.
"""

from __future__ import annotations

import hashlib

from rental_escrow.domain.exceptions import InvalidParameterError

REGISTRY_CODE_HASH = hashlib.sha256(b"rental-escrow-registry/v1").hexdigest()

MAX_REGISTRY_ID = 2**63 - 1


def validate_registry_id(registry_id: int) -> int:
    if isinstance(registry_id, bool) or not isinstance(registry_id, int):
        raise InvalidParameterError("id", "must be an integer")
    if not 0 <= registry_id <= MAX_REGISTRY_ID:
        raise InvalidParameterError("id", f"must be between 0 and {MAX_REGISTRY_ID}")
    return registry_id


def registry_address(registry_id: int, code_hash: str = REGISTRY_CODE_HASH) -> str:
    """Return the raw ``0:<hex>`` address of the instance with ``registry_id``."""
    validate_registry_id(registry_id)
    digest = hashlib.sha256(bytes.fromhex(code_hash) + registry_id.to_bytes(32, "big"))
    return f"0:{digest.hexdigest()}"
