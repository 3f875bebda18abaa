"""Application services — use case orchestration."""

from rental_escrow.services.registry_service import RegistryService

__all__ = ["RegistryService"]
