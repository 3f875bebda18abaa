"""MCP Tool definitions for the Rental Escrow Registry.

These tools expose the registry messages and read queries via the Model
Context Protocol, so agents (a keeper, a landlord's assistant) can discover
and call them programmatically.

Tools:
    - deploy_registry, create_agreement, accept_agreement, confirm_deposit,
      claim_at_term_end, cancel_agreement, set_paused
    - get_contract_info, get_agreement, list_agreements_by_status

The MCP server is mounted into FastAPI at /mcp via app.mount().
Each tool call is one message and manages its own database session.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp.server.fastmcp import FastMCP

from rental_escrow.domain.enums import AgreementStatus
from rental_escrow.domain.exceptions import RegistryError
from rental_escrow.logging_config import bind_message_context, get_logger
from rental_escrow.schemas.registry import AgreementResponse, ContractInfoResponse

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from rental_escrow.services.registry_service import RegistryService

logger = get_logger(__name__)

mcp = FastMCP(
    "Rental Escrow Registry",
    json_response=True,
)


def _session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for MCP tool context (not in a FastAPI request)."""
    from rental_escrow.infrastructure.database.engine import _get_session_factory

    return _get_session_factory()


async def _run(
    tool: str,
    handler: Callable[[RegistryService], Awaitable[dict]],
    *,
    registry: str | None = None,
    sender: str | None = None,
) -> dict:
    """Run one message in its own session; commit on success, report errors as data."""
    from rental_escrow.services.registry_service import RegistryService

    bind_message_context(tool=tool, registry=registry, sender=sender)
    try:
        async with _session_factory()() as session:
            result = await handler(RegistryService(session))
            await session.commit()
            return result
    except RegistryError as exc:
        logger.warning(f"mcp.{tool}.rejected", code=exc.code, error=exc.message)
        return {"error": exc.code, "message": exc.message}
    except Exception:
        logger.exception(f"mcp.{tool}.error")
        return {"error": "INTERNAL_ERROR", "message": "An unexpected error occurred"}


def _agreement_dict(agreement_id: int, agreement: Any) -> dict:
    return AgreementResponse.from_domain(agreement_id, agreement).model_dump()


@mcp.tool()
async def deploy_registry(sender: str, registry_id: int, query_id: int = 0) -> dict:
    """Deploy a registry instance (or return it if already deployed).

    Args:
        sender: Your identity; becomes the owner on first deploy.
        registry_id: Deploy-time identity tag of the instance.
        query_id: Optional caller-chosen query id.

    Returns:
        Contract info including the address needed for every other call.
    """

    async def handler(svc: RegistryService) -> dict:
        info = await svc.deploy(registry_id=registry_id, sender=sender, query_id=query_id)
        return ContractInfoResponse.from_domain(info).model_dump()

    return await _run("deploy_registry", handler, sender=sender)


@mcp.tool()
async def create_agreement(
    registry: str,
    sender: str,
    tenant: str,
    deposit_amount: int,
    rent_amount: int,
    start_date: int,
    term_length: int,
) -> dict:
    """Create a rental agreement as the landlord.

    Args:
        registry: Registry address.
        sender: Your identity (the landlord).
        tenant: Identity of the tenant who must accept.
        deposit_amount: Deposit in the smallest ledger unit.
        rent_amount: Rent in the smallest ledger unit.
        start_date: Unix seconds, must be in the future.
        term_length: Term length in seconds.
    """

    async def handler(svc: RegistryService) -> dict:
        agreement_id = await svc.create_agreement(
            registry,
            sender=sender,
            tenant=tenant,
            deposit_amount=deposit_amount,
            rent_amount=rent_amount,
            start_date=start_date,
            term_length=term_length,
        )
        return {
            "agreement_id": agreement_id,
            "status": AgreementStatus.DRAFT.value,
            "message": "Agreement created. Next step: the tenant accepts it.",
        }

    return await _run("create_agreement", handler, registry=registry, sender=sender)


@mcp.tool()
async def accept_agreement(registry: str, sender: str, agreement_id: int) -> dict:
    """Accept a DRAFT agreement as its tenant."""

    async def handler(svc: RegistryService) -> dict:
        agreement = await svc.accept_agreement(registry, sender=sender, agreement_id=agreement_id)
        return _agreement_dict(agreement_id, agreement)

    return await _run("accept_agreement", handler, registry=registry, sender=sender)


@mcp.tool()
async def confirm_deposit(registry: str, sender: str, agreement_id: int, amount: int) -> dict:
    """Confirm that the deposit of an ACCEPTED agreement arrived; stakes it.

    Args:
        registry: Registry address.
        sender: Registry owner or a configured keeper.
        agreement_id: Agreement to confirm.
        amount: Amount received; must equal the agreed deposit.
    """

    async def handler(svc: RegistryService) -> dict:
        agreement = await svc.deposit_received(
            registry, sender=sender, agreement_id=agreement_id, amount=amount
        )
        return _agreement_dict(agreement_id, agreement)

    return await _run("confirm_deposit", handler, registry=registry, sender=sender)


@mcp.tool()
async def claim_at_term_end(registry: str, sender: str, agreement_id: int) -> dict:
    """Complete a staked agreement whose term has elapsed. Anyone may call."""

    async def handler(svc: RegistryService) -> dict:
        agreement = await svc.claim_at_term_end(registry, sender=sender, agreement_id=agreement_id)
        return _agreement_dict(agreement_id, agreement)

    return await _run("claim_at_term_end", handler, registry=registry, sender=sender)


@mcp.tool()
async def cancel_agreement(registry: str, sender: str, agreement_id: int) -> dict:
    """Cancel a DRAFT or ACCEPTED agreement as its landlord."""

    async def handler(svc: RegistryService) -> dict:
        agreement = await svc.cancel_agreement(registry, sender=sender, agreement_id=agreement_id)
        return _agreement_dict(agreement_id, agreement)

    return await _run("cancel_agreement", handler, registry=registry, sender=sender)


@mcp.tool()
async def set_paused(registry: str, sender: str, paused: bool) -> dict:
    """Pause or unpause the registry (owner only)."""

    async def handler(svc: RegistryService) -> dict:
        info = await svc.set_paused(registry, sender=sender, paused=paused)
        return ContractInfoResponse.from_domain(info).model_dump()

    return await _run("set_paused", handler, registry=registry, sender=sender)


@mcp.tool()
async def get_contract_info(registry: str) -> dict:
    """Return owner, paused flag and agreement total of a registry."""

    async def handler(svc: RegistryService) -> dict:
        info = await svc.get_contract_info(registry)
        return ContractInfoResponse.from_domain(info).model_dump()

    return await _run("get_contract_info", handler, registry=registry)


@mcp.tool()
async def get_agreement(registry: str, agreement_id: int) -> dict:
    """Return one agreement, or {"agreement": None} when the id is unknown."""

    async def handler(svc: RegistryService) -> dict:
        agreement = await svc.get_agreement(registry, agreement_id)
        if agreement is None:
            return {"agreement": None}
        return {"agreement": _agreement_dict(agreement_id, agreement)}

    return await _run("get_agreement", handler, registry=registry)


@mcp.tool()
async def list_agreements_by_status(registry: str, status: str) -> dict:
    """List agreements with a status (DRAFT, ACCEPTED, DEPOSIT_STAKED, COMPLETED, CANCELLED).

    A keeper polls DEPOSIT_STAKED and claims those whose term_end has passed.
    """

    async def handler(svc: RegistryService) -> dict:
        try:
            wanted = AgreementStatus(status.upper())
        except ValueError:
            return {"error": "INVALID_PARAMETER", "message": f"Unknown status '{status}'"}
        agreements = await svc.get_agreements_by_status(registry, wanted)
        return {
            "status": wanted.value,
            "agreements": {
                str(agreement_id): _agreement_dict(agreement_id, agreement)
                for agreement_id, agreement in agreements.items()
            },
        }

    return await _run("list_agreements_by_status", handler, registry=registry)
