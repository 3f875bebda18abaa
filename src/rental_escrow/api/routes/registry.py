"""Registry REST API routes.

Each POST route carries one inbound message of the registry; the sender
identity travels in the X-Sender header. The MCP tools in
mcp_server/tools.py call the same service layer, ensuring consistency.

Routes:
    POST   /api/v1/registries                                  — Deploy
    GET    /api/v1/registries/{address}                        — GetContractInfo
    GET    /api/v1/registries/{address}/counter                — GetAgreementCounter
    POST   /api/v1/registries/{address}/pause                  — SetPaused
    POST   /api/v1/registries/{address}/agreements             — CreateAgreement
    GET    /api/v1/registries/{address}/agreements?status=    — GetAgreementsByStatus
    GET    /api/v1/registries/{address}/agreements/{id}        — GetAgreement
    GET    /api/v1/registries/{address}/agreements/{id}/status — Status + allowed events
    GET    /api/v1/registries/{address}/agreements/{id}/events — Audit trail
    POST   /api/v1/registries/{address}/agreements/{id}/accept — AcceptAgreement
    POST   /api/v1/registries/{address}/agreements/{id}/deposit — DepositReceived
    POST   /api/v1/registries/{address}/agreements/{id}/claim  — ClaimAtTermEnd
    POST   /api/v1/registries/{address}/agreements/{id}/cancel — CancelAgreement
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rental_escrow.api.deps import (
    get_db_session,
    get_redis_client,
    get_registry_service,
    get_sender,
)
from rental_escrow.domain.enums import AgreementStatus
from rental_escrow.domain.exceptions import AgreementNotFoundError, DuplicateOperationError
from rental_escrow.infrastructure.redis_client import (
    PENDING,
    check_idempotency,
    release_idempotency,
    reserve_idempotency,
    set_idempotency,
)
from rental_escrow.logging_config import get_logger
from rental_escrow.schemas.registry import (
    AgreementCreatedResponse,
    AgreementEventResponse,
    AgreementResponse,
    AgreementStatusResponse,
    ContractInfoResponse,
    CounterResponse,
    CreateAgreementRequest,
    DeployRequest,
    DepositReceivedRequest,
    SetPausedRequest,
)
from rental_escrow.services.registry_service import RegistryService

router = APIRouter(prefix="/api/v1/registries", tags=["Registry"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Registry instance
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=ContractInfoResponse,
    status_code=201,
    summary="Deploy a registry instance",
)
async def deploy_registry(
    request: DeployRequest,
    sender: str = Depends(get_sender),
    svc: RegistryService = Depends(get_registry_service),
) -> ContractInfoResponse:
    """Deploy the instance derived from ``id``. Re-deploying returns the existing one."""
    info = await svc.deploy(registry_id=request.id, sender=sender, query_id=request.query_id)
    return ContractInfoResponse.from_domain(info)


@router.get(
    "/{address}",
    response_model=ContractInfoResponse,
    summary="Get contract info",
)
async def get_contract_info(
    address: str,
    svc: RegistryService = Depends(get_registry_service),
) -> ContractInfoResponse:
    info = await svc.get_contract_info(address)
    return ContractInfoResponse.from_domain(info)


@router.get(
    "/{address}/counter",
    response_model=CounterResponse,
    summary="Get agreement counter",
)
async def get_agreement_counter(
    address: str,
    svc: RegistryService = Depends(get_registry_service),
) -> CounterResponse:
    return CounterResponse(agreement_counter=await svc.get_agreement_counter(address))


@router.post(
    "/{address}/pause",
    response_model=ContractInfoResponse,
    summary="Pause or unpause the registry (owner only)",
)
async def set_paused(
    address: str,
    request: SetPausedRequest,
    sender: str = Depends(get_sender),
    svc: RegistryService = Depends(get_registry_service),
) -> ContractInfoResponse:
    info = await svc.set_paused(address, sender=sender, paused=request.paused)
    return ContractInfoResponse.from_domain(info)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post(
    "/{address}/agreements",
    response_model=AgreementCreatedResponse,
    status_code=201,
    summary="Create a rental agreement",
)
async def create_agreement(
    address: str,
    request: CreateAgreementRequest,
    sender: str = Depends(get_sender),
    svc: RegistryService = Depends(get_registry_service),
    session: AsyncSession = Depends(get_db_session),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> AgreementCreatedResponse:
    """Create a DRAFT agreement with the sender as landlord.

    An idempotency key is reserved before the create and bound to the new
    id only after the commit; a rejected create releases it.
    """
    key = request.idempotency_key
    if key and redis is None:
        logger.warning("idempotency.redis_unavailable", key=key)
        key = None
    if key and not await reserve_idempotency(redis, address, key):
        existing = await check_idempotency(redis, address, key)
        raise DuplicateOperationError(key, None if existing == PENDING else existing)

    try:
        agreement_id = await svc.create_agreement(
            address,
            sender=sender,
            tenant=request.tenant,
            deposit_amount=request.deposit_amount,
            rent_amount=request.rent_amount,
            start_date=request.start_date,
            term_length=request.term_length,
        )
        await session.commit()
    except Exception:
        if key:
            await release_idempotency(redis, address, key)
        raise

    if key:
        await set_idempotency(redis, address, key, str(agreement_id))
    return AgreementCreatedResponse(agreement_id=agreement_id)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@router.post(
    "/{address}/agreements/{agreement_id}/accept",
    response_model=AgreementResponse,
    summary="Tenant accepts an agreement",
)
async def accept_agreement(
    address: str,
    agreement_id: int,
    sender: str = Depends(get_sender),
    svc: RegistryService = Depends(get_registry_service),
) -> AgreementResponse:
    """Transitions DRAFT -> ACCEPTED."""
    agreement = await svc.accept_agreement(address, sender=sender, agreement_id=agreement_id)
    return AgreementResponse.from_domain(agreement_id, agreement)


@router.post(
    "/{address}/agreements/{agreement_id}/deposit",
    response_model=AgreementResponse,
    summary="Confirm the deposit and stake it",
)
async def deposit_received(
    address: str,
    agreement_id: int,
    request: DepositReceivedRequest,
    sender: str = Depends(get_sender),
    svc: RegistryService = Depends(get_registry_service),
) -> AgreementResponse:
    """Transitions ACCEPTED -> DEPOSIT_STAKED."""
    agreement = await svc.deposit_received(
        address, sender=sender, agreement_id=agreement_id, amount=request.amount
    )
    return AgreementResponse.from_domain(agreement_id, agreement)


@router.post(
    "/{address}/agreements/{agreement_id}/claim",
    response_model=AgreementResponse,
    summary="Claim at term end",
)
async def claim_at_term_end(
    address: str,
    agreement_id: int,
    sender: str = Depends(get_sender),
    svc: RegistryService = Depends(get_registry_service),
) -> AgreementResponse:
    """Transitions DEPOSIT_STAKED -> COMPLETED once the term has elapsed."""
    agreement = await svc.claim_at_term_end(address, sender=sender, agreement_id=agreement_id)
    return AgreementResponse.from_domain(agreement_id, agreement)


@router.post(
    "/{address}/agreements/{agreement_id}/cancel",
    response_model=AgreementResponse,
    summary="Landlord cancels an agreement",
)
async def cancel_agreement(
    address: str,
    agreement_id: int,
    sender: str = Depends(get_sender),
    svc: RegistryService = Depends(get_registry_service),
) -> AgreementResponse:
    """Valid from DRAFT or ACCEPTED."""
    agreement = await svc.cancel_agreement(address, sender=sender, agreement_id=agreement_id)
    return AgreementResponse.from_domain(agreement_id, agreement)


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/{address}/agreements",
    response_model=dict[str, AgreementResponse],
    summary="List agreements by status",
)
async def get_agreements_by_status(
    address: str,
    status: AgreementStatus = Query(..., description="Status to filter on"),
    svc: RegistryService = Depends(get_registry_service),
) -> dict[str, AgreementResponse]:
    """Return agreements with the given status keyed by id, in id order."""
    agreements = await svc.get_agreements_by_status(address, status)
    return {
        str(agreement_id): AgreementResponse.from_domain(agreement_id, agreement)
        for agreement_id, agreement in agreements.items()
    }


@router.get(
    "/{address}/agreements/{agreement_id}",
    response_model=AgreementResponse,
    summary="Get agreement details",
)
async def get_agreement(
    address: str,
    agreement_id: int,
    svc: RegistryService = Depends(get_registry_service),
) -> AgreementResponse:
    agreement = await svc.get_agreement(address, agreement_id)
    if agreement is None:
        raise AgreementNotFoundError(agreement_id)
    return AgreementResponse.from_domain(agreement_id, agreement)


@router.get(
    "/{address}/agreements/{agreement_id}/status",
    response_model=AgreementStatusResponse,
    summary="Get lightweight status check",
)
async def get_status(
    address: str,
    agreement_id: int,
    svc: RegistryService = Depends(get_registry_service),
) -> AgreementStatusResponse:
    """Return the current status and allowed next events."""
    return AgreementStatusResponse(**await svc.get_status(address, agreement_id))


@router.get(
    "/{address}/agreements/{agreement_id}/events",
    response_model=list[AgreementEventResponse],
    summary="Get audit trail",
)
async def get_events(
    address: str,
    agreement_id: int,
    svc: RegistryService = Depends(get_registry_service),
) -> list[AgreementEventResponse]:
    events = await svc.get_agreement_events(address, agreement_id)
    return [AgreementEventResponse.from_domain(e) for e in events]
