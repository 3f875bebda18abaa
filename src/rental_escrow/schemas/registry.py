"""Pydantic schemas for the Registry API.

These schemas define the request/response shapes for the REST API. Each
inbound message of the registry has exactly one request model. Range checks
on amounts and dates live in the service layer so that they surface as
INVALID_PARAMETER errors, not as schema validation failures.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from rental_escrow.domain.models import Agreement, AgreementEventRecord, ContractInfo

# ---------------------------------------------------------------------------
# Request Schemas (inbound messages)
# ---------------------------------------------------------------------------


class DeployRequest(BaseModel):
    """Deploy(queryId) addressed to the instance derived from ``id``."""

    id: int = Field(
        ...,
        ge=0,
        le=2**63 - 1,
        description="Deploy-time identity tag of the registry instance",
        examples=[1],
    )
    query_id: int = Field(default=0, ge=0, description="Caller-chosen query id")


class CreateAgreementRequest(BaseModel):
    """CreateAgreement(tenant, depositAmount, rentAmount, startDate, termLength)."""

    tenant: str = Field(
        ...,
        max_length=128,
        description="Identity of the tenant who must accept the agreement",
        examples=["EQBvW8Z5huBkMJYdnfAEM5JqTNkuWX3diqYENkWsIL0XggGG"],
    )
    deposit_amount: int = Field(..., description="Deposit in the smallest ledger unit")
    rent_amount: int = Field(..., description="Rent in the smallest ledger unit")
    start_date: int = Field(..., description="Unix seconds; must be in the future")
    term_length: int = Field(..., description="Term length in seconds")
    idempotency_key: str | None = Field(
        default=None,
        max_length=128,
        description="Optional idempotency key to prevent duplicate agreement creation",
    )


class DepositReceivedRequest(BaseModel):
    """DepositReceived(agreementId, amount)."""

    amount: int = Field(..., description="Confirmed deposit amount")


class SetPausedRequest(BaseModel):
    """SetPaused(paused)."""

    paused: bool


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class ContractInfoResponse(BaseModel):
    """Registry instance metadata."""

    id: int
    address: str
    owner: str
    paused: bool
    total_agreements: int

    @classmethod
    def from_domain(cls, info: ContractInfo) -> ContractInfoResponse:
        return cls(
            id=info.id,
            address=info.address,
            owner=info.owner,
            paused=info.paused,
            total_agreements=info.total_agreements,
        )


class CounterResponse(BaseModel):
    agreement_counter: int


class AgreementResponse(BaseModel):
    """Response schema for one agreement."""

    agreement_id: int
    landlord: str
    tenant: str
    deposit_amount: int
    rent_amount: int
    start_date: int
    term_length: int
    term_end: int
    status: str
    status_code: int
    created_at: int
    staked_shares: int
    generated_yield: int

    @classmethod
    def from_domain(cls, agreement_id: int, agreement: Agreement) -> AgreementResponse:
        return cls(
            agreement_id=agreement_id,
            landlord=agreement.landlord,
            tenant=agreement.tenant,
            deposit_amount=agreement.deposit_amount,
            rent_amount=agreement.rent_amount,
            start_date=agreement.start_date,
            term_length=agreement.term_length,
            term_end=agreement.term_end,
            status=agreement.status.value,
            status_code=agreement.status.code,
            created_at=agreement.created_at,
            staked_shares=agreement.staked_shares,
            generated_yield=agreement.generated_yield,
        )


class AgreementCreatedResponse(BaseModel):
    agreement_id: int
    status: str = "DRAFT"


class AgreementStatusResponse(BaseModel):
    """Lightweight status check response."""

    agreement_id: int
    status: str
    status_code: int
    term_end: int
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )


class AgreementEventResponse(BaseModel):
    """Response schema for an audit event."""

    event_type: str
    old_status: str | None
    new_status: str | None
    actor: str
    ledger_time: int
    metadata: dict | None = None

    @classmethod
    def from_domain(cls, record: AgreementEventRecord) -> AgreementEventResponse:
        return cls(
            event_type=record.event_type,
            old_status=record.old_status,
            new_status=record.new_status,
            actor=record.actor,
            ledger_time=record.ledger_time,
            metadata=record.metadata,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    redis: str = "unknown"
    registries: int | None = None
