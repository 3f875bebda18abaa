"""Pydantic API schemas."""

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
    HealthResponse,
    SetPausedRequest,
)

__all__ = [
    "AgreementCreatedResponse",
    "AgreementEventResponse",
    "AgreementResponse",
    "AgreementStatusResponse",
    "ContractInfoResponse",
    "CounterResponse",
    "CreateAgreementRequest",
    "DeployRequest",
    "DepositReceivedRequest",
    "HealthResponse",
    "SetPausedRequest",
]
