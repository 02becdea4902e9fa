"""Escrow API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Response, status

from nexus_compliance.api.dependencies import AppSettings, CurrentCaller, DbSession, ReqContext
from nexus_compliance.api.schemas import (
    ErrorResponse,
    EscrowFundRequest,
    EscrowFundResponse,
    EscrowListResponse,
    EscrowResponse,
)
from nexus_compliance.services.escrow_ledger import EscrowLedger

router = APIRouter(prefix="/escrow", tags=["escrow"])


@router.post(
    "",
    response_model=EscrowFundResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": EscrowFundResponse, "description": "Existing escrow topped up"},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def fund_escrow(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    context: ReqContext,
    payload: EscrowFundRequest,
    response: Response,
) -> EscrowFundResponse:
    """Fund a contract escrow, opening it on first deposit."""
    ledger = EscrowLedger(
        db,
        realm_context=settings.escrow_realm,
        legal_entity=settings.legal_entity,
    )
    result = await ledger.fund(caller, payload.contract_id, payload.amount, context)
    await db.commit()

    if not result.created:
        response.status_code = status.HTTP_200_OK
    return EscrowFundResponse(
        created=result.created,
        escrow=EscrowResponse.model_validate(result.escrow),
    )


@router.get("", response_model=EscrowListResponse)
async def list_escrow(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    contract_id: UUID | None = None,
) -> EscrowListResponse:
    """List escrow records visible to the caller."""
    ledger = EscrowLedger(db, realm_context=settings.escrow_realm)
    escrows = await ledger.list_for_caller(caller, contract_id)
    return EscrowListResponse(escrows=[EscrowResponse.model_validate(e) for e in escrows])
