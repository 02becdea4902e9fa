"""Payroll API endpoints. Admin only."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_compliance.api.dependencies import AppSettings, CurrentCaller, DbSession, ReqContext
from nexus_compliance.api.schemas import (
    ErrorResponse,
    PayoutBatchRequest,
    PayoutBatchResponse,
    PayoutFailRequest,
    PayoutListItem,
    PayoutListResponse,
    PayoutListSummary,
    PayoutResponse,
    PayoutStatusName,
    YearSummaryResponse,
)
from nexus_compliance.config import Settings
from nexus_compliance.services.payroll_batch import (
    BatchResult,
    PayoutFilters,
    PayrollBatchProcessor,
)
from nexus_compliance.services.state_machine import PayoutStatus

router = APIRouter(prefix="/payroll", tags=["payroll"])

ADMIN_ERRORS = {403: {"model": ErrorResponse}}


def _processor(db: AsyncSession, settings: Settings) -> PayrollBatchProcessor:
    return PayrollBatchProcessor(
        db,
        realm_context=settings.escrow_realm,
        legal_entity=settings.legal_entity,
    )


def _batch_response(result: BatchResult) -> PayoutBatchResponse:
    return PayoutBatchResponse(
        batch_id=result.batch_id,
        processed_count=result.processed_count,
        total_amount=result.total_amount,
        excluded_ids=result.excluded_ids,
        payouts=[PayoutResponse.model_validate(p) for p in result.payouts],
    )


@router.get("/payouts", response_model=PayoutListResponse, responses=ADMIN_ERRORS)
async def list_payouts(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    status_filter: Annotated[PayoutStatusName | None, Query(alias="status")] = None,
    tax_year: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> PayoutListResponse:
    """List payouts with talent tax identity and totals."""
    listing = await _processor(db, settings).list_payouts(
        caller,
        PayoutFilters(
            status=PayoutStatus(status_filter) if status_filter else None,
            tax_year=tax_year,
            start_date=start_date,
            end_date=end_date,
        ),
    )
    return PayoutListResponse(
        payouts=[
            PayoutListItem(
                **PayoutResponse.model_validate(row.payout).model_dump(),
                talent_user_id=row.talent_user_id,
                legal_name=row.legal_name,
                tax_classification=row.tax_classification,
                residency_state=row.residency_state,
            )
            for row in listing.rows
        ],
        summary=PayoutListSummary(
            total_payouts=listing.total_payouts,
            pending_amount=listing.pending_amount,
            processed_amount=listing.processed_amount,
        ),
    )


@router.post(
    "/payouts/process",
    response_model=PayoutBatchResponse,
    responses={**ADMIN_ERRORS, 409: {"model": ErrorResponse}},
)
async def process_payouts(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    context: ReqContext,
    payload: PayoutBatchRequest,
) -> PayoutBatchResponse:
    """Move the pending subset of the given payouts to processing."""
    result = await _processor(db, settings).process_batch(caller, payload.payout_ids, context)
    await db.commit()
    return _batch_response(result)


@router.post(
    "/payouts/complete",
    response_model=PayoutBatchResponse,
    responses={**ADMIN_ERRORS, 409: {"model": ErrorResponse}},
)
async def complete_payouts(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    context: ReqContext,
    payload: PayoutBatchRequest,
) -> PayoutBatchResponse:
    """Complete processing payouts and debit their contract escrow."""
    result = await _processor(db, settings).complete_payouts(caller, payload.payout_ids, context)
    await db.commit()
    return _batch_response(result)


@router.post(
    "/payouts/fail",
    response_model=PayoutBatchResponse,
    responses={**ADMIN_ERRORS, 409: {"model": ErrorResponse}},
)
async def fail_payouts(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    context: ReqContext,
    payload: PayoutFailRequest,
) -> PayoutBatchResponse:
    """Mark processing payouts failed."""
    result = await _processor(db, settings).fail_payouts(
        caller, payload.payout_ids, payload.reason, context
    )
    await db.commit()
    return _batch_response(result)


@router.get("/summary", response_model=YearSummaryResponse, responses=ADMIN_ERRORS)
async def year_summary(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    tax_year: Annotated[int | None, Query(ge=1900, le=9999)] = None,
) -> YearSummaryResponse:
    """Completed vs pending totals and AZ hours for one tax year."""
    summary = await _processor(db, settings).year_summary(caller, tax_year)
    return YearSummaryResponse(
        tax_year=summary.tax_year,
        total_payouts=summary.total_payouts,
        pending_payouts=summary.pending_payouts,
        processing_payouts=summary.processing_payouts,
        total_az_hours=summary.total_az_hours,
        payout_count=summary.payout_count,
    )
