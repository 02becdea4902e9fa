"""Time log API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_compliance.api.dependencies import AppSettings, CurrentCaller, DbSession, ReqContext
from nexus_compliance.api.schemas import (
    DecisionRequest,
    DecisionResponse,
    ErrorResponse,
    SubmitRequest,
    SubmitResponse,
    SuccessResponse,
    TimeLogCreate,
    TimeLogListResponse,
    TimeLogResponse,
    TimeLogUpdate,
)
from nexus_compliance.config import Settings
from nexus_compliance.services.state_machine import TimeLogStatus
from nexus_compliance.services.time_log_service import TimeLogInput, TimeLogService

router = APIRouter(prefix="/time-logs", tags=["time-logs"])


def _service(db: AsyncSession, settings: Settings) -> TimeLogService:
    return TimeLogService(
        db,
        realm_context=settings.time_log_realm,
        legal_entity=settings.legal_entity,
    )


# ============================================================================
# Time log CRUD
# ============================================================================


@router.get(
    "",
    response_model=TimeLogListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_time_logs(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    contract_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    status_filter: Annotated[TimeLogStatus | None, Query(alias="status")] = None,
) -> TimeLogListResponse:
    """List the caller's time logs with optional filters."""
    time_logs = await _service(db, settings).list_time_logs(
        caller,
        contract_id=contract_id,
        start_date=start_date,
        end_date=end_date,
        status=status_filter,
    )
    return TimeLogListResponse(
        time_logs=[TimeLogResponse.model_validate(t) for t in time_logs]
    )


@router.post(
    "",
    response_model=TimeLogResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_time_log(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    context: ReqContext,
    payload: TimeLogCreate,
) -> TimeLogResponse:
    """Create a draft time log."""
    time_log = await _service(db, settings).create_time_log(
        caller, TimeLogInput(**payload.model_dump()), context
    )
    await db.commit()
    return TimeLogResponse.model_validate(time_log)


@router.get(
    "/{time_log_id}",
    response_model=TimeLogResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_time_log(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    time_log_id: Annotated[UUID, Path()],
) -> TimeLogResponse:
    """Get one of the caller's time logs."""
    time_log = await _service(db, settings).get_time_log(caller, time_log_id)
    return TimeLogResponse.model_validate(time_log)


@router.put(
    "/{time_log_id}",
    response_model=TimeLogResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_time_log(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    context: ReqContext,
    payload: TimeLogUpdate,
    time_log_id: Annotated[UUID, Path()],
) -> TimeLogResponse:
    """Edit a draft or rejected time log."""
    time_log = await _service(db, settings).update_time_log(
        caller, time_log_id, payload.model_dump(exclude_unset=True), context
    )
    await db.commit()
    return TimeLogResponse.model_validate(time_log)


@router.delete(
    "/{time_log_id}",
    response_model=SuccessResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_time_log(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    context: ReqContext,
    time_log_id: Annotated[UUID, Path()],
) -> SuccessResponse:
    """Delete a draft time log."""
    await _service(db, settings).delete_time_log(caller, time_log_id, context)
    await db.commit()
    return SuccessResponse()


# ============================================================================
# Review workflow
# ============================================================================


@router.post(
    "/submit",
    response_model=SubmitResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def submit_time_logs(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    context: ReqContext,
    payload: SubmitRequest,
) -> SubmitResponse:
    """Submit draft or rejected time logs for review (all-or-nothing)."""
    result = await _service(db, settings).submit_batch(caller, payload.time_log_ids, context)
    await db.commit()
    return SubmitResponse(
        submitted_count=result.submitted_count,
        time_logs=[TimeLogResponse.model_validate(t) for t in result.time_logs],
    )


@router.post(
    "/{time_log_id}/decision",
    response_model=DecisionResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def decide_time_log(
    db: DbSession,
    settings: AppSettings,
    caller: CurrentCaller,
    context: ReqContext,
    payload: DecisionRequest,
    time_log_id: Annotated[UUID, Path()],
) -> DecisionResponse:
    """Approve, reject or request correction of a submitted time log."""
    time_log = await _service(db, settings).decide(
        caller, time_log_id, payload.decision, payload.notes, context
    )
    await db.commit()
    return DecisionResponse(time_log=TimeLogResponse.model_validate(time_log))
