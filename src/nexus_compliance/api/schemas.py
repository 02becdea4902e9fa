"""Pydantic schemas for API request/response models."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RequestModel(BaseModel):
    """Base for request bodies: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None


class SuccessResponse(BaseModel):
    """Bare acknowledgement."""

    success: bool = True


# ============================================================================
# Time log schemas
# ============================================================================


LocationType = Literal["remote", "onsite", "hybrid"]


class TimeLogCreate(RequestModel):
    """Schema for creating a draft time log."""

    log_date: date
    hours_worked: Decimal = Field(gt=0, le=24, decimal_places=2)
    contract_id: UUID | None = None
    milestone_id: UUID | None = None
    start_time: time | None = None
    end_time: time | None = None
    description: str | None = None
    task_category: str | None = None
    location_type: LocationType = "remote"
    location_state: str | None = Field(default=None, min_length=2, max_length=2)
    location_city: str | None = None
    location_latitude: Decimal | None = Field(default=None, ge=-90, le=90)
    location_longitude: Decimal | None = Field(default=None, ge=-180, le=180)
    billable: bool = True


class TimeLogUpdate(RequestModel):
    """Schema for editing a draft or rejected time log.

    Only fields present in the body are changed.
    """

    log_date: date | None = None
    hours_worked: Decimal | None = Field(default=None, gt=0, le=24, decimal_places=2)
    milestone_id: UUID | None = None
    start_time: time | None = None
    end_time: time | None = None
    description: str | None = None
    task_category: str | None = None
    location_type: LocationType | None = None
    location_state: str | None = Field(default=None, min_length=2, max_length=2)
    location_city: str | None = None
    location_latitude: Decimal | None = Field(default=None, ge=-90, le=90)
    location_longitude: Decimal | None = Field(default=None, ge=-180, le=180)
    billable: bool | None = None


class TimeLogResponse(BaseModel):
    """Schema for time log response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    talent_profile_id: UUID
    contract_id: UUID | None = None
    milestone_id: UUID | None = None
    log_date: date
    start_time: time | None = None
    end_time: time | None = None
    hours_worked: Decimal
    description: str | None = None
    task_category: str | None = None
    location_type: str
    location_state: str | None = None
    location_city: str | None = None
    location_verified: bool
    az_eligible_hours: Decimal
    billable: bool
    submission_status: str
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: UUID | None = None
    created_at: datetime
    updated_at: datetime


class TimeLogListResponse(BaseModel):
    """Schema for listing time logs."""

    time_logs: list[TimeLogResponse]


class SubmitRequest(RequestModel):
    """Schema for submitting time logs for review."""

    time_log_ids: list[UUID]


class SubmitResponse(BaseModel):
    """Schema for a batch submission result."""

    success: bool = True
    submitted_count: int
    time_logs: list[TimeLogResponse]


class DecisionRequest(RequestModel):
    """Schema for a review decision."""

    decision: str
    notes: str | None = None


class DecisionResponse(BaseModel):
    """Schema for a review decision result."""

    success: bool = True
    time_log: TimeLogResponse


# ============================================================================
# Escrow schemas
# ============================================================================


class EscrowFundRequest(RequestModel):
    """Schema for funding a contract escrow."""

    contract_id: UUID
    amount: Decimal = Field(gt=0, decimal_places=2)


class EscrowResponse(BaseModel):
    """Schema for escrow record response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    contract_id: UUID
    client_id: UUID
    creator_id: UUID | None = None
    escrow_balance: Decimal
    funds_deposited: Decimal
    funds_released: Decimal
    status: str
    funded_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class EscrowFundResponse(BaseModel):
    """Schema for a funding result."""

    success: bool = True
    created: bool
    escrow: EscrowResponse


class EscrowListResponse(BaseModel):
    """Schema for listing escrow records."""

    escrows: list[EscrowResponse]


# ============================================================================
# Payroll schemas
# ============================================================================


PayoutStatusName = Literal["pending", "processing", "completed", "failed"]


class PayoutResponse(BaseModel):
    """Schema for payout response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    talent_profile_id: UUID
    contract_id: UUID | None = None
    gross_amount: Decimal
    net_amount: Decimal
    status: str
    scheduled_date: date | None = None
    processed_at: datetime | None = None
    failure_reason: str | None = None
    tax_year: int
    created_at: datetime


class PayoutListItem(PayoutResponse):
    """Payout with the talent's tax identity."""

    talent_user_id: UUID
    legal_name: str | None = None
    tax_classification: str | None = None
    residency_state: str | None = None


class PayoutListSummary(BaseModel):
    """Aggregates over a payout listing."""

    total_payouts: int
    pending_amount: Decimal
    processed_amount: Decimal


class PayoutListResponse(BaseModel):
    """Schema for listing payouts."""

    payouts: list[PayoutListItem]
    summary: PayoutListSummary


class PayoutBatchRequest(RequestModel):
    """Schema for advancing a batch of payouts."""

    payout_ids: list[UUID]


class PayoutFailRequest(PayoutBatchRequest):
    """Schema for failing a batch of payouts."""

    reason: str = Field(min_length=1)


class PayoutBatchResponse(BaseModel):
    """Schema for a batch advance result."""

    success: bool = True
    batch_id: UUID
    processed_count: int
    total_amount: Decimal
    excluded_ids: list[UUID]
    payouts: list[PayoutResponse]


class YearSummaryResponse(BaseModel):
    """Schema for the year-end jurisdiction rollup."""

    tax_year: int
    total_payouts: Decimal
    pending_payouts: Decimal
    processing_payouts: Decimal
    total_az_hours: Decimal
    payout_count: int
