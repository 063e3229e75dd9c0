"""Payments schemas. All amounts are integers in minor currency units (cents)."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.enums import Currency, PaymentType, ScheduleStatus


# --- Allocation ---
class AllocationItem(BaseModel):
    schedule_id: UUID
    amount: int = Field(..., gt=0, description="Allocation amount must be positive")


class AllocatePaymentRequest(BaseModel):
    allocations: List[AllocationItem] = Field(..., min_length=1, description="At least one allocation is required")


class AllocationSuggestionItem(BaseModel):
    schedule_id: UUID
    due_date: datetime
    status: ScheduleStatus
    amount: int
    paid_amount: int
    remaining: int
    suggested_allocation: int
    priority: int = Field(..., description="1 = overdue, 2 = partial, 3 = pending")


class AllocationSuggestionResponse(BaseModel):
    amount: int
    suggestions: List[AllocationSuggestionItem]
    total_suggested: int
    unallocated: int


class AllocationResultItem(BaseModel):
    schedule_id: UUID
    allocated_amount: int
    new_paid_amount: int
    new_status: ScheduleStatus
    due_date: datetime


class AllocationResultResponse(BaseModel):
    payment_id: UUID
    allocations: List[AllocationResultItem]
    total_allocated: int
    remaining_unallocated: int


# --- Payment ---
class StudentPaymentCreate(BaseModel):
    student_id: UUID
    amount: int = Field(..., gt=0, description="Amount must be positive")
    currency: Currency
    payment_date: datetime
    payment_method: Optional[str] = Field(None, max_length=50)
    reference_number: Optional[str] = Field(None, max_length=100)
    bank_account_id: Optional[UUID] = None
    notes: Optional[str] = None
    allocations: List[AllocationItem] = Field(default_factory=list)


class TeamPaymentCreate(BaseModel):
    """Payment to a mentor or a professor for a validated mission."""

    mentor_id: Optional[UUID] = None
    professor_id: Optional[UUID] = None
    mission_id: UUID
    amount: int = Field(..., gt=0, description="Amount must be positive")
    currency: Currency
    payment_date: datetime
    payment_method: Optional[str] = Field(None, max_length=50)
    reference_number: Optional[str] = Field(None, max_length=100)
    bank_account_id: UUID
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_payee(self) -> "TeamPaymentCreate":
        if (self.mentor_id is None) == (self.professor_id is None):
            raise ValueError("Exactly one of mentor_id or professor_id is required")
        return self


class PaymentAllocationResponse(BaseModel):
    id: UUID
    schedule_id: UUID
    amount: int
    currency: Currency
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: UUID
    type: PaymentType
    student_id: Optional[UUID] = None
    mentor_id: Optional[UUID] = None
    professor_id: Optional[UUID] = None
    mission_id: Optional[UUID] = None
    amount: int
    currency: Currency
    payment_date: datetime
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    bank_account_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AllocationStats(BaseModel):
    total_allocated: int
    remaining_amount: int
    schedules_fully_paid: int
    schedules_partially_paid: int


class PaymentDetailResponse(PaymentResponse):
    allocations: List[PaymentAllocationResponse] = Field(default_factory=list)
    stats: AllocationStats


class RecordStudentPaymentResponse(BaseModel):
    payment: PaymentResponse
    allocation: Optional[AllocationResultResponse] = None


# --- Schedules ---
class PaymentScheduleResponse(BaseModel):
    id: UUID
    quote_id: Optional[UUID] = None
    quote_number: Optional[str] = None
    student_id: Optional[UUID] = None
    mentor_id: Optional[UUID] = None
    professor_id: Optional[UUID] = None
    amount: int
    paid_amount: int
    remaining_amount: int
    currency: Currency
    due_date: datetime
    paid_date: Optional[datetime] = None
    status: ScheduleStatus


class CurrencySummary(BaseModel):
    currency: Currency
    total_due: int
    total_paid: int
    total_remaining: int


class StudentSchedulesResponse(BaseModel):
    student_id: UUID
    schedules: List[PaymentScheduleResponse]
    summary: List[CurrencySummary]


class RefreshOverdueResponse(BaseModel):
    updated: int
    schedule_ids: List[UUID]
