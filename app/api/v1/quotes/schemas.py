from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import Currency, QuoteStatus, ScheduleStatus


class QuotePackLine(BaseModel):
    pack_id: UUID
    custom_price: Optional[int] = Field(None, gt=0, description="Overrides the pack price, minor units")


class QuoteScheduleLine(BaseModel):
    due_date: datetime
    amount: int = Field(..., gt=0, description="Amount must be positive")
    currency: Currency


class QuoteCreate(BaseModel):
    student_id: UUID
    packs: List[QuotePackLine] = Field(..., min_length=1, description="At least one pack is required")
    payment_schedule: List[QuoteScheduleLine] = Field(
        ..., min_length=1, description="At least one payment schedule is required"
    )
    notes: Optional[str] = None


class QuoteItemResponse(BaseModel):
    id: UUID
    pack_id: UUID
    pack_name: Optional[str] = None
    amount: int


class QuoteScheduleResponse(BaseModel):
    id: UUID
    amount: int
    paid_amount: int
    currency: Currency
    due_date: datetime
    paid_date: Optional[datetime] = None
    status: ScheduleStatus

    class Config:
        from_attributes = True


class QuoteResponse(BaseModel):
    id: UUID
    quote_number: str
    student_id: UUID
    total_amount: int
    currency: Currency
    status: QuoteStatus
    notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    validated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QuoteDetailResponse(QuoteResponse):
    items: List[QuoteItemResponse] = Field(default_factory=list)
    payment_schedules: List[QuoteScheduleResponse] = Field(default_factory=list)


class QuoteListResponse(BaseModel):
    quotes: List[QuoteResponse]
    total: int
    has_more: bool
