from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.enums import Currency, MissionStatus, MissionType


class MissionCreate(BaseModel):
    type: MissionType
    mentor_id: Optional[UUID] = None
    professor_id: Optional[UUID] = None
    description: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, description="Amount in minor units, must be positive")
    currency: Currency
    start_date: datetime
    end_date: datetime
    notes: Optional[str] = None

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Description is required")
        return v

    @model_validator(mode="after")
    def validate_assignee_and_dates(self) -> "MissionCreate":
        if self.type == MissionType.MENTOR and self.mentor_id is None:
            raise ValueError("mentor_id is required for MENTOR missions")
        if self.type == MissionType.PROFESSOR and self.professor_id is None:
            raise ValueError("professor_id is required for PROFESSOR missions")
        if self.start_date >= self.end_date:
            raise ValueError("End date must be after start date")
        return self


class MissionReject(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Rejection reason is required")
        return v


class MissionResponse(BaseModel):
    id: UUID
    mentor_id: Optional[UUID] = None
    professor_id: Optional[UUID] = None
    description: str
    amount: int
    paid_amount: int
    currency: Currency
    start_date: datetime
    end_date: datetime
    notes: Optional[str] = None
    status: MissionStatus
    validated_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MissionListResponse(BaseModel):
    missions: List[MissionResponse]
    total: int
    has_more: bool
