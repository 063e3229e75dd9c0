from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr


class StartImpersonationRequest(BaseModel):
    target_user_id: UUID


class ImpersonatedUser(BaseModel):
    id: UUID
    email: EmailStr
    name: Optional[str] = None
    role: str


class AdminUserSummary(BaseModel):
    id: UUID
    email: EmailStr
    name: Optional[str] = None


class StartImpersonationResponse(BaseModel):
    success: bool = True
    session_id: UUID
    target_user: ImpersonatedUser
    message: str


class EndImpersonationResponse(BaseModel):
    success: bool = True
    message: str


class ImpersonationStatusResponse(BaseModel):
    is_impersonating: bool
    session_id: Optional[UUID] = None
    expires_at: Optional[datetime] = None
    target_user: Optional[ImpersonatedUser] = None
    admin_user: Optional[AdminUserSummary] = None
