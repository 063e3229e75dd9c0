from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for role checks."""

    id: UUID
    email: str
    name: Optional[str] = None
    role: str
