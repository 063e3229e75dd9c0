"""
Audit logging for security-sensitive and financial actions. Call on every such change.
"""

from typing import Any, Dict, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import AuditAction
from app.core.models import AuditLog


async def log_audit(
    db: AsyncSession,
    user_id: Optional[UUID],
    action: Union[AuditAction, str],
    resource_type: str,
    resource_id: Optional[Union[UUID, str]],
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Append one audit log entry. Caller must commit."""
    entry = AuditLog(
        user_id=user_id,
        action=action.value if isinstance(action, AuditAction) else action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        metadata_=metadata,
    )
    db.add(entry)
    return entry
