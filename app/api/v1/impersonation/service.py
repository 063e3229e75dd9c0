"""
Admin impersonation: start, end and status.

The session row is the audit trail; the signed cookie issued here is the only thing that
grants the impersonated view. Both transitions write an audit entry in the same commit.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.impersonation import ImpersonationData, issue_impersonation_token
from app.auth.rbac import is_admin, is_valid_impersonation_target
from app.auth.schemas import CurrentUser
from app.core.audit import log_audit
from app.core.clock import utcnow
from app.core.enums import AuditAction
from app.core.exceptions import BadRequestError, ForbiddenError, InvalidStateError, NotFoundError
from app.core.models import ImpersonationSession, User
from app.db.session import unit_of_work

from .schemas import (
    AdminUserSummary,
    EndImpersonationResponse,
    ImpersonatedUser,
    ImpersonationStatusResponse,
    StartImpersonationResponse,
)

logger = logging.getLogger(__name__)


def _user_summary(user: User) -> ImpersonatedUser:
    return ImpersonatedUser(id=user.id, email=user.email, name=user.display_name, role=user.role)


async def start_impersonation(
    db: AsyncSession,
    admin: CurrentUser,
    target_user_id: UUID,
    *,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[StartImpersonationResponse, str]:
    """Open an impersonation session. Returns the response body and the cookie token."""
    if not is_admin(admin.role):
        raise ForbiddenError("Forbidden - Admin access required")

    target = await db.get(User, target_user_id)
    if not target:
        raise NotFoundError("Target user not found")
    if not target.active:
        raise InvalidStateError("Cannot impersonate an inactive user")
    if not is_valid_impersonation_target(target.role):
        raise InvalidStateError(f"Cannot impersonate users with role {target.role}")

    now = now or utcnow()
    async with unit_of_work(db):
        session = ImpersonationSession(
            admin_user_id=admin.id,
            target_user_id=target.id,
            started_at=now,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(session)
        await db.flush()

        token, _ = issue_impersonation_token(admin.id, target.id, session.id, now=now)
        await log_audit(
            db,
            admin.id,
            AuditAction.START_IMPERSONATION,
            "User",
            target.id,
            {"targetEmail": target.email, "targetRole": target.role, "sessionId": str(session.id)},
        )
        # Response is validated before anything is committed
        summary = _user_summary(target)
        body = StartImpersonationResponse(
            session_id=session.id,
            target_user=summary,
            message=f"Now viewing as {summary.name}",
        )
    logger.info(f"Admin {admin.id} started impersonating user {target.id} (session {session.id})")
    return body, token


async def end_impersonation(
    db: AsyncSession,
    admin: CurrentUser,
    data: Optional[ImpersonationData],
    now: Optional[datetime] = None,
) -> EndImpersonationResponse:
    """Close the caller's impersonation session. The caller clears the cookie."""
    if data is None:
        raise BadRequestError("No active impersonation session")
    if data.admin_id != admin.id:
        raise ForbiddenError("Invalid impersonation session")

    session = await db.get(ImpersonationSession, data.session_id)
    if session is None or session.ended_at is not None:
        raise BadRequestError("No active impersonation session")
    session.ended_at = now or utcnow()
    await log_audit(
        db,
        admin.id,
        AuditAction.END_IMPERSONATION,
        "User",
        data.target_id,
        {"sessionId": str(data.session_id)},
    )
    await db.commit()
    logger.info(f"Admin {admin.id} ended impersonation session {data.session_id}")
    return EndImpersonationResponse(message="Impersonation session ended")


async def get_impersonation_status(
    db: AsyncSession,
    user: CurrentUser,
    data: Optional[ImpersonationData],
) -> ImpersonationStatusResponse:
    not_impersonating = ImpersonationStatusResponse(is_impersonating=False)
    if data is None:
        return not_impersonating
    # Another admin's cookie is never reported
    if is_admin(user.role) and data.admin_id != user.id:
        return not_impersonating
    session = await db.get(ImpersonationSession, data.session_id)
    if session is None or session.ended_at is not None:
        return not_impersonating

    target = await db.get(User, data.target_id)
    if not target:
        return not_impersonating
    admin = await db.get(User, data.admin_id)

    return ImpersonationStatusResponse(
        is_impersonating=True,
        session_id=data.session_id,
        expires_at=data.expires_at,
        target_user=_user_summary(target),
        admin_user=AdminUserSummary(id=admin.id, email=admin.email, name=admin.display_name) if admin else None,
    )
