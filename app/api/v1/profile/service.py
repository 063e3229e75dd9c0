import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.auth.security import hash_password, verify_password
from app.core.audit import log_audit
from app.core.enums import AuditAction
from app.core.exceptions import BadRequestError, NotFoundError
from app.core.models import User

from .schemas import ChangePasswordRequest, ChangePasswordResponse

logger = logging.getLogger(__name__)


async def change_password(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: ChangePasswordRequest,
) -> ChangePasswordResponse:
    user = await db.get(User, current_user.id)
    if not user:
        raise NotFoundError("User not found")
    if not user.password_hash or not verify_password(payload.current_password, user.password_hash):
        raise BadRequestError("Current password is incorrect")

    user.password_hash = hash_password(payload.new_password)
    await log_audit(
        db,
        user.id,
        AuditAction.CHANGE_PASSWORD,
        "User",
        user.id,
        {"email": user.email},
    )
    await db.commit()
    logger.info(f"Password changed for user {user.id}")
    return ChangePasswordResponse(message="Password updated")
