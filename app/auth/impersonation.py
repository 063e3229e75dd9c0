"""
Impersonation capability cookie.

The cookie carries {adminId, targetId, sessionId, exp} as an HS256-signed JWT so it cannot
be forged or edited client-side. Expiry is checked lazily on every read: an expired or
tampered cookie is treated as absent and deleted.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID

from fastapi import Request, Response
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.clock import utcnow
from app.core.config import settings

logger = logging.getLogger(__name__)

IMPERSONATION_COOKIE_NAME = "performup_impersonate"
IMPERSONATION_COOKIE_PATH = "/"


class ImpersonationData(BaseModel):
    admin_id: UUID
    target_id: UUID
    session_id: UUID
    exp: int  # epoch seconds

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


def issue_impersonation_token(
    admin_id: UUID,
    target_id: UUID,
    session_id: UUID,
    now: Optional[datetime] = None,
) -> Tuple[str, ImpersonationData]:
    now = now or utcnow()
    exp = int((now + timedelta(seconds=settings.impersonation_ttl_seconds)).timestamp())
    data = ImpersonationData(admin_id=admin_id, target_id=target_id, session_id=session_id, exp=exp)
    claims = {
        "adminId": str(admin_id),
        "targetId": str(target_id),
        "sessionId": str(session_id),
        "exp": exp,
    }
    token = jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return token, data


def decode_impersonation_token(token: str, now: Optional[datetime] = None) -> Optional[ImpersonationData]:
    """Return the token payload, or None when it is tampered, malformed or expired."""
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            # exp is compared below against the caller's clock
            options={"verify_exp": False},
        )
        data = ImpersonationData(
            admin_id=UUID(claims["adminId"]),
            target_id=UUID(claims["targetId"]),
            session_id=UUID(claims["sessionId"]),
            exp=int(claims["exp"]),
        )
    except (JWTError, KeyError, TypeError, ValueError):
        logger.warning("Discarding invalid impersonation cookie")
        return None

    now = now or utcnow()
    if data.exp < now.timestamp():
        return None
    return data


def set_impersonation_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        IMPERSONATION_COOKIE_NAME,
        token,
        max_age=settings.impersonation_ttl_seconds,
        path=IMPERSONATION_COOKIE_PATH,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_impersonation_cookie(response: Response) -> None:
    response.delete_cookie(
        IMPERSONATION_COOKIE_NAME,
        path=IMPERSONATION_COOKIE_PATH,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


async def get_impersonation(request: Request, response: Response) -> Optional[ImpersonationData]:
    """Dependency: current impersonation capability, deleting the cookie when it is no longer valid."""
    token = request.cookies.get(IMPERSONATION_COOKIE_NAME)
    if not token:
        return None
    data = decode_impersonation_token(token)
    if data is None:
        clear_impersonation_cookie(response)
    return data
