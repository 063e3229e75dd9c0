"""Impersonation router: start, end and status of an admin viewing the app as another user."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.impersonation import (
    ImpersonationData,
    clear_impersonation_cookie,
    get_impersonation,
    set_impersonation_cookie,
)
from app.auth.rbac import require_admin
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    EndImpersonationResponse,
    ImpersonationStatusResponse,
    StartImpersonationRequest,
    StartImpersonationResponse,
)
from . import service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin/impersonate", tags=["impersonation"])


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip")


def _http_error(e: ServiceError, response: Response) -> HTTPException:
    # Keep a pending cookie deletion on error responses
    set_cookie = response.headers.get("set-cookie")
    return HTTPException(
        status_code=e.status_code,
        detail=e.message,
        headers={"set-cookie": set_cookie} if set_cookie else None,
    )


@router.post("", response_model=StartImpersonationResponse)
async def start_impersonation(
    payload: StartImpersonationRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StartImpersonationResponse:
    try:
        body, token = await service.start_impersonation(
            db,
            current_user,
            payload.target_user_id,
            ip_address=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except ServiceError as e:
        logger.warning(f"Impersonation of {payload.target_user_id} refused for {current_user.id}: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Unexpected error while starting impersonation: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
    set_impersonation_cookie(response, token)
    return body


@router.post("/end", response_model=EndImpersonationResponse)
async def end_impersonation(
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
    impersonation: Optional[ImpersonationData] = Depends(get_impersonation),
) -> EndImpersonationResponse:
    try:
        body = await service.end_impersonation(db, current_user, impersonation)
    except ServiceError as e:
        logger.warning(f"End of impersonation refused for {current_user.id}: {e.message}")
        if impersonation is not None and e.status_code == status.HTTP_400_BAD_REQUEST:
            # Cookie points at a session that is already closed
            clear_impersonation_cookie(response)
        raise _http_error(e, response)
    except Exception as e:
        logger.exception(f"Unexpected error while ending impersonation: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
    clear_impersonation_cookie(response)
    return body


@router.get("/status", response_model=ImpersonationStatusResponse)
async def impersonation_status(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    impersonation: Optional[ImpersonationData] = Depends(get_impersonation),
) -> ImpersonationStatusResponse:
    return await service.get_impersonation_status(db, current_user, impersonation)
