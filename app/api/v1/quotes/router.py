"""Quotes router: create, list, send and validate student quotes. Admin only."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_admin
from app.auth.schemas import CurrentUser
from app.core.enums import QuoteStatus
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import QuoteCreate, QuoteDetailResponse, QuoteListResponse, QuoteResponse
from . import service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin/quotes", tags=["quotes"])


@router.post(
    "",
    response_model=QuoteDetailResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_quote(
    payload: QuoteCreate,
    db: AsyncSession = Depends(get_db),
) -> QuoteDetailResponse:
    try:
        return await service.create_quote(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Unexpected error while creating quote: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.get(
    "",
    response_model=QuoteListResponse,
    dependencies=[Depends(require_admin)],
)
async def list_quotes(
    student_id: Optional[UUID] = Query(None),
    quote_status: Optional[QuoteStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> QuoteListResponse:
    return await service.list_quotes(
        db, student_id=student_id, status=quote_status, limit=limit, offset=offset
    )


@router.get(
    "/{quote_id}",
    response_model=QuoteDetailResponse,
    dependencies=[Depends(require_admin)],
)
async def get_quote(
    quote_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> QuoteDetailResponse:
    try:
        return await service.get_quote(db, quote_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Unexpected error while loading quote {quote_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.post("/{quote_id}/send", response_model=QuoteResponse)
async def send_quote(
    quote_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> QuoteResponse:
    try:
        return await service.send_quote(db, quote_id, current_user.id)
    except ServiceError as e:
        logger.warning(f"Quote {quote_id} send refused: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Unexpected error while sending quote {quote_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.post("/{quote_id}/validate", response_model=QuoteDetailResponse)
async def validate_quote(
    quote_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> QuoteDetailResponse:
    try:
        return await service.validate_quote(db, quote_id, current_user.id)
    except ServiceError as e:
        logger.warning(f"Quote {quote_id} validation refused: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Unexpected error while validating quote {quote_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
