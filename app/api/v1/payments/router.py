"""Payments router: record payments, allocation suggestions, allocate, schedules overview."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_capability
from app.auth.schemas import CurrentUser
from app.core.enums import Currency
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    AllocatePaymentRequest,
    AllocationResultResponse,
    AllocationSuggestionResponse,
    PaymentDetailResponse,
    PaymentResponse,
    RecordStudentPaymentResponse,
    RefreshOverdueResponse,
    StudentPaymentCreate,
    StudentSchedulesResponse,
    TeamPaymentCreate,
)
from . import service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin/payments", tags=["payments"])


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Unexpected error while {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )


# --- Recording ---
@router.post(
    "/student",
    response_model=RecordStudentPaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_student_payment(
    payload: StudentPaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability("access_accounting")),
) -> RecordStudentPaymentResponse:
    try:
        return await service.record_student_payment(db, payload, current_user.id)
    except ServiceError as e:
        logger.warning(f"Student payment rejected for student {payload.student_id}: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise _internal_error("recording student payment", e)


@router.post(
    "/team",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_team_payment(
    payload: TeamPaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability("access_accounting")),
) -> PaymentResponse:
    try:
        return await service.record_team_payment(db, payload, current_user.id)
    except ServiceError as e:
        logger.warning(f"Team payment rejected for mission {payload.mission_id}: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise _internal_error("recording team payment", e)


# --- Schedules ---
@router.get(
    "/student/{student_id}/schedules",
    response_model=StudentSchedulesResponse,
    dependencies=[Depends(require_capability("access_accounting"))],
)
async def list_student_schedules(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentSchedulesResponse:
    try:
        return await service.list_student_schedules(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise _internal_error(f"listing schedules of student {student_id}", e)


@router.post(
    "/schedules/refresh-overdue",
    response_model=RefreshOverdueResponse,
    dependencies=[Depends(require_capability("access_accounting"))],
)
async def refresh_overdue_schedules(
    db: AsyncSession = Depends(get_db),
) -> RefreshOverdueResponse:
    try:
        return await service.refresh_overdue_schedules(db)
    except Exception as e:
        raise _internal_error("refreshing overdue schedules", e)


# --- Allocation ---
@router.get(
    "/{payment_id}/allocation-suggestions",
    response_model=AllocationSuggestionResponse,
    dependencies=[Depends(require_capability("access_accounting"))],
)
async def suggest_allocation(
    payment_id: UUID,
    student_id: Optional[UUID] = Query(None),
    mentor_id: Optional[UUID] = Query(None),
    professor_id: Optional[UUID] = Query(None),
    currency: Optional[Currency] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> AllocationSuggestionResponse:
    try:
        return await service.suggest_allocation_for_payment(
            db,
            payment_id,
            student_id=student_id,
            mentor_id=mentor_id,
            professor_id=professor_id,
            currency=currency.value if currency else None,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise _internal_error(f"suggesting allocation for payment {payment_id}", e)


@router.post(
    "/{payment_id}/allocate",
    response_model=AllocationResultResponse,
)
async def allocate_payment(
    payment_id: UUID,
    payload: AllocatePaymentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability("access_accounting")),
) -> AllocationResultResponse:
    try:
        return await service.apply_allocation(db, payment_id, payload.allocations, current_user.id)
    except ServiceError as e:
        logger.warning(f"Allocation rejected for payment {payment_id}: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise _internal_error("allocating payment", e)


@router.get(
    "/{payment_id}",
    response_model=PaymentDetailResponse,
    dependencies=[Depends(require_capability("access_accounting"))],
)
async def get_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> PaymentDetailResponse:
    try:
        return await service.get_payment_detail(db, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        raise _internal_error(f"loading payment {payment_id}", e)
