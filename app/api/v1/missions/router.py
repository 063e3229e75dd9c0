"""Missions router: create, list, validate and reject mentor/professor missions. Admin only."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_admin
from app.auth.schemas import CurrentUser
from app.core.enums import Currency, MissionStatus, MissionType
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import MissionCreate, MissionListResponse, MissionReject, MissionResponse
from . import service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin/missions", tags=["missions"])


@router.post(
    "",
    response_model=MissionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_mission(
    payload: MissionCreate,
    db: AsyncSession = Depends(get_db),
) -> MissionResponse:
    try:
        return await service.create_mission(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Unexpected error while creating mission: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.get(
    "",
    response_model=MissionListResponse,
    dependencies=[Depends(require_admin)],
)
async def list_missions(
    mission_type: Optional[MissionType] = Query(None, alias="type"),
    mentor_id: Optional[UUID] = Query(None),
    professor_id: Optional[UUID] = Query(None),
    mission_status: Optional[MissionStatus] = Query(None, alias="status"),
    currency: Optional[Currency] = Query(None),
    start_date: Optional[datetime] = Query(None, description="Missions starting on or after"),
    end_date: Optional[datetime] = Query(None, description="Missions ending on or before"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> MissionListResponse:
    return await service.list_missions(
        db,
        mission_type=mission_type,
        mentor_id=mentor_id,
        professor_id=professor_id,
        status=mission_status,
        currency=currency.value if currency else None,
        start_from=start_date,
        end_before=end_date,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{mission_id}",
    response_model=MissionResponse,
    dependencies=[Depends(require_admin)],
)
async def get_mission(
    mission_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MissionResponse:
    try:
        return await service.get_mission(db, mission_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Unexpected error while loading mission {mission_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.post("/{mission_id}/validate", response_model=MissionResponse)
async def validate_mission(
    mission_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> MissionResponse:
    try:
        return await service.validate_mission(db, mission_id, current_user.id)
    except ServiceError as e:
        logger.warning(f"Mission {mission_id} validation refused: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Unexpected error while validating mission {mission_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.post("/{mission_id}/reject", response_model=MissionResponse)
async def reject_mission(
    mission_id: UUID,
    payload: MissionReject,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> MissionResponse:
    try:
        return await service.reject_mission(db, mission_id, payload.reason, current_user.id)
    except ServiceError as e:
        logger.warning(f"Mission {mission_id} rejection refused: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Unexpected error while rejecting mission {mission_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
