import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_audit
from app.core.clock import as_utc, utcnow
from app.core.enums import AuditAction, MissionStatus, MissionType
from app.core.exceptions import InvalidTransitionError, NotFoundError
from app.core.models import Mentor, Mission, Professor

from .schemas import MissionCreate, MissionListResponse, MissionResponse

logger = logging.getLogger(__name__)


def _mission_to_response(m: Mission) -> MissionResponse:
    return MissionResponse.model_validate(m)


async def _get_mission(db: AsyncSession, mission_id: UUID) -> Mission:
    mission = await db.get(Mission, mission_id)
    if not mission:
        raise NotFoundError("Mission not found")
    return mission


def _require_pending(mission: Mission, action: str, done: str) -> None:
    if mission.status != MissionStatus.PENDING.value:
        raise InvalidTransitionError(
            f"Cannot {action} mission with status {mission.status}. Only PENDING missions can be {done}."
        )


async def create_mission(db: AsyncSession, payload: MissionCreate) -> MissionResponse:
    if payload.type == MissionType.MENTOR:
        if not await db.get(Mentor, payload.mentor_id):
            raise NotFoundError("Mentor not found")
        mentor_id, professor_id = payload.mentor_id, None
    else:
        if not await db.get(Professor, payload.professor_id):
            raise NotFoundError("Professor not found")
        mentor_id, professor_id = None, payload.professor_id

    mission = Mission(
        mentor_id=mentor_id,
        professor_id=professor_id,
        description=payload.description,
        amount=payload.amount,
        paid_amount=0,
        currency=payload.currency.value,
        start_date=as_utc(payload.start_date),
        end_date=as_utc(payload.end_date),
        notes=payload.notes,
        status=MissionStatus.PENDING.value,
    )
    db.add(mission)
    await db.commit()
    await db.refresh(mission)
    logger.info(f"Created {payload.type.value} mission {mission.id}")
    return _mission_to_response(mission)


async def list_missions(
    db: AsyncSession,
    *,
    mission_type: Optional[MissionType] = None,
    mentor_id: Optional[UUID] = None,
    professor_id: Optional[UUID] = None,
    status: Optional[MissionStatus] = None,
    currency: Optional[str] = None,
    start_from: Optional[datetime] = None,
    end_before: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> MissionListResponse:
    stmt = select(Mission)
    if mission_type == MissionType.MENTOR:
        stmt = stmt.where(Mission.mentor_id.isnot(None))
    elif mission_type == MissionType.PROFESSOR:
        stmt = stmt.where(Mission.professor_id.isnot(None))
    if mentor_id is not None:
        stmt = stmt.where(Mission.mentor_id == mentor_id)
    if professor_id is not None:
        stmt = stmt.where(Mission.professor_id == professor_id)
    if status is not None:
        stmt = stmt.where(Mission.status == status.value)
    if currency is not None:
        stmt = stmt.where(Mission.currency == currency)
    if start_from is not None:
        stmt = stmt.where(Mission.start_date >= as_utc(start_from))
    if end_before is not None:
        stmt = stmt.where(Mission.end_date <= as_utc(end_before))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    rows = await db.execute(stmt.order_by(Mission.created_at.desc()).limit(limit).offset(offset))
    missions = [_mission_to_response(m) for m in rows.scalars().all()]
    return MissionListResponse(missions=missions, total=total, has_more=offset + len(missions) < total)


async def get_mission(db: AsyncSession, mission_id: UUID) -> MissionResponse:
    return _mission_to_response(await _get_mission(db, mission_id))


async def validate_mission(db: AsyncSession, mission_id: UUID, performed_by: UUID) -> MissionResponse:
    """PENDING -> VALIDATED. Any other status is left untouched."""
    mission = await _get_mission(db, mission_id)
    _require_pending(mission, "validate", "validated")

    now = utcnow()
    mission.status = MissionStatus.VALIDATED.value
    mission.validated_at = now
    await log_audit(
        db,
        performed_by,
        AuditAction.VALIDATE_MISSION,
        "Mission",
        mission.id,
        {"amount": mission.amount, "currency": mission.currency},
    )
    await db.commit()
    await db.refresh(mission)
    logger.info(f"Mission {mission.id} validated by {performed_by}")
    return _mission_to_response(mission)


async def reject_mission(db: AsyncSession, mission_id: UUID, reason: str, performed_by: UUID) -> MissionResponse:
    mission = await _get_mission(db, mission_id)
    _require_pending(mission, "reject", "rejected")

    mission.status = MissionStatus.REJECTED.value
    mission.rejected_at = utcnow()
    mission.rejection_reason = reason
    await log_audit(
        db,
        performed_by,
        AuditAction.REJECT_MISSION,
        "Mission",
        mission.id,
        {"reason": reason},
    )
    await db.commit()
    await db.refresh(mission)
    logger.info(f"Mission {mission.id} rejected by {performed_by}")
    return _mission_to_response(mission)
