"""Missions: billable work assigned to a mentor or a professor."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID

from app.core.clock import utcnow
from app.core.enums import MissionStatus
from app.db.session import Base


class Mission(Base):
    __tablename__ = "missions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    mentor_id = Column(UUID(as_uuid=True), ForeignKey("mentors.id", ondelete="CASCADE"), nullable=True, index=True)
    professor_id = Column(UUID(as_uuid=True), ForeignKey("professors.id", ondelete="CASCADE"), nullable=True, index=True)
    description = Column(Text, nullable=False)
    amount = Column(Integer, nullable=False)  # minor units
    paid_amount = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    notes = Column(Text, nullable=True)
    # PENDING -> VALIDATED | REJECTED; VALIDATED -> PAID once fully paid
    status = Column(String(20), nullable=False, default=MissionStatus.PENDING.value)
    validated_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
