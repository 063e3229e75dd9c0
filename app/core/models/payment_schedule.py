"""Payment schedule: one due obligation (amount by due date) with its running paid amount."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.core.enums import ScheduleStatus
from app.db.session import Base


class PaymentSchedule(Base):
    """
    Owned by exactly one of student / mentor / professor.
    paid_amount only moves through the allocation engine.
    """

    __tablename__ = "payment_schedules"
    __table_args__ = (
        CheckConstraint("paid_amount >= 0", name="chk_payment_schedule_paid_non_negative"),
        CheckConstraint("paid_amount <= amount", name="chk_payment_schedule_paid_le_amount"),
        CheckConstraint(
            "status IN ('PENDING','PARTIAL','PAID','OVERDUE')",
            name="chk_payment_schedule_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quote_id = Column(UUID(as_uuid=True), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=True, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=True, index=True)
    mentor_id = Column(UUID(as_uuid=True), ForeignKey("mentors.id", ondelete="CASCADE"), nullable=True, index=True)
    professor_id = Column(UUID(as_uuid=True), ForeignKey("professors.id", ondelete="CASCADE"), nullable=True, index=True)

    amount = Column(Integer, nullable=False)  # minor units
    paid_amount = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=ScheduleStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    quote = relationship("Quote", back_populates="payment_schedules")
    allocations = relationship("PaymentAllocation", back_populates="schedule")

    @property
    def remaining_amount(self) -> int:
        return (self.amount or 0) - (self.paid_amount or 0)
