"""Payments received from students or sent to mentors/professors, and their allocations."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.session import Base


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_payment_amount_positive"),
        CheckConstraint("type IN ('STUDENT','MENTOR','PROFESSOR')", name="chk_payment_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    type = Column(String(20), nullable=False)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="RESTRICT"), nullable=True, index=True)
    mentor_id = Column(UUID(as_uuid=True), ForeignKey("mentors.id", ondelete="RESTRICT"), nullable=True, index=True)
    professor_id = Column(UUID(as_uuid=True), ForeignKey("professors.id", ondelete="RESTRICT"), nullable=True, index=True)
    mission_id = Column(UUID(as_uuid=True), ForeignKey("missions.id", ondelete="SET NULL"), nullable=True)

    amount = Column(Integer, nullable=False)  # minor units
    currency = Column(String(3), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    payment_method = Column(String(50), nullable=True)  # TRANSFER, CARD, CASH, CHECK
    reference_number = Column(String(100), nullable=True)
    bank_account_id = Column(UUID(as_uuid=True), ForeignKey("bank_accounts.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    allocations = relationship("PaymentAllocation", back_populates="payment")


class PaymentAllocation(Base):
    """Part of a payment applied to one schedule. Never edited after creation."""

    __tablename__ = "payment_allocations"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_payment_allocation_amount_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    payment_id = Column(UUID(as_uuid=True), ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    schedule_id = Column(
        UUID(as_uuid=True),
        ForeignKey("payment_schedules.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    payment = relationship("Payment", back_populates="allocations")
    schedule = relationship("PaymentSchedule", back_populates="allocations")
