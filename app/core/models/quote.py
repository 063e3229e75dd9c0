"""Quotes: a priced proposal of packs plus the payment plan that comes with it."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.core.enums import QuoteStatus
from app.db.session import Base


class Quote(Base):
    __tablename__ = "quotes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quote_number = Column(String(30), nullable=False, unique=True)  # QUOTE-YYYY-NNN
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    total_amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    # DRAFT -> SENT -> VALIDATED; REJECTED / EXPIRED set elsewhere
    status = Column(String(20), nullable=False, default=QuoteStatus.DRAFT.value)
    notes = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    validated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    items = relationship("QuoteItem", back_populates="quote", cascade="all, delete-orphan")
    payment_schedules = relationship("PaymentSchedule", back_populates="quote")


class QuoteItem(Base):
    __tablename__ = "quote_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quote_id = Column(UUID(as_uuid=True), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    pack_id = Column(UUID(as_uuid=True), ForeignKey("packs.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Integer, nullable=False)  # custom price or pack price at quoting time

    quote = relationship("Quote", back_populates="items")
