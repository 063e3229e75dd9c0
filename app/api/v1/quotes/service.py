"""Quotes service: creation with its payment plan, send, and validation with schedule activation."""

import logging
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.payments.allocation import derive_schedule_status
from app.core.audit import log_audit
from app.core.clock import as_utc, utcnow
from app.core.enums import AuditAction, QuoteStatus, ScheduleStatus
from app.core.exceptions import BadRequestError, InvalidTransitionError, NotFoundError
from app.core.models import Pack, PaymentSchedule, Quote, QuoteItem, Student
from app.db.session import unit_of_work

from .schemas import (
    QuoteCreate,
    QuoteDetailResponse,
    QuoteItemResponse,
    QuoteListResponse,
    QuoteResponse,
    QuoteScheduleResponse,
)

logger = logging.getLogger(__name__)


def _quote_to_response(q: Quote) -> QuoteResponse:
    return QuoteResponse.model_validate(q)


async def _get_quote(db: AsyncSession, quote_id: UUID) -> Quote:
    quote = await db.get(Quote, quote_id)
    if not quote:
        raise NotFoundError("Quote not found")
    return quote


async def _quote_schedules(db: AsyncSession, quote_id: UUID) -> List[PaymentSchedule]:
    rows = await db.execute(
        select(PaymentSchedule)
        .where(PaymentSchedule.quote_id == quote_id)
        .order_by(PaymentSchedule.due_date)
    )
    return list(rows.scalars().all())


async def _quote_detail(db: AsyncSession, quote: Quote) -> QuoteDetailResponse:
    item_rows = (
        await db.execute(
            select(QuoteItem, Pack.name)
            .join(Pack, QuoteItem.pack_id == Pack.id)
            .where(QuoteItem.quote_id == quote.id)
        )
    ).all()
    schedules = await _quote_schedules(db, quote.id)
    return QuoteDetailResponse(
        **_quote_to_response(quote).model_dump(),
        items=[
            QuoteItemResponse(id=item.id, pack_id=item.pack_id, pack_name=pack_name, amount=item.amount)
            for item, pack_name in item_rows
        ],
        payment_schedules=[QuoteScheduleResponse.model_validate(s) for s in schedules],
    )


async def generate_quote_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    """Next QUOTE-YYYY-NNN for the current year, e.g. QUOTE-2025-001."""
    prefix = f"QUOTE-{(now or utcnow()).year}-"
    last = (
        await db.execute(
            select(Quote.quote_number)
            .where(Quote.quote_number.startswith(prefix))
            .order_by(Quote.quote_number.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    next_number = 1
    if last:
        next_number = int(last[len(prefix):]) + 1
    return f"{prefix}{next_number:03d}"


async def create_quote(db: AsyncSession, payload: QuoteCreate) -> QuoteDetailResponse:
    student = await db.get(Student, payload.student_id)
    if not student:
        raise BadRequestError("Invalid student ID")

    pack_ids = {line.pack_id for line in payload.packs}
    rows = await db.execute(select(Pack).where(Pack.id.in_(pack_ids)))
    packs: Dict[UUID, Pack] = {p.id: p for p in rows.scalars().all()}
    if len(packs) != len(pack_ids):
        raise BadRequestError("One or more packs not found")

    prices = [
        line.custom_price if line.custom_price is not None else packs[line.pack_id].price
        for line in payload.packs
    ]
    total_amount = sum(prices)

    schedule_total = sum(line.amount for line in payload.payment_schedule)
    if schedule_total != total_amount:
        raise BadRequestError(
            f"Payment schedule total ({schedule_total}) does not match quote total ({total_amount})"
        )
    currency = payload.payment_schedule[0].currency
    if any(line.currency != currency for line in payload.payment_schedule):
        raise BadRequestError("All payment schedules must use the same currency")

    async with unit_of_work(db):
        quote = Quote(
            quote_number=await generate_quote_number(db),
            student_id=student.id,
            total_amount=total_amount,
            currency=currency.value,
            status=QuoteStatus.DRAFT.value,
            notes=payload.notes,
        )
        db.add(quote)
        await db.flush()
        for line, price in zip(payload.packs, prices):
            db.add(QuoteItem(quote_id=quote.id, pack_id=line.pack_id, amount=price))
        for line in payload.payment_schedule:
            db.add(
                PaymentSchedule(
                    quote_id=quote.id,
                    student_id=student.id,
                    amount=line.amount,
                    paid_amount=0,
                    currency=line.currency.value,
                    due_date=as_utc(line.due_date),
                    status=ScheduleStatus.PENDING.value,
                )
            )
        await db.flush()
    await db.refresh(quote)
    logger.info(f"Created quote {quote.quote_number} ({quote.total_amount} {quote.currency}) for student {student.id}")
    return await _quote_detail(db, quote)


async def list_quotes(
    db: AsyncSession,
    *,
    student_id: Optional[UUID] = None,
    status: Optional[QuoteStatus] = None,
    limit: int = 20,
    offset: int = 0,
) -> QuoteListResponse:
    stmt = select(Quote)
    if student_id is not None:
        stmt = stmt.where(Quote.student_id == student_id)
    if status is not None:
        stmt = stmt.where(Quote.status == status.value)
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    rows = await db.execute(stmt.order_by(Quote.created_at.desc()).limit(limit).offset(offset))
    quotes = [_quote_to_response(q) for q in rows.scalars().all()]
    return QuoteListResponse(quotes=quotes, total=total, has_more=offset + len(quotes) < total)


async def get_quote(db: AsyncSession, quote_id: UUID) -> QuoteDetailResponse:
    return await _quote_detail(db, await _get_quote(db, quote_id))


async def send_quote(db: AsyncSession, quote_id: UUID, performed_by: UUID) -> QuoteResponse:
    """DRAFT -> SENT. Delivering the quote to the student happens outside this service."""
    quote = await _get_quote(db, quote_id)
    if quote.status != QuoteStatus.DRAFT.value:
        raise InvalidTransitionError(
            f"Cannot send quote with status {quote.status}. Only DRAFT quotes can be sent."
        )
    quote.status = QuoteStatus.SENT.value
    quote.sent_at = utcnow()
    await log_audit(
        db,
        performed_by,
        AuditAction.SEND_QUOTE,
        "Quote",
        quote.id,
        {"quoteNumber": quote.quote_number},
    )
    await db.commit()
    await db.refresh(quote)
    logger.info(f"Quote {quote.quote_number} sent by {performed_by}")
    return _quote_to_response(quote)


async def activate_schedules(db: AsyncSession, quote_id: UUID, now: datetime) -> List[PaymentSchedule]:
    """Open the quote's payment plan. Each status follows paid amount first, then due date."""
    schedules = await _quote_schedules(db, quote_id)
    for schedule in schedules:
        schedule.status = derive_schedule_status(schedule.paid_amount or 0, schedule.amount, schedule.due_date, now)
    await db.flush()
    return schedules


async def validate_quote(
    db: AsyncSession,
    quote_id: UUID,
    performed_by: UUID,
    now: Optional[datetime] = None,
) -> QuoteDetailResponse:
    """SENT -> VALIDATED together with schedule activation, in one transaction."""
    quote = await _get_quote(db, quote_id)
    if quote.status != QuoteStatus.SENT.value:
        raise InvalidTransitionError(
            f"Cannot validate quote with status {quote.status}. Only SENT quotes can be validated."
        )

    now = now or utcnow()
    async with unit_of_work(db):
        quote.status = QuoteStatus.VALIDATED.value
        quote.validated_at = now
        schedules = await activate_schedules(db, quote.id, now)
        await log_audit(
            db,
            performed_by,
            AuditAction.VALIDATE_QUOTE,
            "Quote",
            quote.id,
            {"quoteNumber": quote.quote_number, "schedules": len(schedules)},
        )
    await db.refresh(quote)
    logger.info(f"Quote {quote.quote_number} validated by {performed_by}, {len(schedules)} schedule(s) activated")
    return await _quote_detail(db, quote)
