"""Payments service: recording payments, allocation to schedules, schedule overviews. Financial logic with audit."""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_audit
from app.core.clock import as_utc, utcnow
from app.core.enums import AuditAction, MissionStatus, PaymentType, QuoteStatus, ScheduleStatus
from app.core.exceptions import (
    BadRequestError,
    InvalidAllocationError,
    InvalidTransitionError,
    NotFoundError,
)
from app.core.models import (
    BankAccount,
    Mentor,
    Mission,
    Payment,
    PaymentAllocation,
    PaymentSchedule,
    Professor,
    Quote,
    Student,
)
from app.db.session import unit_of_work

from .allocation import OPEN_STATUSES, allocated_schedule_status, derive_schedule_status, plan_allocation
from .schemas import (
    AllocationItem,
    AllocationResultItem,
    AllocationResultResponse,
    AllocationStats,
    AllocationSuggestionItem,
    AllocationSuggestionResponse,
    CurrencySummary,
    PaymentAllocationResponse,
    PaymentDetailResponse,
    PaymentResponse,
    PaymentScheduleResponse,
    RecordStudentPaymentResponse,
    RefreshOverdueResponse,
    StudentPaymentCreate,
    StudentSchedulesResponse,
    TeamPaymentCreate,
)

logger = logging.getLogger(__name__)

_OWNER_FIELDS = ("student_id", "mentor_id", "professor_id")


def _pay_to_response(p: Payment) -> PaymentResponse:
    return PaymentResponse.model_validate(p)


def _schedule_to_response(s: PaymentSchedule, quote_number: Optional[str] = None) -> PaymentScheduleResponse:
    return PaymentScheduleResponse(
        id=s.id,
        quote_id=s.quote_id,
        quote_number=quote_number,
        student_id=s.student_id,
        mentor_id=s.mentor_id,
        professor_id=s.professor_id,
        amount=s.amount,
        paid_amount=s.paid_amount or 0,
        remaining_amount=s.remaining_amount,
        currency=s.currency,
        due_date=s.due_date,
        paid_date=s.paid_date,
        status=s.status,
    )


async def _get_payment(db: AsyncSession, payment_id: UUID) -> Payment:
    payment = await db.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


async def _allocated_total(db: AsyncSession, payment_id: UUID) -> int:
    total = (
        await db.execute(
            select(func.coalesce(func.sum(PaymentAllocation.amount), 0)).where(
                PaymentAllocation.payment_id == payment_id
            )
        )
    ).scalar()
    return int(total or 0)


async def _check_bank_account(db: AsyncSession, bank_account_id: Optional[UUID], currency: str) -> None:
    if bank_account_id is None:
        return
    account = await db.get(BankAccount, bank_account_id)
    if not account or not account.is_active:
        raise BadRequestError("Bank account not found")
    if account.currency != currency:
        raise BadRequestError(
            f"Bank account currency ({account.currency}) does not match payment currency ({currency})"
        )


def _owner_mismatch(payment: Payment, schedule: PaymentSchedule) -> bool:
    for attr in _OWNER_FIELDS:
        owner = getattr(payment, attr)
        if owner is not None and getattr(schedule, attr) != owner:
            return True
    return False


def _payable_schedules():
    """Schedules that can take money: standalone ones, or those of a validated quote."""
    return (
        select(PaymentSchedule)
        .outerjoin(Quote, PaymentSchedule.quote_id == Quote.id)
        .where(or_(PaymentSchedule.quote_id.is_(None), Quote.status == QuoteStatus.VALIDATED.value))
    )


# --- Suggestion ---
async def suggest_allocation(
    db: AsyncSession,
    amount: int,
    *,
    student_id: Optional[UUID] = None,
    mentor_id: Optional[UUID] = None,
    professor_id: Optional[UUID] = None,
    currency: Optional[str] = None,
) -> AllocationSuggestionResponse:
    """Greedy plan over open schedules matching the filter. Nothing is written."""
    stmt = _payable_schedules().where(PaymentSchedule.status.in_(OPEN_STATUSES))
    if student_id is not None:
        stmt = stmt.where(PaymentSchedule.student_id == student_id)
    if mentor_id is not None:
        stmt = stmt.where(PaymentSchedule.mentor_id == mentor_id)
    if professor_id is not None:
        stmt = stmt.where(PaymentSchedule.professor_id == professor_id)
    if currency is not None:
        stmt = stmt.where(PaymentSchedule.currency == currency)
    schedules = (await db.execute(stmt.order_by(PaymentSchedule.due_date))).scalars().all()

    plan = plan_allocation(amount, schedules)
    return AllocationSuggestionResponse(
        amount=amount,
        suggestions=[
            AllocationSuggestionItem(
                schedule_id=s.schedule_id,
                due_date=s.due_date,
                status=s.status,
                amount=s.amount,
                paid_amount=s.paid_amount,
                remaining=s.remaining,
                suggested_allocation=s.suggested_allocation,
                priority=s.priority,
            )
            for s in plan.suggestions
        ],
        total_suggested=plan.total_suggested,
        unallocated=plan.unallocated,
    )


async def suggest_allocation_for_payment(
    db: AsyncSession,
    payment_id: UUID,
    *,
    student_id: Optional[UUID] = None,
    mentor_id: Optional[UUID] = None,
    professor_id: Optional[UUID] = None,
    currency: Optional[str] = None,
) -> AllocationSuggestionResponse:
    """Suggest where the unallocated part of a payment should go. Filters default to the payment's owner and currency."""
    payment = await _get_payment(db, payment_id)
    remaining = payment.amount - await _allocated_total(db, payment.id)
    if remaining <= 0:
        return AllocationSuggestionResponse(amount=0, suggestions=[], total_suggested=0, unallocated=0)
    return await suggest_allocation(
        db,
        remaining,
        student_id=student_id or payment.student_id,
        mentor_id=mentor_id or payment.mentor_id,
        professor_id=professor_id or payment.professor_id,
        currency=currency or payment.currency,
    )


# --- Application ---
async def _apply_allocations(
    db: AsyncSession,
    payment: Payment,
    allocations: Sequence[AllocationItem],
) -> AllocationResultResponse:
    """Validate the whole batch, then write it. Caller owns the transaction."""
    if not allocations:
        raise InvalidAllocationError("At least one allocation is required")
    for item in allocations:
        if item.amount <= 0:
            raise InvalidAllocationError("Allocation amount must be positive")

    already_allocated = await _allocated_total(db, payment.id)
    total_new = sum(item.amount for item in allocations)
    if already_allocated + total_new > payment.amount:
        raise InvalidAllocationError(
            f"Total allocations ({already_allocated + total_new}) exceed payment amount ({payment.amount})"
        )

    schedule_ids = {item.schedule_id for item in allocations}
    rows = await db.execute(
        select(PaymentSchedule, Quote.status)
        .outerjoin(Quote, PaymentSchedule.quote_id == Quote.id)
        .where(PaymentSchedule.id.in_(schedule_ids))
    )
    schedules: Dict[UUID, PaymentSchedule] = {}
    for schedule, quote_status in rows.all():
        if schedule.quote_id is not None and quote_status != QuoteStatus.VALIDATED.value:
            raise InvalidAllocationError(
                f"Schedule {schedule.id} belongs to a quote with status {quote_status}. "
                "Only schedules of VALIDATED quotes can be paid."
            )
        schedules[schedule.id] = schedule

    # Running paid amount per schedule, so a batch hitting one schedule twice is checked cumulatively
    projected: Dict[UUID, int] = {}
    for item in allocations:
        schedule = schedules.get(item.schedule_id)
        if schedule is None:
            raise InvalidAllocationError(f"Schedule {item.schedule_id} not found")
        if schedule.currency != payment.currency:
            raise InvalidAllocationError(
                f"Schedule currency ({schedule.currency}) does not match payment currency ({payment.currency})"
            )
        if _owner_mismatch(payment, schedule):
            raise InvalidAllocationError(f"Schedule {schedule.id} does not belong to the payer")
        paid_so_far = projected.get(schedule.id, schedule.paid_amount or 0)
        if paid_so_far + item.amount > schedule.amount:
            raise InvalidAllocationError(
                f"Allocation amount ({item.amount}) exceeds schedule remaining amount ({schedule.amount - paid_so_far})"
            )
        projected[schedule.id] = paid_so_far + item.amount

    now = utcnow()
    results: List[AllocationResultItem] = []
    for item in allocations:
        schedule = schedules[item.schedule_id]
        db.add(
            PaymentAllocation(
                payment_id=payment.id,
                schedule_id=schedule.id,
                amount=item.amount,
                currency=payment.currency,
            )
        )
        schedule.paid_amount = (schedule.paid_amount or 0) + item.amount
        schedule.status = allocated_schedule_status(schedule.paid_amount, schedule.amount)
        schedule.paid_date = now if schedule.status == ScheduleStatus.PAID.value else None
        results.append(
            AllocationResultItem(
                schedule_id=schedule.id,
                allocated_amount=item.amount,
                new_paid_amount=schedule.paid_amount,
                new_status=schedule.status,
                due_date=schedule.due_date,
            )
        )
    await db.flush()

    return AllocationResultResponse(
        payment_id=payment.id,
        allocations=results,
        total_allocated=total_new,
        remaining_unallocated=payment.amount - already_allocated - total_new,
    )


async def apply_allocation(
    db: AsyncSession,
    payment_id: UUID,
    allocations: Sequence[AllocationItem],
    performed_by: Optional[UUID],
) -> AllocationResultResponse:
    """Apply allocations to a payment. Every allocation lands or none does."""
    async with unit_of_work(db):
        payment = await _get_payment(db, payment_id)
        result = await _apply_allocations(db, payment, allocations)
        await log_audit(
            db,
            performed_by,
            AuditAction.ALLOCATE_PAYMENT,
            "Payment",
            payment.id,
            {
                "allocations": [r.model_dump(mode="json") for r in result.allocations],
                "totalAllocated": result.total_allocated,
            },
        )
    logger.info(
        f"Payment {payment_id} allocated to {len(result.allocations)} schedule(s), "
        f"{result.remaining_unallocated} left unallocated"
    )
    return result


async def get_payment_detail(db: AsyncSession, payment_id: UUID) -> PaymentDetailResponse:
    payment = await _get_payment(db, payment_id)
    rows = (
        await db.execute(
            select(PaymentAllocation, PaymentSchedule.status)
            .join(PaymentSchedule, PaymentAllocation.schedule_id == PaymentSchedule.id)
            .where(PaymentAllocation.payment_id == payment.id)
            .order_by(PaymentAllocation.created_at)
        )
    ).all()
    total_allocated = sum(a.amount for a, _ in rows)
    schedule_statuses = {a.schedule_id: st for a, st in rows}
    stats = AllocationStats(
        total_allocated=total_allocated,
        remaining_amount=payment.amount - total_allocated,
        schedules_fully_paid=sum(1 for st in schedule_statuses.values() if st == ScheduleStatus.PAID.value),
        schedules_partially_paid=sum(1 for st in schedule_statuses.values() if st == ScheduleStatus.PARTIAL.value),
    )
    return PaymentDetailResponse(
        **_pay_to_response(payment).model_dump(),
        allocations=[PaymentAllocationResponse.model_validate(a) for a, _ in rows],
        stats=stats,
    )


# --- Recording ---
async def record_student_payment(
    db: AsyncSession,
    payload: StudentPaymentCreate,
    created_by: Optional[UUID],
) -> RecordStudentPaymentResponse:
    """Record money received from a student, applying any allocations in the same transaction."""
    student = await db.get(Student, payload.student_id)
    if not student:
        raise NotFoundError("Student not found")
    await _check_bank_account(db, payload.bank_account_id, payload.currency.value)

    allocation_result = None
    async with unit_of_work(db):
        payment = Payment(
            type=PaymentType.STUDENT.value,
            student_id=student.id,
            amount=payload.amount,
            currency=payload.currency.value,
            payment_date=as_utc(payload.payment_date),
            payment_method=(payload.payment_method or "").strip().upper() or None,
            reference_number=(payload.reference_number or "").strip() or None,
            bank_account_id=payload.bank_account_id,
            notes=payload.notes,
            created_by=created_by,
        )
        db.add(payment)
        await db.flush()
        if payload.allocations:
            allocation_result = await _apply_allocations(db, payment, payload.allocations)
            await log_audit(
                db,
                created_by,
                AuditAction.ALLOCATE_PAYMENT,
                "Payment",
                payment.id,
                {
                    "allocations": [r.model_dump(mode="json") for r in allocation_result.allocations],
                    "totalAllocated": allocation_result.total_allocated,
                },
            )
    await db.refresh(payment)
    logger.info(f"Recorded student payment {payment.id} of {payment.amount} {payment.currency}")
    return RecordStudentPaymentResponse(payment=_pay_to_response(payment), allocation=allocation_result)


async def record_team_payment(
    db: AsyncSession,
    payload: TeamPaymentCreate,
    created_by: Optional[UUID],
) -> PaymentResponse:
    """Pay a mentor or professor for a validated mission; the mission turns PAID once fully paid."""
    if payload.mentor_id is not None:
        payee = await db.get(Mentor, payload.mentor_id)
        payment_type = PaymentType.MENTOR
        if not payee:
            raise NotFoundError("Mentor not found")
    else:
        payee = await db.get(Professor, payload.professor_id)
        payment_type = PaymentType.PROFESSOR
        if not payee:
            raise NotFoundError("Professor not found")

    mission = await db.get(Mission, payload.mission_id)
    if not mission:
        raise NotFoundError("Mission not found")
    if (payload.mentor_id is not None and mission.mentor_id != payload.mentor_id) or (
        payload.professor_id is not None and mission.professor_id != payload.professor_id
    ):
        raise BadRequestError("Mission does not belong to this payee")
    if mission.status != MissionStatus.VALIDATED.value:
        raise InvalidTransitionError(
            f"Cannot pay mission with status {mission.status}. Only VALIDATED missions can be paid."
        )
    if mission.currency != payload.currency.value:
        raise BadRequestError(
            f"Mission currency ({mission.currency}) does not match payment currency ({payload.currency.value})"
        )
    remaining = mission.amount - (mission.paid_amount or 0)
    if payload.amount > remaining:
        raise BadRequestError(f"Payment amount ({payload.amount}) exceeds mission remaining amount ({remaining})")
    await _check_bank_account(db, payload.bank_account_id, payload.currency.value)

    async with unit_of_work(db):
        payment = Payment(
            type=payment_type.value,
            mentor_id=payload.mentor_id,
            professor_id=payload.professor_id,
            mission_id=mission.id,
            amount=payload.amount,
            currency=payload.currency.value,
            payment_date=as_utc(payload.payment_date),
            payment_method=(payload.payment_method or "").strip().upper() or None,
            reference_number=(payload.reference_number or "").strip() or None,
            bank_account_id=payload.bank_account_id,
            notes=payload.notes,
            created_by=created_by,
        )
        db.add(payment)
        mission.paid_amount = (mission.paid_amount or 0) + payload.amount
        if mission.paid_amount >= mission.amount:
            mission.status = MissionStatus.PAID.value
        await db.flush()
    await db.refresh(payment)
    logger.info(f"Recorded {payment_type.value.lower()} payment {payment.id} for mission {mission.id}")
    return _pay_to_response(payment)


# --- Schedules ---
async def list_student_schedules(db: AsyncSession, student_id: UUID) -> StudentSchedulesResponse:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    rows = (
        await db.execute(
            select(PaymentSchedule, Quote.quote_number)
            .outerjoin(Quote, PaymentSchedule.quote_id == Quote.id)
            .where(PaymentSchedule.student_id == student_id)
            .order_by(PaymentSchedule.due_date)
        )
    ).all()
    schedules = [_schedule_to_response(s, quote_number) for s, quote_number in rows]

    totals: "OrderedDict[str, Dict[str, int]]" = OrderedDict()
    for s in schedules:
        current = totals.setdefault(s.currency.value, {"total_due": 0, "total_paid": 0, "total_remaining": 0})
        current["total_due"] += s.amount
        current["total_paid"] += s.paid_amount
        current["total_remaining"] += s.remaining_amount

    return StudentSchedulesResponse(
        student_id=student_id,
        schedules=schedules,
        summary=[CurrencySummary(currency=c, **t) for c, t in totals.items()],
    )


async def refresh_overdue_schedules(db: AsyncSession, now: Optional[datetime] = None) -> RefreshOverdueResponse:
    """Move PENDING schedules whose due date has passed to OVERDUE."""
    now = now or utcnow()
    async with unit_of_work(db):
        schedules = (
            await db.execute(
                select(PaymentSchedule).where(
                    PaymentSchedule.status == ScheduleStatus.PENDING.value,
                    PaymentSchedule.due_date < now,
                )
            )
        ).scalars().all()
        moved: List[UUID] = []
        for schedule in schedules:
            new_status = derive_schedule_status(schedule.paid_amount or 0, schedule.amount, schedule.due_date, now)
            if new_status != schedule.status:
                schedule.status = new_status
                moved.append(schedule.id)
    if moved:
        logger.info(f"Marked {len(moved)} payment schedule(s) overdue")
    return RefreshOverdueResponse(updated=len(moved), schedule_ids=moved)
