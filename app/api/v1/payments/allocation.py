"""
Allocation planning: which outstanding schedules a payment amount should go to, and how
schedule status follows paid amounts. Pure functions; persistence lives in service.py.

Priority: OVERDUE (1), then PARTIAL (2), then PENDING (3); oldest due date first within a
tier. The plan is greedy in that order and never puts more on a schedule than it still owes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Sequence
from uuid import UUID

from app.core.clock import as_utc, utcnow
from app.core.enums import ScheduleStatus

OPEN_STATUSES = (
    ScheduleStatus.PENDING.value,
    ScheduleStatus.PARTIAL.value,
    ScheduleStatus.OVERDUE.value,
)

_PRIORITY = {
    ScheduleStatus.OVERDUE.value: 1,
    ScheduleStatus.PARTIAL.value: 2,
    ScheduleStatus.PENDING.value: 3,
}


class ScheduleLike(Protocol):
    id: UUID
    amount: int
    paid_amount: int
    status: str
    due_date: datetime


@dataclass
class SuggestedAllocation:
    schedule_id: UUID
    due_date: datetime
    status: str
    amount: int
    paid_amount: int
    remaining: int
    suggested_allocation: int
    priority: int


@dataclass
class AllocationPlan:
    amount: int
    suggestions: List[SuggestedAllocation] = field(default_factory=list)

    @property
    def total_suggested(self) -> int:
        return sum(s.suggested_allocation for s in self.suggestions)

    @property
    def unallocated(self) -> int:
        return self.amount - self.total_suggested


def schedule_priority(status: str) -> int:
    return _PRIORITY.get(status, len(_PRIORITY) + 1)


def order_candidates(schedules: Iterable[ScheduleLike]) -> List[ScheduleLike]:
    """Open schedules in allocation order, whatever order they came in."""
    candidates = [s for s in schedules if s.status in OPEN_STATUSES]
    return sorted(candidates, key=lambda s: (schedule_priority(s.status), as_utc(s.due_date)))


def plan_allocation(amount: int, schedules: Sequence[ScheduleLike]) -> AllocationPlan:
    plan = AllocationPlan(amount=amount)
    left = amount
    for schedule in order_candidates(schedules):
        if left <= 0:
            break
        remaining = schedule.amount - (schedule.paid_amount or 0)
        if remaining <= 0:
            continue
        suggested = min(left, remaining)
        plan.suggestions.append(
            SuggestedAllocation(
                schedule_id=schedule.id,
                due_date=schedule.due_date,
                status=schedule.status,
                amount=schedule.amount,
                paid_amount=schedule.paid_amount or 0,
                remaining=remaining,
                suggested_allocation=suggested,
                priority=schedule_priority(schedule.status),
            )
        )
        left -= suggested
    return plan


def allocated_schedule_status(paid_amount: int, amount: int) -> str:
    """Status of a schedule right after an allocation landed on it."""
    if paid_amount >= amount:
        return ScheduleStatus.PAID.value
    return ScheduleStatus.PARTIAL.value


def derive_schedule_status(
    paid_amount: int,
    amount: int,
    due_date: datetime,
    now: Optional[datetime] = None,
) -> str:
    if paid_amount >= amount:
        return ScheduleStatus.PAID.value
    if paid_amount > 0:
        return ScheduleStatus.PARTIAL.value
    now = now or utcnow()
    if as_utc(due_date) < now:
        return ScheduleStatus.OVERDUE.value
    return ScheduleStatus.PENDING.value
