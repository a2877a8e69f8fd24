"""Leave reporting — summary, team calendar, history, per-date map.

Reporting degrades gracefully: when chargeable days cannot be recomputed for
a request, the stored ``total_days`` is used instead.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hris.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    EmploymentStatus,
    LeaveCategory,
    LeaveStatus,
)
from hris.common.exceptions import AppException
from hris.core_hr.models import Employee
from hris.leave.calculator import calculate_chargeable_leave, iter_dates
from hris.leave.models import LeaveRequest

logger = logging.getLogger(__name__)


@dataclass
class LeaveSummary:
    start_date: date
    end_date: date
    days_by_category: dict[str, Decimal] = field(
        default_factory=lambda: {c.value: Decimal("0") for c in LeaveCategory}
    )
    approved_count: int = 0
    pending_count: int = 0
    employees_with_leave: int = 0
    total_employees: int = 0
    fallback_count: int = 0

    @property
    def total_days(self) -> Decimal:
        return sum(self.days_by_category.values(), Decimal("0"))


@dataclass
class LeaveDateEntry:
    request_id: uuid.UUID
    employee_id: uuid.UUID
    status: LeaveStatus
    leave_type_name: Optional[str]
    is_half_day: bool


def _overlapping(start_date: date, end_date: date):
    return (
        LeaveRequest.start_date <= end_date,
        LeaveRequest.end_date >= start_date,
    )


async def chargeable_days_for_report(
    db: AsyncSession,
    request: LeaveRequest,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> tuple[Decimal, bool]:
    """Chargeable days of a request clipped to a window.

    Returns ``(days, used_fallback)``. Falls back to the stored total when
    the calculation fails.
    """
    window_start = max(request.start_date, start_date) if start_date else request.start_date
    window_end = min(request.end_date, end_date) if end_date else request.end_date
    try:
        calc = await calculate_chargeable_leave(
            db,
            window_start,
            window_end,
            request.employee_id,
            request.partial_day_type,
        )
        return calc.chargeable_days, False
    except (AppException, ValueError) as exc:
        logger.warning(
            "Chargeable-day calculation failed for leave request %s (%s); "
            "using stored total_days",
            request.id, exc,
        )
        return Decimal(request.total_days or 0), True


async def get_leave_summary(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    entity_id: Optional[uuid.UUID] = None,
) -> LeaveSummary:
    """Approved leave days per category within a window, plus headline counts."""
    summary = LeaveSummary(start_date=start_date, end_date=end_date)

    emp_stmt = select(func.count()).select_from(Employee).where(
        Employee.employment_status == EmploymentStatus.active,
    )
    req_stmt = (
        select(LeaveRequest)
        .where(
            LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
            *_overlapping(start_date, end_date),
        )
        .options(selectinload(LeaveRequest.leave_type))
    )
    if entity_id is not None:
        emp_stmt = emp_stmt.where(Employee.entity_id == entity_id)
        req_stmt = req_stmt.join(Employee, LeaveRequest.employee_id == Employee.id).where(
            Employee.entity_id == entity_id,
        )

    summary.total_employees = (await db.execute(emp_stmt)).scalar() or 0

    employees_on_leave: set[uuid.UUID] = set()
    for request in (await db.execute(req_stmt)).scalars().all():
        if request.status == LeaveStatus.pending:
            summary.pending_count += 1
            continue
        summary.approved_count += 1
        employees_on_leave.add(request.employee_id)
        days, fallback = await chargeable_days_for_report(db, request, start_date, end_date)
        if fallback:
            summary.fallback_count += 1
        category = request.leave_type.resolved_category.value
        summary.days_by_category[category] += days

    summary.employees_with_leave = len(employees_on_leave)
    return summary


async def get_team_leave_for_range(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    *,
    manager_id: Optional[uuid.UUID] = None,
    employee_ids: Optional[Sequence[uuid.UUID]] = None,
    entity_id: Optional[uuid.UUID] = None,
) -> list[LeaveRequest]:
    """Pending and approved leave overlapping the range, for a team or entity."""
    stmt = (
        select(LeaveRequest)
        .join(Employee, LeaveRequest.employee_id == Employee.id)
        .where(
            LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
            *_overlapping(start_date, end_date),
        )
        .options(
            selectinload(LeaveRequest.employee),
            selectinload(LeaveRequest.leave_type),
        )
        .order_by(LeaveRequest.start_date)
    )
    if manager_id is not None:
        stmt = stmt.where(Employee.manager_id == manager_id)
    if employee_ids is not None:
        stmt = stmt.where(LeaveRequest.employee_id.in_(list(employee_ids)))
    if entity_id is not None:
        stmt = stmt.where(Employee.entity_id == entity_id)
    return list((await db.execute(stmt)).scalars().all())


async def get_leave_history_for_employee(
    db: AsyncSession,
    employee_id: uuid.UUID,
    status: Optional[LeaveStatus] = None,
) -> list[LeaveRequest]:
    """All of an employee's requests, most recent first."""
    stmt = (
        select(LeaveRequest)
        .where(LeaveRequest.employee_id == employee_id)
        .options(selectinload(LeaveRequest.leave_type))
    )
    if status is not None:
        stmt = stmt.where(LeaveRequest.status == status)
    requests = (await db.execute(stmt)).scalars().all()
    # Store ordering is not guaranteed; sort here
    return sorted(requests, key=lambda r: r.start_date, reverse=True)


def build_leave_date_map(
    requests: Sequence[LeaveRequest],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> dict[date, list[LeaveDateEntry]]:
    """Index requests by every date they cover (optionally clipped to a window)."""
    date_map: dict[date, list[LeaveDateEntry]] = {}
    for request in requests:
        first = max(request.start_date, start_date) if start_date else request.start_date
        last = min(request.end_date, end_date) if end_date else request.end_date
        leave_type = request.leave_type
        for day in iter_dates(first, last):
            date_map.setdefault(day, []).append(
                LeaveDateEntry(
                    request_id=request.id,
                    employee_id=request.employee_id,
                    status=request.status,
                    leave_type_name=leave_type.name if leave_type is not None else None,
                    is_half_day=request.is_half_day,
                )
            )
    return date_map
