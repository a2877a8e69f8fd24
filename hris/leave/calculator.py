"""Chargeable-days calculator.

Walks every calendar date in a leave range and classifies it as weekend,
public holiday or working day. A public holiday that falls on a weekend is
counted once, as a weekend.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris.common.constants import PartialDayType
from hris.common.exceptions import (
    EmployeeNotFoundError,
    InvalidRangeError,
    LeaveErrorCode,
    LeaveRuleViolation,
)
from hris.core_hr.models import CompanyEntity, Employee
from hris.holidays.service import HolidayService

WEEKEND_DAYS: frozenset[int] = frozenset({5, 6})  # Sat, Sun

HALF_DAY_TYPES: frozenset[PartialDayType] = frozenset(
    {PartialDayType.half_am, PartialDayType.half_pm},
)


@dataclass(frozen=True)
class HolidayHit:
    date: date
    name: str


@dataclass
class ChargeableLeave:
    total_days: int
    weekend_count: int
    holiday_count: int
    chargeable_days: Decimal
    holidays: list[HolidayHit] = field(default_factory=list)
    is_half_day: bool = False
    partial_day_type: PartialDayType = PartialDayType.full
    day_details: dict[str, str] = field(default_factory=dict)


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_half_day_request(
    start: date,
    end: date,
    partial_day_type: Optional[PartialDayType],
) -> bool:
    return partial_day_type in HALF_DAY_TYPES and start == end


def count_chargeable_days(
    start_date: date,
    end_date: date,
    holidays: Mapping[date, str],
    partial_day_type: Optional[PartialDayType] = None,
    weekly_offs: frozenset[int] = WEEKEND_DAYS,
) -> ChargeableLeave:
    """Classify each date in ``[start_date, end_date]`` and count chargeable days.

    Args:
        start_date: First day of leave (inclusive).
        end_date: Last day of leave (inclusive).
        holidays: Applicable public holidays keyed by date.
        partial_day_type: ``half_am`` / ``half_pm`` for a half-day request.
        weekly_offs: ``date.weekday()`` values treated as weekend.

    Raises:
        InvalidRangeError: ``end_date`` precedes ``start_date``.
        LeaveRuleViolation: a half day was requested across several dates.
    """
    if end_date < start_date:
        raise InvalidRangeError(start_date, end_date)

    partial = PartialDayType(partial_day_type or PartialDayType.full)
    if partial in HALF_DAY_TYPES and start_date != end_date:
        raise LeaveRuleViolation(LeaveErrorCode.HALF_DAY_MUST_BE_SINGLE_DAY)

    total = weekends = holiday_count = 0
    hits: list[HolidayHit] = []
    details: dict[str, str] = {}

    for day in iter_dates(start_date, end_date):
        total += 1
        if day.weekday() in weekly_offs:
            weekends += 1
            details[day.isoformat()] = "weekend"
        elif day in holidays:
            holiday_count += 1
            hits.append(HolidayHit(day, holidays[day]))
            details[day.isoformat()] = "holiday"
        else:
            details[day.isoformat()] = partial.value

    working = total - weekends - holiday_count
    half_day = partial in HALF_DAY_TYPES
    if half_day:
        chargeable = Decimal("0.5") if working == 1 else Decimal("0")
    else:
        chargeable = Decimal(working)

    return ChargeableLeave(
        total_days=total,
        weekend_count=weekends,
        holiday_count=holiday_count,
        chargeable_days=chargeable,
        holidays=hits,
        is_half_day=half_day,
        partial_day_type=partial,
        day_details=details,
    )


async def load_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id)
    )
    employee = result.scalars().first()
    if employee is None:
        raise EmployeeNotFoundError(employee_id)
    return employee


async def holidays_for_employee(
    db: AsyncSession,
    employee: Employee,
    start_date: date,
    end_date: date,
) -> dict[date, str]:
    """Public holidays in range that apply to the employee's entity and state."""
    country = None
    if employee.entity_id is not None:
        entity = await db.get(CompanyEntity, employee.entity_id)
        country = entity.country if entity is not None else None
    holidays = await HolidayService.get_public_holidays_in_range(
        db,
        start_date,
        end_date,
        entity_id=employee.entity_id,
        state_region=employee.state,
        country=country,
    )
    return {h.date: h.name for h in holidays}


async def calculate_chargeable_leave(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    employee_id: uuid.UUID,
    partial_day_type: Optional[PartialDayType] = None,
    *,
    employee: Optional[Employee] = None,
) -> ChargeableLeave:
    """Chargeable days for an employee's leave range. Read-only."""
    if end_date < start_date:
        raise InvalidRangeError(start_date, end_date)
    if employee is None or employee.id != employee_id:
        employee = await load_employee(db, employee_id)
    holidays = await holidays_for_employee(db, employee, start_date, end_date)
    return count_chargeable_days(start_date, end_date, holidays, partial_day_type)
