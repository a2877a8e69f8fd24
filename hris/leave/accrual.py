"""Accrual arithmetic — service duration, FTE and rate conversions.

Pure functions over plain values and ORM objects; nothing here touches the
database. All hour figures are floats rounded to two decimals at the edges.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from hris.common.constants import (
    DAYS_PER_YEAR,
    DEFAULT_HOURS_PER_DAY,
    DEFAULT_HOURS_PER_WEEK,
    AccrualUnit,
    EmploymentType,
)
from hris.core_hr.models import Employee
from hris.leave.models import LeavePolicy


def _num(value, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def round_hours(value: float) -> float:
    return round(value, 2)


# ── Service duration ────────────────────────────────────────────────

def get_service_start_date(employee: Employee) -> Optional[date]:
    """Continuous-service start, falling back to the employment start date."""
    return employee.service_start_date or employee.start_date


def years_of_service(start: Optional[date], as_of: date) -> float:
    if start is None or as_of <= start:
        return 0.0
    return (as_of - start).days / DAYS_PER_YEAR


def add_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


# ── Hours / days ────────────────────────────────────────────────────

def policy_hours_per_day(policy: Optional[LeavePolicy]) -> float:
    if policy is None:
        return DEFAULT_HOURS_PER_DAY
    return _num(policy.standard_hours_per_day, DEFAULT_HOURS_PER_DAY) or DEFAULT_HOURS_PER_DAY


def hours_per_day_for(
    employee: Optional[Employee],
    policy: Optional[LeavePolicy] = None,
) -> float:
    """Hours one leave day is worth: policy standard, else employee week / 5, else 7.6."""
    if policy is not None and policy.standard_hours_per_day:
        return _num(policy.standard_hours_per_day, DEFAULT_HOURS_PER_DAY)
    if employee is not None and employee.hours_per_week:
        return _num(employee.hours_per_week) / 5
    return DEFAULT_HOURS_PER_DAY


def days_to_hours(days: float, hours_per_day: float = DEFAULT_HOURS_PER_DAY) -> float:
    return round_hours(_num(days) * (hours_per_day or DEFAULT_HOURS_PER_DAY))


def hours_to_days(hours: float, hours_per_day: float = DEFAULT_HOURS_PER_DAY) -> float:
    return round_hours(_num(hours) / (hours_per_day or DEFAULT_HOURS_PER_DAY))


# ── FTE ─────────────────────────────────────────────────────────────

def calculate_employee_fte(
    employee: Employee,
    hours_per_week_reference: float = DEFAULT_HOURS_PER_WEEK,
) -> float:
    """Full-time equivalence in ``[0, 1]``. Full-time staff are always 1.0."""
    if employee.employment_type == EmploymentType.full_time:
        return 1.0
    reference = hours_per_week_reference or DEFAULT_HOURS_PER_WEEK
    hours = _num(employee.hours_per_week)
    if hours <= 0:
        return 0.0
    return min(hours / reference, 1.0)


# ── Rate conversion ─────────────────────────────────────────────────

def annual_hours_for_rate(policy: LeavePolicy, rate: Optional[float] = None) -> float:
    """Convert a policy's accrual rate to hours per year for a full-time employee."""
    rate = _num(policy.accrual_rate) if rate is None else rate
    unit = policy.accrual_unit
    if unit == AccrualUnit.hours_per_year:
        return rate
    if unit == AccrualUnit.weeks_per_year:
        return rate * _num(policy.hours_per_week_reference, DEFAULT_HOURS_PER_WEEK)
    return rate * policy_hours_per_day(policy)


def calculate_accrual_for_years(
    policy: LeavePolicy,
    years: float,
    employee: Optional[Employee] = None,
    rate: Optional[float] = None,
) -> float:
    """Hours accrued over ``years`` of service, pro-rated by FTE."""
    if years <= 0:
        return 0.0
    fte = 1.0
    if employee is not None:
        fte = calculate_employee_fte(
            employee,
            _num(policy.hours_per_week_reference, DEFAULT_HOURS_PER_WEEK),
        )
    return round_hours(years * annual_hours_for_rate(policy, rate) * fte)


def calculate_accrual_for_period(
    policy: LeavePolicy,
    days: int,
    employee: Optional[Employee] = None,
) -> float:
    return calculate_accrual_for_years(policy, days / DAYS_PER_YEAR, employee)


# ── Long service leave ──────────────────────────────────────────────

@dataclass
class ServiceAccrual:
    accrued_hours: float
    eligible: bool
    years_of_service: float
    eligibility_date: Optional[date] = None
    message: Optional[str] = None


def calculate_lsl_accrual(
    policy: LeavePolicy,
    employee: Employee,
    as_of: date,
) -> ServiceAccrual:
    """Long-service accrual that only starts counting after the service threshold."""
    start = get_service_start_date(employee)
    if start is None:
        return ServiceAccrual(
            0.0, False, 0.0, message="No employment start date set",
        )

    service_years = years_of_service(start, as_of)
    min_years = int(_num(policy.min_service_years_before_accrual))
    eligibility_date = add_years(start, min_years)

    if as_of < eligibility_date:
        return ServiceAccrual(
            0.0,
            False,
            round(service_years, 2),
            eligibility_date,
            f"Not yet eligible. {min_years} years of service required.",
        )

    rate = _num(policy.accrual_rate_after_threshold) or _num(policy.accrual_rate)
    years_after = years_of_service(eligibility_date, as_of)
    return ServiceAccrual(
        calculate_accrual_for_years(policy, years_after, employee, rate),
        True,
        round(service_years, 2),
        eligibility_date,
    )


def calculate_service_accrual(
    policy: LeavePolicy,
    employee: Employee,
    as_of: date,
) -> ServiceAccrual:
    """Accrual from service start to ``as_of`` for any leave category."""
    if policy.min_service_years_before_accrual:
        return calculate_lsl_accrual(policy, employee, as_of)

    start = get_service_start_date(employee)
    if start is None:
        return ServiceAccrual(0.0, False, 0.0, message="No employment start date set")
    if as_of <= start:
        return ServiceAccrual(0.0, True, 0.0, message="Employment not yet started")

    service_years = years_of_service(start, as_of)
    return ServiceAccrual(
        calculate_accrual_for_years(policy, service_years, employee),
        True,
        round(service_years, 2),
    )


def apply_carryover_cap(
    accrued_hours: float,
    opening_hours: float,
    max_carryover_hours: Optional[float],
) -> float:
    """Clip accrual so opening + accrued never exceeds the carry-over cap."""
    if max_carryover_hours is None:
        return accrued_hours
    headroom = max(0.0, _num(max_carryover_hours) - opening_hours)
    return round_hours(min(accrued_hours, headroom))
