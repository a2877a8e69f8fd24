"""Enums and constants for the HRIS leave engine — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Employee / Core HR ──────────────────────────────────────────────

class EmploymentType(str, enum.Enum):
    full_time = "full_time"
    part_time = "part_time"
    casual = "casual"
    contractor = "contractor"


class EmploymentStatus(str, enum.Enum):
    active = "active"
    on_leave = "on_leave"
    terminated = "terminated"


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    admin = "admin"
    owner = "owner"


class ActingMode(str, enum.Enum):
    admin = "admin"
    staff = "staff"


ADMIN_ROLES: frozenset[UserRole] = frozenset({UserRole.admin, UserRole.owner})


# ── Leave ───────────────────────────────────────────────────────────

class LeaveCategory(str, enum.Enum):
    annual = "annual"
    personal = "personal"
    long_service = "long_service"


class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    declined = "declined"
    cancelled = "cancelled"


class PartialDayType(str, enum.Enum):
    full = "full"
    half_am = "half_am"
    half_pm = "half_pm"


class AccrualUnit(str, enum.Enum):
    days_per_year = "days_per_year"
    weeks_per_year = "weeks_per_year"
    hours_per_year = "hours_per_year"


class PolicyScope(str, enum.Enum):
    """Employment types a leave policy applies to (``any`` matches all)."""

    full_time = "full_time"
    part_time = "part_time"
    casual = "casual"
    contractor = "contractor"
    any = "any"


class BalanceEnforcement(str, enum.Enum):
    warn = "warn"
    block = "block"


class ComplianceSeverity(str, enum.Enum):
    error = "error"
    warning = "warning"
    info = "info"


# Requests in these states count against the balance and block overlaps
ACTIVE_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.pending,
    LeaveStatus.approved,
)

FINALISED_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.approved,
    LeaveStatus.declined,
    LeaveStatus.cancelled,
)

PAID_LEAVE_CATEGORIES: frozenset[LeaveCategory] = frozenset(
    {LeaveCategory.annual, LeaveCategory.personal},
)


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    alert = "alert"


# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%Y-%m-%d"
DEFAULT_HOURS_PER_DAY = 7.6
DEFAULT_HOURS_PER_WEEK = 38.0
DAYS_PER_YEAR = 365.25
NES_COUNTRY = "AU"
