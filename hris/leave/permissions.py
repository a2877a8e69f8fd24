"""Leave permission rules.

Every decision is a pure function of the acting context and the records
involved. The acting context is passed in explicitly on every call.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional

from hris.common.constants import ADMIN_ROLES, ActingMode, LeaveStatus, UserRole
from hris.core_hr.models import Employee
from hris.leave.models import LeaveRequest


@dataclass(frozen=True)
class ActingContext:
    """Who is acting, with which role, in which mode."""

    employee_id: uuid.UUID
    role: UserRole = UserRole.employee
    acting_mode: ActingMode = ActingMode.admin
    is_manager: bool = False

    @classmethod
    def for_employee(
        cls,
        employee: Employee,
        role: UserRole = UserRole.employee,
        acting_mode: Optional[ActingMode] = None,
    ) -> "ActingContext":
        return cls(
            employee_id=employee.id,
            role=role,
            acting_mode=acting_mode or ActingMode.admin,
            is_manager=bool(employee.is_manager) or role == UserRole.manager,
        )


def is_acting_as_admin(ctx: ActingContext) -> bool:
    """Admin or owner role with the session in admin mode."""
    return ctx.role in ADMIN_ROLES and ctx.acting_mode == ActingMode.admin


def is_in_staff_mode(ctx: ActingContext) -> bool:
    return ctx.role in ADMIN_ROLES and ctx.acting_mode == ActingMode.staff


def is_direct_manager_of(ctx: ActingContext, target: Employee) -> bool:
    return (
        not is_in_staff_mode(ctx)
        and ctx.is_manager
        and target.manager_id is not None
        and target.manager_id == ctx.employee_id
    )


def can_create_leave_request(ctx: ActingContext, target: Employee) -> bool:
    """The employee themself, their manager, or an admin in admin mode."""
    if is_acting_as_admin(ctx):
        return True
    if target.id == ctx.employee_id:
        return True
    return is_direct_manager_of(ctx, target)


def can_manage_employee_leave(ctx: ActingContext, target: Employee) -> bool:
    """Create-on-behalf and similar: admins, or the target's direct manager."""
    if is_acting_as_admin(ctx):
        return True
    return is_direct_manager_of(ctx, target)


def can_approve_leave(ctx: ActingContext, request: LeaveRequest) -> bool:
    if is_acting_as_admin(ctx):
        return True
    if is_in_staff_mode(ctx):
        return False
    return ctx.is_manager and request.manager_id == ctx.employee_id


def can_cancel_leave_request(
    ctx: ActingContext,
    request: LeaveRequest,
    today: Optional[date] = None,
) -> bool:
    """Pending: any time. Approved: only before the leave starts."""
    is_admin = is_acting_as_admin(ctx)
    is_self = request.employee_id == ctx.employee_id
    if not (is_admin or is_self):
        return False
    if request.status == LeaveStatus.pending:
        return True
    if request.status == LeaveStatus.approved:
        return request.start_date >= (today or date.today())
    return False


def can_view_employee_leave(ctx: ActingContext, target: Employee) -> bool:
    """Balances and history: self, direct manager, or admin in admin mode."""
    return can_create_leave_request(ctx, target)
