"""Leave request lifecycle — create, create on behalf, approve, decline, cancel.

Business logic:
  - Validation runs in a fixed order and stops at the first failure:
    chargeable days (range, half-day rule) → casual exclusion → overlap →
    permission → balance sufficiency
  - Balance insufficiency is governed by a named enforcement flag: ``warn``
    for self-service, ``block`` for managers creating on someone's behalf
  - Every mutation is audited, notifies the other party, refreshes the
    employee's balance snapshot and invalidates the engine cache
  - Requests are never deleted; cancellation is a status change, so balances
    recomputed from history reflect it automatically
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hris.common.audit import AuditAction, create_audit_entry
from hris.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    FINALISED_LEAVE_STATUSES,
    BalanceEnforcement,
    EmploymentType,
    LeaveStatus,
    PartialDayType,
)
from hris.common.exceptions import (
    EmployeeNotFoundError,
    LeaveErrorCode,
    LeaveRuleViolation,
    NotFoundException,
)
from hris.config import settings
from hris.core_hr.models import Employee
from hris.leave.balances import (
    BalanceService,
    check_leave_balance,
    format_balance_warning,
)
from hris.leave.cache import leave_engine_cache
from hris.leave.calculator import ChargeableLeave, calculate_chargeable_leave
from hris.leave.models import LeaveRequest, LeaveType
from hris.leave.permissions import (
    ActingContext,
    can_approve_leave,
    can_cancel_leave_request,
    can_create_leave_request,
    can_manage_employee_leave,
)
from hris.leave.policies import PolicyService
from hris.notifications.service import (
    notify_leave_approved,
    notify_leave_cancelled,
    notify_leave_declined,
    notify_leave_submitted,
)

logger = logging.getLogger(__name__)


@dataclass
class LeaveRequestOutcome:
    """Result of a successful create call."""

    request: LeaveRequest
    chargeable: ChargeableLeave
    auto_approved: bool = False
    balance_warning: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave request operations."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _lock_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        """Load the employee row FOR UPDATE so concurrent submissions queue up."""
        result = await db.execute(
            select(Employee).where(Employee.id == employee_id).with_for_update()
        )
        employee = result.scalars().first()
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        return employee

    @staticmethod
    async def _get_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        result = await db.execute(
            select(LeaveType).where(
                LeaveType.id == leave_type_id,
                LeaveType.is_active.is_(True),
            )
        )
        leave_type = result.scalars().first()
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def get_leave_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_type),
            )
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    def _check_casual(employee: Employee, leave_type: LeaveType) -> None:
        if (
            employee.employment_type == EmploymentType.casual
            and leave_type.is_paid_category
        ):
            raise LeaveRuleViolation(LeaveErrorCode.PAID_LEAVE_NOT_ALLOWED_FOR_CASUAL)

    @staticmethod
    async def has_overlapping_leave(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """Any pending/approved request with ``start <= end_date`` and ``end >= start_date``."""
        stmt = select(func.count()).select_from(LeaveRequest).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
            LeaveRequest.start_date <= end_date,
            LeaveRequest.end_date >= start_date,
        )
        if exclude_request_id is not None:
            stmt = stmt.where(LeaveRequest.id != exclude_request_id)
        count = (await db.execute(stmt)).scalar() or 0
        return count > 0

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> None:
        if await LeaveService.has_overlapping_leave(db, employee_id, start_date, end_date):
            raise LeaveRuleViolation(LeaveErrorCode.OVERLAPPING_LEAVE)

    @staticmethod
    async def _check_balance(
        db: AsyncSession,
        employee: Employee,
        leave_type: LeaveType,
        chargeable_days: Decimal,
        enforcement: BalanceEnforcement,
    ) -> Optional[str]:
        """Return a warning, or raise INSUFFICIENT_BALANCE under ``block``.

        Unpaid leave types draw no balance. A policy that allows negative
        balances downgrades ``block`` to ``warn``.
        """
        if not leave_type.is_paid or chargeable_days <= 0:
            return None

        category = leave_type.resolved_category
        balances = await BalanceService.get_leave_balances_for_employee(db, employee.id)
        balance = balances.get(category)
        check = check_leave_balance(balance, float(chargeable_days))
        if check.sufficient:
            return None

        warning = format_balance_warning(check)
        if enforcement == BalanceEnforcement.block:
            context = await PolicyService.get_leave_context_for_employee(
                db, employee.id, employee=employee,
            )
            policy = context.policy_for(category)
            if policy is None or not policy.allow_negative_balance:
                raise LeaveRuleViolation(LeaveErrorCode.INSUFFICIENT_BALANCE, warning)
        return warning

    @staticmethod
    async def _after_mutation(db: AsyncSession, employee_id: uuid.UUID) -> None:
        await BalanceService.recalculate_balances_for_employee(db, employee_id)
        leave_engine_cache.invalidate(employee_id)

    # ─────────────────────────────────────────────────────────────────
    # Create (self-service)
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_leave_request(
        db: AsyncSession,
        *,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        start_date: date,
        end_date: date,
        actor: ActingContext,
        reason: Optional[str] = None,
        partial_day_type: Optional[PartialDayType] = None,
        enforcement: Optional[BalanceEnforcement] = None,
    ) -> LeaveRequestOutcome:
        """Submit a leave request.

        The request is ``pending`` when the employee has a manager, otherwise
        it is approved immediately (``auto_approved``).

        Raises:
            InvalidRangeError, EmployeeNotFoundError, NotFoundException,
            LeaveRuleViolation (HALF_DAY_MUST_BE_SINGLE_DAY,
            PAID_LEAVE_NOT_ALLOWED_FOR_CASUAL, OVERLAPPING_LEAVE,
            PERMISSION_DENIED, INSUFFICIENT_BALANCE under ``block``).
        """
        enforcement = BalanceEnforcement(
            enforcement or settings.SELF_SERVICE_BALANCE_ENFORCEMENT
        )
        now = datetime.now(timezone.utc)

        employee = await LeaveService._lock_employee(db, employee_id)
        leave_type = await LeaveService._get_leave_type(db, leave_type_id)

        calc = await calculate_chargeable_leave(
            db, start_date, end_date, employee_id, partial_day_type, employee=employee,
        )
        LeaveService._check_casual(employee, leave_type)
        await LeaveService._check_overlap(db, employee_id, start_date, end_date)
        if not can_create_leave_request(actor, employee):
            raise LeaveRuleViolation(LeaveErrorCode.PERMISSION_DENIED)
        warning = await LeaveService._check_balance(
            db, employee, leave_type, calc.chargeable_days, enforcement,
        )

        auto_approved = employee.manager_id is None
        leave_req = LeaveRequest(
            id=uuid.uuid4(),
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            partial_day_type=calc.partial_day_type,
            total_days=calc.chargeable_days,
            day_details=calc.day_details,
            reason=reason,
            status=LeaveStatus.approved if auto_approved else LeaveStatus.pending,
            manager_id=employee.manager_id,
            created_by_id=actor.employee_id,
            approved_at=now if auto_approved else None,
            created_at=now,
            updated_at=now,
        )
        db.add(leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.LEAVE_REQUESTED,
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.employee_id,
            new_values={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "total_days": str(calc.chargeable_days),
                "status": leave_req.status.value,
                "leave_type": leave_type.code,
            },
            reason=reason,
        )

        if auto_approved:
            await notify_leave_approved(db, leave_req, auto=True)
        else:
            await notify_leave_submitted(
                db, leave_req, employee.manager_id, employee.display_name,
            )

        await LeaveService._after_mutation(db, employee_id)
        return LeaveRequestOutcome(
            request=leave_req,
            chargeable=calc,
            auto_approved=auto_approved,
            balance_warning=warning,
        )

    # ─────────────────────────────────────────────────────────────────
    # Create on behalf (manager / admin)
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_leave_as_manager(
        db: AsyncSession,
        *,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        start_date: date,
        end_date: date,
        actor: ActingContext,
        reason: Optional[str] = None,
        partial_day_type: Optional[PartialDayType] = None,
    ) -> LeaveRequestOutcome:
        """Record leave for a direct report (or anyone, for admins) as approved.

        Insufficient balance is a hard error on this path.
        """
        now = datetime.now(timezone.utc)

        employee = await LeaveService._lock_employee(db, employee_id)
        if not can_manage_employee_leave(actor, employee):
            raise LeaveRuleViolation(LeaveErrorCode.NOT_AUTHORIZED)
        leave_type = await LeaveService._get_leave_type(db, leave_type_id)

        calc = await calculate_chargeable_leave(
            db, start_date, end_date, employee_id, partial_day_type, employee=employee,
        )
        LeaveService._check_casual(employee, leave_type)
        await LeaveService._check_overlap(db, employee_id, start_date, end_date)
        await LeaveService._check_balance(
            db,
            employee,
            leave_type,
            calc.chargeable_days,
            BalanceEnforcement(settings.ON_BEHALF_BALANCE_ENFORCEMENT),
        )

        leave_req = LeaveRequest(
            id=uuid.uuid4(),
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            partial_day_type=calc.partial_day_type,
            total_days=calc.chargeable_days,
            day_details=calc.day_details,
            reason=reason,
            status=LeaveStatus.approved,
            manager_id=employee.manager_id,
            created_by_id=actor.employee_id,
            approved_by_id=actor.employee_id,
            approved_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.LEAVE_CREATED_BY_MANAGER,
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.employee_id,
            new_values={
                "employee_id": str(employee_id),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "total_days": str(calc.chargeable_days),
                "status": LeaveStatus.approved.value,
            },
            reason=reason,
        )
        await notify_leave_approved(db, leave_req)

        await LeaveService._after_mutation(db, employee_id)
        return LeaveRequestOutcome(request=leave_req, chargeable=calc)

    # ─────────────────────────────────────────────────────────────────
    # Approve / Decline
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _ensure_pending(leave_req: LeaveRequest) -> None:
        if leave_req.status in FINALISED_LEAVE_STATUSES:
            raise LeaveRuleViolation(LeaveErrorCode.LEAVE_ALREADY_FINALISED)

    @staticmethod
    async def approve_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: ActingContext,
        comment: Optional[str] = None,
    ) -> LeaveRequest:
        now = datetime.now(timezone.utc)
        leave_req = await LeaveService.get_leave_request(db, request_id)
        LeaveService._ensure_pending(leave_req)
        if not can_approve_leave(actor, leave_req):
            raise LeaveRuleViolation(LeaveErrorCode.PERMISSION_DENIED)

        leave_req.status = LeaveStatus.approved
        leave_req.approved_at = now
        leave_req.approved_by_id = actor.employee_id
        leave_req.manager_comment = comment or None
        leave_req.rejected_at = None
        leave_req.rejection_reason = None
        leave_req.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.LEAVE_APPROVED,
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.employee_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.approved.value},
            reason=comment,
        )
        await notify_leave_approved(db, leave_req)

        await LeaveService._after_mutation(db, leave_req.employee_id)
        return leave_req

    @staticmethod
    async def decline_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: ActingContext,
        reason: str,
    ) -> LeaveRequest:
        now = datetime.now(timezone.utc)
        leave_req = await LeaveService.get_leave_request(db, request_id)
        LeaveService._ensure_pending(leave_req)
        if not can_approve_leave(actor, leave_req):
            raise LeaveRuleViolation(LeaveErrorCode.PERMISSION_DENIED)
        if not reason or not reason.strip():
            raise LeaveRuleViolation(LeaveErrorCode.DECLINE_REASON_REQUIRED)

        leave_req.status = LeaveStatus.declined
        leave_req.rejection_reason = reason.strip()
        leave_req.rejected_at = now
        leave_req.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.LEAVE_DECLINED,
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.employee_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.declined.value},
            reason=reason,
        )
        await notify_leave_declined(db, leave_req, reason.strip())

        await LeaveService._after_mutation(db, leave_req.employee_id)
        return leave_req

    # ─────────────────────────────────────────────────────────────────
    # Cancel / Recall
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: ActingContext,
        reason: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LeaveRequest:
        """Cancel a pending request, or recall an approved one that has not started."""
        now = datetime.now(timezone.utc)
        today = today or date.today()
        leave_req = await LeaveService.get_leave_request(db, request_id)

        if leave_req.status in (LeaveStatus.declined, LeaveStatus.cancelled):
            raise LeaveRuleViolation(LeaveErrorCode.LEAVE_ALREADY_FINALISED)
        if not can_cancel_leave_request(actor, leave_req, today):
            if (
                leave_req.status == LeaveStatus.approved
                and leave_req.start_date < today
            ):
                raise LeaveRuleViolation(
                    LeaveErrorCode.CANNOT_CANCEL,
                    "Leave that has already started cannot be cancelled.",
                )
            raise LeaveRuleViolation(LeaveErrorCode.PERMISSION_DENIED)

        old_status = leave_req.status
        leave_req.status = LeaveStatus.cancelled
        leave_req.cancelled_at = now
        leave_req.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.LEAVE_CANCELLED,
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.employee_id,
            old_values={"status": old_status.value},
            new_values={"status": LeaveStatus.cancelled.value},
            reason=reason,
        )

        # Tell whoever did not cancel it
        if actor.employee_id == leave_req.employee_id:
            if leave_req.manager_id is not None:
                await notify_leave_cancelled(db, leave_req, leave_req.manager_id)
        else:
            await notify_leave_cancelled(db, leave_req, leave_req.employee_id)

        await LeaveService._after_mutation(db, leave_req.employee_id)
        logger.info(
            "Leave request %s cancelled (was %s) by %s",
            leave_req.id, old_status.value, actor.employee_id,
        )
        return leave_req
