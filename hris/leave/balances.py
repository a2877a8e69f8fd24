"""Leave balance aggregator.

Balances are derived from three inputs only: the resolved policy, the
employee's service dates, and their pending/approved leave requests. The
``leave_balances`` rows hold the opening/adjusted inputs and a materialized
copy of the last computed figures, refreshed after every mutation.

    available = opening + accrued + adjusted - used_approved - used_pending
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hris.common.audit import AuditAction, create_audit_entry
from hris.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    DEFAULT_HOURS_PER_DAY,
    EmploymentStatus,
    LeaveCategory,
    LeaveStatus,
)
from hris.common.exceptions import EmployeeNotFoundError
from hris.core_hr.models import Employee
from hris.leave.accrual import (
    apply_carryover_cap,
    calculate_service_accrual,
    hours_per_day_for,
    hours_to_days,
    round_hours,
)
from hris.leave.cache import leave_engine_cache
from hris.leave.calculator import calculate_chargeable_leave, load_employee
from hris.leave.models import LeaveBalance, LeavePolicy, LeaveRequest
from hris.leave.policies import LeaveContext, PolicyService

logger = logging.getLogger(__name__)

BALANCE_EPSILON = 0.01


# ═════════════════════════════════════════════════════════════════════
# Result objects
# ═════════════════════════════════════════════════════════════════════


@dataclass
class CategoryBalance:
    """Balance for one leave category, all figures in hours."""

    category: LeaveCategory
    accrued: float
    opening_balance: float
    adjusted: float
    used_approved: float
    used_pending: float
    available: float
    standard_hours_per_day: float
    eligible: bool = True
    years_of_service: float = 0.0
    eligibility_date: Optional[date] = None
    policy_id: Optional[uuid.UUID] = None
    policy_name: Optional[str] = None
    message: Optional[str] = None

    @property
    def used(self) -> float:
        return round_hours(self.used_approved + self.used_pending)

    @property
    def total_entitlement(self) -> float:
        return round_hours(self.accrued + self.opening_balance + self.adjusted)

    @property
    def available_days(self) -> float:
        return hours_to_days(self.available, self.standard_hours_per_day)


@dataclass
class EmployeeBalances:
    employee_id: uuid.UUID
    as_of: date
    annual: Optional[CategoryBalance] = None
    personal: Optional[CategoryBalance] = None
    long_service: Optional[CategoryBalance] = None
    notices: dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    def get(self, category: LeaveCategory) -> Optional[CategoryBalance]:
        return getattr(self, LeaveCategory(category).value)

    def items(self) -> list[tuple[LeaveCategory, Optional[CategoryBalance]]]:
        return [(c, self.get(c)) for c in LeaveCategory]


@dataclass
class BalanceCheck:
    sufficient: bool
    available_hours: float
    needed_hours: float
    shortfall_hours: float = 0.0


@dataclass
class BatchProgress:
    """Progress callback payload. ``processed`` counts every employee visited."""

    processed: int
    total: int
    succeeded: int
    failed: int
    current_employee_id: Optional[uuid.UUID] = None


@dataclass
class BatchRecalculationResult:
    """Outcome of a batch run. ``processed`` counts successful employees only."""

    success: bool
    processed: int
    total: int
    failed: int = 0
    aborted: bool = False
    errors: list[dict[str, str]] = field(default_factory=list)


ProgressCallback = Callable[[BatchProgress], None]
AbortCheck = Callable[[], bool]


# ═════════════════════════════════════════════════════════════════════
# Balance warnings
# ═════════════════════════════════════════════════════════════════════


def check_leave_balance(
    balance: Optional[CategoryBalance],
    chargeable_days: float,
    hours_per_day: Optional[float] = None,
) -> BalanceCheck:
    """Compare the hours a request needs with what is available."""
    hpd = hours_per_day or (
        balance.standard_hours_per_day if balance else DEFAULT_HOURS_PER_DAY
    )
    needed = round_hours(float(chargeable_days) * hpd)
    available = balance.available if balance is not None else 0.0
    sufficient = needed <= available + BALANCE_EPSILON
    return BalanceCheck(
        sufficient=sufficient,
        available_hours=available,
        needed_hours=needed,
        shortfall_hours=0.0 if sufficient else round_hours(needed - available),
    )


def format_balance_warning(check: BalanceCheck) -> Optional[str]:
    if check.sufficient:
        return None
    return (
        f"Insufficient leave balance. You have {check.available_hours:.2f} hours "
        f"available but need {check.needed_hours:.2f} hours."
    )


# ═════════════════════════════════════════════════════════════════════
# BalanceService
# ═════════════════════════════════════════════════════════════════════


class BalanceService:
    """Compute, materialize and adjust leave balances."""

    @staticmethod
    async def _stored_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> dict[LeaveCategory, LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance).where(LeaveBalance.employee_id == employee_id)
        )
        return {row.leave_category: row for row in result.scalars().all()}

    @staticmethod
    async def request_days(
        db: AsyncSession,
        request: LeaveRequest,
        employee: Employee,
    ) -> Decimal:
        """Chargeable days of a request: stored total, else recomputed."""
        if request.total_days is not None:
            return Decimal(request.total_days)
        calc = await calculate_chargeable_leave(
            db,
            request.start_date,
            request.end_date,
            employee.id,
            request.partial_day_type,
            employee=employee,
        )
        return calc.chargeable_days

    @staticmethod
    async def used_hours_by_category(
        db: AsyncSession,
        employee: Employee,
        context: LeaveContext,
    ) -> dict[LeaveCategory, dict[LeaveStatus, float]]:
        """Hours held by approved and pending requests, per category."""
        used: dict[LeaveCategory, dict[LeaveStatus, float]] = {
            c: {LeaveStatus.approved: 0.0, LeaveStatus.pending: 0.0}
            for c in LeaveCategory
        }
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
            )
            .options(selectinload(LeaveRequest.leave_type))
        )
        for request in result.scalars().all():
            if not request.leave_type.is_paid:
                continue
            category = request.leave_type.resolved_category
            hpd = hours_per_day_for(employee, context.policy_for(category))
            days = await BalanceService.request_days(db, request, employee)
            used[category][request.status] += float(days) * hpd
        return used

    @staticmethod
    async def get_leave_balances_for_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        as_of: Optional[date] = None,
    ) -> EmployeeBalances:
        """Per-category balances for one employee. Read-only.

        A category without an applicable policy, or one the employee is not
        yet eligible for, is ``None`` with an explanation in ``notices``.
        An unknown employee yields an empty result with ``error`` set.
        """
        as_of = as_of or date.today()
        try:
            employee = await load_employee(db, employee_id)
        except EmployeeNotFoundError as exc:
            return EmployeeBalances(employee_id=employee_id, as_of=as_of, error=exc.detail)

        context = await PolicyService.get_leave_context_for_employee(
            db, employee_id, as_of, employee=employee,
        )
        stored = await BalanceService._stored_balances(db, employee_id)
        used = await BalanceService.used_hours_by_category(db, employee, context)

        balances = EmployeeBalances(employee_id=employee_id, as_of=as_of)
        for category in LeaveCategory:
            policy_ctx = context.policies.get(category)
            if policy_ctx is None:
                balances.notices[category.value] = context.unresolved.get(
                    category, "No applicable policy",
                )
                continue
            if not policy_ctx.eligible:
                when = policy_ctx.eligibility_date
                balances.notices[category.value] = (
                    f"Not yet eligible. Eligible from {when.isoformat()}."
                    if when else "Not yet eligible."
                )
                continue

            setattr(
                balances,
                category.value,
                BalanceService._category_balance(
                    category,
                    policy_ctx.policy,
                    employee,
                    as_of,
                    stored.get(category),
                    used[category],
                ),
            )
        return balances

    @staticmethod
    def _category_balance(
        category: LeaveCategory,
        policy: LeavePolicy,
        employee: Employee,
        as_of: date,
        stored: Optional[LeaveBalance],
        used: dict[LeaveStatus, float],
    ) -> CategoryBalance:
        opening = float(stored.opening_balance_hours or 0) if stored else 0.0
        adjusted = float(stored.adjusted_hours or 0) if stored else 0.0

        accrual = calculate_service_accrual(policy, employee, as_of)
        cap = float(policy.max_carryover_hours) if policy.max_carryover_hours is not None else None
        accrued = apply_carryover_cap(accrual.accrued_hours, opening, cap)

        used_approved = round_hours(used[LeaveStatus.approved])
        used_pending = round_hours(used[LeaveStatus.pending])
        available = round_hours(opening + accrued + adjusted - used_approved - used_pending)

        return CategoryBalance(
            category=category,
            accrued=accrued,
            opening_balance=round_hours(opening),
            adjusted=round_hours(adjusted),
            used_approved=used_approved,
            used_pending=used_pending,
            available=available,
            standard_hours_per_day=hours_per_day_for(employee, policy),
            eligible=accrual.eligible,
            years_of_service=accrual.years_of_service,
            eligibility_date=accrual.eligibility_date,
            policy_id=policy.id,
            policy_name=policy.name,
            message=accrual.message,
        )

    # ─────────────────────────────────────────────────────────────────
    # Materialized snapshot
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def recalculate_balances_for_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        as_of: Optional[date] = None,
    ) -> EmployeeBalances:
        """Recompute one employee's balances and write the snapshot rows."""
        balances = await BalanceService.get_leave_balances_for_employee(
            db, employee_id, as_of,
        )
        if balances.error:
            raise EmployeeNotFoundError(employee_id)

        stored = await BalanceService._stored_balances(db, employee_id)
        now = datetime.now(timezone.utc)
        for category, balance in balances.items():
            if balance is None:
                continue
            row = stored.get(category)
            if row is None:
                row = LeaveBalance(
                    id=uuid.uuid4(),
                    employee_id=employee_id,
                    leave_category=category,
                    opening_balance_hours=Decimal("0"),
                    adjusted_hours=Decimal("0"),
                )
                db.add(row)
            row.accrued_hours = Decimal(str(balance.accrued))
            row.used_approved_hours = Decimal(str(balance.used_approved))
            row.used_pending_hours = Decimal(str(balance.used_pending))
            row.available_hours = Decimal(str(balance.available))
            row.policy_id = balance.policy_id
            row.last_calculated_at = now
        await db.flush()
        return balances

    @staticmethod
    async def recalculate_all_balances_for_entity(
        db: AsyncSession,
        entity_id: Optional[uuid.UUID] = None,
        on_progress: Optional[ProgressCallback] = None,
        should_abort: Optional[AbortCheck] = None,
        as_of: Optional[date] = None,
    ) -> BatchRecalculationResult:
        """Recalculate every active employee in an entity (all entities if ``None``).

        Each employee runs in its own SAVEPOINT, so a failed write is rolled
        back alone; failures are logged and recorded and the batch carries on.
        ``on_progress`` fires after every employee, success or not.
        ``should_abort`` is checked before each employee.
        """
        stmt = select(Employee.id).where(
            Employee.employment_status == EmploymentStatus.active,
        )
        if entity_id is not None:
            stmt = stmt.where(Employee.entity_id == entity_id)
        employee_ids = (
            await db.execute(stmt.order_by(Employee.last_name, Employee.first_name))
        ).scalars().all()

        total = len(employee_ids)
        succeeded = failed = 0
        errors: list[dict[str, str]] = []
        aborted = False
        logger.info("Recalculating leave balances for %d employees (entity=%s)", total, entity_id)

        for index, employee_id in enumerate(employee_ids, start=1):
            if should_abort is not None and should_abort():
                aborted = True
                logger.info("Balance recalculation aborted after %d of %d", index - 1, total)
                break
            try:
                async with db.begin_nested():
                    await BalanceService.recalculate_balances_for_employee(
                        db, employee_id, as_of,
                    )
                succeeded += 1
            except Exception as exc:
                failed += 1
                errors.append({"employee_id": str(employee_id), "error": str(exc)})
                logger.warning(
                    "Balance recalculation failed for employee %s: %s",
                    employee_id, exc,
                )
            if on_progress is not None:
                on_progress(
                    BatchProgress(
                        processed=index,
                        total=total,
                        succeeded=succeeded,
                        failed=failed,
                        current_employee_id=employee_id,
                    )
                )

        leave_engine_cache.invalidate()
        logger.info(
            "Balance recalculation finished: %d ok, %d failed, %d total",
            succeeded, failed, total,
        )
        return BatchRecalculationResult(
            success=not errors and not aborted,
            processed=succeeded,
            total=total,
            failed=failed,
            aborted=aborted,
            errors=errors,
        )

    # ─────────────────────────────────────────────────────────────────
    # Adjustments
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def adjust_leave_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        hours: float,
        reason: str = "",
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeBalances:
        """Add ``hours`` (may be negative) to the stored adjustment for a category."""
        await load_employee(db, employee_id)
        stored = await BalanceService._stored_balances(db, employee_id)
        row = stored.get(category)
        if row is None:
            row = LeaveBalance(
                id=uuid.uuid4(),
                employee_id=employee_id,
                leave_category=category,
                opening_balance_hours=Decimal("0"),
                adjusted_hours=Decimal("0"),
            )
            db.add(row)
            await db.flush()

        old_adjusted = Decimal(row.adjusted_hours or 0)
        row.adjusted_hours = old_adjusted + Decimal(str(hours))
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.BALANCE_ADJUSTED,
            entity_type="leave_balance",
            entity_id=row.id,
            actor_id=actor_id,
            old_values={"adjusted_hours": str(old_adjusted)},
            new_values={"adjusted_hours": str(row.adjusted_hours)},
            reason=reason or None,
        )

        balances = await BalanceService.recalculate_balances_for_employee(db, employee_id)
        leave_engine_cache.invalidate(employee_id)
        return balances
