"""Leave policy resolver and policy maintenance.

Resolution order for one employee and category:
  0. explicit per-employee override, if it points at an active policy
  1. active company (non-system) policy for the employee's employment type
     and entity, most specific first
  2. active system/default policy for the category and country
  3. otherwise NoPolicyResolvedError
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hris.common.audit import AuditAction, create_audit_entry
from hris.common.constants import (
    NES_COUNTRY,
    AccrualUnit,
    LeaveCategory,
    PolicyScope,
)
from hris.common.exceptions import (
    LeaveErrorCode,
    LeaveRuleViolation,
    NoPolicyResolvedError,
    NotFoundException,
)
from hris.config import settings
from hris.core_hr.models import CompanyEntity, Employee
from hris.leave.accrual import add_years, get_service_start_date, years_of_service
from hris.leave.calculator import load_employee
from hris.leave.models import LeavePolicy

logger = logging.getLogger(__name__)

_OVERRIDE_FIELDS: dict[LeaveCategory, str] = {
    LeaveCategory.annual: "annual_leave_policy_id",
    LeaveCategory.personal: "personal_leave_policy_id",
    LeaveCategory.long_service: "long_service_leave_policy_id",
}


# ═════════════════════════════════════════════════════════════════════
# NES statutory minimums
# ═════════════════════════════════════════════════════════════════════

AU_NES_POLICIES: list[dict[str, Any]] = [
    {
        "code": "ANNUAL_FT_AU",
        "name": "Annual Leave - Full Time (NES)",
        "leave_type": LeaveCategory.annual,
        "employment_type_scope": PolicyScope.full_time,
        "accrual_unit": AccrualUnit.weeks_per_year,
        "accrual_rate": Decimal("4"),
    },
    {
        "code": "ANNUAL_PT_AU",
        "name": "Annual Leave - Part Time (NES, pro-rata)",
        "leave_type": LeaveCategory.annual,
        "employment_type_scope": PolicyScope.part_time,
        "accrual_unit": AccrualUnit.weeks_per_year,
        "accrual_rate": Decimal("4"),
    },
    {
        "code": "PERSONAL_FT_AU",
        "name": "Personal/Carer's Leave - Full Time (NES)",
        "leave_type": LeaveCategory.personal,
        "employment_type_scope": PolicyScope.full_time,
        "accrual_unit": AccrualUnit.days_per_year,
        "accrual_rate": Decimal("10"),
    },
    {
        "code": "PERSONAL_PT_AU",
        "name": "Personal/Carer's Leave - Part Time (NES, pro-rata)",
        "leave_type": LeaveCategory.personal,
        "employment_type_scope": PolicyScope.part_time,
        "accrual_unit": AccrualUnit.days_per_year,
        "accrual_rate": Decimal("10"),
    },
]


# ═════════════════════════════════════════════════════════════════════
# Context objects
# ═════════════════════════════════════════════════════════════════════


@dataclass
class PolicyContext:
    """Resolved policy for one category plus service eligibility."""

    category: LeaveCategory
    policy: LeavePolicy
    eligible: bool = True
    eligibility_date: Optional[date] = None
    years_of_service: float = 0.0
    source: str = "company"


@dataclass
class LeaveContext:
    employee: Employee
    as_of: date
    policies: dict[LeaveCategory, Optional[PolicyContext]] = field(default_factory=dict)
    unresolved: dict[LeaveCategory, str] = field(default_factory=dict)

    def policy_for(self, category: LeaveCategory) -> Optional[LeavePolicy]:
        ctx = self.policies.get(category)
        return ctx.policy if ctx is not None else None


def employee_scope(employee: Employee) -> PolicyScope:
    return PolicyScope(employee.employment_type.value)


def _specificity(policy: LeavePolicy, employee: Employee) -> tuple:
    return (
        0 if policy.entity_id is not None and policy.entity_id == employee.entity_id else 1,
        0 if policy.employment_type_scope == employee_scope(employee) else 1,
        0 if policy.is_default else 1,
        policy.name,
    )


def eligibility_for(
    policy: LeavePolicy,
    employee: Employee,
    as_of: date,
) -> tuple[bool, Optional[date], float]:
    """``(eligible, eligibility_date, years_of_service)`` for a resolved policy."""
    start = get_service_start_date(employee)
    service = round(years_of_service(start, as_of), 2)
    if not policy.min_service_years_before_accrual:
        return True, None, service
    if start is None:
        return False, None, service
    eligibility_date = add_years(start, int(policy.min_service_years_before_accrual))
    return as_of >= eligibility_date, eligibility_date, service


# ═════════════════════════════════════════════════════════════════════
# PolicyService
# ═════════════════════════════════════════════════════════════════════


class PolicyService:
    """Resolve, maintain and seed leave policies."""

    @staticmethod
    async def _employee_country(db: AsyncSession, employee: Employee) -> str:
        if employee.entity_id is not None:
            entity = await db.get(CompanyEntity, employee.entity_id)
            if entity is not None and entity.country:
                return entity.country
        return settings.DEFAULT_COUNTRY

    @staticmethod
    async def _candidates(
        db: AsyncSession,
        employee: Employee,
        category: LeaveCategory,
        country: str,
    ) -> Sequence[LeavePolicy]:
        result = await db.execute(
            select(LeavePolicy).where(
                LeavePolicy.is_active.is_(True),
                LeavePolicy.leave_type == category,
                LeavePolicy.employment_type_scope.in_(
                    [employee_scope(employee), PolicyScope.any]
                ),
                or_(
                    LeavePolicy.entity_id.is_(None),
                    LeavePolicy.entity_id == employee.entity_id,
                ),
                or_(LeavePolicy.country.is_(None), LeavePolicy.country == country),
            )
        )
        return result.scalars().all()

    @staticmethod
    async def resolve_policy(
        db: AsyncSession,
        employee: Employee,
        category: LeaveCategory,
    ) -> tuple[LeavePolicy, str]:
        """Return ``(policy, source)`` where source is override/company/system.

        Raises:
            NoPolicyResolvedError: neither a company nor a system policy applies.
        """
        override_id = getattr(employee, _OVERRIDE_FIELDS[category])
        if override_id is not None:
            override = await db.get(LeavePolicy, override_id)
            if override is not None and override.is_active and override.leave_type == category:
                return override, "override"

        country = await PolicyService._employee_country(db, employee)
        candidates = await PolicyService._candidates(db, employee, category, country)

        company = [p for p in candidates if not p.is_system]
        if company:
            return min(company, key=lambda p: _specificity(p, employee)), "company"

        fallback = [p for p in candidates if p.is_system or p.is_default]
        if fallback:
            return min(fallback, key=lambda p: _specificity(p, employee)), "system"

        raise NoPolicyResolvedError(category.value, employee.id)

    @staticmethod
    async def get_applicable_policy(
        db: AsyncSession,
        employee: Employee,
        category: LeaveCategory,
    ) -> LeavePolicy:
        policy, _ = await PolicyService.resolve_policy(db, employee, category)
        return policy

    @staticmethod
    async def get_leave_context_for_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        as_of: Optional[date] = None,
        *,
        employee: Optional[Employee] = None,
    ) -> LeaveContext:
        """Resolve the policy for every leave category.

        A category with no applicable policy maps to ``None`` and its reason
        is recorded in ``unresolved``; other categories are unaffected.
        """
        as_of = as_of or date.today()
        if employee is None:
            employee = await load_employee(db, employee_id)

        context = LeaveContext(employee=employee, as_of=as_of)
        for category in LeaveCategory:
            try:
                policy, source = await PolicyService.resolve_policy(db, employee, category)
            except NoPolicyResolvedError as exc:
                context.policies[category] = None
                context.unresolved[category] = exc.detail
                continue
            eligible, eligibility_date, service = eligibility_for(policy, employee, as_of)
            context.policies[category] = PolicyContext(
                category=category,
                policy=policy,
                eligible=eligible,
                eligibility_date=eligibility_date,
                years_of_service=service,
                source=source,
            )
        return context

    # ─────────────────────────────────────────────────────────────────
    # Maintenance
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def set_default_policy(
        db: AsyncSession,
        policy_id: uuid.UUID,
    ) -> LeavePolicy:
        """Mark a policy as the default for its (category, scope, entity).

        Any other active default in the same slot is cleared so at most one
        default is active at a time.
        """
        policy = await db.get(LeavePolicy, policy_id)
        if policy is None or not policy.is_active:
            raise NotFoundException("LeavePolicy", str(policy_id))

        entity_clause = (
            LeavePolicy.entity_id.is_(None)
            if policy.entity_id is None
            else LeavePolicy.entity_id == policy.entity_id
        )
        await db.execute(
            update(LeavePolicy)
            .where(
                LeavePolicy.id != policy.id,
                LeavePolicy.is_active.is_(True),
                LeavePolicy.is_default.is_(True),
                LeavePolicy.leave_type == policy.leave_type,
                LeavePolicy.employment_type_scope == policy.employment_type_scope,
                entity_clause,
            )
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        policy.is_default = True
        policy.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return policy

    @staticmethod
    async def delete_policy(
        db: AsyncSession,
        policy_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Retire a company policy. System policies are statutory floors and stay."""
        policy = await db.get(LeavePolicy, policy_id)
        if policy is None:
            raise NotFoundException("LeavePolicy", str(policy_id))
        if policy.is_system:
            raise LeaveRuleViolation(LeaveErrorCode.SYSTEM_POLICY_NOT_DELETABLE)

        policy.is_active = False
        policy.is_default = False
        policy.updated_at = datetime.now(timezone.utc)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.POLICY_DELETED,
            entity_type="leave_policy",
            entity_id=policy.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )

    @staticmethod
    async def ensure_default_australian_leave_policies(
        db: AsyncSession,
    ) -> dict[str, list[str]]:
        """Seed the NES system policies. Safe to run repeatedly.

        Returns the policy codes that were ``created``, already ``existing``,
        and any ``errors``.
        """
        summary: dict[str, list[str]] = {"created": [], "existing": [], "errors": []}
        result = await db.execute(
            select(LeavePolicy.code).where(LeavePolicy.country == NES_COUNTRY)
        )
        present = {code for code in result.scalars().all() if code}
        now = datetime.now(timezone.utc)

        for template in AU_NES_POLICIES:
            code = template["code"]
            if code in present:
                summary["existing"].append(code)
                continue
            try:
                db.add(
                    LeavePolicy(
                        id=uuid.uuid4(),
                        country=NES_COUNTRY,
                        standard_hours_per_day=Decimal("7.6"),
                        hours_per_week_reference=Decimal("38"),
                        is_default=True,
                        is_system=True,
                        is_active=True,
                        allow_negative_balance=False,
                        created_at=now,
                        updated_at=now,
                        **template,
                    )
                )
                await db.flush()
            except Exception as exc:
                logger.exception("Failed to seed leave policy %s", code)
                summary["errors"].append(f"{code}: {exc}")
                continue
            summary["created"].append(code)

        logger.info(
            "NES policy seeding: created=%s existing=%s errors=%d",
            summary["created"], summary["existing"], len(summary["errors"]),
        )
        return summary
