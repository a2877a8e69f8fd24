"""Leave policy resolver and maintenance tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris.common.audit import AuditAction, AuditTrail
from hris.common.constants import (
    AccrualUnit,
    EmploymentType,
    LeaveCategory,
    PolicyScope,
)
from hris.common.exceptions import (
    LeaveErrorCode,
    LeaveRuleViolation,
    NoPolicyResolvedError,
)
from hris.leave.models import LeavePolicy
from hris.leave.policies import AU_NES_POLICIES, PolicyService
from tests.conftest import (
    _seed_employee,
    _seed_entity,
    _seed_nes_annual,
    _seed_policy,
)


# ═════════════════════════════════════════════════════════════════════
# 1. Resolution order
# ═════════════════════════════════════════════════════════════════════


class TestResolvePolicy:

    async def test_system_policy_when_no_company_policy(self, db: AsyncSession):
        nes = await _seed_nes_annual(db)
        emp = await _seed_employee(db)

        policy, source = await PolicyService.resolve_policy(db, emp, LeaveCategory.annual)
        assert policy.id == nes.id
        assert source == "system"

    async def test_company_policy_beats_system(self, db: AsyncSession):
        await _seed_nes_annual(db)
        company = await _seed_policy(
            db, name="Acme Annual", accrual_rate=Decimal("5"),
        )
        emp = await _seed_employee(db)

        policy, source = await PolicyService.resolve_policy(db, emp, LeaveCategory.annual)
        assert policy.id == company.id
        assert source == "company"

    async def test_entity_specific_company_policy_preferred(self, db: AsyncSession):
        entity = await _seed_entity(db)
        await _seed_policy(db, name="Group Annual", scope=PolicyScope.any)
        local = await _seed_policy(db, name="Acme Annual", entity_id=entity.id)
        emp = await _seed_employee(db, entity_id=entity.id)

        policy = await PolicyService.get_applicable_policy(db, emp, LeaveCategory.annual)
        assert policy.id == local.id

    async def test_other_entity_policy_ignored(self, db: AsyncSession):
        entity = await _seed_entity(db)
        other = await _seed_entity(db, name="Other Co")
        nes = await _seed_nes_annual(db)
        await _seed_policy(db, name="Other Annual", entity_id=other.id)
        emp = await _seed_employee(db, entity_id=entity.id)

        policy = await PolicyService.get_applicable_policy(db, emp, LeaveCategory.annual)
        assert policy.id == nes.id

    async def test_employee_override_wins(self, db: AsyncSession):
        await _seed_policy(db, name="Acme Annual")
        special = await _seed_policy(
            db, name="Executive Annual", accrual_rate=Decimal("6"),
            scope=PolicyScope.part_time,
        )
        emp = await _seed_employee(db)
        emp.annual_leave_policy_id = special.id
        await db.flush()

        policy, source = await PolicyService.resolve_policy(db, emp, LeaveCategory.annual)
        assert policy.id == special.id
        assert source == "override"

    async def test_inactive_override_falls_through(self, db: AsyncSession):
        company = await _seed_policy(db, name="Acme Annual")
        retired = await _seed_policy(db, name="Retired", is_active=False)
        emp = await _seed_employee(db)
        emp.annual_leave_policy_id = retired.id
        await db.flush()

        policy = await PolicyService.get_applicable_policy(db, emp, LeaveCategory.annual)
        assert policy.id == company.id

    async def test_casual_has_no_nes_policy(self, db: AsyncSession):
        await _seed_nes_annual(db)
        emp = await _seed_employee(db, employment_type=EmploymentType.casual)

        with pytest.raises(NoPolicyResolvedError) as exc_info:
            await PolicyService.resolve_policy(db, emp, LeaveCategory.annual)
        assert exc_info.value.category == "annual"


# ═════════════════════════════════════════════════════════════════════
# 2. Leave context
# ═════════════════════════════════════════════════════════════════════


class TestLeaveContext:

    async def test_missing_category_does_not_block_others(self, db: AsyncSession):
        await _seed_nes_annual(db)
        emp = await _seed_employee(db)

        context = await PolicyService.get_leave_context_for_employee(
            db, emp.id, date(2026, 1, 1),
        )
        assert context.policies[LeaveCategory.annual] is not None
        assert context.policies[LeaveCategory.personal] is None
        assert LeaveCategory.personal in context.unresolved

    async def test_long_service_eligibility_date(self, db: AsyncSession):
        await _seed_policy(
            db,
            name="Long Service Leave",
            leave_type=LeaveCategory.long_service,
            accrual_rate=Decimal("0.8667"),
            min_service_years=Decimal("7"),
        )
        emp = await _seed_employee(db, start_date=date(2022, 7, 1))

        context = await PolicyService.get_leave_context_for_employee(
            db, emp.id, date(2026, 7, 1),
        )
        lsl = context.policies[LeaveCategory.long_service]
        assert lsl is not None
        assert lsl.eligible is False
        assert lsl.eligibility_date == date(2029, 7, 1)
        assert lsl.years_of_service == pytest.approx(4.0, abs=0.01)


# ═════════════════════════════════════════════════════════════════════
# 3. Maintenance
# ═════════════════════════════════════════════════════════════════════


class TestPolicyMaintenance:

    async def test_set_default_clears_previous(self, db: AsyncSession):
        first = await _seed_policy(db, name="Plan A", is_default=True)
        second = await _seed_policy(db, name="Plan B")
        other_scope = await _seed_policy(
            db, name="Plan PT", scope=PolicyScope.part_time, is_default=True,
        )

        await PolicyService.set_default_policy(db, second.id)

        result = await db.execute(
            select(LeavePolicy).where(LeavePolicy.is_default.is_(True))
        )
        defaults = {p.id for p in result.scalars().all()}
        assert defaults == {second.id, other_scope.id}
        assert first.id not in defaults

    async def test_system_policy_not_deletable(self, db: AsyncSession):
        nes = await _seed_nes_annual(db)
        with pytest.raises(LeaveRuleViolation) as exc_info:
            await PolicyService.delete_policy(db, nes.id)
        assert exc_info.value.code == LeaveErrorCode.SYSTEM_POLICY_NOT_DELETABLE.value

    async def test_delete_company_policy_deactivates_and_audits(self, db: AsyncSession):
        admin = await _seed_employee(db)
        policy = await _seed_policy(db, name="Old Plan")

        await PolicyService.delete_policy(db, policy.id, actor_id=admin.id)

        assert policy.is_active is False
        audit = (await db.execute(
            select(AuditTrail).where(AuditTrail.entity_id == policy.id)
        )).scalars().first()
        assert audit is not None
        assert audit.action == AuditAction.POLICY_DELETED

    async def test_seed_nes_policies_idempotent(self, db: AsyncSession):
        first = await PolicyService.ensure_default_australian_leave_policies(db)
        second = await PolicyService.ensure_default_australian_leave_policies(db)

        codes = [p["code"] for p in AU_NES_POLICIES]
        assert sorted(first["created"]) == sorted(codes)
        assert second["created"] == []
        assert sorted(second["existing"]) == sorted(codes)

        result = await db.execute(select(LeavePolicy).where(LeavePolicy.is_system.is_(True)))
        seeded = result.scalars().all()
        assert len(seeded) == 4
        annual_ft = next(p for p in seeded if p.code == "ANNUAL_FT_AU")
        assert annual_ft.accrual_unit == AccrualUnit.weeks_per_year
        assert annual_ft.accrual_rate == Decimal("4")
