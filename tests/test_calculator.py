"""Chargeable-days calculator tests — pure counting and holiday lookup."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hris.common.constants import PartialDayType
from hris.common.exceptions import (
    EmployeeNotFoundError,
    InvalidRangeError,
    LeaveErrorCode,
    LeaveRuleViolation,
)
from hris.leave.calculator import calculate_chargeable_leave, count_chargeable_days
from tests.conftest import _seed_employee, _seed_entity, _seed_holiday

# 2026-02-23 is a Monday
MON = date(2026, 2, 23)
TUE = date(2026, 2, 24)
WED = date(2026, 2, 25)
FRI = date(2026, 2, 27)
SAT = date(2026, 2, 28)
SUN = date(2026, 3, 1)


# ═════════════════════════════════════════════════════════════════════
# 1. count_chargeable_days — pure logic (no DB)
# ═════════════════════════════════════════════════════════════════════


class TestCountChargeableDays:

    def test_full_week(self):
        result = count_chargeable_days(MON, FRI, {})
        assert result.total_days == 5
        assert result.weekend_count == 0
        assert result.chargeable_days == Decimal("5")

    def test_weekends_excluded(self):
        """Mon–Sun → 5 working days, Sat/Sun marked as weekend."""
        result = count_chargeable_days(MON, SUN, {})
        assert result.total_days == 7
        assert result.weekend_count == 2
        assert result.chargeable_days == Decimal("5")
        assert result.day_details["2026-02-28"] == "weekend"
        assert result.day_details["2026-03-01"] == "weekend"

    def test_weekend_only_range_is_zero(self):
        result = count_chargeable_days(SAT, SUN, {})
        assert result.chargeable_days == Decimal("0")

    def test_weekday_holiday_excluded(self):
        result = count_chargeable_days(MON, FRI, {WED: "Show Day"})
        assert result.chargeable_days == Decimal("4")
        assert result.holiday_count == 1
        assert result.holidays[0].name == "Show Day"
        assert result.day_details["2026-02-25"] == "holiday"

    def test_holiday_on_weekend_counted_once_as_weekend(self):
        result = count_chargeable_days(MON, SUN, {SAT: "Substitute Day"})
        assert result.weekend_count == 2
        assert result.holiday_count == 0
        assert result.chargeable_days == Decimal("5")

    def test_half_day_counts_half(self):
        result = count_chargeable_days(TUE, TUE, {}, PartialDayType.half_am)
        assert result.is_half_day
        assert result.chargeable_days == Decimal("0.5")

    def test_half_day_on_holiday_is_zero(self):
        result = count_chargeable_days(WED, WED, {WED: "Show Day"}, PartialDayType.half_pm)
        assert result.chargeable_days == Decimal("0")

    def test_half_day_across_range_rejected(self):
        with pytest.raises(LeaveRuleViolation) as exc_info:
            count_chargeable_days(MON, TUE, {}, PartialDayType.half_am)
        assert exc_info.value.code == LeaveErrorCode.HALF_DAY_MUST_BE_SINGLE_DAY.value

    def test_end_before_start_rejected(self):
        with pytest.raises(InvalidRangeError):
            count_chargeable_days(FRI, MON, {})

    def test_single_day(self):
        result = count_chargeable_days(MON, MON, {})
        assert result.total_days == 1
        assert result.chargeable_days == Decimal("1")

    def test_idempotent(self):
        holidays = {WED: "Show Day"}
        first = count_chargeable_days(MON, SUN, holidays)
        second = count_chargeable_days(MON, SUN, holidays)
        assert first == second


# ═════════════════════════════════════════════════════════════════════
# 2. calculate_chargeable_leave — holidays resolved per employee
# ═════════════════════════════════════════════════════════════════════


class TestCalculateChargeableLeave:

    async def test_uses_employee_state_holidays(self, db: AsyncSession):
        entity = await _seed_entity(db)
        nsw = await _seed_employee(db, entity_id=entity.id, state="NSW")
        vic = await _seed_employee(db, entity_id=entity.id, state="VIC")
        await _seed_holiday(db, WED, "Regional Show", state_region="NSW")

        nsw_result = await calculate_chargeable_leave(db, MON, FRI, nsw.id)
        vic_result = await calculate_chargeable_leave(db, MON, FRI, vic.id)

        assert nsw_result.chargeable_days == Decimal("4")
        assert vic_result.chargeable_days == Decimal("5")

    async def test_national_holiday_applies_to_all(self, db: AsyncSession):
        entity = await _seed_entity(db)
        emp = await _seed_employee(db, entity_id=entity.id)
        await _seed_holiday(db, TUE, "National Day")

        result = await calculate_chargeable_leave(db, MON, FRI, emp.id)
        assert result.chargeable_days == Decimal("4")

    async def test_other_entity_holiday_ignored(self, db: AsyncSession):
        entity = await _seed_entity(db)
        other = await _seed_entity(db, name="Other Co")
        emp = await _seed_employee(db, entity_id=entity.id)
        await _seed_holiday(db, TUE, "Company Day", entity_id=other.id)

        result = await calculate_chargeable_leave(db, MON, FRI, emp.id)
        assert result.chargeable_days == Decimal("5")

    async def test_inactive_holiday_ignored(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_holiday(db, TUE, "Retired Holiday", is_active=False)

        result = await calculate_chargeable_leave(db, MON, FRI, emp.id)
        assert result.chargeable_days == Decimal("5")

    async def test_unknown_employee(self, db: AsyncSession):
        with pytest.raises(EmployeeNotFoundError):
            await calculate_chargeable_leave(db, MON, FRI, uuid.uuid4())

    async def test_invalid_range_checked_first(self, db: AsyncSession):
        with pytest.raises(InvalidRangeError):
            await calculate_chargeable_leave(db, FRI, MON, uuid.uuid4())
