"""NES (National Employment Standards) compliance checks for leave policies.

Only active policies for Australia (or with no country) are checked.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris.common.constants import (
    DEFAULT_HOURS_PER_DAY,
    DEFAULT_HOURS_PER_WEEK,
    NES_COUNTRY,
    AccrualUnit,
    ComplianceSeverity,
    LeaveCategory,
    PolicyScope,
)
from hris.leave.models import LeavePolicy

NES_ANNUAL_MIN_WEEKS = 4.0
NES_PERSONAL_MIN_DAYS = 10.0
SHIFTWORKER_WEEKS = (4.9, 5.1)

_SEVERITY_ORDER = (
    ComplianceSeverity.error,
    ComplianceSeverity.warning,
    ComplianceSeverity.info,
)


@dataclass(frozen=True)
class ComplianceIssue:
    policy_id: Optional[uuid.UUID]
    policy_name: str
    severity: ComplianceSeverity
    rule: str
    message: str


@dataclass(frozen=True)
class ComplianceSummary:
    total: int
    errors: int
    warnings: int
    info: int

    @property
    def is_compliant(self) -> bool:
        return self.errors == 0

    @property
    def has_warnings(self) -> bool:
        return self.warnings > 0


def _rate(policy: LeavePolicy) -> float:
    return float(policy.accrual_rate or 0)


def _hours_per_day(policy: LeavePolicy) -> float:
    return float(policy.standard_hours_per_day or 0) or DEFAULT_HOURS_PER_DAY


def _hours_per_week(policy: LeavePolicy) -> float:
    return float(policy.hours_per_week_reference or 0) or DEFAULT_HOURS_PER_WEEK


def weeks_per_year(policy: LeavePolicy) -> float:
    unit = policy.accrual_unit
    if unit == AccrualUnit.weeks_per_year:
        return _rate(policy)
    if unit == AccrualUnit.days_per_year:
        return _rate(policy) * _hours_per_day(policy) / _hours_per_week(policy)
    if unit == AccrualUnit.hours_per_year:
        return _rate(policy) / _hours_per_week(policy)
    return 0.0


def days_per_year(policy: LeavePolicy) -> float:
    unit = policy.accrual_unit
    if unit == AccrualUnit.days_per_year:
        return _rate(policy)
    if unit == AccrualUnit.weeks_per_year:
        return _rate(policy) * 5
    if unit == AccrualUnit.hours_per_year:
        return _rate(policy) / _hours_per_day(policy)
    return 0.0


def missing_fields(policy: LeavePolicy) -> list[str]:
    missing = []
    if not policy.accrual_unit:
        missing.append("accrual_unit")
    if policy.accrual_rate is None:
        missing.append("accrual_rate")
    if not policy.standard_hours_per_day or policy.standard_hours_per_day <= 0:
        missing.append("standard_hours_per_day")
    if policy.accrual_unit == AccrualUnit.weeks_per_year and (
        not policy.hours_per_week_reference or policy.hours_per_week_reference <= 0
    ):
        missing.append("hours_per_week_reference")
    return missing


def check_policy_compliance(policy: LeavePolicy) -> list[ComplianceIssue]:
    """Every NES issue for a single policy."""
    issues: list[ComplianceIssue] = []
    name = policy.name or "Unnamed Policy"
    scope = policy.employment_type_scope
    category = policy.leave_type

    def add(severity: ComplianceSeverity, rule: str, message: str) -> None:
        issues.append(ComplianceIssue(policy.id, name, severity, rule, message))

    if category == LeaveCategory.annual:
        weeks = weeks_per_year(policy)
        if weeks < NES_ANNUAL_MIN_WEEKS:
            if scope in (PolicyScope.full_time, PolicyScope.any):
                add(
                    ComplianceSeverity.error,
                    "ANNUAL_FT_MIN",
                    "Annual Leave for full-time employees must accrue at least "
                    f"4 weeks per year under NES. Current: {weeks:.1f} weeks/year",
                )
            elif scope == PolicyScope.part_time:
                add(
                    ComplianceSeverity.error,
                    "ANNUAL_PT_MIN",
                    "Annual Leave for part-time employees must accrue at least "
                    "4 weeks per year (pro-rata applied automatically). "
                    f"Current: {weeks:.1f} weeks/year",
                )

    if category == LeaveCategory.personal:
        days = days_per_year(policy)
        if days < NES_PERSONAL_MIN_DAYS:
            if scope in (PolicyScope.full_time, PolicyScope.any):
                add(
                    ComplianceSeverity.error,
                    "PERSONAL_FT_MIN",
                    "Personal/Carer's Leave for full-time employees must accrue at "
                    f"least 10 days per year under NES. Current: {days:.1f} days/year",
                )
            elif scope == PolicyScope.part_time:
                add(
                    ComplianceSeverity.error,
                    "PERSONAL_PT_MIN",
                    "Personal/Carer's Leave for part-time employees must accrue at "
                    "least 10 days per year (pro-rata applied automatically). "
                    f"Current: {days:.1f} days/year",
                )

    if (
        scope == PolicyScope.casual
        and category in (LeaveCategory.annual, LeaveCategory.personal)
        and _rate(policy) > 0
    ):
        label = "annual" if category == LeaveCategory.annual else "personal/carer's"
        add(
            ComplianceSeverity.error,
            "CASUAL_NO_PAID_LEAVE",
            f"Casual employees are not entitled to paid {label} leave under NES. "
            f"This policy has an accrual rate of {_rate(policy):g}.",
        )

    missing = missing_fields(policy)
    if missing:
        add(
            ComplianceSeverity.warning,
            "MISSING_FIELDS",
            f"Policy is missing required fields: {', '.join(missing)}",
        )

    if category == LeaveCategory.annual:
        low, high = SHIFTWORKER_WEEKS
        if low <= weeks_per_year(policy) <= high:
            add(
                ComplianceSeverity.info,
                "SHIFTWORKER_5_WEEKS",
                "This appears to be a shiftworker 5-week annual leave policy, "
                "which is valid under certain awards.",
            )

    return issues


def check_nes_compliance(policies: Iterable[LeavePolicy]) -> list[ComplianceIssue]:
    issues: list[ComplianceIssue] = []
    for policy in policies:
        if policy.is_active is False:
            continue
        if policy.country and policy.country != NES_COUNTRY:
            continue
        issues.extend(check_policy_compliance(policy))
    return issues


async def check_all_policies(db: AsyncSession) -> list[ComplianceIssue]:
    result = await db.execute(
        select(LeavePolicy)
        .where(LeavePolicy.is_active.is_(True))
        .order_by(LeavePolicy.leave_type, LeavePolicy.name)
    )
    return check_nes_compliance(result.scalars().all())


def get_compliance_summary(issues: Sequence[ComplianceIssue]) -> ComplianceSummary:
    return ComplianceSummary(
        total=len(issues),
        errors=sum(1 for i in issues if i.severity == ComplianceSeverity.error),
        warnings=sum(1 for i in issues if i.severity == ComplianceSeverity.warning),
        info=sum(1 for i in issues if i.severity == ComplianceSeverity.info),
    )


def get_issues_for_policy(
    policy_id: uuid.UUID,
    issues: Sequence[ComplianceIssue],
) -> list[ComplianceIssue]:
    return [i for i in issues if i.policy_id == policy_id]


def get_highest_severity_for_policy(
    policy_id: uuid.UUID,
    issues: Sequence[ComplianceIssue],
) -> Optional[ComplianceSeverity]:
    present = {i.severity for i in get_issues_for_policy(policy_id, issues)}
    for severity in _SEVERITY_ORDER:
        if severity in present:
            return severity
    return None
