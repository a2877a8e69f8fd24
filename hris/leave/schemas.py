"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
  - *Brief              → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hris.common.constants import (
    AccrualUnit,
    ComplianceSeverity,
    LeaveCategory,
    LeaveStatus,
    PartialDayType,
    PolicyScope,
)


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: Optional[str] = None
    display_name: str


class LeaveTypeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    is_paid: bool = True
    resolved_category: LeaveCategory


# ═════════════════════════════════════════════════════════════════════
# Chargeable days
# ═════════════════════════════════════════════════════════════════════


class HolidayHitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    name: str


class ChargeableLeaveOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_days: int
    weekend_count: int
    holiday_count: int
    chargeable_days: Decimal
    holidays: list[HolidayHitOut] = []
    is_half_day: bool = False
    partial_day_type: PartialDayType = PartialDayType.full


# ═════════════════════════════════════════════════════════════════════
# Policies
# ═════════════════════════════════════════════════════════════════════


class LeavePolicyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: Optional[str] = None
    leave_type: LeaveCategory
    employment_type_scope: PolicyScope
    entity_id: Optional[uuid.UUID] = None
    country: Optional[str] = None
    accrual_unit: AccrualUnit
    accrual_rate: Decimal
    standard_hours_per_day: Optional[Decimal] = None
    hours_per_week_reference: Optional[Decimal] = None
    max_carryover_hours: Optional[Decimal] = None
    min_service_years_before_accrual: Optional[Decimal] = None
    accrual_rate_after_threshold: Optional[Decimal] = None
    is_default: bool = False
    is_system: bool = False


class PolicyContextOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: LeaveCategory
    policy: LeavePolicyOut
    eligible: bool
    eligibility_date: Optional[date] = None
    years_of_service: float
    source: str


class LeaveContextOut(BaseModel):
    employee_id: uuid.UUID
    as_of: date
    policies: dict[LeaveCategory, Optional[PolicyContextOut]]
    unresolved: dict[LeaveCategory, str] = {}


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


class CategoryBalanceOut(BaseModel):
    """All figures in hours; ``available_days`` uses ``standard_hours_per_day``."""

    model_config = ConfigDict(from_attributes=True)

    category: LeaveCategory
    accrued: float
    opening_balance: float
    adjusted: float
    used_approved: float
    used_pending: float
    used: float
    total_entitlement: float
    available: float
    available_days: float
    standard_hours_per_day: float
    eligible: bool = True
    years_of_service: float = 0.0
    eligibility_date: Optional[date] = None
    policy_id: Optional[uuid.UUID] = None
    policy_name: Optional[str] = None
    message: Optional[str] = None


class EmployeeBalancesOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: uuid.UUID
    as_of: date
    annual: Optional[CategoryBalanceOut] = None
    personal: Optional[CategoryBalanceOut] = None
    long_service: Optional[CategoryBalanceOut] = None
    notices: dict[str, str] = {}
    error: Optional[str] = None


class BalanceAdjustRequest(BaseModel):
    category: LeaveCategory
    hours: float = Field(..., description="Hours to add (negative to deduct)")
    reason: str = Field(..., min_length=3, max_length=500)


class BatchRecalculationRequest(BaseModel):
    entity_id: Optional[uuid.UUID] = None
    as_of: Optional[date] = None


class BatchRecalculationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    processed: int
    total: int
    failed: int
    aborted: bool
    errors: list[dict[str, str]] = []


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request."""

    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000)
    partial_day_type: PartialDayType = PartialDayType.full
    employee_id: Optional[uuid.UUID] = Field(
        None, description="Defaults to the authenticated employee",
    )


class LeaveRequestOnBehalfCreate(BaseModel):
    """Payload for a manager/admin recording leave for someone else."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=1000)
    partial_day_type: PartialDayType = PartialDayType.full


class LeaveApproveRequest(BaseModel):
    comment: Optional[str] = Field(None, max_length=1000)


class LeaveDeclineRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class LeaveCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    partial_day_type: PartialDayType
    total_days: Optional[Decimal] = None
    reason: Optional[str] = None
    status: LeaveStatus
    manager_id: Optional[uuid.UUID] = None
    approved_by_id: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    leave_type: Optional[LeaveTypeBrief] = None


class LeaveRequestOutcomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool = True
    request: LeaveRequestOut
    chargeable: ChargeableLeaveOut
    auto_approved: bool = False
    balance_warning: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Reports
# ═════════════════════════════════════════════════════════════════════


class LeaveSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_date: date
    end_date: date
    days_by_category: dict[str, Decimal]
    total_days: Decimal
    approved_count: int
    pending_count: int
    employees_with_leave: int
    total_employees: int
    fallback_count: int


class LeaveCalendarEntry(BaseModel):
    request_id: uuid.UUID
    employee: EmployeeBrief
    leave_type_name: Optional[str] = None
    start_date: date
    end_date: date
    status: LeaveStatus
    is_half_day: bool


class ComplianceIssueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    policy_id: Optional[uuid.UUID] = None
    policy_name: str
    severity: ComplianceSeverity
    rule: str
    message: str


class ComplianceReportOut(BaseModel):
    total: int
    errors: int
    warnings: int
    info: int
    is_compliant: bool
    issues: list[ComplianceIssueOut]
