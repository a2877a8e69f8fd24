"""Leave ORM models: LeaveType, LeavePolicy, LeaveRequest, LeaveBalance."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hris.common.constants import (
    PAID_LEAVE_CATEGORIES,
    AccrualUnit,
    LeaveCategory,
    LeaveStatus,
    PartialDayType,
    PolicyScope,
)
from hris.database import Base

if TYPE_CHECKING:
    from hris.core_hr.models import Employee


class LeaveType(Base):
    """A bookable kind of leave ("Annual Leave", "Carer's Leave", ...).

    ``category`` ties the type to the balance it draws from; when unset the
    category is inferred from the code and name.
    """

    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    category: Mapped[Optional[LeaveCategory]] = mapped_column(
        sa.Enum(LeaveCategory, name="leave_category")
    )
    is_paid: Mapped[bool] = mapped_column(sa.Boolean, server_default=sa.text("TRUE"))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, server_default=sa.text("TRUE"))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")

    @property
    def resolved_category(self) -> LeaveCategory:
        return category_for(self.code, self.name, self.category)

    @property
    def is_paid_category(self) -> bool:
        """Paid annual or personal leave, the kinds casual employees cannot book.

        Only a positive match counts. A paid type that merely falls back to
        the annual balance (jury duty, bereavement) is not blocked.
        """
        matched = matched_category(self.code, self.name, self.category)
        return bool(self.is_paid) and matched in PAID_LEAVE_CATEGORIES


def matched_category(
    code: Optional[str],
    name: Optional[str] = None,
    explicit: Optional[LeaveCategory] = None,
) -> Optional[LeaveCategory]:
    """Category named by the type itself, or ``None`` when nothing matches."""
    if explicit is not None:
        return LeaveCategory(explicit)
    text = f"{code or ''} {name or ''}".lower()
    if any(key in text for key in ("personal", "sick", "carer")):
        return LeaveCategory.personal
    if "long" in text or "lsl" in text:
        return LeaveCategory.long_service
    if "annual" in text or (code or "").strip().upper() == "AL":
        return LeaveCategory.annual
    return None


def category_for(
    code: Optional[str],
    name: Optional[str] = None,
    explicit: Optional[LeaveCategory] = None,
) -> LeaveCategory:
    """Map a leave type to the balance category it draws from."""
    return matched_category(code, name, explicit) or LeaveCategory.annual


class LeavePolicy(Base):
    """Accrual rules for one leave category and employment-type scope.

    System policies encode statutory floors (NES) and cannot be deleted.
    """

    __tablename__ = "leave_policies"
    __table_args__ = (
        sa.Index(
            "ix_leave_policies_lookup",
            "leave_type", "employment_type_scope", "entity_id",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(sa.String(50))
    leave_type: Mapped[LeaveCategory] = mapped_column(
        sa.Enum(LeaveCategory, name="leave_category"), nullable=False
    )
    employment_type_scope: Mapped[PolicyScope] = mapped_column(
        sa.Enum(PolicyScope, name="policy_scope"),
        nullable=False,
        server_default="any",
    )
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("company_entities.id")
    )
    country: Mapped[Optional[str]] = mapped_column(sa.String(2))

    accrual_unit: Mapped[AccrualUnit] = mapped_column(
        sa.Enum(AccrualUnit, name="accrual_unit"),
        nullable=False,
        server_default="days_per_year",
    )
    accrual_rate: Mapped[Decimal] = mapped_column(
        sa.Numeric(8, 4), nullable=False, server_default=sa.text("0")
    )
    standard_hours_per_day: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), server_default=sa.text("7.6")
    )
    hours_per_week_reference: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), server_default=sa.text("38")
    )
    max_carryover_hours: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(8, 2))
    min_service_years_before_accrual: Mapped[Optional[Decimal]] = mapped_column(
        sa.Numeric(5, 2)
    )
    accrual_rate_after_threshold: Mapped[Optional[Decimal]] = mapped_column(
        sa.Numeric(8, 4)
    )
    allow_negative_balance: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.text("FALSE")
    )

    is_default: Mapped[bool] = mapped_column(sa.Boolean, server_default=sa.text("FALSE"))
    is_system: Mapped[bool] = mapped_column(sa.Boolean, server_default=sa.text("FALSE"))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, server_default=sa.text("TRUE"))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    def __repr__(self) -> str:
        return f"<LeavePolicy {self.code or self.name} {self.leave_type.value}>"


class LeaveRequest(Base):
    """A leave request. Never deleted; cancellation is a status change."""

    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.Index("ix_leave_requests_employee_status", "employee_id", "status"),
        sa.Index("ix_leave_requests_dates", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    partial_day_type: Mapped[PartialDayType] = mapped_column(
        sa.Enum(PartialDayType, name="partial_day_type"),
        nullable=False,
        server_default="full",
    )
    total_days: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(6, 1))
    day_details: Mapped[Optional[dict]] = mapped_column(JSONB)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    manager_comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        server_default="pending",
    )
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    employee: Mapped[Employee] = relationship(
        back_populates="leave_requests",
        foreign_keys=[employee_id],
    )
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests")

    @property
    def is_half_day(self) -> bool:
        return (
            self.partial_day_type in (PartialDayType.half_am, PartialDayType.half_pm)
            and self.start_date == self.end_date
        )


class LeaveBalance(Base):
    """Materialized balance snapshot per employee and category.

    ``opening_balance_hours`` and ``adjusted_hours`` are inputs owned by this
    row. The remaining figures are recomputed from policy and request history
    and written back by the recalculation jobs; they are never edited directly.
    """

    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_category", name="uq_leave_balance_category"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_category: Mapped[LeaveCategory] = mapped_column(
        sa.Enum(LeaveCategory, name="leave_category"), nullable=False
    )
    opening_balance_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(8, 2), server_default=sa.text("0")
    )
    adjusted_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(8, 2), server_default=sa.text("0")
    )
    accrued_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(8, 2), server_default=sa.text("0")
    )
    used_approved_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(8, 2), server_default=sa.text("0")
    )
    used_pending_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(8, 2), server_default=sa.text("0")
    )
    available_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(8, 2), server_default=sa.text("0")
    )
    policy_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_policies.id")
    )
    last_calculated_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )

    employee: Mapped[Employee] = relationship(
        back_populates="leave_balances"
    )
