"""Core HR ORM models: CompanyEntity, Employee.

Only the attributes the leave engine reads are modelled; the wider employee
profile lives in the external directory.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hris.common.constants import EmploymentStatus, EmploymentType
from hris.database import Base

if TYPE_CHECKING:
    from hris.leave.models import LeaveBalance, LeaveRequest


# ═════════════════════════════════════════════════════════════════════
# CompanyEntity
# ═════════════════════════════════════════════════════════════════════


class CompanyEntity(Base):
    """Legal entity / business unit that employs staff."""

    __tablename__ = "company_entities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    abbreviation: Mapped[Optional[str]] = mapped_column(sa.String(20))
    country: Mapped[str] = mapped_column(sa.String(2), server_default="AU")
    state_region: Mapped[Optional[str]] = mapped_column(sa.String(50))
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    employees: Mapped[list[Employee]] = relationship(back_populates="entity")

    def __repr__(self) -> str:
        return f"<CompanyEntity {self.name}>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Employee record. Never hard-deleted; termination flips the status."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_code: Mapped[Optional[str]] = mapped_column(sa.String(20), unique=True)
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    preferred_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)

    # ── Employment ──────────────────────────────────────────────────
    employment_type: Mapped[EmploymentType] = mapped_column(
        sa.Enum(EmploymentType, name="employment_type"),
        nullable=False,
        server_default="full_time",
    )
    employment_status: Mapped[EmploymentStatus] = mapped_column(
        sa.Enum(EmploymentStatus, name="employment_status"),
        nullable=False,
        server_default="active",
    )
    start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    service_start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    termination_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    hours_per_week: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 2))

    # ── Organisation ────────────────────────────────────────────────
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("company_entities.id"),
    )
    state: Mapped[Optional[str]] = mapped_column(sa.String(50))
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    is_manager: Mapped[bool] = mapped_column(
        sa.Boolean, server_default=sa.text("FALSE"),
    )

    # ── Per-employee policy overrides ───────────────────────────────
    annual_leave_policy_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_policies.id"),
    )
    personal_leave_policy_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_policies.id"),
    )
    long_service_leave_policy_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_policies.id"),
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # Relationships
    entity: Mapped[Optional[CompanyEntity]] = relationship(back_populates="employees")
    manager: Mapped[Optional[Employee]] = relationship(
        remote_side="Employee.id",
        foreign_keys=[manager_id],
    )
    leave_requests: Mapped[list[LeaveRequest]] = relationship(
        back_populates="employee",
        foreign_keys="LeaveRequest.employee_id",
    )
    leave_balances: Mapped[list[LeaveBalance]] = relationship(
        back_populates="employee",
    )

    @property
    def is_active(self) -> bool:
        return self.employment_status != EmploymentStatus.terminated

    @property
    def display_name(self) -> str:
        first = self.preferred_name or self.first_name
        return f"{first} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Employee {self.employee_code or self.id} {self.display_name}>"
