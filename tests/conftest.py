"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hris.common.constants import (
    AccrualUnit,
    ActingMode,
    EmploymentType,
    LeaveCategory,
    LeaveStatus,
    PartialDayType,
    PolicyScope,
    UserRole,
)
from hris.config import settings
from hris.database import Base, get_db
from hris.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hris.common.audit  # noqa: F401
import hris.core_hr.models  # noqa: F401
import hris.holidays.models  # noqa: F401
import hris.leave.models  # noqa: F401
import hris.notifications.models  # noqa: F401

from hris.core_hr.models import CompanyEntity, Employee
from hris.holidays.models import PublicHoliday
from hris.leave.cache import leave_engine_cache
from hris.leave.models import LeaveBalance, LeavePolicy, LeaveRequest, LeaveType
from hris.leave.permissions import ActingContext

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hris.common.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture(autouse=True)
def _reset_leave_cache():
    leave_engine_cache.reset()
    yield
    leave_engine_cache.reset()


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_entity(
    *,
    name: str = "Acme Pty Ltd",
    country: str = "AU",
    state_region: Optional[str] = "NSW",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        abbreviation=name[:4].upper(),
        country=country,
        state_region=state_region,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "User",
    employment_type: EmploymentType = EmploymentType.full_time,
    start_date: Optional[date] = date(2020, 1, 6),
    service_start_date: Optional[date] = None,
    hours_per_week: Optional[Decimal] = Decimal("38"),
    entity_id: Optional[uuid.UUID] = None,
    state: Optional[str] = "NSW",
    manager_id: Optional[uuid.UUID] = None,
    is_manager: bool = False,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_code=f"EMP-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        preferred_name=None,
        email=email or f"{first_name.lower()}.{uuid.uuid4().hex[:6]}@acme.com.au",
        employment_type=employment_type,
        employment_status="active",
        start_date=start_date,
        service_start_date=service_start_date,
        termination_date=None,
        hours_per_week=hours_per_week,
        entity_id=entity_id,
        state=state,
        manager_id=manager_id,
        is_manager=is_manager,
        annual_leave_policy_id=None,
        personal_leave_policy_id=None,
        long_service_leave_policy_id=None,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


# ── Seed helpers ────────────────────────────────────────────────────

async def _seed_entity(db: AsyncSession, **kwargs) -> CompanyEntity:
    entity = CompanyEntity(**_make_entity(**kwargs))
    db.add(entity)
    await db.flush()
    return entity


async def _seed_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


async def _seed_leave_type(
    db: AsyncSession,
    *,
    code: str = "AL",
    name: str = "Annual Leave",
    category: Optional[LeaveCategory] = None,
    is_paid: bool = True,
    is_active: bool = True,
) -> LeaveType:
    lt = LeaveType(
        id=uuid.uuid4(),
        code=code,
        name=name,
        category=category,
        is_paid=is_paid,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
    )
    db.add(lt)
    await db.flush()
    return lt


async def _seed_policy(
    db: AsyncSession,
    *,
    name: str = "Annual Leave - Full Time",
    code: Optional[str] = None,
    leave_type: LeaveCategory = LeaveCategory.annual,
    scope: PolicyScope = PolicyScope.full_time,
    accrual_unit: AccrualUnit = AccrualUnit.weeks_per_year,
    accrual_rate: Decimal = Decimal("4"),
    entity_id: Optional[uuid.UUID] = None,
    country: Optional[str] = "AU",
    max_carryover_hours: Optional[Decimal] = None,
    min_service_years: Optional[Decimal] = None,
    rate_after_threshold: Optional[Decimal] = None,
    allow_negative_balance: bool = False,
    is_default: bool = False,
    is_system: bool = False,
    is_active: bool = True,
) -> LeavePolicy:
    policy = LeavePolicy(
        id=uuid.uuid4(),
        name=name,
        code=code,
        leave_type=leave_type,
        employment_type_scope=scope,
        entity_id=entity_id,
        country=country,
        accrual_unit=accrual_unit,
        accrual_rate=accrual_rate,
        standard_hours_per_day=Decimal("7.6"),
        hours_per_week_reference=Decimal("38"),
        max_carryover_hours=max_carryover_hours,
        min_service_years_before_accrual=min_service_years,
        accrual_rate_after_threshold=rate_after_threshold,
        allow_negative_balance=allow_negative_balance,
        is_default=is_default,
        is_system=is_system,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db.add(policy)
    await db.flush()
    return policy


async def _seed_nes_annual(db: AsyncSession, **kwargs) -> LeavePolicy:
    """System full-time annual leave: 4 weeks x 38h = 152h/year."""
    kwargs.setdefault("name", "Annual Leave - Full Time (NES)")
    kwargs.setdefault("code", "ANNUAL_FT_AU")
    return await _seed_policy(db, is_system=True, is_default=True, **kwargs)


async def _seed_holiday(
    db: AsyncSession,
    day: date,
    name: str = "Public Holiday",
    *,
    entity_id: Optional[uuid.UUID] = None,
    state_region: Optional[str] = None,
    country: Optional[str] = "AU",
    is_active: bool = True,
) -> PublicHoliday:
    holiday = PublicHoliday(
        id=uuid.uuid4(),
        name=name,
        date=day,
        entity_id=entity_id,
        state_region=state_region,
        country=country,
        is_paid=True,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
    )
    db.add(holiday)
    await db.flush()
    return holiday


async def _seed_request(
    db: AsyncSession,
    employee: Employee,
    leave_type: LeaveType,
    start: date,
    end: date,
    *,
    status: LeaveStatus = LeaveStatus.approved,
    total_days: Optional[Decimal] = None,
    partial_day_type: PartialDayType = PartialDayType.full,
) -> LeaveRequest:
    req = LeaveRequest(
        id=uuid.uuid4(),
        employee_id=employee.id,
        leave_type_id=leave_type.id,
        start_date=start,
        end_date=end,
        partial_day_type=partial_day_type,
        total_days=total_days,
        day_details=None,
        status=status,
        manager_id=employee.manager_id,
        created_by_id=employee.id,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db.add(req)
    await db.flush()
    return req


async def _seed_opening_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    category: LeaveCategory,
    opening_hours: Decimal,
) -> LeaveBalance:
    row = LeaveBalance(
        id=uuid.uuid4(),
        employee_id=employee_id,
        leave_category=category,
        opening_balance_hours=opening_hours,
        adjusted_hours=Decimal("0"),
        accrued_hours=Decimal("0"),
        used_approved_hours=Decimal("0"),
        used_pending_hours=Decimal("0"),
        available_hours=Decimal("0"),
    )
    db.add(row)
    await db.flush()
    return row


def _ctx(
    employee: Employee,
    role: UserRole = UserRole.employee,
    mode: ActingMode = ActingMode.admin,
) -> ActingContext:
    return ActingContext.for_employee(employee, role, mode)


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    mode: Optional[ActingMode] = None,
) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}
    if mode is not None:
        headers["X-Acting-Mode"] = mode.value
    return headers


@pytest.fixture
async def test_employee(db) -> Employee:
    """An active full-time employee in an AU entity, with no manager."""
    entity = await _seed_entity(db)
    return await _seed_employee(db, entity_id=entity.id)


@pytest.fixture
async def auth_headers(test_employee) -> dict[str, str]:
    return auth_headers_for(test_employee.id)
