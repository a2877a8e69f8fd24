"""001 – Initial schema: entities, employees, leave engine tables, enums.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-09-14 10:30:00.000000+10:00
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("employment_type", ["full_time", "part_time", "casual", "contractor"]),
    ("employment_status", ["active", "on_leave", "terminated"]),
    ("leave_category", ["annual", "personal", "long_service"]),
    ("leave_status", ["pending", "approved", "declined", "cancelled"]),
    ("partial_day_type", ["full", "half_am", "half_pm"]),
    ("accrual_unit", ["days_per_year", "weeks_per_year", "hours_per_year"]),
    (
        "policy_scope",
        ["full_time", "part_time", "casual", "contractor", "any"],
    ),
    ("notification_type", ["info", "action_required", "approval", "alert"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. company_entities ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE company_entities (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name            VARCHAR(150) NOT NULL,
            abbreviation    VARCHAR(20),
            country         VARCHAR(2) DEFAULT 'AU',
            state_region    VARCHAR(50),
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. leave_policies ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_policies (
            id                                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                              VARCHAR(150) NOT NULL,
            code                              VARCHAR(50),
            leave_type                        leave_category NOT NULL,
            employment_type_scope             policy_scope NOT NULL DEFAULT 'any',
            entity_id                         UUID REFERENCES company_entities(id),
            country                           VARCHAR(2),
            accrual_unit                      accrual_unit NOT NULL DEFAULT 'days_per_year',
            accrual_rate                      NUMERIC(8,4) NOT NULL DEFAULT 0,
            standard_hours_per_day            NUMERIC(5,2) DEFAULT 7.6,
            hours_per_week_reference          NUMERIC(5,2) DEFAULT 38,
            max_carryover_hours               NUMERIC(8,2),
            min_service_years_before_accrual  NUMERIC(5,2),
            accrual_rate_after_threshold      NUMERIC(8,4),
            allow_negative_balance            BOOLEAN DEFAULT FALSE,
            is_default                        BOOLEAN DEFAULT FALSE,
            is_system                         BOOLEAN DEFAULT FALSE,
            is_active                         BOOLEAN DEFAULT TRUE,
            created_at                        TIMESTAMPTZ DEFAULT NOW(),
            updated_at                        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_policies_lookup "
        "ON leave_policies(leave_type, employment_type_scope, entity_id)"
    )
    # At most one active default per (category, scope, entity)
    op.execute("""
        CREATE UNIQUE INDEX uq_leave_policies_active_default
        ON leave_policies(leave_type, employment_type_scope, COALESCE(entity_id, '00000000-0000-0000-0000-000000000000'::uuid))
        WHERE is_default AND is_active
    """)

    # ── 3. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code                  VARCHAR(20) UNIQUE,
            first_name                     VARCHAR(100) NOT NULL,
            last_name                      VARCHAR(100) NOT NULL,
            preferred_name                 VARCHAR(100),
            email                          VARCHAR(255) NOT NULL UNIQUE,
            employment_type                employment_type NOT NULL DEFAULT 'full_time',
            employment_status              employment_status NOT NULL DEFAULT 'active',
            start_date                     DATE,
            service_start_date             DATE,
            termination_date               DATE,
            hours_per_week                 NUMERIC(5,2),
            entity_id                      UUID REFERENCES company_entities(id),
            state                          VARCHAR(50),
            manager_id                     UUID REFERENCES employees(id),
            is_manager                     BOOLEAN DEFAULT FALSE,
            annual_leave_policy_id         UUID REFERENCES leave_policies(id),
            personal_leave_policy_id       UUID REFERENCES leave_policies(id),
            long_service_leave_policy_id   UUID REFERENCES leave_policies(id),
            created_at                     TIMESTAMPTZ DEFAULT NOW(),
            updated_at                     TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employees_entity ON employees(entity_id)")
    op.execute("CREATE INDEX ix_employees_manager ON employees(manager_id)")

    # ── 4. public_holidays ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE public_holidays (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name          VARCHAR(150) NOT NULL,
            date          DATE NOT NULL,
            entity_id     UUID REFERENCES company_entities(id),
            state_region  VARCHAR(50),
            country       VARCHAR(2),
            is_paid       BOOLEAN DEFAULT TRUE,
            is_active     BOOLEAN DEFAULT TRUE,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_public_holidays_date ON public_holidays(date)")
    op.execute("CREATE INDEX ix_public_holidays_entity ON public_holidays(entity_id)")

    # ── 5. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code        VARCHAR(20) NOT NULL UNIQUE,
            name        VARCHAR(100) NOT NULL,
            category    leave_category,
            is_paid     BOOLEAN DEFAULT TRUE,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 6. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id),
            leave_type_id     UUID NOT NULL REFERENCES leave_types(id),
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            partial_day_type  partial_day_type NOT NULL DEFAULT 'full',
            total_days        NUMERIC(6,1),
            day_details       JSONB,
            reason            TEXT,
            manager_comment   TEXT,
            status            leave_status NOT NULL DEFAULT 'pending',
            manager_id        UUID REFERENCES employees(id),
            created_by_id     UUID REFERENCES employees(id),
            approved_by_id    UUID REFERENCES employees(id),
            approved_at       TIMESTAMPTZ,
            rejection_reason  TEXT,
            rejected_at       TIMESTAMPTZ,
            cancelled_at      TIMESTAMPTZ,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT chk_leave_dates CHECK (end_date >= start_date)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_status "
        "ON leave_requests(employee_id, status)"
    )
    op.execute(
        "CREATE INDEX ix_leave_requests_dates ON leave_requests(start_date, end_date)"
    )

    # ── 7. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id             UUID NOT NULL REFERENCES employees(id),
            leave_category          leave_category NOT NULL,
            opening_balance_hours   NUMERIC(8,2) DEFAULT 0,
            adjusted_hours          NUMERIC(8,2) DEFAULT 0,
            accrued_hours           NUMERIC(8,2) DEFAULT 0,
            used_approved_hours     NUMERIC(8,2) DEFAULT 0,
            used_pending_hours      NUMERIC(8,2) DEFAULT 0,
            available_hours         NUMERIC(8,2) DEFAULT 0,
            policy_id               UUID REFERENCES leave_policies(id),
            last_calculated_at      TIMESTAMPTZ,
            CONSTRAINT uq_leave_balance_category UNIQUE (employee_id, leave_category)
        )
    """)

    # ── 8. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type          notification_type DEFAULT 'info',
            title         VARCHAR(200) NOT NULL,
            message       TEXT NOT NULL,
            action_url    VARCHAR(500),
            entity_type   VARCHAR(50),
            entity_id     UUID,
            is_read       BOOLEAN DEFAULT FALSE,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_recipient ON notifications(recipient_id, is_read)"
    )

    # ── 9. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID REFERENCES employees(id),
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            reason       TEXT,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute(
        "CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)"
    )
    op.execute("CREATE INDEX ix_audit_trail_action ON audit_trail(action)")

    # ── Seed data: standard leave types ───────────────────────────────────
    leave_types = sa.table(
        "leave_types",
        sa.column("code", sa.String),
        sa.column("name", sa.String),
        sa.column("category", sa.String),
        sa.column("is_paid", sa.Boolean),
    )
    op.bulk_insert(
        leave_types,
        [
            {"code": "AL", "name": "Annual Leave", "category": None, "is_paid": True},
            {"code": "PCL", "name": "Personal/Carer's Leave", "category": None, "is_paid": True},
            {"code": "LSL", "name": "Long Service Leave", "category": None, "is_paid": True},
            {"code": "UL", "name": "Unpaid Leave", "category": None, "is_paid": False},
        ],
    )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "notifications",
        "leave_balances",
        "leave_requests",
        "leave_types",
        "public_holidays",
        "employees",
        "leave_policies",
        "company_entities",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
