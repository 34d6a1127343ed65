"""001 – Initial schema: core HR, time-off, performance, attendance, payroll, recruitment.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:30:00.000000-03:00

Enum columns are stored as VARCHAR(30); the ORM validates the values.
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. locations ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE locations (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code        VARCHAR(20)  NOT NULL UNIQUE,
            name        VARCHAR(100) NOT NULL UNIQUE,
            address     TEXT,
            city        VARCHAR(100),
            country     VARCHAR(100) DEFAULT 'Suriname',
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code                 VARCHAR(20)  NOT NULL UNIQUE,
            name                 VARCHAR(150) NOT NULL,
            description          TEXT,
            parent_department_id UUID REFERENCES departments(id),
            head_employee_id     UUID,  -- FK added after employees table
            location_id          UUID REFERENCES locations(id),
            is_active            BOOLEAN DEFAULT TRUE,
            created_at           TIMESTAMPTZ DEFAULT NOW(),
            updated_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 3. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code        VARCHAR(20)  NOT NULL UNIQUE,
            first_name           VARCHAR(100) NOT NULL,
            last_name            VARCHAR(100) NOT NULL,
            display_name         VARCHAR(255),
            email                VARCHAR(255) NOT NULL UNIQUE,
            gender               VARCHAR(30),
            department_id        UUID REFERENCES departments(id),
            location_id          UUID REFERENCES locations(id),
            reporting_manager_id UUID REFERENCES employees(id),
            job_title            VARCHAR(200),
            employment_type      VARCHAR(30) DEFAULT 'full_time',
            employment_status    VARCHAR(30) DEFAULT 'active',
            hire_date            DATE NOT NULL,
            termination_date     DATE,
            termination_type     VARCHAR(30),
            is_active            BOOLEAN DEFAULT TRUE,
            created_at           TIMESTAMPTZ DEFAULT NOW(),
            updated_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        ALTER TABLE departments
            ADD CONSTRAINT fk_dept_head
            FOREIGN KEY (head_employee_id) REFERENCES employees(id)
    """)
    op.execute("CREATE INDEX ix_employees_department_id ON employees(department_id)")
    op.execute("CREATE INDEX ix_employees_location_id ON employees(location_id)")
    op.execute("CREATE INDEX ix_employees_manager ON employees(reporting_manager_id)")
    op.execute("CREATE INDEX ix_departments_parent ON departments(parent_department_id)")

    # ── 4. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES employees(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")

    # ── 5. time_off_requests ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE time_off_requests (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id      UUID NOT NULL REFERENCES employees(id),
            leave_type       VARCHAR(30) NOT NULL,
            start_date       DATE NOT NULL,
            end_date         DATE NOT NULL,
            days             NUMERIC(5,1) NOT NULL,
            reason           TEXT,
            status           VARCHAR(30) DEFAULT 'pending',
            reviewer_id      UUID REFERENCES employees(id),
            reviewed_at      TIMESTAMPTZ,
            reviewer_remarks TEXT,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_time_off_dates CHECK (end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_time_off_requests_employee ON time_off_requests(employee_id)")

    # ── 6. performance_reviews / goals ────────────────────────────────────
    op.execute("""
        CREATE TABLE performance_reviews (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id    UUID NOT NULL REFERENCES employees(id),
            reviewer_id    UUID REFERENCES employees(id),
            review_period  VARCHAR(20) NOT NULL,
            review_date    DATE NOT NULL,
            overall_rating NUMERIC(3,2),
            status         VARCHAR(30) DEFAULT 'draft',
            comments       TEXT,
            submitted_at   TIMESTAMPTZ,
            completed_at   TIMESTAMPTZ,
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_review_rating CHECK (
                overall_rating IS NULL OR (overall_rating >= 1 AND overall_rating <= 5)
            )
        )
    """)
    op.execute("CREATE INDEX ix_performance_reviews_employee ON performance_reviews(employee_id)")

    op.execute("""
        CREATE TABLE goals (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id),
            title       VARCHAR(200) NOT NULL,
            description TEXT,
            target_date DATE,
            progress    INTEGER DEFAULT 0,
            status      VARCHAR(30) DEFAULT 'not_started',
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_goal_progress CHECK (progress >= 0 AND progress <= 100)
        )
    """)

    # ── 7. attendance_records ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE attendance_records (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id  UUID NOT NULL REFERENCES employees(id),
            date         DATE NOT NULL,
            status       VARCHAR(30) NOT NULL,
            hours_worked NUMERIC(5,2) DEFAULT 0,
            notes        TEXT,
            created_at   TIMESTAMPTZ DEFAULT NOW(),
            updated_at   TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_attendance_employee_date UNIQUE (employee_id, date),
            CONSTRAINT ck_attendance_hours CHECK (hours_worked >= 0 AND hours_worked <= 24)
        )
    """)
    op.execute("CREATE INDEX ix_attendance_records_date ON attendance_records(date)")

    # ── 8. pay_components ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE pay_components (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code              VARCHAR(50)  NOT NULL UNIQUE,
            name              VARCHAR(150) NOT NULL,
            category          VARCHAR(30)  NOT NULL,
            calculation_type  VARCHAR(30)  NOT NULL,
            configuration     JSONB,
            is_taxable        BOOLEAN DEFAULT TRUE,
            affects_gross_pay BOOLEAN DEFAULT TRUE,
            is_active         BOOLEAN DEFAULT TRUE,
            description       TEXT,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 9. pay_structure_templates / components ───────────────────────────
    op.execute("""
        CREATE TABLE pay_structure_templates (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            template_code      VARCHAR(50)  NOT NULL,
            name               VARCHAR(150) NOT NULL,
            description        TEXT,
            version_major      INTEGER DEFAULT 1,
            version_minor      INTEGER DEFAULT 0,
            version_patch      INTEGER DEFAULT 0,
            status             VARCHAR(30) DEFAULT 'draft',
            currency           VARCHAR(3)  DEFAULT 'SRD',
            parent_template_id UUID REFERENCES pay_structure_templates(id),
            change_summary     TEXT,
            published_at       TIMESTAMPTZ,
            created_by         UUID REFERENCES employees(id),
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_template_code_version
                UNIQUE (template_code, version_major, version_minor, version_patch)
        )
    """)
    op.execute(
        "CREATE INDEX ix_pay_structure_templates_template_code "
        "ON pay_structure_templates(template_code)"
    )

    op.execute("""
        CREATE TABLE pay_structure_template_components (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            template_id    UUID NOT NULL REFERENCES pay_structure_templates(id) ON DELETE CASCADE,
            component_id   UUID NOT NULL REFERENCES pay_components(id),
            sequence_order INTEGER NOT NULL,
            CONSTRAINT uq_template_component UNIQUE (template_id, component_id)
        )
    """)

    # ── 10. worker_pay_structures ─────────────────────────────────────────
    op.execute("""
        CREATE TABLE worker_pay_structures (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id    UUID NOT NULL REFERENCES employees(id),
            template_id    UUID NOT NULL REFERENCES pay_structure_templates(id),
            base_salary    NUMERIC(12,2),
            hourly_rate    NUMERIC(10,2),
            pay_frequency  VARCHAR(30) DEFAULT 'monthly',
            is_resident    BOOLEAN DEFAULT TRUE,
            effective_from DATE NOT NULL,
            effective_to   DATE,
            overrides      JSONB DEFAULT '[]'::jsonb,
            is_current     BOOLEAN DEFAULT TRUE,
            created_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_worker_pay_structures_employee "
        "ON worker_pay_structures(employee_id, is_current)"
    )

    # ── 11. tax_rule_sets / allowances ────────────────────────────────────
    op.execute("""
        CREATE TABLE tax_rule_sets (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tax_type           VARCHAR(30) NOT NULL,
            country            VARCHAR(2)  DEFAULT 'SR',
            effective_from     DATE NOT NULL,
            effective_to       DATE,
            calculation_method VARCHAR(30) NOT NULL,
            brackets           JSONB DEFAULT '[]'::jsonb,
            annual_cap         NUMERIC(12,2),
            description        TEXT,
            created_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_tax_rule_sets_lookup "
        "ON tax_rule_sets(country, tax_type, effective_from)"
    )

    op.execute("""
        CREATE TABLE allowances (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            allowance_type VARCHAR(50) DEFAULT 'tax_free_sum_monthly',
            country        VARCHAR(2)  DEFAULT 'SR',
            amount         NUMERIC(12,2) NOT NULL,
            effective_from DATE NOT NULL,
            effective_to   DATE,
            is_active      BOOLEAN DEFAULT TRUE
        )
    """)

    # ── 12. payroll_runs / paychecks ──────────────────────────────────────
    op.execute("""
        CREATE TABLE payroll_runs (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            run_number       VARCHAR(50) NOT NULL UNIQUE,
            period_start     DATE NOT NULL,
            period_end       DATE NOT NULL,
            pay_date         DATE NOT NULL,
            status           VARCHAR(30) DEFAULT 'draft',
            description      TEXT,
            total_gross_pay  NUMERIC(14,2) DEFAULT 0,
            total_deductions NUMERIC(14,2) DEFAULT 0,
            total_net_pay    NUMERIC(14,2) DEFAULT 0,
            employee_count   INTEGER DEFAULT 0,
            calculated_at    TIMESTAMPTZ,
            approved_by      UUID REFERENCES employees(id),
            approved_at      TIMESTAMPTZ,
            processed_at     TIMESTAMPTZ,
            created_by       UUID REFERENCES employees(id),
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_payroll_run_period CHECK (period_end >= period_start)
        )
    """)

    op.execute("""
        CREATE TABLE paychecks (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            run_id              UUID NOT NULL REFERENCES payroll_runs(id) ON DELETE CASCADE,
            employee_id         UUID NOT NULL REFERENCES employees(id),
            worker_structure_id UUID REFERENCES worker_pay_structures(id),
            gross_pay           NUMERIC(12,2) DEFAULT 0,
            tax_free_allowance  NUMERIC(12,2) DEFAULT 0,
            taxable_income      NUMERIC(12,2) DEFAULT 0,
            wage_tax            NUMERIC(12,2) DEFAULT 0,
            aov                 NUMERIC(12,2) DEFAULT 0,
            aww                 NUMERIC(12,2) DEFAULT 0,
            other_deductions    NUMERIC(12,2) DEFAULT 0,
            total_deductions    NUMERIC(12,2) DEFAULT 0,
            net_pay             NUMERIC(12,2) DEFAULT 0,
            components          JSONB DEFAULT '[]'::jsonb,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_paycheck_run_employee UNIQUE (run_id, employee_id)
        )
    """)

    # ── 13. recruitment ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE flow_templates (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL UNIQUE,
            description TEXT,
            stages      JSONB DEFAULT '[]'::jsonb,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE jobs (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            title            VARCHAR(200) NOT NULL,
            description      TEXT,
            department_id    UUID REFERENCES departments(id),
            flow_template_id UUID REFERENCES flow_templates(id),
            status           VARCHAR(30) DEFAULT 'draft',
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE candidates (
            id         UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name       VARCHAR(200) NOT NULL,
            email      VARCHAR(255) NOT NULL,
            phone      VARCHAR(50),
            job_id     UUID NOT NULL REFERENCES jobs(id),
            stage      VARCHAR(150),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_candidates_job ON candidates(job_id)")

    op.execute("""
        CREATE TABLE interviews (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            candidate_id     UUID NOT NULL REFERENCES candidates(id) ON DELETE CASCADE,
            scheduled_at     TIMESTAMPTZ NOT NULL,
            duration_minutes INTEGER DEFAULT 60,
            interviewer_name VARCHAR(200) NOT NULL,
            status           VARCHAR(30) DEFAULT 'scheduled',
            documentation    JSONB,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_interviews_candidate ON interviews(candidate_id)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "interviews",
        "candidates",
        "jobs",
        "flow_templates",
        "paychecks",
        "payroll_runs",
        "allowances",
        "tax_rule_sets",
        "worker_pay_structures",
        "pay_structure_template_components",
        "pay_structure_templates",
        "pay_components",
        "attendance_records",
        "goals",
        "performance_reviews",
        "time_off_requests",
        "audit_trail",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop deferred FK before dropping employees / departments
    op.execute(
        "ALTER TABLE departments DROP CONSTRAINT IF EXISTS fk_dept_head"
    )
    op.execute("DROP TABLE IF EXISTS employees CASCADE")
    op.execute("DROP TABLE IF EXISTS departments CASCADE")
    op.execute("DROP TABLE IF EXISTS locations CASCADE")

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
