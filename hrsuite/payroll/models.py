"""Payroll ORM models.

Tables:
    pay_components               — reusable component definitions
    pay_structure_templates      — versioned sets of components
    pay_structure_template_components
    worker_pay_structures        — a worker's template + salary + overrides
    tax_rule_sets / allowances   — statutory rates by effective date
    payroll_runs / paychecks     — batch results
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrsuite.common.constants import (
    CalculationType,
    ComponentCategory,
    PayFrequency,
    PayrollRunStatus,
    TaxCalculationMethod,
    TaxType,
    TemplateStatus,
)
from hrsuite.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# Components & templates
# ═════════════════════════════════════════════════════════════════════


class PayComponent(Base):
    __tablename__ = "pay_components"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    category: Mapped[ComponentCategory] = mapped_column(
        sa.Enum(ComponentCategory, name="component_category", native_enum=False, length=30),
        nullable=False,
    )
    calculation_type: Mapped[CalculationType] = mapped_column(
        sa.Enum(CalculationType, name="calculation_type", native_enum=False, length=30),
        nullable=False,
    )
    configuration: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB)
    is_taxable: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    affects_gross_pay: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )

    def __repr__(self) -> str:
        return f"<PayComponent {self.code} {self.calculation_type}>"


class PayStructureTemplate(Base):
    __tablename__ = "pay_structure_templates"
    __table_args__ = (
        sa.UniqueConstraint(
            "template_code", "version_major", "version_minor", "version_patch",
            name="uq_template_code_version",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    template_code: Mapped[str] = mapped_column(sa.String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    version_major: Mapped[int] = mapped_column(sa.Integer, default=1, server_default="1")
    version_minor: Mapped[int] = mapped_column(sa.Integer, default=0, server_default="0")
    version_patch: Mapped[int] = mapped_column(sa.Integer, default=0, server_default="0")
    status: Mapped[TemplateStatus] = mapped_column(
        sa.Enum(TemplateStatus, name="template_status", native_enum=False, length=30),
        default=TemplateStatus.draft,
        server_default="draft",
    )
    currency: Mapped[str] = mapped_column(sa.String(3), default="SRD", server_default="SRD")
    parent_template_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("pay_structure_templates.id"),
    )
    change_summary: Mapped[Optional[str]] = mapped_column(sa.Text)
    published_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )

    components: Mapped[list["TemplateComponent"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="TemplateComponent.sequence_order",
    )

    @property
    def version_string(self) -> str:
        return f"{self.version_major}.{self.version_minor}.{self.version_patch}"

    def __repr__(self) -> str:
        return f"<PayStructureTemplate {self.template_code} v{self.version_string} {self.status}>"


class TemplateComponent(Base):
    __tablename__ = "pay_structure_template_components"
    __table_args__ = (
        sa.UniqueConstraint("template_id", "component_id", name="uq_template_component"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("pay_structure_templates.id", ondelete="CASCADE"),
        nullable=False,
    )
    component_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("pay_components.id"), nullable=False,
    )
    sequence_order: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    template: Mapped[PayStructureTemplate] = relationship(back_populates="components")
    component: Mapped[PayComponent] = relationship(lazy="joined")

    @property
    def code(self) -> Optional[str]:
        return self.component.code if self.component is not None else None

    @property
    def name(self) -> Optional[str]:
        return self.component.name if self.component is not None else None


# ═════════════════════════════════════════════════════════════════════
# Worker pay structures
# ═════════════════════════════════════════════════════════════════════


class WorkerPayStructure(Base):
    __tablename__ = "worker_pay_structures"
    __table_args__ = (
        sa.Index("ix_worker_pay_structures_employee", "employee_id", "is_current"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("pay_structure_templates.id"), nullable=False,
    )
    base_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 2))
    pay_frequency: Mapped[PayFrequency] = mapped_column(
        sa.Enum(PayFrequency, name="pay_frequency", native_enum=False, length=30),
        default=PayFrequency.monthly,
        server_default="monthly",
    )
    is_resident: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    effective_from: Mapped[date] = mapped_column(sa.Date, nullable=False)
    effective_to: Mapped[Optional[date]] = mapped_column(sa.Date)
    overrides: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, default=list)
    is_current: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )


# ═════════════════════════════════════════════════════════════════════
# Tax rules
# ═════════════════════════════════════════════════════════════════════


class TaxRuleSet(Base):
    __tablename__ = "tax_rule_sets"
    __table_args__ = (
        sa.Index("ix_tax_rule_sets_lookup", "country", "tax_type", "effective_from"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    tax_type: Mapped[TaxType] = mapped_column(
        sa.Enum(TaxType, name="tax_type", native_enum=False, length=30), nullable=False,
    )
    country: Mapped[str] = mapped_column(sa.String(2), default="SR", server_default="SR")
    effective_from: Mapped[date] = mapped_column(sa.Date, nullable=False)
    effective_to: Mapped[Optional[date]] = mapped_column(sa.Date)
    calculation_method: Mapped[TaxCalculationMethod] = mapped_column(
        sa.Enum(TaxCalculationMethod, name="tax_calculation_method", native_enum=False, length=30),
        nullable=False,
    )
    brackets: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, default=list)
    annual_cap: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )


class Allowance(Base):
    __tablename__ = "allowances"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    allowance_type: Mapped[str] = mapped_column(
        sa.String(50), default="tax_free_sum_monthly", server_default="tax_free_sum_monthly",
    )
    country: Mapped[str] = mapped_column(sa.String(2), default="SR", server_default="SR")
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    effective_from: Mapped[date] = mapped_column(sa.Date, nullable=False)
    effective_to: Mapped[Optional[date]] = mapped_column(sa.Date)
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )


# ═════════════════════════════════════════════════════════════════════
# Payroll runs
# ═════════════════════════════════════════════════════════════════════


class PayrollRun(Base):
    __tablename__ = "payroll_runs"
    __table_args__ = (
        sa.CheckConstraint("period_end >= period_start", name="ck_payroll_run_period"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    run_number: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    period_start: Mapped[date] = mapped_column(sa.Date, nullable=False)
    period_end: Mapped[date] = mapped_column(sa.Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[PayrollRunStatus] = mapped_column(
        sa.Enum(PayrollRunStatus, name="payroll_run_status", native_enum=False, length=30),
        default=PayrollRunStatus.draft,
        server_default="draft",
    )
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    total_gross_pay: Mapped[Decimal] = mapped_column(
        sa.Numeric(14, 2), default=Decimal("0"), server_default="0",
    )
    total_deductions: Mapped[Decimal] = mapped_column(
        sa.Numeric(14, 2), default=Decimal("0"), server_default="0",
    )
    total_net_pay: Mapped[Decimal] = mapped_column(
        sa.Numeric(14, 2), default=Decimal("0"), server_default="0",
    )
    employee_count: Mapped[int] = mapped_column(sa.Integer, default=0, server_default="0")
    calculated_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    processed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )

    def __repr__(self) -> str:
        return f"<PayrollRun {self.run_number} {self.status}>"


class Paycheck(Base):
    __tablename__ = "paychecks"
    __table_args__ = (
        sa.UniqueConstraint("run_id", "employee_id", name="uq_paycheck_run_employee"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    run_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("payroll_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    worker_structure_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("worker_pay_structures.id"),
    )
    gross_pay: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=Decimal("0"))
    tax_free_allowance: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=Decimal("0"))
    taxable_income: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=Decimal("0"))
    wage_tax: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=Decimal("0"))
    aov: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=Decimal("0"))
    aww: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=Decimal("0"))
    other_deductions: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=Decimal("0"))
    net_pay: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=Decimal("0"))
    components: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, default=list)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
