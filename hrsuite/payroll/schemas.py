"""Payroll Pydantic v2 schemas — request / response validation and engine I/O.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response          → response bodies (read)
  - engine models (ComponentDefinition, PayCalculation, TaxBreakdown, ...)
    are plain value objects passed to and from ``hrsuite.payroll.engine``
"""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrsuite.common.constants import (
    CalculationType,
    ComponentCategory,
    PayFrequency,
    PayrollRunStatus,
    TaxCalculationMethod,
    TaxType,
    TemplateStatus,
)


# ═════════════════════════════════════════════════════════════════════
# Engine value objects
# ═════════════════════════════════════════════════════════════════════


class Tier(BaseModel):
    threshold: Decimal = Field(..., ge=0)
    rate: Decimal = Field(..., ge=0)


class ComponentConfiguration(BaseModel):
    """Calculation parameters stored as JSON on a pay component.

    Percentage and tier rates are fractions (0.1 == 10%).
    """

    default_amount: Optional[Decimal] = None
    percentage_of: Optional[str] = None
    percentage_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    rate_multiplier: Optional[Decimal] = Field(None, ge=0)
    formula_expression: Optional[str] = None
    tier_basis: Optional[str] = None
    tiers: Optional[list[Tier]] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None


class ComponentDefinition(BaseModel):
    """A component as seen by the engine (template component + definition)."""

    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    category: ComponentCategory
    calculation_type: CalculationType
    configuration: Optional[dict[str, Any]] = None
    sequence_order: int = 0
    is_taxable: bool = True
    affects_gross_pay: bool = True


class ComponentOverride(BaseModel):
    """Per-worker adjustment to a template component."""

    component_code: str
    override_amount: Optional[Decimal] = None
    override_percentage: Optional[Decimal] = Field(None, ge=0, le=1)
    override_rate: Optional[Decimal] = Field(None, ge=0)
    override_formula: Optional[str] = None
    is_disabled: bool = False


class Compensation(BaseModel):
    base_salary: Optional[Decimal] = Field(None, ge=0)
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    pay_frequency: PayFrequency = PayFrequency.monthly
    currency: str = "SRD"


class LineItem(BaseModel):
    code: str
    name: str
    category: ComponentCategory
    component_type: Literal["earning", "deduction", "tax"]
    calculation_type: str
    amount: Decimal
    is_taxable: bool = True
    override_applied: bool = False


class PayCalculation(BaseModel):
    lines: list[LineItem] = Field(default_factory=list)
    total_earnings: Decimal = Decimal("0.00")
    taxable_earnings: Decimal = Decimal("0.00")
    total_deductions: Decimal = Decimal("0.00")
    total_taxes: Decimal = Decimal("0.00")
    net_pay: Decimal = Decimal("0.00")


class TaxBracket(BaseModel):
    order: int
    income_min: Decimal = Field(..., ge=0)
    income_max: Optional[Decimal] = None
    rate_percentage: Decimal = Field(..., ge=0, le=100)
    fixed_amount: Decimal = Decimal("0")


class TaxRules(BaseModel):
    """Everything ``calculate_employee_taxes`` needs for one pay date."""

    brackets: list[TaxBracket]
    aov_rate: Decimal
    aww_rate: Decimal
    aov_cap: Optional[Decimal] = None
    aww_cap: Optional[Decimal] = None
    tax_free_allowance: Decimal = Decimal("0")
    source: Literal["configured", "default"] = "configured"


class TaxBreakdown(BaseModel):
    gross_pay: Decimal
    tax_free_allowance: Decimal
    taxable_income: Decimal
    wage_tax: Decimal
    aov: Decimal
    aww: Decimal
    total_taxes: Decimal
    effective_rate: Decimal


# ═════════════════════════════════════════════════════════════════════
# Pay components
# ═════════════════════════════════════════════════════════════════════


class PayComponentCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")
    name: str = Field(..., min_length=1, max_length=150)
    category: ComponentCategory
    calculation_type: CalculationType
    configuration: ComponentConfiguration = Field(default_factory=ComponentConfiguration)
    is_taxable: bool = True
    affects_gross_pay: bool = True
    description: Optional[str] = None


class PayComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    calculation_type: Optional[CalculationType] = None
    configuration: Optional[ComponentConfiguration] = None
    is_taxable: Optional[bool] = None
    affects_gross_pay: Optional[bool] = None
    is_active: Optional[bool] = None
    description: Optional[str] = None


class PayComponentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    category: ComponentCategory
    calculation_type: CalculationType
    configuration: Optional[dict[str, Any]] = None
    is_taxable: bool
    affects_gross_pay: bool
    is_active: bool
    description: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Pay structure templates
# ═════════════════════════════════════════════════════════════════════


class TemplateCreate(BaseModel):
    template_code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    currency: str = Field("SRD", min_length=3, max_length=3)


class TemplateComponentAdd(BaseModel):
    component_id: uuid.UUID
    sequence_order: int = Field(..., ge=0)


class TemplateVersionCreate(BaseModel):
    bump: Literal["major", "minor", "patch"] = "minor"
    change_summary: Optional[str] = None


class TemplateComponentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    component_id: uuid.UUID
    sequence_order: int
    code: Optional[str] = None
    name: Optional[str] = None


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    template_code: str
    name: str
    description: Optional[str] = None
    version_major: int
    version_minor: int
    version_patch: int
    version_string: str = ""
    status: TemplateStatus
    currency: str
    published_at: Optional[datetime] = None
    components: list[TemplateComponentResponse] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fill_version_string(self) -> "TemplateResponse":
        self.version_string = f"{self.version_major}.{self.version_minor}.{self.version_patch}"
        return self


# ═════════════════════════════════════════════════════════════════════
# Worker pay structures
# ═════════════════════════════════════════════════════════════════════


class WorkerStructureAssign(BaseModel):
    employee_id: uuid.UUID
    template_id: uuid.UUID
    base_salary: Optional[Decimal] = Field(None, ge=0)
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    pay_frequency: PayFrequency = PayFrequency.monthly
    is_resident: bool = True
    effective_from: date
    overrides: list[ComponentOverride] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_compensation(self) -> "WorkerStructureAssign":
        if not self.base_salary and not self.hourly_rate:
            raise ValueError("Either base_salary or hourly_rate is required.")
        return self


class WorkerStructureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    template_id: uuid.UUID
    base_salary: Optional[Decimal] = None
    hourly_rate: Optional[Decimal] = None
    pay_frequency: PayFrequency
    is_resident: bool
    effective_from: date
    overrides: list[dict[str, Any]] = Field(default_factory=list)
    is_current: bool


class PayPreviewRequest(BaseModel):
    inputs: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Extra formula variables, e.g. hours or overtime_hours",
    )
    pay_date: Optional[date] = None


# ═════════════════════════════════════════════════════════════════════
# Tax rules / allowances
# ═════════════════════════════════════════════════════════════════════


class TaxRuleSetCreate(BaseModel):
    tax_type: TaxType
    country: str = Field("SR", min_length=2, max_length=2)
    effective_from: date
    effective_to: Optional[date] = None
    calculation_method: TaxCalculationMethod
    brackets: list[TaxBracket] = Field(default_factory=list)
    annual_cap: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None


class TaxRuleSetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tax_type: TaxType
    country: str
    effective_from: date
    effective_to: Optional[date] = None
    calculation_method: TaxCalculationMethod
    brackets: list[dict[str, Any]] = Field(default_factory=list)
    annual_cap: Optional[Decimal] = None
    description: Optional[str] = None


class AllowanceCreate(BaseModel):
    allowance_type: str = Field("tax_free_sum_monthly", max_length=50)
    country: str = Field("SR", min_length=2, max_length=2)
    amount: Decimal = Field(..., ge=0)
    effective_from: date
    effective_to: Optional[date] = None


# ═════════════════════════════════════════════════════════════════════
# Payroll runs / paychecks
# ═════════════════════════════════════════════════════════════════════


class PayrollRunCreate(BaseModel):
    run_number: Optional[str] = Field(None, max_length=50)
    period_start: date
    period_end: date
    pay_date: date
    description: Optional[str] = None


class PayrollRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    run_number: str
    period_start: date
    period_end: date
    pay_date: date
    status: PayrollRunStatus
    description: Optional[str] = None
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    employee_count: int
    calculated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


class PaycheckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    run_id: uuid.UUID
    employee_id: uuid.UUID
    gross_pay: Decimal
    tax_free_allowance: Decimal
    taxable_income: Decimal
    wage_tax: Decimal
    aov: Decimal
    aww: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    components: list[dict[str, Any]] = Field(default_factory=list)


class PaycheckRow(BaseModel):
    employee_id: uuid.UUID
    employee_name: str
    gross_pay: Decimal
    wage_tax: Decimal
    aov: Decimal
    aww: Decimal
    total_deductions: Decimal
    net_pay: Decimal


class RunSummary(BaseModel):
    total_gross: Decimal = Decimal("0.00")
    total_wage_tax: Decimal = Decimal("0.00")
    total_aov: Decimal = Decimal("0.00")
    total_aww: Decimal = Decimal("0.00")
    total_deductions: Decimal = Decimal("0.00")
    total_net: Decimal = Decimal("0.00")
    employee_count: int = 0


class RunDetail(BaseModel):
    run: PayrollRunResponse
    paychecks: list[PaycheckRow] = Field(default_factory=list)
    summary: RunSummary
