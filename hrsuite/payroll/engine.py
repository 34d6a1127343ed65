"""Pay calculation engine — pure functions, no database access.

A worker's pay is computed by walking the components of their pay
structure in ``sequence_order``. Each component's value is stored under
its code so later components (percentages, formulas, tiers) can
reference it. Surinamese statutory taxes are computed separately from
the taxable gross by :func:`calculate_employee_taxes`.

Money values are Decimal, rounded half-up to cents.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional

from hrsuite.common.constants import (
    DEFAULT_AOV_RATE,
    DEFAULT_AWW_RATE,
    DEFAULT_TAX_FREE_SUM_MONTHLY,
    DEFAULT_WAGE_TAX_BRACKETS,
    CalculationType,
    ComponentCategory,
)
from hrsuite.common.exceptions import ValidationException
from hrsuite.payroll.formula import FormulaError, evaluate_formula
from hrsuite.payroll.schemas import (
    Compensation,
    ComponentDefinition,
    ComponentOverride,
    LineItem,
    PayCalculation,
    TaxBracket,
    TaxBreakdown,
    TaxRules,
    Tier,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def money(value: Any) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def _dec(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _first(*values: Any) -> Decimal:
    for value in values:
        if value is not None:
            return _dec(value)
    return ZERO


def _lookup(name: Optional[str], calculated: Mapping[str, Any], context: Mapping[str, Any]) -> Decimal:
    if not name:
        return ZERO
    if calculated.get(name) is not None:
        return _dec(calculated[name])
    if context.get(name) is not None:
        try:
            return _dec(context[name])
        except ArithmeticError:
            return ZERO
    return ZERO


# ═════════════════════════════════════════════════════════════════════
# Tiered
# ═════════════════════════════════════════════════════════════════════


def calculate_tiered(tiers: Iterable[Tier | Mapping[str, Any]], basis_value: Any) -> Decimal:
    """Progressive tiers: each tier's rate applies to the slice above its threshold.

    >>> calculate_tiered([{"threshold": 0, "rate": "0.1"}, {"threshold": 1000, "rate": "0.2"}], 1500)
    Decimal('200.0')
    """
    basis = _dec(basis_value) or ZERO
    parsed = [t if isinstance(t, Tier) else Tier.model_validate(t) for t in tiers]
    parsed.sort(key=lambda t: t.threshold)

    total = ZERO
    for index, tier in enumerate(parsed):
        if basis <= tier.threshold:
            break
        upper = basis
        if index + 1 < len(parsed):
            upper = min(basis, parsed[index + 1].threshold)
        total += (upper - tier.threshold) * tier.rate
    return total


# ═════════════════════════════════════════════════════════════════════
# Component strategies
# ═════════════════════════════════════════════════════════════════════


class ComponentCalculator(ABC):
    """One strategy per calculation type."""

    @abstractmethod
    def calculate(
        self,
        config: Mapping[str, Any],
        override: Optional[ComponentOverride],
        context: Mapping[str, Any],
        calculated: Mapping[str, Any],
    ) -> Decimal:
        raise NotImplementedError


class FixedCalculator(ComponentCalculator):
    def calculate(self, config, override, context, calculated):
        return _first(override and override.override_amount, config.get("default_amount"))


class PercentageCalculator(ComponentCalculator):
    def calculate(self, config, override, context, calculated):
        base = _lookup(config.get("percentage_of"), calculated, context)
        rate = _first(override and override.override_percentage, config.get("percentage_rate"))
        return base * rate


class HourlyRateCalculator(ComponentCalculator):
    def calculate(self, config, override, context, calculated):
        hours = _first(context.get("hours"), context.get("regular_hours"))
        rate = _first(override and override.override_rate, context.get("hourly_rate"))
        multiplier = _dec(config.get("rate_multiplier")) or Decimal("1")
        return hours * rate * multiplier


class FormulaCalculator(ComponentCalculator):
    def calculate(self, config, override, context, calculated):
        expression = (override and override.override_formula) or config.get("formula_expression")
        variables = {**context, **calculated}
        return evaluate_formula(expression or "", variables)


class TieredCalculator(ComponentCalculator):
    def calculate(self, config, override, context, calculated):
        tiers = config.get("tiers") or []
        if not tiers:
            return ZERO
        basis = _lookup(config.get("tier_basis"), calculated, context)
        return calculate_tiered(tiers, basis)


CALCULATORS: dict[CalculationType, ComponentCalculator] = {
    CalculationType.fixed: FixedCalculator(),
    CalculationType.percentage: PercentageCalculator(),
    CalculationType.hourly_rate: HourlyRateCalculator(),
    CalculationType.formula: FormulaCalculator(),
    CalculationType.tiered: TieredCalculator(),
}


def calculate_component(
    component: ComponentDefinition,
    override: Optional[ComponentOverride],
    context: Mapping[str, Any],
    calculated: Mapping[str, Any],
) -> Decimal:
    """Compute one component's amount, clamped to its min/max and rounded.

    Raises :class:`FormulaError` when a formula cannot be evaluated.
    """
    config = component.configuration or {}
    if not config and component.calculation_type != CalculationType.fixed:
        return money(ZERO)

    calculator = CALCULATORS[CalculationType(component.calculation_type)]
    value = calculator.calculate(config, override, context, calculated)

    min_amount = _dec(config.get("min_amount"))
    max_amount = _dec(config.get("max_amount"))
    try:
        if min_amount and value < min_amount:
            value = min_amount
        if max_amount and value > max_amount:
            value = max_amount
        return money(value)
    except ArithmeticError as exc:
        raise FormulaError(f"Amount {value} cannot be rounded to cents.") from exc


def _component_type(category: ComponentCategory) -> str:
    if category == ComponentCategory.benefit:
        return "deduction"
    return ComponentCategory(category).value


# ═════════════════════════════════════════════════════════════════════
# Pay structure
# ═════════════════════════════════════════════════════════════════════


def calculate_pay_structure(
    components: Iterable[ComponentDefinition],
    compensation: Compensation,
    overrides: Iterable[ComponentOverride] = (),
    inputs: Optional[Mapping[str, Any]] = None,
) -> PayCalculation:
    """Compute every line of a worker's pay for one period.

    The base line is BASE_SALARY when a salary is set, otherwise
    REGULAR_PAY from ``hourly_rate * hours``. Benefits are reported as
    deductions. Disabled overrides skip their component entirely.
    """
    inputs = dict(inputs or {})
    context: dict[str, Any] = {
        "hourly_rate": compensation.hourly_rate or ZERO,
        "pay_frequency": compensation.pay_frequency.value,
        "currency": compensation.currency,
        **inputs,
    }
    calculated: dict[str, Decimal] = {}
    lines: list[LineItem] = []

    if compensation.base_salary:
        base = money(compensation.base_salary)
        context["base_salary"] = context["baseSalary"] = base
        calculated["BASE_SALARY"] = calculated["base_salary"] = base
        lines.append(LineItem(
            code="BASE_SALARY", name="Base Salary",
            category=ComponentCategory.earning, component_type="earning",
            calculation_type=CalculationType.fixed.value, amount=base,
        ))
    elif compensation.hourly_rate:
        hours = _first(inputs.get("hours"), inputs.get("regular_hours"))
        regular = money(compensation.hourly_rate * hours)
        calculated["REGULAR_PAY"] = calculated["regular_pay"] = regular
        lines.append(LineItem(
            code="REGULAR_PAY", name="Regular Pay",
            category=ComponentCategory.earning, component_type="earning",
            calculation_type=CalculationType.hourly_rate.value, amount=regular,
        ))
    else:
        raise ValidationException({
            "compensation": ["Either base_salary or hourly_rate is required."],
        })

    gross = lines[0].amount
    context["gross_earnings"] = gross

    by_code = {o.component_code: o for o in overrides}
    for component in sorted(components, key=lambda c: c.sequence_order):
        override = by_code.get(component.code)
        if override is not None and override.is_disabled:
            continue
        try:
            amount = calculate_component(component, override, context, calculated)
        except FormulaError as exc:
            raise ValidationException({
                component.code: [f"Failed to calculate component: {exc}"],
            }) from exc

        calculated[component.code] = amount
        component_type = _component_type(component.category)
        if component_type == "earning" and component.affects_gross_pay:
            gross += amount
            context["gross_earnings"] = gross

        lines.append(LineItem(
            code=component.code,
            name=component.name,
            category=component.category,
            component_type=component_type,
            calculation_type=CalculationType(component.calculation_type).value,
            amount=amount,
            is_taxable=component.is_taxable,
            override_applied=override is not None,
        ))

    totals = {"earning": ZERO, "deduction": ZERO, "tax": ZERO}
    taxable = ZERO
    for line in lines:
        totals[line.component_type] += line.amount
        if line.component_type == "earning" and line.is_taxable:
            taxable += line.amount

    try:
        return PayCalculation(
            lines=lines,
            total_earnings=money(totals["earning"]),
            taxable_earnings=money(taxable),
            total_deductions=money(totals["deduction"]),
            total_taxes=money(totals["tax"]),
            net_pay=money(totals["earning"] - totals["deduction"] - totals["tax"]),
        )
    except ArithmeticError as exc:
        raise ValidationException({"compensation": ["Pay totals are out of range."]}) from exc


# ═════════════════════════════════════════════════════════════════════
# Statutory taxes
# ═════════════════════════════════════════════════════════════════════


def calculate_bracket_tax(income: Any, brackets: Iterable[TaxBracket | Mapping[str, Any]]) -> Decimal:
    """Progressive tax: each bracket taxes the slice of income inside it."""
    amount = _dec(income) or ZERO
    parsed = [b if isinstance(b, TaxBracket) else TaxBracket.model_validate(b) for b in brackets]
    parsed.sort(key=lambda b: (b.order, b.income_min))

    tax = ZERO
    for bracket in parsed:
        if amount <= bracket.income_min:
            continue
        upper = amount if bracket.income_max is None else min(amount, bracket.income_max)
        taxable_slice = upper - bracket.income_min
        if taxable_slice <= 0:
            continue
        tax += taxable_slice * bracket.rate_percentage / HUNDRED + bracket.fixed_amount
    return money(tax)


def calculate_flat_rate_tax(income: Any, rate: Any, cap: Any = None) -> Decimal:
    """``income * rate%``, limited to *cap* when one is set."""
    tax = (_dec(income) or ZERO) * (_dec(rate) or ZERO) / HUNDRED
    cap_value = _dec(cap)
    if cap_value is not None and tax > cap_value:
        tax = cap_value
    return money(tax)


def default_tax_rules() -> TaxRules:
    return TaxRules(
        brackets=[TaxBracket.model_validate(b) for b in DEFAULT_WAGE_TAX_BRACKETS],
        aov_rate=DEFAULT_AOV_RATE,
        aww_rate=DEFAULT_AWW_RATE,
        tax_free_allowance=DEFAULT_TAX_FREE_SUM_MONTHLY,
        source="default",
    )


def calculate_employee_taxes(
    gross: Any,
    taxable_gross: Any = None,
    is_resident: bool = True,
    rules: Optional[TaxRules] = None,
) -> TaxBreakdown:
    """Wage tax, AOV and AWW for one paycheck.

    Residents get the monthly tax-free sum deducted from taxable gross
    before brackets apply. Non-residents are taxed on the full amount.
    """
    if rules is None:
        rules = default_tax_rules()
        logger.debug("No tax rules supplied; using statutory defaults")

    gross_pay = money(gross)
    taxable_gross_pay = gross_pay if taxable_gross is None else money(taxable_gross)
    allowance = min(rules.tax_free_allowance, taxable_gross_pay) if is_resident else ZERO
    allowance = money(max(allowance, ZERO))
    taxable_income = money(max(taxable_gross_pay - allowance, ZERO))

    wage_tax = calculate_bracket_tax(taxable_income, rules.brackets)
    aov = calculate_flat_rate_tax(taxable_income, rules.aov_rate, rules.aov_cap)
    aww = calculate_flat_rate_tax(taxable_income, rules.aww_rate, rules.aww_cap)
    total = money(wage_tax + aov + aww)

    effective_rate = money(total / gross_pay * HUNDRED) if gross_pay > 0 else money(ZERO)
    return TaxBreakdown(
        gross_pay=gross_pay,
        tax_free_allowance=allowance,
        taxable_income=taxable_income,
        wage_tax=wage_tax,
        aov=aov,
        aww=aww,
        total_taxes=total,
        effective_rate=effective_rate,
    )
