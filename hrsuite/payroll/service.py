"""Payroll service layer — components, templates, worker structures,
tax rules and payroll runs.

All arithmetic is delegated to :mod:`hrsuite.payroll.engine`; this module
loads rows, persists results and enforces the run state machine:

    draft ──calculate──▶ calculated ──approve──▶ approved ──process──▶ processed
      │                    │  ▲                    │
      │                    └──┘ (recalculate)      │
      └────────────── cancel ◀─────────────────────┘
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable, Literal, Optional, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrsuite.attendance.models import AttendanceRecord
from hrsuite.common.audit import create_audit_entry
from hrsuite.common.constants import (
    CalculationType,
    PayrollRunStatus,
    TaxCalculationMethod,
    TaxType,
    TemplateStatus,
)
from hrsuite.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    NotFoundException,
    ValidationException,
)
from hrsuite.config import settings
from hrsuite.core_hr.models import Employee
from hrsuite.payroll import engine
from hrsuite.payroll.formula import FormulaError, validate_formula
from hrsuite.payroll.models import (
    Allowance,
    PayComponent,
    PayrollRun,
    PayStructureTemplate,
    Paycheck,
    TaxRuleSet,
    TemplateComponent,
    WorkerPayStructure,
)
from hrsuite.payroll.schemas import (
    AllowanceCreate,
    Compensation,
    ComponentConfiguration,
    ComponentDefinition,
    ComponentOverride,
    PayCalculation,
    PayComponentCreate,
    PayComponentUpdate,
    PaycheckRow,
    PayrollRunCreate,
    PayrollRunResponse,
    RunDetail,
    RunSummary,
    TaxBracket,
    TaxBreakdown,
    TaxRuleSetCreate,
    TaxRules,
    TemplateComponentAdd,
    TemplateCreate,
    WorkerStructureAssign,
)

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = settings.PAYROLL_COUNTRY


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# Validation helpers
# ═════════════════════════════════════════════════════════════════════


def validate_component_configuration(
    calculation_type: CalculationType,
    config: ComponentConfiguration,
) -> None:
    """Raise ValidationException when *config* cannot drive *calculation_type*."""
    errors: dict[str, list[str]] = {}

    if calculation_type == CalculationType.percentage:
        if not config.percentage_of:
            errors["percentage_of"] = ["Required for percentage components."]
        if config.percentage_rate is None:
            errors["percentage_rate"] = ["Required for percentage components."]
    elif calculation_type == CalculationType.formula:
        if not config.formula_expression:
            errors["formula_expression"] = ["Required for formula components."]
        else:
            try:
                validate_formula(config.formula_expression)
            except FormulaError as exc:
                errors["formula_expression"] = [str(exc)]
    elif calculation_type == CalculationType.tiered:
        if not config.tiers:
            errors["tiers"] = ["At least one tier is required."]
        if not config.tier_basis:
            errors["tier_basis"] = ["Required for tiered components."]

    if (
        config.min_amount is not None
        and config.max_amount is not None
        and config.min_amount > config.max_amount
    ):
        errors["max_amount"] = ["max_amount must be greater than or equal to min_amount."]

    if errors:
        raise ValidationException(errors)


def validate_brackets(
    method: TaxCalculationMethod,
    brackets: Sequence[TaxBracket],
) -> None:
    """Brackets must be in ascending order and leave no gaps.

    Only the last bracket may be open-ended. A flat-rate rule carries its
    rate in a single bracket.
    """
    if not brackets:
        raise ValidationException({"brackets": ["At least one bracket is required."]})
    if method == TaxCalculationMethod.flat_rate:
        if len(brackets) != 1:
            raise ValidationException(
                {"brackets": ["A flat-rate rule takes exactly one bracket."]},
            )
        return

    errors: list[str] = []
    previous: Optional[TaxBracket] = None
    for bracket in brackets:
        if bracket.income_max is not None and bracket.income_max <= bracket.income_min:
            errors.append(f"Bracket {bracket.order}: income_max must exceed income_min.")
        if previous is None:
            if bracket.income_min != 0:
                errors.append("The first bracket must start at 0.")
        else:
            if bracket.order <= previous.order:
                errors.append(f"Bracket {bracket.order} is out of order.")
            if previous.income_max is None:
                errors.append(f"Bracket {previous.order} is open-ended but is not the last bracket.")
            elif bracket.income_min != previous.income_max:
                errors.append(
                    f"Bracket {bracket.order} must start at {previous.income_max} "
                    f"(gap or overlap with bracket {previous.order}).",
                )
        previous = bracket

    if errors:
        raise ValidationException({"brackets": errors})


def build_run_summary(run: PayrollRun, paychecks: Sequence[Paycheck]) -> RunSummary:
    """Sum paycheck figures; the run's stored non-zero totals take precedence."""
    summed = defaultdict(lambda: Decimal("0"))
    for check in paychecks:
        for field in ("gross_pay", "wage_tax", "aov", "aww", "total_deductions", "net_pay"):
            summed[field] += Decimal(str(getattr(check, field) or 0))

    def _stored_or_sum(stored: Any, field: str) -> Decimal:
        value = Decimal(str(stored or 0))
        return engine.money(value if value != 0 else summed[field])

    return RunSummary(
        total_gross=_stored_or_sum(run.total_gross_pay, "gross_pay"),
        total_wage_tax=engine.money(summed["wage_tax"]),
        total_aov=engine.money(summed["aov"]),
        total_aww=engine.money(summed["aww"]),
        total_deductions=_stored_or_sum(run.total_deductions, "total_deductions"),
        total_net=_stored_or_sum(run.total_net_pay, "net_pay"),
        employee_count=run.employee_count or len(paychecks),
    )


def _definitions(template: PayStructureTemplate) -> list[ComponentDefinition]:
    return [
        ComponentDefinition(
            code=tc.component.code,
            name=tc.component.name,
            category=tc.component.category,
            calculation_type=tc.component.calculation_type,
            configuration=tc.component.configuration,
            sequence_order=tc.sequence_order,
            is_taxable=tc.component.is_taxable,
            affects_gross_pay=tc.component.affects_gross_pay,
        )
        for tc in template.components
        if tc.component is not None and tc.component.is_active
    ]


# ═════════════════════════════════════════════════════════════════════
# PayComponentService
# ═════════════════════════════════════════════════════════════════════


class PayComponentService:

    @staticmethod
    async def list_components(
        db: AsyncSession,
        *,
        category: Optional[str] = None,
        is_active: Optional[bool] = True,
    ) -> Sequence[PayComponent]:
        query = select(PayComponent).order_by(PayComponent.category, PayComponent.code)
        if category is not None:
            query = query.where(PayComponent.category == category)
        if is_active is not None:
            query = query.where(PayComponent.is_active.is_(is_active))
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_component(db: AsyncSession, component_id: uuid.UUID) -> PayComponent:
        component = await db.get(PayComponent, component_id)
        if component is None:
            raise NotFoundException("PayComponent", str(component_id))
        return component

    @staticmethod
    async def create_component(
        db: AsyncSession,
        data: PayComponentCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayComponent:
        code = data.code.upper()
        existing = await db.execute(select(PayComponent.id).where(PayComponent.code == code))
        if existing.first() is not None:
            raise ConflictError("code", code)

        validate_component_configuration(data.calculation_type, data.configuration)

        component = PayComponent(
            code=code,
            name=data.name,
            category=data.category,
            calculation_type=data.calculation_type,
            configuration=data.configuration.model_dump(mode="json", exclude_none=True),
            is_taxable=data.is_taxable,
            affects_gross_pay=data.affects_gross_pay,
            description=data.description,
        )
        db.add(component)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="pay_component",
            entity_id=component.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return component

    @staticmethod
    async def update_component(
        db: AsyncSession,
        component_id: uuid.UUID,
        data: PayComponentUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayComponent:
        component = await PayComponentService.get_component(db, component_id)
        changes = data.model_dump(exclude_unset=True)

        calculation_type = changes.get("calculation_type") or component.calculation_type
        if "configuration" in changes or "calculation_type" in changes:
            config = data.configuration or ComponentConfiguration.model_validate(
                component.configuration or {},
            )
            validate_component_configuration(CalculationType(calculation_type), config)
            changes["configuration"] = config.model_dump(mode="json", exclude_none=True)

        old_values = {key: getattr(component, key) for key in changes}
        for key, value in changes.items():
            setattr(component, key, value)
        component.updated_at = _now()
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="pay_component",
            entity_id=component.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=changes,
        )
        return component


# ═════════════════════════════════════════════════════════════════════
# TemplateService
# ═════════════════════════════════════════════════════════════════════


class TemplateService:

    @staticmethod
    async def get_template(db: AsyncSession, template_id: uuid.UUID) -> PayStructureTemplate:
        result = await db.execute(
            select(PayStructureTemplate)
            .options(
                selectinload(PayStructureTemplate.components)
                .selectinload(TemplateComponent.component),
            )
            .where(PayStructureTemplate.id == template_id)
            .execution_options(populate_existing=True)
        )
        template = result.scalars().first()
        if template is None:
            raise NotFoundException("PayStructureTemplate", str(template_id))
        return template

    @staticmethod
    async def list_templates(
        db: AsyncSession,
        *,
        status: Optional[TemplateStatus] = None,
    ) -> Sequence[PayStructureTemplate]:
        query = (
            select(PayStructureTemplate)
            .options(
                selectinload(PayStructureTemplate.components)
                .selectinload(TemplateComponent.component),
            )
            .order_by(
                PayStructureTemplate.template_code,
                PayStructureTemplate.version_major.desc(),
                PayStructureTemplate.version_minor.desc(),
                PayStructureTemplate.version_patch.desc(),
            )
        )
        if status is not None:
            query = query.where(PayStructureTemplate.status == status)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def list_template_versions(
        db: AsyncSession,
        template_code: str,
    ) -> Sequence[PayStructureTemplate]:
        result = await db.execute(
            select(PayStructureTemplate)
            .options(
                selectinload(PayStructureTemplate.components)
                .selectinload(TemplateComponent.component),
            )
            .where(PayStructureTemplate.template_code == template_code)
            .order_by(
                PayStructureTemplate.version_major.desc(),
                PayStructureTemplate.version_minor.desc(),
                PayStructureTemplate.version_patch.desc(),
            )
        )
        versions = result.scalars().all()
        if not versions:
            raise NotFoundException("PayStructureTemplate", template_code)
        return versions

    @staticmethod
    async def create_template(
        db: AsyncSession,
        data: TemplateCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayStructureTemplate:
        existing = await db.execute(
            select(PayStructureTemplate.id).where(
                PayStructureTemplate.template_code == data.template_code,
            ),
        )
        if existing.first() is not None:
            raise ConflictError("template_code", data.template_code)

        template = PayStructureTemplate(
            template_code=data.template_code,
            name=data.name,
            description=data.description,
            currency=data.currency.upper(),
            version_major=1,
            version_minor=0,
            version_patch=0,
            status=TemplateStatus.draft,
            created_by=actor_id,
        )
        db.add(template)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="pay_structure_template",
            entity_id=template.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return await TemplateService.get_template(db, template.id)

    @staticmethod
    async def add_template_component(
        db: AsyncSession,
        template_id: uuid.UUID,
        data: TemplateComponentAdd,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayStructureTemplate:
        template = await TemplateService.get_template(db, template_id)
        if template.status != TemplateStatus.draft:
            raise BusinessRuleException(
                f"Components can only be added to draft templates; "
                f"version {template.version_string} is {template.status.value}.",
            )

        component = await PayComponentService.get_component(db, data.component_id)
        if not component.is_active:
            raise ValidationException({"component_id": ["Component is inactive."]})
        if any(tc.component_id == component.id for tc in template.components):
            raise ConflictError("component_id", str(component.id))

        db.add(TemplateComponent(
            template_id=template.id,
            component_id=component.id,
            sequence_order=data.sequence_order,
        ))
        template.updated_at = _now()
        await db.flush()

        await create_audit_entry(
            db,
            action="add_component",
            entity_type="pay_structure_template",
            entity_id=template.id,
            actor_id=actor_id,
            new_values={"component": component.code, "sequence_order": data.sequence_order},
        )
        return await TemplateService.get_template(db, template.id)

    @staticmethod
    async def publish_template(
        db: AsyncSession,
        template_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayStructureTemplate:
        template = await TemplateService.get_template(db, template_id)
        if template.status != TemplateStatus.draft:
            raise BusinessRuleException(
                f"Only draft templates can be published; this one is {template.status.value}.",
            )
        if not template.components:
            raise ValidationException({"components": ["A template needs at least one component."]})

        await db.execute(
            update(PayStructureTemplate)
            .where(
                PayStructureTemplate.template_code == template.template_code,
                PayStructureTemplate.status == TemplateStatus.active,
                PayStructureTemplate.id != template.id,
            )
            .values(status=TemplateStatus.deprecated, updated_at=_now())
        )
        template.status = TemplateStatus.active
        template.published_at = _now()
        template.updated_at = _now()
        await db.flush()

        await create_audit_entry(
            db,
            action="publish",
            entity_type="pay_structure_template",
            entity_id=template.id,
            actor_id=actor_id,
            new_values={"version": template.version_string},
        )
        logger.info(
            "Published pay structure template %s v%s",
            template.template_code, template.version_string,
        )
        return await TemplateService.get_template(db, template.id)

    @staticmethod
    async def create_template_version(
        db: AsyncSession,
        template_id: uuid.UUID,
        bump: Literal["major", "minor", "patch"] = "minor",
        *,
        change_summary: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayStructureTemplate:
        """Copy *template_id* into a new draft, bumped from the latest version."""
        source = await TemplateService.get_template(db, template_id)
        latest = (await TemplateService.list_template_versions(db, source.template_code))[0]

        major, minor, patch = latest.version_major, latest.version_minor, latest.version_patch
        if bump == "major":
            major, minor, patch = major + 1, 0, 0
        elif bump == "minor":
            minor, patch = minor + 1, 0
        else:
            patch += 1

        new_version = PayStructureTemplate(
            template_code=source.template_code,
            name=source.name,
            description=source.description,
            currency=source.currency,
            version_major=major,
            version_minor=minor,
            version_patch=patch,
            status=TemplateStatus.draft,
            parent_template_id=source.id,
            change_summary=change_summary,
            created_by=actor_id,
        )
        db.add(new_version)
        await db.flush()
        for tc in source.components:
            db.add(TemplateComponent(
                template_id=new_version.id,
                component_id=tc.component_id,
                sequence_order=tc.sequence_order,
            ))
        await db.flush()

        await create_audit_entry(
            db,
            action="create_version",
            entity_type="pay_structure_template",
            entity_id=new_version.id,
            actor_id=actor_id,
            new_values={"from": source.version_string, "version": f"{major}.{minor}.{patch}"},
        )
        return await TemplateService.get_template(db, new_version.id)


# ═════════════════════════════════════════════════════════════════════
# Tax rules
# ═════════════════════════════════════════════════════════════════════


def _in_force(model: Any, on_date: date) -> list[Any]:
    return [
        model.effective_from <= on_date,
        or_(model.effective_to.is_(None), model.effective_to >= on_date),
    ]


class TaxRuleService:

    @staticmethod
    async def create_tax_rule_set(
        db: AsyncSession,
        data: TaxRuleSetCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TaxRuleSet:
        if data.effective_to is not None and data.effective_to < data.effective_from:
            raise ValidationException(
                {"effective_to": ["effective_to must be on or after effective_from."]},
            )
        validate_brackets(data.calculation_method, data.brackets)

        rule_set = TaxRuleSet(
            tax_type=data.tax_type,
            country=data.country.upper(),
            effective_from=data.effective_from,
            effective_to=data.effective_to,
            calculation_method=data.calculation_method,
            brackets=[b.model_dump(mode="json") for b in data.brackets],
            annual_cap=data.annual_cap,
            description=data.description,
        )
        db.add(rule_set)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="tax_rule_set",
            entity_id=rule_set.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return rule_set

    @staticmethod
    async def list_tax_rule_sets(
        db: AsyncSession,
        *,
        country: Optional[str] = None,
    ) -> Sequence[TaxRuleSet]:
        query = select(TaxRuleSet).order_by(TaxRuleSet.tax_type, TaxRuleSet.effective_from.desc())
        if country:
            query = query.where(TaxRuleSet.country == country.upper())
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def create_allowance(
        db: AsyncSession,
        data: AllowanceCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Allowance:
        allowance = Allowance(**data.model_dump())
        allowance.country = allowance.country.upper()
        db.add(allowance)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="allowance",
            entity_id=allowance.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return allowance

    @staticmethod
    async def get_effective_rules(
        db: AsyncSession,
        country: str = DEFAULT_COUNTRY,
        on_date: Optional[date] = None,
    ) -> TaxRules:
        """Rules in force on *on_date*; each missing piece falls back to the defaults."""
        on_date = on_date or date.today()
        country = country.upper()
        defaults = engine.default_tax_rules()

        result = await db.execute(
            select(TaxRuleSet)
            .where(TaxRuleSet.country == country, *_in_force(TaxRuleSet, on_date))
            .order_by(TaxRuleSet.effective_from.desc())
        )
        latest: dict[TaxType, TaxRuleSet] = {}
        for rule_set in result.scalars().all():
            latest.setdefault(rule_set.tax_type, rule_set)

        allowance_result = await db.execute(
            select(Allowance)
            .where(
                Allowance.country == country,
                Allowance.allowance_type == "tax_free_sum_monthly",
                Allowance.is_active.is_(True),
                *_in_force(Allowance, on_date),
            )
            .order_by(Allowance.effective_from.desc())
        )
        allowance = allowance_result.scalars().first()

        def _flat(tax_type: TaxType, default_rate: Decimal) -> tuple[Decimal, Optional[Decimal]]:
            rule_set = latest.get(tax_type)
            if rule_set is None or not rule_set.brackets:
                return default_rate, None
            rate = Decimal(str(rule_set.brackets[0]["rate_percentage"]))
            # Annual caps are applied per monthly paycheck.
            cap = rule_set.annual_cap / 12 if rule_set.annual_cap is not None else None
            return rate, cap

        wage = latest.get(TaxType.wage_tax_monthly)
        brackets = (
            [TaxBracket.model_validate(b) for b in wage.brackets]
            if wage is not None and wage.brackets
            else defaults.brackets
        )
        aov_rate, aov_cap = _flat(TaxType.aov, defaults.aov_rate)
        aww_rate, aww_cap = _flat(TaxType.aww, defaults.aww_rate)

        configured = bool(latest) or allowance is not None
        if not configured:
            logger.info("No tax rules in force for %s on %s; using defaults", country, on_date)

        return TaxRules(
            brackets=brackets,
            aov_rate=aov_rate,
            aww_rate=aww_rate,
            aov_cap=aov_cap,
            aww_cap=aww_cap,
            tax_free_allowance=(
                allowance.amount if allowance is not None else defaults.tax_free_allowance
            ),
            source="configured" if configured else "default",
        )


# ═════════════════════════════════════════════════════════════════════
# Worker pay structures
# ═════════════════════════════════════════════════════════════════════


class WorkerStructureService:

    @staticmethod
    async def get_current_structure(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> WorkerPayStructure:
        result = await db.execute(
            select(WorkerPayStructure).where(
                WorkerPayStructure.employee_id == employee_id,
                WorkerPayStructure.is_current.is_(True),
            )
        )
        structure = result.scalars().first()
        if structure is None:
            raise NotFoundException("WorkerPayStructure", str(employee_id))
        return structure

    @staticmethod
    async def assign_worker_structure(
        db: AsyncSession,
        data: WorkerStructureAssign,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> WorkerPayStructure:
        employee = await db.get(Employee, data.employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(data.employee_id))

        template = await TemplateService.get_template(db, data.template_id)
        if template.status != TemplateStatus.active:
            raise BusinessRuleException(
                f"Only active templates can be assigned; "
                f"version {template.version_string} is {template.status.value}.",
            )

        known_codes = {tc.component.code for tc in template.components}
        unknown = [o.component_code for o in data.overrides if o.component_code not in known_codes]
        if unknown:
            raise ValidationException(
                {"overrides": [f"Component '{code}' is not part of the template." for code in unknown]},
            )

        previous = await db.execute(
            select(WorkerPayStructure).where(
                WorkerPayStructure.employee_id == data.employee_id,
                WorkerPayStructure.is_current.is_(True),
            )
        )
        for structure in previous.scalars().all():
            structure.is_current = False
            structure.effective_to = data.effective_from - timedelta(days=1)

        structure = WorkerPayStructure(
            employee_id=data.employee_id,
            template_id=template.id,
            base_salary=data.base_salary,
            hourly_rate=data.hourly_rate,
            pay_frequency=data.pay_frequency,
            is_resident=data.is_resident,
            effective_from=data.effective_from,
            overrides=[o.model_dump(mode="json", exclude_none=True) for o in data.overrides],
            is_current=True,
        )
        db.add(structure)
        await db.flush()

        await create_audit_entry(
            db,
            action="assign",
            entity_type="worker_pay_structure",
            entity_id=structure.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info(
            "Assigned template %s v%s to employee %s",
            template.template_code, template.version_string, data.employee_id,
        )
        return structure

    @staticmethod
    def calculate(
        structure: WorkerPayStructure,
        template: PayStructureTemplate,
        inputs: Optional[dict[str, Any]] = None,
    ) -> PayCalculation:
        compensation = Compensation(
            base_salary=structure.base_salary,
            hourly_rate=structure.hourly_rate,
            pay_frequency=structure.pay_frequency,
            currency=template.currency,
        )
        overrides = [ComponentOverride.model_validate(o) for o in structure.overrides or []]
        return engine.calculate_pay_structure(
            _definitions(template), compensation, overrides, inputs,
        )

    @staticmethod
    async def preview_worker_pay(
        db: AsyncSession,
        employee_id: uuid.UUID,
        inputs: Optional[dict[str, Any]] = None,
        pay_date: Optional[date] = None,
    ) -> dict[str, Any]:
        """Run the engine and taxes for one worker without persisting anything."""
        structure = await WorkerStructureService.get_current_structure(db, employee_id)
        template = await TemplateService.get_template(db, structure.template_id)
        calculation = WorkerStructureService.calculate(structure, template, inputs)
        rules = await TaxRuleService.get_effective_rules(db, DEFAULT_COUNTRY, pay_date)
        taxes = engine.calculate_employee_taxes(
            calculation.total_earnings,
            calculation.taxable_earnings,
            structure.is_resident,
            rules,
        )
        total_deductions = taxes.total_taxes + calculation.total_deductions
        return {
            "employee_id": str(employee_id),
            "template": f"{template.template_code} v{template.version_string}",
            "calculation": calculation.model_dump(mode="json"),
            "taxes": taxes.model_dump(mode="json"),
            "total_deductions": str(engine.money(total_deductions)),
            "net_pay": str(engine.money(calculation.total_earnings - total_deductions)),
            "tax_rules_source": rules.source,
        }


# ═════════════════════════════════════════════════════════════════════
# Payroll runs
# ═════════════════════════════════════════════════════════════════════


def _paycheck_values(calculation: PayCalculation, taxes: TaxBreakdown) -> dict[str, Any]:
    gross = calculation.total_earnings
    other = calculation.total_deductions
    total_deductions = engine.money(taxes.wage_tax + taxes.aov + taxes.aww + other)
    return {
        "gross_pay": gross,
        "tax_free_allowance": taxes.tax_free_allowance,
        "taxable_income": taxes.taxable_income,
        "wage_tax": taxes.wage_tax,
        "aov": taxes.aov,
        "aww": taxes.aww,
        "other_deductions": other,
        "total_deductions": total_deductions,
        "net_pay": engine.money(gross - total_deductions),
        "components": [line.model_dump(mode="json") for line in calculation.lines],
    }


class PayrollRunService:

    @staticmethod
    async def create_payroll_run(
        db: AsyncSession,
        data: PayrollRunCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayrollRun:
        errors: dict[str, list[str]] = {}
        if data.period_end < data.period_start:
            errors["period_end"] = ["period_end must be on or after period_start."]
        if data.pay_date < data.period_start:
            errors["pay_date"] = ["pay_date must be on or after period_start."]
        if errors:
            raise ValidationException(errors)

        run_number = data.run_number or (
            f"PR-{data.period_start:%Y%m}-{uuid.uuid4().hex[:6].upper()}"
        )
        existing = await db.execute(
            select(PayrollRun.id).where(PayrollRun.run_number == run_number),
        )
        if existing.first() is not None:
            raise ConflictError("run_number", run_number)

        run = PayrollRun(
            run_number=run_number,
            period_start=data.period_start,
            period_end=data.period_end,
            pay_date=data.pay_date,
            description=data.description,
            status=PayrollRunStatus.draft,
            created_by=actor_id,
        )
        db.add(run)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="payroll_run",
            entity_id=run.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json") | {"run_number": run_number},
        )
        return run

    @staticmethod
    async def get_payroll_run(db: AsyncSession, run_id: uuid.UUID) -> PayrollRun:
        run = await db.get(PayrollRun, run_id, populate_existing=True)
        if run is None:
            raise NotFoundException("PayrollRun", str(run_id))
        return run

    @staticmethod
    async def list_payroll_runs(
        db: AsyncSession,
        *,
        status: Optional[PayrollRunStatus] = None,
    ) -> Sequence[PayrollRun]:
        query = select(PayrollRun).order_by(PayrollRun.period_start.desc())
        if status is not None:
            query = query.where(PayrollRun.status == status)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def _hours_in_period(
        db: AsyncSession,
        employee_ids: Iterable[uuid.UUID],
        start: date,
        end: date,
    ) -> dict[uuid.UUID, Decimal]:
        ids = list(employee_ids)
        if not ids:
            return {}
        result = await db.execute(
            select(AttendanceRecord.employee_id, func.sum(AttendanceRecord.hours_worked))
            .where(
                AttendanceRecord.employee_id.in_(ids),
                AttendanceRecord.date >= start,
                AttendanceRecord.date <= end,
            )
            .group_by(AttendanceRecord.employee_id)
        )
        return {row[0]: Decimal(str(row[1] or 0)) for row in result.all()}

    @staticmethod
    async def calculate_payroll_run(
        db: AsyncSession,
        run_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayrollRun:
        """(Re)build every paycheck of a draft or calculated run.

        Hourly workers are paid for the attendance hours recorded in the
        run period. Workers whose structure fails to calculate are skipped
        and logged.
        """
        run = await PayrollRunService.get_payroll_run(db, run_id)
        if run.status not in (PayrollRunStatus.draft, PayrollRunStatus.calculated):
            raise BusinessRuleException(
                f"Only draft or calculated runs can be calculated; this run is {run.status.value}.",
            )

        await db.execute(delete(Paycheck).where(Paycheck.run_id == run.id))

        result = await db.execute(
            select(WorkerPayStructure)
            .join(Employee, Employee.id == WorkerPayStructure.employee_id)
            .where(
                WorkerPayStructure.is_current.is_(True),
                Employee.is_active.is_(True),
            )
            .order_by(Employee.last_name, Employee.first_name)
        )
        structures = result.scalars().all()

        rules = await TaxRuleService.get_effective_rules(db, DEFAULT_COUNTRY, run.pay_date)
        hours = await PayrollRunService._hours_in_period(
            db,
            [s.employee_id for s in structures if not s.base_salary],
            run.period_start,
            run.period_end,
        )

        templates: dict[uuid.UUID, PayStructureTemplate] = {}
        totals = {"gross": Decimal("0"), "deductions": Decimal("0"), "net": Decimal("0")}
        count = 0
        for structure in structures:
            if structure.template_id not in templates:
                templates[structure.template_id] = await TemplateService.get_template(
                    db, structure.template_id,
                )
            inputs = {"hours": hours.get(structure.employee_id, Decimal("0"))}
            try:
                calculation = WorkerStructureService.calculate(
                    structure, templates[structure.template_id], inputs,
                )
            except ValidationException as exc:
                logger.warning(
                    "Payroll run %s: skipping employee %s: %s",
                    run.run_number, structure.employee_id, exc.errors,
                )
                continue

            taxes = engine.calculate_employee_taxes(
                calculation.total_earnings,
                calculation.taxable_earnings,
                structure.is_resident,
                rules,
            )
            values = _paycheck_values(calculation, taxes)
            db.add(Paycheck(
                run_id=run.id,
                employee_id=structure.employee_id,
                worker_structure_id=structure.id,
                **values,
            ))
            totals["gross"] += values["gross_pay"]
            totals["deductions"] += values["total_deductions"]
            totals["net"] += values["net_pay"]
            count += 1

        run.total_gross_pay = engine.money(totals["gross"])
        run.total_deductions = engine.money(totals["deductions"])
        run.total_net_pay = engine.money(totals["net"])
        run.employee_count = count
        run.status = PayrollRunStatus.calculated
        run.calculated_at = _now()
        run.updated_at = _now()
        await db.flush()

        await create_audit_entry(
            db,
            action="calculate",
            entity_type="payroll_run",
            entity_id=run.id,
            actor_id=actor_id,
            new_values={
                "employee_count": count,
                "total_gross_pay": run.total_gross_pay,
                "total_net_pay": run.total_net_pay,
                "tax_rules_source": rules.source,
            },
        )
        logger.info(
            "Payroll run %s calculated: %d paychecks, gross %s, net %s",
            run.run_number, count, run.total_gross_pay, run.total_net_pay,
        )
        return run

    @staticmethod
    async def _transition(
        db: AsyncSession,
        run_id: uuid.UUID,
        allowed: set[PayrollRunStatus],
        new_status: PayrollRunStatus,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PayrollRun:
        run = await PayrollRunService.get_payroll_run(db, run_id)
        if run.status not in allowed:
            raise BusinessRuleException(
                f"Cannot move payroll run from {run.status.value} to {new_status.value}.",
            )

        old_status = run.status
        run.status = new_status
        now = _now()
        if new_status == PayrollRunStatus.approved:
            run.approved_by = actor_id
            run.approved_at = now
        elif new_status == PayrollRunStatus.processed:
            run.processed_at = now
        run.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action=new_status.value,
            entity_type="payroll_run",
            entity_id=run.id,
            actor_id=actor_id,
            old_values={"status": old_status.value},
            new_values={"status": new_status.value},
        )
        logger.info("Payroll run %s %s", run.run_number, new_status.value)
        return run

    @staticmethod
    async def approve_payroll_run(
        db: AsyncSession, run_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None,
    ) -> PayrollRun:
        return await PayrollRunService._transition(
            db, run_id, {PayrollRunStatus.calculated}, PayrollRunStatus.approved,
            actor_id=actor_id,
        )

    @staticmethod
    async def process_payroll_run(
        db: AsyncSession, run_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None,
    ) -> PayrollRun:
        return await PayrollRunService._transition(
            db, run_id, {PayrollRunStatus.approved}, PayrollRunStatus.processed,
            actor_id=actor_id,
        )

    @staticmethod
    async def cancel_payroll_run(
        db: AsyncSession, run_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None,
    ) -> PayrollRun:
        return await PayrollRunService._transition(
            db,
            run_id,
            {PayrollRunStatus.draft, PayrollRunStatus.calculated, PayrollRunStatus.approved},
            PayrollRunStatus.cancelled,
            actor_id=actor_id,
        )

    @staticmethod
    async def summarize_payroll_run(db: AsyncSession, run_id: uuid.UUID) -> RunDetail:
        run = await PayrollRunService.get_payroll_run(db, run_id)
        result = await db.execute(
            select(Paycheck, Employee)
            .join(Employee, Employee.id == Paycheck.employee_id)
            .where(Paycheck.run_id == run.id)
            .order_by(Employee.last_name, Employee.first_name)
        )
        rows = result.all()
        paychecks = [check for check, _ in rows]

        return RunDetail(
            run=PayrollRunResponse.model_validate(run),
            paychecks=[
                PaycheckRow(
                    employee_id=employee.id,
                    employee_name=employee.full_name,
                    gross_pay=check.gross_pay,
                    wage_tax=check.wage_tax,
                    aov=check.aov,
                    aww=check.aww,
                    total_deductions=check.total_deductions,
                    net_pay=check.net_pay,
                )
                for check, employee in rows
            ],
            summary=build_run_summary(run, paychecks),
        )

    @staticmethod
    async def list_paychecks(
        db: AsyncSession,
        *,
        run_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> Sequence[Paycheck]:
        query = select(Paycheck).order_by(Paycheck.created_at.desc())
        if run_id is not None:
            query = query.where(Paycheck.run_id == run_id)
        if employee_id is not None:
            query = query.where(Paycheck.employee_id == employee_id)
        return (await db.execute(query)).scalars().all()
