"""PayLinq router — pay components, templates, worker structures, tax
rules and payroll runs.

Routes (all under /payroll):
    /components                          — list, create
    /components/{id}                     — update
    /templates                           — list, create
    /templates/{code}/versions           — version history
    /templates/{id}/components           — add component (draft only)
    /templates/{id}/publish              — draft → active
    /templates/{id}/versions             — new draft version
    /worker-structures                   — assign
    /worker-structures/{employee_id}/preview
    /tax-rules                           — list, create
    /tax-rules/effective                 — rules in force on a date
    /allowances                          — create
    /runs                                — list, create
    /runs/{id}                           — detail + summary
    /runs/{id}/calculate|approve|process|cancel
    /paychecks                           — own paychecks / by run
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.auth.dependencies import get_current_user, has_role, require_role
from hrsuite.common.constants import ComponentCategory, PayrollRunStatus, TemplateStatus, UserRole
from hrsuite.common.exceptions import ForbiddenException
from hrsuite.common.rate_limit import limiter
from hrsuite.core_hr.models import Employee
from hrsuite.database import get_db
from hrsuite.payroll.schemas import (
    AllowanceCreate,
    PayComponentCreate,
    PayComponentResponse,
    PayComponentUpdate,
    PaycheckResponse,
    PayPreviewRequest,
    PayrollRunCreate,
    PayrollRunResponse,
    TaxRuleSetCreate,
    TaxRuleSetResponse,
    TemplateComponentAdd,
    TemplateCreate,
    TemplateResponse,
    TemplateVersionCreate,
    WorkerStructureAssign,
    WorkerStructureResponse,
)
from hrsuite.payroll.service import (
    DEFAULT_COUNTRY,
    PayComponentService,
    PayrollRunService,
    TaxRuleService,
    TemplateService,
    WorkerStructureService,
)

router = APIRouter()

_payroll_admin = require_role(UserRole.payroll_admin)


def _template(template) -> dict:
    return TemplateResponse.model_validate(template).model_dump(mode="json")


def _run(run) -> dict:
    return PayrollRunResponse.model_validate(run).model_dump(mode="json")


# ═════════════════════════════════════════════════════════════════════
# Components
# ═════════════════════════════════════════════════════════════════════


@router.get("/components")
async def list_components(
    category: Optional[ComponentCategory] = Query(None),
    is_active: Optional[bool] = Query(True),
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    components = await PayComponentService.list_components(
        db, category=category, is_active=is_active,
    )
    return {
        "data": [PayComponentResponse.model_validate(c).model_dump(mode="json") for c in components],
        "message": "Pay components retrieved successfully.",
    }


@router.post("/components", status_code=201)
async def create_component(
    body: PayComponentCreate,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    component = await PayComponentService.create_component(db, body, actor_id=current_user.id)
    return {
        "data": PayComponentResponse.model_validate(component).model_dump(mode="json"),
        "message": "Pay component created successfully.",
    }


@router.put("/components/{component_id}")
async def update_component(
    component_id: uuid.UUID,
    body: PayComponentUpdate,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    component = await PayComponentService.update_component(
        db, component_id, body, actor_id=current_user.id,
    )
    return {
        "data": PayComponentResponse.model_validate(component).model_dump(mode="json"),
        "message": "Pay component updated successfully.",
    }


# ═════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════


@router.get("/templates")
async def list_templates(
    status: Optional[TemplateStatus] = Query(None),
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    templates = await TemplateService.list_templates(db, status=status)
    return {
        "data": [_template(t) for t in templates],
        "message": "Templates retrieved successfully.",
    }


@router.post("/templates", status_code=201)
async def create_template(
    body: TemplateCreate,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await TemplateService.create_template(db, body, actor_id=current_user.id)
    return {"data": _template(template), "message": "Template created successfully."}


@router.get("/templates/{template_code}/versions")
async def list_template_versions(
    template_code: str,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    versions = await TemplateService.list_template_versions(db, template_code)
    return {
        "data": [_template(t) for t in versions],
        "message": "Template versions retrieved successfully.",
    }


@router.post("/templates/{template_id}/components", status_code=201)
async def add_template_component(
    template_id: uuid.UUID,
    body: TemplateComponentAdd,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await TemplateService.add_template_component(
        db, template_id, body, actor_id=current_user.id,
    )
    return {"data": _template(template), "message": "Component added to template."}


@router.post("/templates/{template_id}/publish")
async def publish_template(
    template_id: uuid.UUID,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await TemplateService.publish_template(db, template_id, actor_id=current_user.id)
    return {"data": _template(template), "message": "Template published."}


@router.post("/templates/{template_id}/versions", status_code=201)
async def create_template_version(
    template_id: uuid.UUID,
    body: TemplateVersionCreate,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await TemplateService.create_template_version(
        db,
        template_id,
        body.bump,
        change_summary=body.change_summary,
        actor_id=current_user.id,
    )
    return {"data": _template(template), "message": "Template version created."}


# ═════════════════════════════════════════════════════════════════════
# Worker structures
# ═════════════════════════════════════════════════════════════════════


@router.post("/worker-structures", status_code=201)
async def assign_worker_structure(
    body: WorkerStructureAssign,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    structure = await WorkerStructureService.assign_worker_structure(
        db, body, actor_id=current_user.id,
    )
    return {
        "data": WorkerStructureResponse.model_validate(structure).model_dump(mode="json"),
        "message": "Pay structure assigned.",
    }


@router.post("/worker-structures/{employee_id}/preview")
async def preview_worker_pay(
    employee_id: uuid.UUID,
    body: PayPreviewRequest,
    request: Request,
    current_user: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Dry-run a worker's pay. Workers may preview their own pay."""
    if current_user.id != employee_id and not has_role(request, UserRole.payroll_admin):
        raise ForbiddenException(detail="You can only preview your own pay.")
    preview = await WorkerStructureService.preview_worker_pay(
        db, employee_id, body.inputs, body.pay_date,
    )
    return {"data": preview, "message": "Pay preview calculated."}


# ═════════════════════════════════════════════════════════════════════
# Tax rules
# ═════════════════════════════════════════════════════════════════════


@router.get("/tax-rules")
async def list_tax_rules(
    country: Optional[str] = Query(None, min_length=2, max_length=2),
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    rule_sets = await TaxRuleService.list_tax_rule_sets(db, country=country)
    return {
        "data": [TaxRuleSetResponse.model_validate(r).model_dump(mode="json") for r in rule_sets],
        "message": "Tax rules retrieved successfully.",
    }


# NOTE: must be declared before any /tax-rules/{id} route.
@router.get("/tax-rules/effective")
async def effective_tax_rules(
    country: str = Query(DEFAULT_COUNTRY, min_length=2, max_length=2),
    on_date: Optional[date] = Query(None),
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    rules = await TaxRuleService.get_effective_rules(db, country, on_date)
    return {"data": rules.model_dump(mode="json"), "message": "Effective tax rules."}


@router.post("/tax-rules", status_code=201)
async def create_tax_rule_set(
    body: TaxRuleSetCreate,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    rule_set = await TaxRuleService.create_tax_rule_set(db, body, actor_id=current_user.id)
    return {
        "data": TaxRuleSetResponse.model_validate(rule_set).model_dump(mode="json"),
        "message": "Tax rule set created successfully.",
    }


@router.post("/allowances", status_code=201)
async def create_allowance(
    body: AllowanceCreate,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    allowance = await TaxRuleService.create_allowance(db, body, actor_id=current_user.id)
    return {
        "data": {
            "id": str(allowance.id),
            "allowance_type": allowance.allowance_type,
            "country": allowance.country,
            "amount": str(allowance.amount),
            "effective_from": allowance.effective_from.isoformat(),
        },
        "message": "Allowance created successfully.",
    }


# ═════════════════════════════════════════════════════════════════════
# Payroll runs
# ═════════════════════════════════════════════════════════════════════


@router.get("/runs")
async def list_payroll_runs(
    status: Optional[PayrollRunStatus] = Query(None),
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    runs = await PayrollRunService.list_payroll_runs(db, status=status)
    return {"data": [_run(r) for r in runs], "message": "Payroll runs retrieved successfully."}


@router.post("/runs", status_code=201)
async def create_payroll_run(
    body: PayrollRunCreate,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    run = await PayrollRunService.create_payroll_run(db, body, actor_id=current_user.id)
    return {"data": _run(run), "message": "Payroll run created successfully."}


@router.get("/runs/{run_id}")
async def get_payroll_run(
    run_id: uuid.UUID,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    """Run header, one row per paycheck and the aggregated summary."""
    detail = await PayrollRunService.summarize_payroll_run(db, run_id)
    return {"data": detail.model_dump(mode="json"), "message": "Payroll run retrieved successfully."}


@router.post("/runs/{run_id}/calculate")
@limiter.limit("5/minute")
async def calculate_payroll_run(
    request: Request,
    run_id: uuid.UUID,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    run = await PayrollRunService.calculate_payroll_run(db, run_id, actor_id=current_user.id)
    return {"data": _run(run), "message": f"Calculated {run.employee_count} paychecks."}


@router.post("/runs/{run_id}/approve")
async def approve_payroll_run(
    run_id: uuid.UUID,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    run = await PayrollRunService.approve_payroll_run(db, run_id, actor_id=current_user.id)
    return {"data": _run(run), "message": "Payroll run approved."}


@router.post("/runs/{run_id}/process")
async def process_payroll_run(
    run_id: uuid.UUID,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    run = await PayrollRunService.process_payroll_run(db, run_id, actor_id=current_user.id)
    return {"data": _run(run), "message": "Payroll run processed."}


@router.post("/runs/{run_id}/cancel")
async def cancel_payroll_run(
    run_id: uuid.UUID,
    current_user: Employee = Depends(_payroll_admin),
    db: AsyncSession = Depends(get_db),
):
    run = await PayrollRunService.cancel_payroll_run(db, run_id, actor_id=current_user.id)
    return {"data": _run(run), "message": "Payroll run cancelled."}


# ═════════════════════════════════════════════════════════════════════
# Paychecks
# ═════════════════════════════════════════════════════════════════════


@router.get("/paychecks")
async def list_paychecks(
    request: Request,
    run_id: Optional[uuid.UUID] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    current_user: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Employees see only their own paychecks."""
    if not has_role(request, UserRole.payroll_admin):
        employee_id = current_user.id
    paychecks = await PayrollRunService.list_paychecks(db, run_id=run_id, employee_id=employee_id)
    return {
        "data": [PaycheckResponse.model_validate(p).model_dump(mode="json") for p in paychecks],
        "message": "Paychecks retrieved successfully.",
    }
