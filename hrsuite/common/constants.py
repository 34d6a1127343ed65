"""Enums and constants for the HR suite — stored as VARCHAR + CHECK in PostgreSQL."""

from __future__ import annotations

import enum
from decimal import Decimal


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    hr_admin = "hr_admin"
    payroll_admin = "payroll_admin"
    recruiter = "recruiter"
    system_admin = "system_admin"


# ── Employee / Core HR ──────────────────────────────────────────────

class EmploymentStatus(str, enum.Enum):
    active = "active"
    on_leave = "on_leave"
    terminated = "terminated"


class EmploymentType(str, enum.Enum):
    full_time = "full_time"
    part_time = "part_time"
    contract = "contract"
    temporary = "temporary"


class TerminationType(str, enum.Enum):
    voluntary = "voluntary"
    involuntary = "involuntary"


class GenderType(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"
    undisclosed = "undisclosed"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    late = "late"
    half_day = "half_day"


# ── Time off ────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    vacation = "vacation"
    sick = "sick"
    personal = "personal"
    unpaid = "unpaid"
    other = "other"


class TimeOffStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


# ── Performance ─────────────────────────────────────────────────────

class ReviewStatus(str, enum.Enum):
    draft = "draft"
    submitted = "submitted"
    completed = "completed"


class GoalStatus(str, enum.Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


# ── Payroll ─────────────────────────────────────────────────────────

class ComponentCategory(str, enum.Enum):
    earning = "earning"
    deduction = "deduction"
    tax = "tax"
    benefit = "benefit"


class CalculationType(str, enum.Enum):
    fixed = "fixed"
    percentage = "percentage"
    hourly_rate = "hourly_rate"
    formula = "formula"
    tiered = "tiered"


class TemplateStatus(str, enum.Enum):
    draft = "draft"
    active = "active"
    deprecated = "deprecated"


class PayFrequency(str, enum.Enum):
    monthly = "monthly"
    biweekly = "biweekly"
    weekly = "weekly"


class PayrollRunStatus(str, enum.Enum):
    draft = "draft"
    calculated = "calculated"
    approved = "approved"
    processed = "processed"
    cancelled = "cancelled"


class TaxType(str, enum.Enum):
    wage_tax_monthly = "wage_tax_monthly"
    aov = "aov"
    aww = "aww"


class TaxCalculationMethod(str, enum.Enum):
    bracket = "bracket"
    flat_rate = "flat_rate"


# ── Recruitment ─────────────────────────────────────────────────────

class JobStatus(str, enum.Enum):
    draft = "draft"
    open = "open"
    closed = "closed"


class InterviewStatus(str, enum.Enum):
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"


class QuestionType(str, enum.Enum):
    rating = "rating"
    yes_no = "yes-no"
    text = "text"
    multiple_choice = "multiple-choice"


# ── Payroll defaults (Suriname, monthly) ────────────────────────────
# Used when no TaxRuleSet is effective on the pay date.

DEFAULT_WAGE_TAX_BRACKETS: list[dict] = [
    {"order": 1, "income_min": Decimal("0"), "income_max": Decimal("3500"), "rate_percentage": Decimal("8"), "fixed_amount": Decimal("0")},
    {"order": 2, "income_min": Decimal("3500"), "income_max": Decimal("7000"), "rate_percentage": Decimal("18"), "fixed_amount": Decimal("0")},
    {"order": 3, "income_min": Decimal("7000"), "income_max": Decimal("10500"), "rate_percentage": Decimal("28"), "fixed_amount": Decimal("0")},
    {"order": 4, "income_min": Decimal("10500"), "income_max": None, "rate_percentage": Decimal("38"), "fixed_amount": Decimal("0")},
]
DEFAULT_AOV_RATE = Decimal("4")
DEFAULT_AWW_RATE = Decimal("1")
DEFAULT_TAX_FREE_SUM_MONTHLY = Decimal("9000")

RATING_SCALE_MAX = 5

# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
