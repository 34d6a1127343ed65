"""Common module — shared utilities for the HR suite."""

from hrsuite.common.audit import AuditTrail, create_audit_entry
from hrsuite.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    EmploymentStatus,
    EmploymentType,
    UserRole,
)
from hrsuite.common.exceptions import (
    DEFAULT_ERROR_MESSAGE,
    AppException,
    BusinessRuleException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from hrsuite.common.filters import apply_filters, apply_search, apply_sorting
from hrsuite.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "EmploymentStatus",
    "EmploymentType",
    "UserRole",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "DEFAULT_ERROR_MESSAGE",
    "AppException",
    "BusinessRuleException",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    "apply_sorting",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
