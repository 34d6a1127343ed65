"""Application errors rendered as RFC 7807 ``application/problem+json``.

Services raise the ``AppException`` subclasses below; the handlers registered
by ``register_exception_handlers`` turn them (and request validation errors)
into problem bodies. Anything else escaping a route becomes a 500 carrying
``DEFAULT_ERROR_MESSAGE``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

BASE_ERROR_URI = "https://hrsuite.local/errors"
PROBLEM_MEDIA_TYPE = "application/problem+json"

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."

FieldErrors = dict[str, list[str]]


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for domain errors; subclasses fix the status, type slug and title."""

    status_code: int = 400
    error_type: str = "bad-request"
    title: str = "Bad Request"

    def __init__(
        self,
        detail: str,
        errors: Optional[FieldErrors] = None,
        *,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
        title: Optional[str] = None,
    ) -> None:
        if status_code is not None:
            self.status_code = status_code
        if error_type is not None:
            self.error_type = error_type
        if title is not None:
            self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    status_code = 404
    error_type = "not-found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity_type} '{entity_id}' was not found.",
            title=f"{entity_type} Not Found",
        )


class ConflictError(AppException):
    """A unique value (code, email, name) is already taken."""

    status_code = 409
    error_type = "conflict"
    title = "Conflict"

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            f"{field} '{value}' is already in use.",
            {field: [f"'{value}' is already in use."]},
        )


class BusinessRuleException(AppException):
    """The entity's current state does not allow the operation."""

    status_code = 409
    error_type = "business-rule"
    title = "Operation Not Allowed"


class ForbiddenException(AppException):
    status_code = 403
    error_type = "forbidden"
    title = "Forbidden"

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(detail)


class ValidationException(AppException):
    """Field-level failures found by service logic rather than by pydantic."""

    status_code = 422
    error_type = "validation-error"
    title = "Validation Error"

    def __init__(self, errors: FieldErrors) -> None:
        super().__init__("One or more fields failed validation.", errors)


# ── Problem responses ───────────────────────────────────────────────

def problem_response(
    request: Request,
    *,
    status: int,
    error_type: str,
    title: str,
    detail: str,
    errors: Optional[FieldErrors] = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.url.path,
    }
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_MEDIA_TYPE)


def _field_name(loc: tuple[Any, ...]) -> str:
    # Drop the leading "body" / "query" / "path" segment.
    if len(loc) > 1:
        return ".".join(str(part) for part in loc[1:])
    return str(loc[0]) if loc else "unknown"


async def _on_app_exception(request: Request, exc: AppException) -> JSONResponse:
    return problem_response(
        request,
        status=exc.status_code,
        error_type=exc.error_type,
        title=exc.title,
        detail=exc.detail,
        errors=exc.errors,
    )


async def _on_request_validation(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    errors: FieldErrors = {}
    for err in exc.errors():
        errors.setdefault(_field_name(tuple(err.get("loc", ()))), []).append(
            err.get("msg", "Invalid value"),
        )
    return problem_response(
        request,
        status=422,
        error_type="validation-error",
        title="Validation Error",
        detail="Request validation failed.",
        errors=errors,
    )


async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return problem_response(
        request,
        status=500,
        error_type="internal-error",
        title="Internal Server Error",
        detail=DEFAULT_ERROR_MESSAGE,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the problem-detail handlers to *app*."""
    app.add_exception_handler(AppException, _on_app_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _on_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _on_unhandled)
