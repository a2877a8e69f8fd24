"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

import enum
from datetime import date
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://hris.example.com/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
        code: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        self.code = code
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ConflictError(AppException):
    """409 — unique-constraint / duplicate."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            title="Conflict",
            detail=f"An entry with {field}='{value}' already exists.",
            errors={field: [f"'{value}' is already in use."]},
        )


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


# ── Leave engine errors ─────────────────────────────────────────────

class InvalidRangeError(AppException):
    """422 — end date precedes start date."""

    def __init__(self, start_date: date, end_date: date) -> None:
        super().__init__(
            status_code=422,
            error_type="invalid-range",
            title="Invalid Date Range",
            detail=f"End date {end_date} is before start date {start_date}.",
            errors={"end_date": ["End date must be on or after the start date."]},
            code="INVALID_RANGE",
        )


class EmployeeNotFoundError(NotFoundException):
    """404 — the employee reference cannot be resolved."""

    def __init__(self, employee_id: Any) -> None:
        super().__init__("Employee", employee_id)
        self.code = "EMPLOYEE_NOT_FOUND"


class NoPolicyResolvedError(AppException):
    """404 — no company or system policy covers the leave category."""

    def __init__(self, category: str, employee_id: Any = None) -> None:
        detail = f"No active leave policy applies to category '{category}'"
        if employee_id is not None:
            detail += f" for employee '{employee_id}'"
        super().__init__(
            status_code=404,
            error_type="no-policy",
            title="No Leave Policy",
            detail=detail + ".",
            code="NO_POLICY_RESOLVED",
        )
        self.category = category


class LeaveErrorCode(str, enum.Enum):
    """String codes surfaced to UIs for leave rule violations."""

    HALF_DAY_MUST_BE_SINGLE_DAY = "HALF_DAY_MUST_BE_SINGLE_DAY"
    PAID_LEAVE_NOT_ALLOWED_FOR_CASUAL = "PAID_LEAVE_NOT_ALLOWED_FOR_CASUAL"
    OVERLAPPING_LEAVE = "OVERLAPPING_LEAVE"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    LEAVE_ALREADY_FINALISED = "LEAVE_ALREADY_FINALISED"
    CANNOT_CANCEL = "CANNOT_CANCEL"
    DECLINE_REASON_REQUIRED = "DECLINE_REASON_REQUIRED"
    SYSTEM_POLICY_NOT_DELETABLE = "SYSTEM_POLICY_NOT_DELETABLE"


_DEFAULT_MESSAGES: dict[LeaveErrorCode, str] = {
    LeaveErrorCode.HALF_DAY_MUST_BE_SINGLE_DAY: (
        "Half-day leave can only be requested for a single day."
    ),
    LeaveErrorCode.PAID_LEAVE_NOT_ALLOWED_FOR_CASUAL: (
        "Casual employees are not entitled to paid annual or personal leave."
    ),
    LeaveErrorCode.OVERLAPPING_LEAVE: (
        "This request overlaps an existing pending or approved leave request."
    ),
    LeaveErrorCode.INSUFFICIENT_BALANCE: "Insufficient leave balance.",
    LeaveErrorCode.PERMISSION_DENIED: (
        "You do not have permission to manage leave for this employee."
    ),
    LeaveErrorCode.NOT_AUTHORIZED: (
        "Only administrators or the employee's manager can do this."
    ),
    LeaveErrorCode.LEAVE_ALREADY_FINALISED: (
        "This leave request has already been finalised."
    ),
    LeaveErrorCode.CANNOT_CANCEL: "This leave request can no longer be cancelled.",
    LeaveErrorCode.DECLINE_REASON_REQUIRED: (
        "A reason is required when declining a leave request."
    ),
    LeaveErrorCode.SYSTEM_POLICY_NOT_DELETABLE: (
        "System (statutory minimum) policies cannot be deleted."
    ),
}

_STATUS_BY_CODE: dict[LeaveErrorCode, int] = {
    LeaveErrorCode.PERMISSION_DENIED: 403,
    LeaveErrorCode.NOT_AUTHORIZED: 403,
    LeaveErrorCode.OVERLAPPING_LEAVE: 409,
}


class LeaveRuleViolation(AppException):
    """A leave business rule rejected the operation; ``code`` names the rule."""

    def __init__(
        self,
        code: LeaveErrorCode,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            status_code=_STATUS_BY_CODE.get(code, 422),
            error_type="leave-rule-violation",
            title="Leave Rule Violation",
            detail=message or _DEFAULT_MESSAGES[code],
            code=code.value,
        )
        self.rule = code


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.code:
        body["code"] = exc.code
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
