"""Domain exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://leaveflow.dev/errors"


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
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found (or owned by another workspace)."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
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


class NotMemberException(ForbiddenException):
    """403 — the actor holds no active membership in the target workspace."""

    def __init__(self, workspace_id: Any) -> None:
        super().__init__(
            detail=f"You do not have access to workspace '{workspace_id}'.",
        )
        self.error_type = "not-member"
        self.title = "Not a Workspace Member"


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


class InsufficientBalanceException(AppException):
    """422 — the reservation would exceed the available days."""

    def __init__(self, available: Decimal, requested: Decimal) -> None:
        super().__init__(
            status_code=422,
            error_type="insufficient-balance",
            title="Insufficient Leave Balance",
            detail=(
                f"Insufficient leave balance. "
                f"Available: {available}, Requested: {requested}."
            ),
            errors={"days": [f"Only {available} day(s) available."]},
        )
        self.available = available
        self.requested = requested


class InvalidEmployeeStateException(AppException):
    """409 — the action requires a different employment status."""

    def __init__(self, employee_id: Any, current: str, required: str) -> None:
        super().__init__(
            status_code=409,
            error_type="invalid-employee-state",
            title="Invalid Employee State",
            detail=(
                f"Employee '{employee_id}' must be {required}, "
                f"current status: {current}."
            ),
        )


class InvalidTransitionException(AppException):
    """409 — the state machine rejects the requested move."""

    def __init__(self, detail: str, *, current: Optional[str] = None) -> None:
        super().__init__(
            status_code=409,
            error_type="invalid-transition",
            title="Invalid State Transition",
            detail=detail,
            errors={"status": [f"Current status is '{current}'."]} if current else None,
        )
        self.current = current


class ConflictError(AppException):
    """409 — concurrent modification or unique-key collision."""

    def __init__(self, entity_type: str, detail: str) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            title=f"{entity_type} Conflict",
            detail=detail,
        )


class DuplicateException(ConflictError):
    """409 — an entry with the same unique value already exists."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__("Duplicate", f"An entry with {field}='{value}' already exists.")
        self.errors = {field: [f"'{value}' is already in use."]}


class LedgerInvariantError(ConflictError):
    """409 — a balance mutation would break the ledger invariants."""

    def __init__(self, detail: str) -> None:
        super().__init__("LeaveBalance", detail)
        self.error_type = "ledger-invariant"


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
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
