"""
Domain exceptions and exception handlers for the kanban task engine.
All operation-level errors are defined here for consistency.
"""
from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError


# ── Custom exception classes ──────────────────────────────────────────────────

class KanbanException(Exception):
    """Base exception for all kanban domain errors."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.error_code = error_code or "KANBAN_ERROR"
        super().__init__(detail)


class NotFoundException(KanbanException):
    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} with id '{resource_id}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND",
        )


class UnauthorizedException(KanbanException):
    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
        )


class ForbiddenException(KanbanException):
    def __init__(self, detail: str = "You are not allowed to perform this action") -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN",
        )


class BadRequestException(KanbanException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="BAD_REQUEST",
        )


class ValidationFailedException(KanbanException):
    """Primary task attributes were rejected; carries field-scoped reasons."""

    def __init__(
        self,
        errors: list[dict[str, str]],
        detail: str = "Task validation failed",
    ) -> None:
        self.errors = errors
        super().__init__(
            status_code=422,
            detail=detail,
            error_code="VALIDATION_ERROR",
        )

    @property
    def fields(self) -> set[str]:
        return {e["field"] for e in self.errors}

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailedException":
        return cls(field_errors(exc.errors()))


class FileTooLargeException(KanbanException):
    def __init__(self, max_mb: int) -> None:
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds maximum allowed size of {max_mb} MB",
            error_code="FILE_TOO_LARGE",
        )


def field_errors(errors: list[Any]) -> list[dict[str, str]]:
    """Flatten pydantic error dicts into [{field, message}] pairs."""
    out = []
    for error in errors:
        field = " -> ".join(str(loc) for loc in error["loc"]) or "__root__"
        out.append({"field": field, "message": error["msg"]})
    return out


# ── Exception handlers ────────────────────────────────────────────────────────

def _error_response(
    status_code: int,
    detail: str,
    error_code: str,
    errors: list[dict[str, str]] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "error": error_code,
        "detail": detail,
    }
    if errors is not None:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


async def kanban_exception_handler(
    request: Request, exc: KanbanException
) -> JSONResponse:
    errors = exc.errors if isinstance(exc, ValidationFailedException) else None
    return _error_response(exc.status_code, exc.detail, exc.error_code, errors)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _error_response(
        422,
        "Request validation failed",
        "VALIDATION_ERROR",
        field_errors(list(exc.errors())),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected internal server error occurred",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all kanban exception handlers on a host FastAPI application."""
    app.add_exception_handler(KanbanException, kanban_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
