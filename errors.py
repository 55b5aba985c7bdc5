"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
Expected verification outcomes (wrong code, expired code, ...) are not errors;
they travel as VerifyResult values.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class WeakPasswordError(ValidationError):
    error_code = "weak_password"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class InvalidResetGrantError(AuthenticationError):
    error_code = "invalid_reset_grant"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class UserNotFoundError(NotFoundError):
    error_code = "user_not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class ResetGrantUsedError(ConflictError):
    error_code = "reset_grant_used"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class EmailDeliveryError(AppError):
    status_code = 502
    error_code = "email_delivery_failed"


class EmailNotConfiguredError(AppError):
    status_code = 503
    error_code = "email_not_configured"


class BackendError(AppError):
    """Raised by the client when the backend is unreachable or answers oddly."""

    status_code = 502
    error_code = "backend_error"


_ERRORS_BY_CODE: dict[str, type[AppError]] = {
    cls.error_code: cls
    for cls in (
        ValidationError,
        WeakPasswordError,
        AuthenticationError,
        InvalidResetGrantError,
        ForbiddenError,
        NotFoundError,
        UserNotFoundError,
        ConflictError,
        ResetGrantUsedError,
        RateLimitError,
        EmailDeliveryError,
        EmailNotConfiguredError,
    )
}


def error_from_payload(status_code: int, payload: dict) -> AppError:
    """Rebuild a typed AppError from a JSON error body produced by to_dict()."""
    message = payload.get("error") or "Request failed"
    cls = _ERRORS_BY_CODE.get(payload.get("code", ""))
    if cls is None:
        err = BackendError(message, details=payload.get("details"))
        err.status_code = status_code
        return err
    return cls(message, field=payload.get("field"), details=payload.get("details"))


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
