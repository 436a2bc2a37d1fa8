"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Passcode errors:
- RateLimitedError        cooldown or request window active
- NotFoundOrExpiredError  no active code (expired, used, superseded)
- TooManyAttemptsError    attempt budget exhausted, code terminated
- InvalidSubjectError     malformed subject identifier
- StoreUnavailableError   connection retries exhausted
- StoreTimeoutError       a single store operation exceeded its budget
- DeliveryFailedError     dispatcher failure, never fatal to issuance
- InvalidCodeError        submitted code did not match (HTTP surface only)
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


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class InvalidSubjectError(ValidationError):
    error_code = "invalid_subject"

    def __init__(self, message: str = "Invalid subject identifier") -> None:
        super().__init__(message, field="subject_id")


class RateLimitedError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, seconds_remaining: int, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or f"Please wait {seconds_remaining} seconds before requesting a new code",
            details={"seconds_remaining": seconds_remaining},
        )
        self.seconds_remaining = seconds_remaining


class NotFoundOrExpiredError(NotFoundError):
    error_code = "code_not_found_or_expired"

    def __init__(
        self,
        message: str = "Verification code expired or not found. Please request a new one.",
    ) -> None:
        super().__init__(message)


class TooManyAttemptsError(AppError):
    status_code = 429
    error_code = "too_many_attempts"

    def __init__(
        self,
        message: str = "Too many failed attempts. Please request a new verification code.",
    ) -> None:
        super().__init__(message)


class StoreUnavailableError(AppError):
    status_code = 503
    error_code = "service_unavailable"

    def __init__(
        self,
        message: str = "The service is temporarily unavailable. Please try again.",
    ) -> None:
        super().__init__(message)


class StoreTimeoutError(AppError):
    status_code = 504
    error_code = "service_timeout"

    def __init__(
        self,
        operation: str,
        timeout_ms: int,
        message: str = "The service is temporarily unavailable. Please try again.",
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.timeout_ms = timeout_ms


class DeliveryFailedError(AppError):
    status_code = 502
    error_code = "delivery_failed"

    def __init__(
        self, message: str = "The code could not be delivered", *, provider: Optional[str] = None
    ) -> None:
        super().__init__(message, details={"provider": provider} if provider else None)
        self.provider = provider


class InvalidCodeError(ValidationError):
    error_code = "invalid_code"

    def __init__(self, message: str = "Invalid verification code") -> None:
        super().__init__(message, field="code")


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
