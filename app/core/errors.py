# app/core/errors.py - Domain errors raised by services and mapped to HTTP responses
from typing import Any, Optional


class AppError(Exception):
    """Base class for business-rule failures"""

    status_code = 400
    code = "APP_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"detail": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        super().__init__(message, details={"id": str(identifier)} if identifier is not None else None)


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


__all__ = [
    "AppError",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
]
