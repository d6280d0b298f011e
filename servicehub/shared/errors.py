"""Application errors with stable, user-facing codes"""

from typing import Optional

from fastapi import HTTPException


class AppError(HTTPException):
    """
    HTTPException carrying a stable error code.

    Raised by services like any HTTPException; the handler in main.py renders
    it as {"success": false, "error": {"code", "message"}}.
    """

    category = "error"

    def __init__(self, message: str, status_code: int = 400, code: str = "UNKNOWN_ERROR"):
        super().__init__(status_code=status_code, detail={"code": code, "message": message})
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(AppError):
    """Malformed or missing input (date/time format, missing fields)"""

    category = "validation"

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", errors: Optional[list] = None):
        super().__init__(message, status_code=400, code=code)
        self.errors = errors or []


class ConstraintError(AppError):
    """Well-formed input that violates a business rule (weekday-only, opening hours, past date)"""

    category = "constraint"

    def __init__(self, message: str, code: str):
        super().__init__(message, status_code=400, code=code)


class StateError(AppError):
    """Operation not allowed from the record's current status"""

    category = "state"

    def __init__(self, message: str, code: str = "INVALID_STATUS"):
        super().__init__(message, status_code=400, code=code)


class AuthenticationError(AppError):
    category = "authentication"

    def __init__(self, message: str = "Authentication required", code: str = "AUTHENTICATION_ERROR"):
        super().__init__(message, status_code=401, code=code)


class AuthorizationError(AppError):
    """Actor is not the owner/assignee or lacks the required role"""

    category = "authorization"

    def __init__(self, message: str = "Insufficient permissions", code: str = "FORBIDDEN"):
        super().__init__(message, status_code=403, code=code)


class NotFoundError(AppError):
    category = "not_found"

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found", status_code=404, code="NOT_FOUND")


class ConflictError(AppError):
    category = "conflict"

    def __init__(self, message: str, code: str = "DUPLICATE_ENTRY"):
        super().__init__(message, status_code=409, code=code)
