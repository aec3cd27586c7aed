"""
Application error types.

Every error carries an HTTP status, a machine-readable code and optional
details; main.py turns them into the JSON error envelope.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class AppError(Exception):
    status_code = 500
    code = "APP_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None,
                 code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details if details is not None else []
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            },
            "timestamp": self.timestamp,
        }


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"


class AuthorizationError(AppError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT_ERROR"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"


class DatabaseError(AppError):
    status_code = 500
    code = "DATABASE_ERROR"


class ExternalServiceError(AppError):
    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, message: str, service: Optional[str] = None, details: Any = None):
        super().__init__(message, details=details)
        self.service = service


class FileUploadError(AppError):
    status_code = 400
    code = "FILE_UPLOAD_ERROR"


class BusinessLogicError(AppError):
    status_code = 422
    code = "BUSINESS_LOGIC_ERROR"
