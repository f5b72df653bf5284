"""Application exceptions rendered as structured error responses."""
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base error carrying an error code and HTTP status."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404


class ValidationError(AppError):
    code = "INVALID_DATA"
    status_code = 400


class AuthenticationError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401


class StorageError(AppError):
    """Raised when the storage backend rejects an operation."""
    code = "STORAGE_ERROR"
    status_code = 502
