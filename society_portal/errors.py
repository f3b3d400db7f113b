"""Application error taxonomy and HTTP response helpers."""

from typing import Any, Dict

from fastapi import HTTPException, status


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str, code: str, http_status: int = 400):
        """Initialize error."""
        self.message = message
        self.code = code
        self.http_status = http_status
        super().__init__(message)


class ValidationError(AppError):
    """Malformed or missing required input."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, "validation_error", status.HTTP_400_BAD_REQUEST)


class InvalidScheduleError(ValidationError):
    """Fee schedule has no numeric charge entries."""

    def __init__(self, message: str = "Fee schedule has no numeric charges"):
        super().__init__(message)
        self.code = "invalid_schedule"


class NotFoundError(AppError):
    """Resident, society or order record missing."""

    def __init__(self, message: str = "Record not found"):
        super().__init__(message, "not_found", status.HTTP_404_NOT_FOUND)


class GatewayError(AppError):
    """Payment gateway rejected the request or could not be reached."""

    def __init__(self, message: str = "Payment gateway error"):
        super().__init__(message, "gateway_error", status.HTTP_502_BAD_GATEWAY)


class SignatureVerificationError(AppError):
    """Gateway callback signature does not match (tampered or forged)."""

    def __init__(self, message: str = "Payment verification failed"):
        super().__init__(message, "signature_mismatch", status.HTTP_400_BAD_REQUEST)


class PersistenceError(AppError):
    """Store write failed."""

    def __init__(self, message: str = "Could not save changes"):
        super().__init__(message, "persistence_error", status.HTTP_500_INTERNAL_SERVER_ERROR)


class ConcurrentUpdateError(PersistenceError):
    """Record was modified by another request between read and write."""

    def __init__(self, message: str = "Record was modified concurrently"):
        super().__init__(message)
        self.code = "concurrent_update"
        self.http_status = status.HTTP_409_CONFLICT


def error_response(error: AppError) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
        }
    }


def raise_app_error(error: AppError) -> None:
    """Raise an HTTPException from an AppError."""
    raise HTTPException(
        status_code=error.http_status,
        detail=error_response(error),
    ) from error


__all__ = [
    "AppError",
    "ValidationError",
    "InvalidScheduleError",
    "NotFoundError",
    "GatewayError",
    "SignatureVerificationError",
    "PersistenceError",
    "ConcurrentUpdateError",
    "error_response",
    "raise_app_error",
]
