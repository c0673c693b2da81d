"""
Shared error handling for the Hercules patch service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from .logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class PatchServiceException(Exception):
    """Base exception for patch service errors."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class MalformedVersionError(PatchServiceException):
    """Client version string is missing or does not match the expected shape."""

    def __init__(self, message: str = "Missing version parameter", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_VERSION", message, details, status_code=400)


class UnauthorizedError(PatchServiceException):
    """Publish credential does not match the configured secret."""

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__("UNAUTHORIZED", message, details, status_code=401)


class ValidationError(PatchServiceException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class DuplicatePatchError(PatchServiceException):
    """A patch with the same platform and version tuple already exists."""

    def __init__(self, message: str = "Patch version already published", details: Optional[Dict[str, Any]] = None):
        super().__init__("DUPLICATE_PATCH", message, details, status_code=409)


class StorageError(PatchServiceException):
    """Underlying storage engine failure."""

    def __init__(self, message: str = "Storage error", details: Optional[Dict[str, Any]] = None,
                 status_code: int = 500):
        super().__init__("STORAGE_ERROR", message, details, status_code=status_code)
