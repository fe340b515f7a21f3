"""Exception hierarchy and error codes.

Every error raised on purpose by the service layers derives from
ChapterDashboardError so the API layer can map it to a status code and the
standard response envelope in one place.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable, machine-readable error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    UPLOAD_FORMAT_ERROR = "UPLOAD_FORMAT_ERROR"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    NOT_FOUND = "NOT_FOUND"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    CACHE_UNAVAILABLE = "CACHE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ChapterDashboardError(Exception):
    """Base exception for all application errors.

    Attributes:
        message: Human-readable message, safe to show to clients
        code: Machine-readable error code
        details: Extra context for logs
    """

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}


class ValidationError(ChapterDashboardError):
    """Client-supplied data violates the record schema."""

    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, errors: list | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class UploadFormatError(ChapterDashboardError):
    """Uploaded file is not a JSON document or has the wrong type."""

    default_code = ErrorCode.UPLOAD_FORMAT_ERROR


class PayloadTooLargeError(ChapterDashboardError):
    default_code = ErrorCode.PAYLOAD_TOO_LARGE

    @classmethod
    def for_limit(cls, subject: str, max_bytes: int) -> "PayloadTooLargeError":
        """Error naming the ceiling in MB, or in bytes below 1 MB."""
        megabyte = 1024 * 1024
        limit = f"{max_bytes // megabyte}MB" if max_bytes >= megabyte else f"{max_bytes} bytes"
        return cls(f"{subject} too large, maximum size is {limit}", details={"max_bytes": max_bytes})


class NotFoundError(ChapterDashboardError):
    default_code = ErrorCode.NOT_FOUND


class AuthenticationError(ChapterDashboardError):
    """No admin credential was supplied."""

    default_code = ErrorCode.AUTHENTICATION_REQUIRED


class AuthorizationError(ChapterDashboardError):
    """An admin credential was supplied but does not match."""

    default_code = ErrorCode.INVALID_CREDENTIALS


class ConflictError(ChapterDashboardError):
    """A write collided with a uniqueness constraint."""

    default_code = ErrorCode.CONFLICT


class RateLimitError(ChapterDashboardError):
    """The caller exhausted its request budget for the current window."""

    default_code = ErrorCode.RATE_LIMITED

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message, details={"retry_after": retry_after})
        self.retry_after = retry_after


class StoreUnavailableError(ChapterDashboardError):
    """The document store could not be reached."""

    default_code = ErrorCode.STORE_UNAVAILABLE


class CacheUnavailableError(ChapterDashboardError):
    """The cache store failed or timed out.

    Callers are expected to absorb this and carry on without the cache.
    """

    default_code = ErrorCode.CACHE_UNAVAILABLE
