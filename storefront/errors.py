"""
API error taxonomy.

Every error raised by the service layer maps to one HTTP status. Extra keyword
arguments are merged into the JSON envelope (e.g. ``productCount``).
"""

from typing import Any


class ApiError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra


class ValidationFailed(ApiError):
    """Malformed or out-of-range input."""

    status_code = 400


class IntegrityViolation(ApiError):
    """Duplicate barcode, taxonomy entry still referenced, and similar."""

    status_code = 400


class AuthenticationFailed(ApiError):
    status_code = 401


class PermissionDenied(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class PayloadTooLarge(ApiError):
    status_code = 413


class RateLimited(ApiError):
    status_code = 429


class UpstreamError(ApiError):
    """Media store or database failure. Details are logged, not returned."""

    status_code = 500


class MediaStoreError(Exception):
    """Raised by the media store client when an upload or delete fails."""
