"""
Custom exception classes for the Scheduled Publishing Engine.

This module defines all exception classes used throughout the codebase.
Configuration problems fail fast; publish problems are typed so the
dispatcher can turn them into a ``failed`` post status with the
platform's own message.

Hierarchy:
    Exception
    +-- EngineBaseError (base for all engine-specific errors)
    |   +-- PublishError
    |   |   +-- PlatformAuthError
    |   |   +-- PlatformRateLimitError
    |   |   +-- ContentTooLongError
    |   |   +-- MediaUploadError
    |   +-- CredentialError
    |   +-- NotificationError
    +-- ValidationError (ValueError)
    +-- DatabaseError
    +-- ConfigurationError
"""

from typing import Optional


# =============================================================================
# BASE EXCEPTION
# =============================================================================


class EngineBaseError(Exception):
    """Base exception for all publishing-engine errors."""

    pass


# =============================================================================
# CORE EXCEPTIONS
# =============================================================================


class ValidationError(ValueError):
    """Raised when input validation fails."""

    pass


class DatabaseError(Exception):
    """Raised when database operations fail."""

    pass


class ConfigurationError(Exception):
    """Raised when system configuration is invalid."""

    pass


# =============================================================================
# PUBLISHING EXCEPTIONS
# =============================================================================


class PublishError(EngineBaseError):
    """Raised by a platform adapter when a publish attempt fails.

    The string form of the exception is recorded verbatim as the post's
    ``error_message``, so messages must be readable by the post owner.

    Attributes:
        platform: Platform value (e.g. ``"twitter"``) when known.
        status_code: HTTP status code returned by the platform, if any.
    """

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.platform = platform
        self.status_code = status_code
        super().__init__(message)


class PlatformAuthError(PublishError):
    """Raised when the platform rejects the credential (401/403)."""

    pass


class PlatformRateLimitError(PublishError):
    """Raised when the platform rate-limits the request (429)."""

    pass


class ContentTooLongError(PublishError):
    """Raised when content exceeds the platform limit and policy rejects it."""

    pass


class MediaUploadError(PublishError):
    """Raised when fetching or uploading a media asset fails."""

    pass


class CredentialError(EngineBaseError):
    """Raised when a stored credential cannot be turned into a usable token."""

    pass


class NotificationError(EngineBaseError):
    """Raised by a notification transport when delivery fails."""

    pass


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    # Base
    "EngineBaseError",
    # Core
    "ValidationError",
    "DatabaseError",
    "ConfigurationError",
    # Publishing
    "PublishError",
    "PlatformAuthError",
    "PlatformRateLimitError",
    "ContentTooLongError",
    "MediaUploadError",
    "CredentialError",
    "NotificationError",
]
