"""Tests for src.exceptions -- custom exception hierarchy.

Validates the hierarchy, attribute storage and message formatting for every
exception class in the module.
"""

import pytest

from src.exceptions import (
    ConfigurationError,
    ContentTooLongError,
    CredentialError,
    DatabaseError,
    EngineBaseError,
    MediaUploadError,
    NotificationError,
    PlatformAuthError,
    PlatformRateLimitError,
    PublishError,
    ValidationError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc_cls",
        [PlatformAuthError, PlatformRateLimitError, ContentTooLongError, MediaUploadError],
    )
    def test_platform_errors_are_publish_errors(self, exc_cls):
        assert issubclass(exc_cls, PublishError)
        assert issubclass(exc_cls, EngineBaseError)

    @pytest.mark.parametrize("exc_cls", [CredentialError, NotificationError])
    def test_engine_errors(self, exc_cls):
        assert issubclass(exc_cls, EngineBaseError)
        assert not issubclass(exc_cls, PublishError)

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)

    @pytest.mark.parametrize("exc_cls", [DatabaseError, ConfigurationError])
    def test_infrastructure_errors_outside_engine_base(self, exc_cls):
        assert not issubclass(exc_cls, EngineBaseError)


class TestPublishError:
    def test_message_is_str(self):
        exc = PublishError("LinkedIn post creation failed (500): boom")
        assert str(exc) == "LinkedIn post creation failed (500): boom"
        assert exc.platform is None
        assert exc.status_code is None

    def test_attributes_stored(self):
        exc = PlatformRateLimitError("slow down", platform="twitter", status_code=429)
        assert exc.platform == "twitter"
        assert exc.status_code == 429

    def test_caught_as_publish_error(self):
        with pytest.raises(PublishError) as exc_info:
            raise ContentTooLongError("too long", platform="linkedin")
        assert exc_info.value.platform == "linkedin"
