"""Tests for src.scheduling.models."""

from datetime import timedelta

import pytest

from src.exceptions import ConfigurationError
from src.scheduling.models import (
    ConnectedAccount,
    Platform,
    PostContent,
    PostStatus,
    ScheduledPost,
    StatusUpdate,
    TickSummary,
    normalize_platform,
)
from src.utils import utc_now


class TestPostStatus:
    def test_terminal_states(self):
        assert PostStatus.POSTED.is_terminal
        assert PostStatus.FAILED.is_terminal
        assert not PostStatus.SCHEDULED.is_terminal
        assert not PostStatus.PROCESSING.is_terminal

    @pytest.mark.parametrize(
        "source,target,allowed",
        [
            (PostStatus.SCHEDULED, PostStatus.PROCESSING, True),
            (PostStatus.PROCESSING, PostStatus.POSTED, True),
            (PostStatus.PROCESSING, PostStatus.FAILED, True),
            (PostStatus.SCHEDULED, PostStatus.POSTED, False),
            (PostStatus.PROCESSING, PostStatus.SCHEDULED, False),
            (PostStatus.POSTED, PostStatus.FAILED, False),
            (PostStatus.FAILED, PostStatus.SCHEDULED, False),
        ],
    )
    def test_forward_only_transitions(self, source, target, allowed):
        assert source.can_transition_to(target) is allowed


class TestPlatform:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("twitter", Platform.TWITTER),
            ("Twitter", Platform.TWITTER),
            (" LINKEDIN ", Platform.LINKEDIN),
            ("x", Platform.TWITTER),
            ("X (Twitter)", Platform.TWITTER),
            ("tiktok", Platform.TIKTOK),
        ],
    )
    def test_from_value(self, value, expected):
        assert Platform.from_value(value) is expected

    def test_unknown_platform_raises(self):
        with pytest.raises(ConfigurationError, match="Platform myspace not supported"):
            Platform.from_value("myspace")

    def test_normalize_none(self):
        assert normalize_platform(None) == ""


class TestPostContent:
    def test_from_primary_content(self):
        content = PostContent.from_json(
            {"primaryContent": "Hello", "text": "ignored", "media": ["https://a/b.png"]}
        )
        assert content.text == "Hello"
        assert content.media == ["https://a/b.png"]

    def test_from_legacy_image_url(self):
        content = PostContent.from_json({"text": "Hi", "image_url": "https://a/c.png"})
        assert content.media == ["https://a/c.png"]

    def test_from_bare_string_and_none(self):
        assert PostContent.from_json("just text").text == "just text"
        assert PostContent.from_json(None).text == ""

    def test_hashtags_string_split(self):
        assert PostContent.from_json({"text": "t", "hashtags": "#a #b"}).hashtags == ["#a", "#b"]

    def test_full_text_appends_missing_hashtags_only(self):
        content = PostContent(text="Shipping #today", hashtags=["#today", "#python"])
        assert content.full_text == "Shipping #today\n\n#python"

    def test_full_text_without_hashtags(self):
        assert PostContent(text="plain").full_text == "plain"


class TestScheduledPost:
    def test_is_due(self):
        post = ScheduledPost(
            id="p1",
            owner_id="u1",
            platform="twitter",
            content=PostContent(text="x"),
            scheduled_at=utc_now() - timedelta(seconds=5),
        )
        assert post.is_due

        post.status = PostStatus.PROCESSING
        assert not post.is_due

    def test_future_post_not_due(self):
        post = ScheduledPost(
            id="p1",
            owner_id="u1",
            platform="twitter",
            content=PostContent(text="x"),
            scheduled_at=utc_now() + timedelta(hours=1),
        )
        assert not post.is_due


class TestConnectedAccount:
    def test_tokens_not_in_repr(self):
        account = ConnectedAccount(
            id="a1",
            owner_id="u1",
            platform="twitter",
            access_token="secret-access",
            refresh_token="secret-refresh",
        )
        text = repr(account)
        assert "secret-access" not in text
        assert "secret-refresh" not in text

    def test_token_expiry(self):
        account = ConnectedAccount(
            id="a1", owner_id="u1", platform="twitter", access_token="t"
        )
        assert not account.is_token_expired

        account.token_expires_at = utc_now() - timedelta(minutes=1)
        assert account.is_token_expired


class TestStatusUpdate:
    def test_failed_fields(self):
        fields = StatusUpdate.failed("p1", "boom").to_fields()
        assert fields == {"status": "failed", "error_message": "boom"}

    def test_posted_fields_include_metadata_and_time(self):
        update = StatusUpdate(
            post_id="p1",
            status=PostStatus.POSTED,
            posted_at=utc_now(),
            metadata={"platform_id": "t1", "warning": "trimmed"},
            error_message="trimmed",
        )
        fields = update.to_fields()

        assert fields["status"] == "posted"
        assert fields["metadata"]["platform_id"] == "t1"
        assert "posted_at" in fields
        assert update.warning == "trimmed"


class TestTickSummary:
    def test_to_dict_copies_errors(self):
        summary = TickSummary(total=2, claimed=2, failed=1, errors=[{"post_id": "p1"}])
        data = summary.to_dict()

        data["errors"].append({"post_id": "p2"})
        assert len(summary.errors) == 1
        assert data["failed"] == 1
