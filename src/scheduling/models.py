"""
Scheduling data models: PostStatus, Platform, ScheduledPost and friends.

Defines the core data structures used by the publishing engine:
- ``PostStatus``: Lifecycle status of a scheduled post.
- ``Platform``: Closed set of destination platforms.
- ``PostContent``: Platform-agnostic payload (text, hashtags, media URIs).
- ``ScheduledPost``: A post queued for future publication.
- ``ConnectedAccount``: An owner's linked platform account (encrypted tokens).
- ``StatusUpdate`` / ``AccountUpdate``: Write instructions produced by the
  dispatcher and applied by the scheduler.
- ``TickSummary``: Outcome counters for one scheduler tick.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from src.exceptions import ConfigurationError
from src.utils import utc_now


# =============================================================================
# POST STATUS ENUM
# =============================================================================


class PostStatus(Enum):
    """Lifecycle status of a scheduled post.

    Transitions (forward only, never back to ``SCHEDULED``):
        SCHEDULED -> PROCESSING -> POSTED
                                -> FAILED
    """

    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    POSTED = "posted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if status is terminal (no further transitions allowed)."""
        return self in {PostStatus.POSTED, PostStatus.FAILED}

    def can_transition_to(self, target: "PostStatus") -> bool:
        """Return ``True`` if moving from this status to *target* is legal."""
        return target in _TRANSITIONS[self]


_TRANSITIONS: Dict[PostStatus, frozenset] = {
    PostStatus.SCHEDULED: frozenset({PostStatus.PROCESSING}),
    PostStatus.PROCESSING: frozenset({PostStatus.POSTED, PostStatus.FAILED}),
    PostStatus.POSTED: frozenset(),
    PostStatus.FAILED: frozenset(),
}


# =============================================================================
# PLATFORM ENUM
# =============================================================================


class Platform(Enum):
    """Destination platforms the engine can publish to."""

    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"

    @classmethod
    def from_value(cls, value: str) -> "Platform":
        """Resolve a stored platform string to a ``Platform``.

        Matching is case-insensitive and accepts the aliases the product
        UI has historically written (``"x"``, ``"x (twitter)"``).

        Raises:
            ConfigurationError: If *value* names no supported platform.
        """
        key = normalize_platform(value)
        try:
            return cls(key)
        except ValueError:
            raise ConfigurationError(
                f"Platform {value} not supported. "
                f"Valid platforms: {[p.value for p in cls]}"
            ) from None


_PLATFORM_ALIASES: Dict[str, str] = {
    "x": "twitter",
    "x (twitter)": "twitter",
}


def normalize_platform(value: Optional[str]) -> str:
    """Lower-case and strip a stored platform string (``None`` -> ``""``)."""
    key = (value or "").strip().lower()
    return _PLATFORM_ALIASES.get(key, key)


# =============================================================================
# CONTENT
# =============================================================================


@dataclass
class PostContent:
    """Platform-agnostic post payload.

    Attributes:
        text: Primary text of the post.
        media: Media URIs resolvable by the adapters (public storage URLs).
        hashtags: Optional hashtags stored separately from the text.
    """

    text: str
    media: List[str] = field(default_factory=list)
    hashtags: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Any) -> "PostContent":
        """Build content from the ``content`` JSON column.

        Text is read from ``primaryContent``, ``text`` or ``content`` (first
        non-empty wins); media from ``media`` or a legacy ``image_url``.
        A bare string is treated as the text.
        """
        if data is None:
            return cls(text="")
        if isinstance(data, str):
            return cls(text=data)

        text = (
            data.get("primaryContent")
            or data.get("text")
            or data.get("content")
            or ""
        )

        media = data.get("media") or []
        if isinstance(media, str):
            media = [media]
        if not media and data.get("image_url"):
            media = [data["image_url"]]

        hashtags = data.get("hashtags") or []
        if isinstance(hashtags, str):
            hashtags = hashtags.split()

        return cls(text=str(text), media=list(media), hashtags=list(hashtags))

    @property
    def full_text(self) -> str:
        """Text with any separately stored hashtags appended."""
        missing = [tag for tag in self.hashtags if tag not in self.text]
        if not missing:
            return self.text
        return f"{self.text}\n\n{' '.join(missing)}".strip()


# =============================================================================
# SCHEDULED POST
# =============================================================================


@dataclass
class ScheduledPost:
    """A post queued for future publication.

    Attributes:
        id: Unique identifier (UUID).
        owner_id: User who owns the post.
        platform: Stored platform string, normalised to lower case.  Kept as
            a string so unsupported values can still be failed explicitly.
        content: The platform-agnostic payload.
        scheduled_at: When the post becomes eligible (timezone-aware UTC).
        status: Current lifecycle status.
        posted_at: Set only on transition to ``POSTED``.
        error_message: Failure text, or a warning on a caveated success.
        metadata: Platform-assigned identifiers and adapter facts.
        updated_at: Last status write.
    """

    id: str
    owner_id: str
    platform: str
    content: PostContent
    scheduled_at: datetime

    status: PostStatus = PostStatus.SCHEDULED
    posted_at: Optional[datetime] = None
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[datetime] = None

    @property
    def is_due(self) -> bool:
        """``True`` when the post is still scheduled and its time has passed."""
        return self.status is PostStatus.SCHEDULED and self.scheduled_at <= utc_now()


# =============================================================================
# CONNECTED ACCOUNT
# =============================================================================


@dataclass
class ConnectedAccount:
    """An owner's connected platform account.

    Token fields hold encrypted envelopes and are excluded from ``repr`` so
    they never end up in log lines or tracebacks.
    """

    id: str
    owner_id: str
    platform: str
    access_token: str = field(repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    token_expires_at: Optional[datetime] = None
    platform_user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_token_expired(self) -> bool:
        """``True`` if an expiry is recorded and has passed."""
        return self.token_expires_at is not None and self.token_expires_at <= utc_now()


# =============================================================================
# WRITE INSTRUCTIONS
# =============================================================================


@dataclass
class AccountUpdate:
    """Metadata to merge onto a connected account after a publish."""

    account_id: str
    metadata: Dict[str, Any]


@dataclass
class StatusUpdate:
    """Terminal status for one post, produced by the dispatcher.

    Attributes:
        post_id: Post to update.
        status: ``POSTED`` or ``FAILED``.
        posted_at: Publication time (``POSTED`` only).
        error_message: Failure text, or the success warning.
        metadata: Metadata to store on the post (``platform_id`` etc.).
        account_update: Optional side update of the connected account.
    """

    post_id: str
    status: PostStatus
    posted_at: Optional[datetime] = None
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    account_update: Optional[AccountUpdate] = None

    @classmethod
    def failed(cls, post_id: str, error_message: str) -> "StatusUpdate":
        """Build a ``FAILED`` update carrying *error_message*."""
        return cls(post_id=post_id, status=PostStatus.FAILED, error_message=error_message)

    @property
    def warning(self) -> Optional[str]:
        """Warning attached to a successful publish, if any."""
        return self.metadata.get("warning")

    def to_fields(self) -> Dict[str, Any]:
        """Row patch for the ``scheduled_posts`` table."""
        fields: Dict[str, Any] = {
            "status": self.status.value,
            "error_message": self.error_message,
        }
        if self.status is PostStatus.POSTED:
            fields["posted_at"] = (self.posted_at or utc_now()).isoformat()
            fields["metadata"] = self.metadata
        return fields


# =============================================================================
# TICK SUMMARY
# =============================================================================


@dataclass
class TickSummary:
    """Counters describing one scheduler tick."""

    total: int = 0
    claimed: int = 0
    posted: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "claimed": self.claimed,
            "posted": self.posted,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    "PostStatus",
    "Platform",
    "normalize_platform",
    "PostContent",
    "ScheduledPost",
    "ConnectedAccount",
    "AccountUpdate",
    "StatusUpdate",
    "TickSummary",
]
