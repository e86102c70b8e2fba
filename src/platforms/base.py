"""
Base class and shared types for platform adapters.

Every adapter implements one operation::

    result = await adapter.publish(content, credential)

which returns a :class:`PlatformResult` or raises a
:class:`~src.exceptions.PublishError` subclass.  Adapters never write to
the store and never see encrypted tokens; the dispatcher hands them a
:class:`Credential` holding the plaintext token for a single call.

HTTP goes through ``httpx.AsyncClient``.  An optional ``transport`` can be
injected so tests can use ``httpx.MockTransport``.
"""

import logging
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Type

import httpx

from src.config import TruncationPolicy
from src.exceptions import (
    ContentTooLongError,
    MediaUploadError,
    PlatformAuthError,
    PlatformRateLimitError,
    PublishError,
)
from src.platforms.text import smart_truncate, truncation_warning
from src.scheduling.models import Platform, PostContent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


# =============================================================================
# SHARED TYPES
# =============================================================================


@dataclass
class Credential:
    """Decrypted credential for one publish call.

    Attributes:
        token: Plaintext access token (excluded from ``repr``).
        platform_user_id: Account id on the platform, when known.
        metadata: Connected-account metadata (e.g. ``instagram_account_id``).
    """

    token: str = field(repr=False)
    platform_user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PlatformResult:
    """Outcome of a successful publish.

    Attributes:
        platform_post_id: Identifier assigned by the platform.
        warning: Non-fatal caveat (e.g. the text was truncated).
        tier_hint: Account capability observed during the call (Twitter).
    """

    platform_post_id: str
    warning: Optional[str] = None
    tier_hint: Optional[str] = None


# =============================================================================
# BASE ADAPTER
# =============================================================================


class PlatformAdapter(ABC):
    """Base class for platform adapters.

    Args:
        truncation: What to do with text over the platform limit.
        timeout: Per-request HTTP timeout in seconds.
        transport: Optional ``httpx`` transport (tests use
            ``httpx.MockTransport``).
    """

    platform: Platform
    display_name: str = ""
    char_limit: int = 0
    default_truncation: TruncationPolicy = TruncationPolicy.REJECT

    def __init__(
        self,
        truncation: Optional[TruncationPolicy] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.truncation = truncation or self.default_truncation
        self.timeout = timeout
        self._transport = transport

    @abstractmethod
    async def publish(
        self, content: PostContent, credential: Credential
    ) -> PlatformResult:
        """Publish *content* using *credential*.

        Raises:
            PublishError: On any failure; the message is shown to the owner.
        """

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _require_text(self, content: PostContent) -> str:
        text = content.full_text.strip()
        if not text:
            raise PublishError(
                "No text content found in post", platform=self.platform.value
            )
        return text

    def _fit_text(self, text: str, limit: int) -> Tuple[str, Optional[str]]:
        """Apply the truncation policy.

        Returns:
            ``(final_text, warning)``; *warning* is ``None`` if unchanged.

        Raises:
            ContentTooLongError: If the text is too long and the policy is
                ``REJECT``.
        """
        if len(text) <= limit:
            return text, None

        if self.truncation is TruncationPolicy.REJECT:
            raise ContentTooLongError(
                f"Content is {len(text)} characters; {self.display_name} "
                f"allows at most {limit}",
                platform=self.platform.value,
            )

        final = smart_truncate(text, limit)
        logger.warning(
            "[%s] Post exceeds %d char limit (%d chars), auto-truncated to %d",
            self.platform.value.upper(), limit, len(text), len(final),
        )
        return final, truncation_warning(len(text), len(final))

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        action: str,
        failure: Type[PublishError] = PublishError,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and map failures to typed publish errors.

        Args:
            client: Open ``httpx`` client.
            method: HTTP method.
            url: Absolute URL.
            action: Short description used in error messages.
            failure: Exception class for non-auth, non-rate-limit failures.
            **kwargs: Passed to ``client.request``.

        Returns:
            The successful (2xx) response.
        """
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise failure(
                f"{self.display_name} {action} timed out",
                platform=self.platform.value,
            ) from exc
        except httpx.HTTPError as exc:
            raise failure(
                f"{self.display_name} {action} failed: {type(exc).__name__}",
                platform=self.platform.value,
            ) from exc

        raise_for_platform_status(
            response, self.platform, self.display_name, action, failure
        )
        return response

    async def _fetch_media(
        self, client: httpx.AsyncClient, url: str
    ) -> Tuple[bytes, str]:
        """Download one media asset.

        Returns:
            ``(data, mime_type)``.

        Raises:
            MediaUploadError: On a transport error or non-2xx response.
        """
        try:
            response = await client.get(url, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise MediaUploadError(
                f"Failed to fetch media {url}: {type(exc).__name__}",
                platform=self.platform.value,
            ) from exc

        if not response.is_success:
            raise MediaUploadError(
                f"Failed to fetch media {url}: HTTP {response.status_code}",
                platform=self.platform.value,
                status_code=response.status_code,
            )

        mime_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not mime_type:
            mime_type = mimetypes.guess_type(url)[0] or "application/octet-stream"
        return response.content, mime_type


# =============================================================================
# STATUS MAPPING
# =============================================================================


def error_detail(response: httpx.Response) -> str:
    """Extract a short human-readable error detail from a platform response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        for key in ("detail", "message", "title", "error_description"):
            if body.get(key):
                return str(body[key])
        if isinstance(error, str):
            return error
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message") or errors[0].get("detail") or errors[0])
    return str(body)[:200]


def raise_for_platform_status(
    response: httpx.Response,
    platform: Platform,
    display_name: str,
    action: str,
    failure: Type[PublishError] = PublishError,
) -> None:
    """Raise the typed publish error matching a non-2xx response.

    401/403 -> ``PlatformAuthError``; 429 -> ``PlatformRateLimitError``;
    anything else -> *failure*.
    """
    if response.is_success:
        return

    code = response.status_code
    detail = error_detail(response)

    if code in (401, 403):
        raise PlatformAuthError(
            f"{display_name} rejected the credential ({code}): {detail}",
            platform=platform.value,
            status_code=code,
        )
    if code == 429:
        raise PlatformRateLimitError(
            f"{display_name} rate limit exceeded (429): {detail}",
            platform=platform.value,
            status_code=code,
        )
    raise failure(
        f"{display_name} {action} failed ({code}): {detail}",
        platform=platform.value,
        status_code=code,
    )


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    "Credential",
    "PlatformResult",
    "PlatformAdapter",
    "error_detail",
    "raise_for_platform_status",
    "DEFAULT_TIMEOUT",
]
