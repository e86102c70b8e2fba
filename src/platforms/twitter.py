"""
X/Twitter API v2 publishing adapter.

Publishes a tweet on behalf of a connected account using its OAuth 2.0
user token (``Authorization: Bearer``).

The character limit depends on the account's subscription tier, detected
per call from ``GET /2/users/me?user.fields=subscription_type``:

    FREE          280
    PREMIUM       4000
    PREMIUM_PLUS  25000

Detection failures assume FREE.  The detected tier is returned as the
result's ``tier_hint`` so it can be remembered on the connected account.

If the API still rejects the tweet as too long, the ``truncate`` policy
retries once at the FREE limit and reports FREE as the tier; ``reject``
fails the post.
"""

import logging
from typing import Dict, List, Optional

import httpx

from src.config import TruncationPolicy
from src.exceptions import ContentTooLongError, MediaUploadError, PublishError
from src.platforms.base import (
    Credential,
    PlatformAdapter,
    PlatformResult,
    error_detail,
    raise_for_platform_status,
)
from src.platforms.text import smart_truncate, truncation_warning
from src.scheduling.models import Platform, PostContent

logger = logging.getLogger(__name__)

TWITTER_LIMITS: Dict[str, int] = {
    "FREE": 280,
    "PREMIUM": 4000,
    "PREMIUM_PLUS": 25000,
}


def tier_from_subscription(subscription_type: str) -> str:
    """Map the API's ``subscription_type`` to a tier key of ``TWITTER_LIMITS``."""
    value = (subscription_type or "").lower()
    if "premium_plus" in value or "premiumplus" in value or "premium+" in value:
        return "PREMIUM_PLUS"
    if "premium" in value or "blue" in value:
        return "PREMIUM"
    return "FREE"


class TwitterAdapter(PlatformAdapter):
    """Publish posts to X/Twitter.

    Usage::

        adapter = TwitterAdapter()
        result = await adapter.publish(content, Credential(token=token))
        print(result.platform_post_id, result.tier_hint)
    """

    platform = Platform.TWITTER
    display_name = "Twitter"
    char_limit = TWITTER_LIMITS["FREE"]
    default_truncation = TruncationPolicy.TRUNCATE

    BASE_URL: str = "https://api.twitter.com/2"

    def _auth_headers(self, credential: Credential) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credential.token}"}

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(
        self, content: PostContent, credential: Credential
    ) -> PlatformResult:
        text = self._require_text(content)

        async with self._client() as client:
            tier = await self.detect_tier(client, credential)
            limit = TWITTER_LIMITS[tier]
            logger.info("[TWITTER] Tier detected: %s (%d char limit)", tier, limit)

            final_text, warning = self._fit_text(text, limit)

            payload: Dict[str, object] = {"text": final_text}
            if content.media:
                media_ids = await self._upload_media(client, credential, content.media)
                payload["media"] = {"media_ids": media_ids}

            response = await self._create_tweet(client, credential, payload)
            detail = self._too_long_detail(response)
            if detail is not None:
                free_limit = TWITTER_LIMITS["FREE"]
                if (
                    self.truncation is TruncationPolicy.REJECT
                    or len(final_text) <= free_limit
                ):
                    self._raise_too_long(response, detail)
                # Detected tier was wrong; retry once at the FREE limit
                logger.warning(
                    "[TWITTER] Tweet rejected as too long for %s tier, "
                    "retrying at %d chars",
                    tier, free_limit,
                )
                tier = "FREE"
                final_text = smart_truncate(text, free_limit)
                warning = truncation_warning(len(text), len(final_text))
                payload["text"] = final_text
                response = await self._create_tweet(client, credential, payload)
                detail = self._too_long_detail(response)
                if detail is not None:
                    self._raise_too_long(response, detail)

            raise_for_platform_status(
                response, self.platform, self.display_name, "tweet creation"
            )
            tweet_id = (response.json().get("data") or {}).get("id")

        if not tweet_id:
            raise PublishError(
                "Twitter did not return a tweet id", platform=self.platform.value
            )

        logger.info("[TWITTER] Tweet published: id=%s, chars=%d", tweet_id, len(final_text))
        return PlatformResult(platform_post_id=str(tweet_id), warning=warning, tier_hint=tier)

    # ------------------------------------------------------------------
    # Tier detection
    # ------------------------------------------------------------------

    async def detect_tier(
        self, client: httpx.AsyncClient, credential: Credential
    ) -> str:
        """Detect the account's subscription tier, falling back to ``FREE``."""
        try:
            response = await client.get(
                f"{self.BASE_URL}/users/me",
                headers=self._auth_headers(credential),
                params={"user.fields": "subscription_type"},
            )
            response.raise_for_status()
            data = response.json().get("data") or {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.info(
                "[TWITTER] Could not detect tier, assuming FREE: %s",
                type(exc).__name__,
            )
            return "FREE"

        return tier_from_subscription(data.get("subscription_type", ""))

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def _upload_media(
        self,
        client: httpx.AsyncClient,
        credential: Credential,
        media: List[str],
    ) -> List[str]:
        """Fetch and upload every asset; any failure fails the whole post."""
        media_ids: List[str] = []
        for url in media:
            data, mime_type = await self._fetch_media(client, url)
            response = await self._request(
                client,
                "POST",
                f"{self.BASE_URL}/media/upload",
                "media upload",
                failure=MediaUploadError,
                headers=self._auth_headers(credential),
                files={"media": ("media", data, mime_type)},
                data={"media_category": "tweet_image"},
            )
            body = response.json()
            media_id = (body.get("data") or {}).get("id") or body.get("media_id_string")
            if not media_id:
                raise MediaUploadError(
                    "Twitter media upload returned no media id",
                    platform=self.platform.value,
                )
            media_ids.append(str(media_id))
        return media_ids

    async def _create_tweet(
        self,
        client: httpx.AsyncClient,
        credential: Credential,
        payload: Dict[str, object],
    ) -> httpx.Response:
        try:
            return await client.post(
                f"{self.BASE_URL}/tweets",
                headers=self._auth_headers(credential),
                json=payload,
            )
        except httpx.HTTPError as exc:
            raise PublishError(
                f"Twitter tweet creation failed: {type(exc).__name__}",
                platform=self.platform.value,
            ) from exc

    @staticmethod
    def _too_long_detail(response: httpx.Response) -> Optional[str]:
        """Return the API's error text if it rejected the tweet's length."""
        if response.status_code not in (400, 403):
            return None
        detail = error_detail(response)
        lowered = detail.lower()
        if "too long" in lowered or ("exceeds" in lowered and "length" in lowered):
            return detail
        return None

    def _raise_too_long(self, response: httpx.Response, detail: str) -> None:
        raise ContentTooLongError(
            f"Twitter rejected the tweet as too long: {detail}",
            platform=self.platform.value,
            status_code=response.status_code,
        )


__all__ = ["TwitterAdapter", "TWITTER_LIMITS", "tier_from_subscription"]
