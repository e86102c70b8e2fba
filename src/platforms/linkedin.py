"""
LinkedIn publishing adapter (UGC Posts API).

Flow:
    1. Resolve the author URN (``urn:li:person:<id>``) from the account's
       ``platform_user_id``, or ``GET /v2/me`` when it is not stored.
    2. For each image: ``registerUpload`` -> ``PUT`` the bytes to the
       returned upload URL -> collect the asset URN.
    3. ``POST /v2/ugcPosts`` with ``shareMediaCategory`` ``IMAGE`` or
       ``NONE``.

All requests carry ``Authorization: Bearer`` and
``X-Restli-Protocol-Version: 2.0.0``.
"""

import logging
from typing import Any, Dict, List

import httpx

from src.config import TruncationPolicy
from src.exceptions import MediaUploadError, PublishError
from src.platforms.base import Credential, PlatformAdapter, PlatformResult
from src.scheduling.models import Platform, PostContent

logger = logging.getLogger(__name__)

LINKEDIN_CHAR_LIMIT = 3000

_UPLOAD_MECHANISM = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"


class LinkedInAdapter(PlatformAdapter):
    """Publish posts to a LinkedIn member feed."""

    platform = Platform.LINKEDIN
    display_name = "LinkedIn"
    char_limit = LINKEDIN_CHAR_LIMIT
    default_truncation = TruncationPolicy.REJECT

    BASE_URL: str = "https://api.linkedin.com/v2"

    def _auth_headers(self, credential: Credential) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.token}",
            "X-Restli-Protocol-Version": "2.0.0",
        }

    async def publish(
        self, content: PostContent, credential: Credential
    ) -> PlatformResult:
        text = self._require_text(content)
        final_text, warning = self._fit_text(text, self.char_limit)

        async with self._client() as client:
            author = await self._resolve_author(client, credential)

            assets: List[str] = []
            for url in content.media:
                assets.append(await self._upload_image(client, credential, author, url))

            share: Dict[str, Any] = {
                "shareCommentary": {"text": final_text},
                "shareMediaCategory": "IMAGE" if assets else "NONE",
            }
            if assets:
                share["media"] = [{"status": "READY", "media": asset} for asset in assets]

            body = {
                "author": author,
                "lifecycleState": "PUBLISHED",
                "specificContent": {"com.linkedin.ugc.ShareContent": share},
                "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
            }

            response = await self._request(
                client,
                "POST",
                f"{self.BASE_URL}/ugcPosts",
                "post creation",
                headers=self._auth_headers(credential),
                json=body,
            )

        post_id = response.headers.get("x-restli-id") or _json_id(response)
        if not post_id:
            raise PublishError(
                "LinkedIn did not return a post id", platform=self.platform.value
            )

        logger.info("[LINKEDIN] Post published: id=%s, images=%d", post_id, len(assets))
        return PlatformResult(platform_post_id=post_id, warning=warning)

    # ------------------------------------------------------------------
    # Author
    # ------------------------------------------------------------------

    async def _resolve_author(
        self, client: httpx.AsyncClient, credential: Credential
    ) -> str:
        if credential.platform_user_id:
            return f"urn:li:person:{credential.platform_user_id}"

        response = await self._request(
            client,
            "GET",
            f"{self.BASE_URL}/me",
            "profile fetch",
            headers=self._auth_headers(credential),
        )
        person_id = _json_id(response)
        if not person_id:
            raise PublishError(
                "LinkedIn profile response had no id", platform=self.platform.value
            )
        return f"urn:li:person:{person_id}"

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def _upload_image(
        self,
        client: httpx.AsyncClient,
        credential: Credential,
        author: str,
        url: str,
    ) -> str:
        data, mime_type = await self._fetch_media(client, url)

        register = await self._request(
            client,
            "POST",
            f"{self.BASE_URL}/assets?action=registerUpload",
            "image registration",
            failure=MediaUploadError,
            headers=self._auth_headers(credential),
            json={
                "registerUploadRequest": {
                    "recipes": ["urn:li:digitalmediaRecipe:feedshare-image"],
                    "owner": author,
                    "serviceRelationships": [
                        {
                            "relationshipType": "OWNER",
                            "identifier": "urn:li:userGeneratedContent",
                        }
                    ],
                }
            },
        )
        value = register.json().get("value") or {}
        upload_url = (
            (value.get("uploadMechanism") or {}).get(_UPLOAD_MECHANISM) or {}
        ).get("uploadUrl")
        asset = value.get("asset")
        if not upload_url or not asset:
            raise MediaUploadError(
                "LinkedIn image registration returned no upload URL",
                platform=self.platform.value,
            )

        await self._request(
            client,
            "PUT",
            upload_url,
            "image upload",
            failure=MediaUploadError,
            headers={**self._auth_headers(credential), "Content-Type": mime_type},
            content=data,
        )
        return asset


def _json_id(response: httpx.Response) -> str:
    try:
        return str(response.json().get("id") or "")
    except ValueError:
        return ""


__all__ = ["LinkedInAdapter", "LINKEDIN_CHAR_LIMIT"]
