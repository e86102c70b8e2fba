"""
TikTok publishing adapter (Content Posting API, direct post).

Flow:
    1. Fetch the single video asset.
    2. ``POST /v2/post/publish/video/init/`` with ``source: FILE_UPLOAD``
       and the post title -> ``publish_id`` and ``upload_url``.
    3. ``PUT`` the bytes to ``upload_url`` in one chunk.

TikTok processes the upload asynchronously; the ``publish_id`` is stored
as the platform id.
"""

import logging

from src.config import TruncationPolicy
from src.exceptions import MediaUploadError, PublishError
from src.platforms.base import Credential, PlatformAdapter, PlatformResult
from src.scheduling.models import Platform, PostContent

logger = logging.getLogger(__name__)

TIKTOK_TITLE_LIMIT = 2200


class TikTokAdapter(PlatformAdapter):
    """Publish a single video to TikTok."""

    platform = Platform.TIKTOK
    display_name = "TikTok"
    char_limit = TIKTOK_TITLE_LIMIT
    default_truncation = TruncationPolicy.TRUNCATE

    BASE_URL: str = "https://open.tiktokapis.com/v2"

    async def publish(
        self, content: PostContent, credential: Credential
    ) -> PlatformResult:
        title = self._require_text(content)

        if len(content.media) != 1:
            raise PublishError(
                "TikTok requires exactly one video", platform=self.platform.value
            )

        title, warning = self._fit_text(title, self.char_limit)
        headers = {
            "Authorization": f"Bearer {credential.token}",
            "Content-Type": "application/json; charset=UTF-8",
        }

        async with self._client() as client:
            video, mime_type = await self._fetch_media(client, content.media[0])
            size = len(video)

            init = await self._request(
                client,
                "POST",
                f"{self.BASE_URL}/post/publish/video/init/",
                "upload initialisation",
                headers=headers,
                json={
                    "post_info": {"title": title, "privacy_level": "SELF_ONLY"},
                    "source_info": {
                        "source": "FILE_UPLOAD",
                        "video_size": size,
                        "chunk_size": size,
                        "total_chunk_count": 1,
                    },
                },
            )
            data = init.json().get("data") or {}
            publish_id = data.get("publish_id")
            upload_url = data.get("upload_url")
            if not publish_id or not upload_url:
                raise PublishError(
                    "TikTok upload initialisation returned no publish id",
                    platform=self.platform.value,
                )

            await self._request(
                client,
                "PUT",
                upload_url,
                "video upload",
                failure=MediaUploadError,
                headers={
                    "Content-Type": mime_type if mime_type.startswith("video/") else "video/mp4",
                    "Content-Range": f"bytes 0-{size - 1}/{size}",
                },
                content=video,
            )

        logger.info("[TIKTOK] Video submitted: publish_id=%s, bytes=%d", publish_id, size)
        return PlatformResult(platform_post_id=str(publish_id), warning=warning)


__all__ = ["TikTokAdapter", "TIKTOK_TITLE_LIMIT"]
