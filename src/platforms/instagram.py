"""
Instagram publishing adapter (Instagram Graph API, Business accounts).

The Graph API pulls images by public URL, so media is never downloaded by
the engine.  One image publishes as a single container; several images
publish as a carousel of child containers.  Either way the container is
then published with ``media_publish``.

The Instagram business account id is read from the connected account's
``metadata.instagram_account_id`` (falling back to ``platform_user_id``).
The access token is passed as the ``access_token`` parameter.
"""

import logging
from typing import Dict, List

import httpx

from src.config import TruncationPolicy
from src.exceptions import PublishError
from src.platforms.base import Credential, PlatformAdapter, PlatformResult
from src.scheduling.models import Platform, PostContent

logger = logging.getLogger(__name__)

INSTAGRAM_CAPTION_LIMIT = 2200
MAX_CAROUSEL_ITEMS = 10


class InstagramAdapter(PlatformAdapter):
    """Publish image posts to an Instagram business account."""

    platform = Platform.INSTAGRAM
    display_name = "Instagram"
    char_limit = INSTAGRAM_CAPTION_LIMIT
    default_truncation = TruncationPolicy.REJECT

    BASE_URL: str = "https://graph.facebook.com/v18.0"

    async def publish(
        self, content: PostContent, credential: Credential
    ) -> PlatformResult:
        caption = self._require_text(content)

        if not content.media:
            raise PublishError(
                "Instagram requires at least one image", platform=self.platform.value
            )
        if len(content.media) > MAX_CAROUSEL_ITEMS:
            raise PublishError(
                f"Instagram allows at most {MAX_CAROUSEL_ITEMS} images per post",
                platform=self.platform.value,
            )

        account_id = (
            credential.metadata.get("instagram_account_id")
            or credential.platform_user_id
        )
        if not account_id:
            raise PublishError(
                "Instagram account id missing from connected account",
                platform=self.platform.value,
            )

        caption, warning = self._fit_text(caption, self.char_limit)
        token = credential.token

        async with self._client() as client:
            if len(content.media) == 1:
                container_id = await self._create_container(
                    client, account_id, token,
                    {"image_url": content.media[0], "caption": caption},
                )
            else:
                children: List[str] = []
                for url in content.media:
                    children.append(
                        await self._create_container(
                            client, account_id, token,
                            {"image_url": url, "is_carousel_item": "true"},
                        )
                    )
                container_id = await self._create_container(
                    client, account_id, token,
                    {
                        "media_type": "CAROUSEL",
                        "children": ",".join(children),
                        "caption": caption,
                    },
                )

            response = await self._request(
                client,
                "POST",
                f"{self.BASE_URL}/{account_id}/media_publish",
                "publish",
                data={"creation_id": container_id, "access_token": token},
            )

        media_id = response.json().get("id")
        if not media_id:
            raise PublishError(
                "Instagram did not return a media id", platform=self.platform.value
            )

        logger.info(
            "[INSTAGRAM] Media published: id=%s, images=%d", media_id, len(content.media)
        )
        return PlatformResult(platform_post_id=str(media_id), warning=warning)

    async def _create_container(
        self,
        client: httpx.AsyncClient,
        account_id: str,
        token: str,
        params: Dict[str, str],
    ) -> str:
        response = await self._request(
            client,
            "POST",
            f"{self.BASE_URL}/{account_id}/media",
            "container creation",
            data={**params, "access_token": token},
        )
        container_id = response.json().get("id")
        if not container_id:
            raise PublishError(
                "Instagram did not return a container id",
                platform=self.platform.value,
            )
        return str(container_id)


__all__ = ["InstagramAdapter", "INSTAGRAM_CAPTION_LIMIT"]
