"""
Adapter registry: the ``Platform -> adapter`` lookup table.

Built once at startup from settings.  Only enabled platforms are
registered, so a post for a disabled platform is failed by the dispatcher
as unsupported.  Enabling a platform that has no adapter implementation
is a startup ``ConfigurationError``.
"""

import logging
from typing import Dict, Optional, Type

import httpx

from src.config import Settings
from src.exceptions import ConfigurationError
from src.platforms.base import PlatformAdapter
from src.platforms.instagram import InstagramAdapter
from src.platforms.linkedin import LinkedInAdapter
from src.platforms.tiktok import TikTokAdapter
from src.platforms.twitter import TwitterAdapter
from src.scheduling.models import Platform

logger = logging.getLogger(__name__)

ADAPTER_CLASSES: Dict[Platform, Type[PlatformAdapter]] = {
    Platform.TWITTER: TwitterAdapter,
    Platform.LINKEDIN: LinkedInAdapter,
    Platform.INSTAGRAM: InstagramAdapter,
    Platform.TIKTOK: TikTokAdapter,
}


def build_registry(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    adapter_classes: Optional[Dict[Platform, Type[PlatformAdapter]]] = None,
) -> Dict[Platform, PlatformAdapter]:
    """Instantiate one adapter per enabled platform.

    Args:
        settings: Engine settings (platform flags, truncation, timeout).
        transport: Optional ``httpx`` transport shared by all adapters.
        adapter_classes: Override of :data:`ADAPTER_CLASSES` (tests).

    Returns:
        Mapping of platform to adapter instance.

    Raises:
        ConfigurationError: If an enabled platform is unknown or has no
            adapter.
    """
    classes = ADAPTER_CLASSES if adapter_classes is None else adapter_classes
    registry: Dict[Platform, PlatformAdapter] = {}

    for name in settings.enabled_platforms():
        platform = Platform.from_value(name)
        adapter_cls = classes.get(platform)
        if adapter_cls is None:
            raise ConfigurationError(
                f"Platform '{name}' is enabled but has no adapter implementation"
            )
        registry[platform] = adapter_cls(
            truncation=settings.platform(name).truncation,
            timeout=settings.adapter_timeout_seconds,
            transport=transport,
        )

    logger.info(
        "[REGISTRY] Adapters registered: %s",
        ", ".join(p.value for p in registry) or "none",
    )
    return registry


__all__ = ["ADAPTER_CLASSES", "build_registry"]
