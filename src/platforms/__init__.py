"""Platform adapters: one publisher per destination platform."""

from src.platforms.base import Credential, PlatformAdapter, PlatformResult
from src.platforms.instagram import InstagramAdapter
from src.platforms.linkedin import LinkedInAdapter
from src.platforms.registry import ADAPTER_CLASSES, build_registry
from src.platforms.tiktok import TikTokAdapter
from src.platforms.twitter import TwitterAdapter

__all__ = [
    "Credential",
    "PlatformAdapter",
    "PlatformResult",
    "TwitterAdapter",
    "LinkedInAdapter",
    "InstagramAdapter",
    "TikTokAdapter",
    "ADAPTER_CLASSES",
    "build_registry",
]
