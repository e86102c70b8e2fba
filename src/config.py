"""
Centralized configuration loader for the Scheduled Publishing Engine.

Loads settings from YAML files and environment variables, providing
sensible defaults when configuration files are absent.

Provides:
    - TruncationPolicy: What an adapter does with over-long content
    - PlatformConfig: Per-platform enable flag and truncation policy
    - NotificationConfig: Failure e-mail switch and SMTP settings
    - RecoveryConfig: Stuck-post sweep settings
    - Settings: Global engine settings loaded from YAML + env vars
    - get_settings(): Singleton accessor for Settings
    - validate_env(): Startup validation of required environment variables
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from src.exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Load .env file (no-op if file does not exist)
# ---------------------------------------------------------------------------
load_dotenv()

# ---------------------------------------------------------------------------
# Project root directory (parent of src/)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


# ===========================================================================
# TRUNCATION POLICY
# ===========================================================================


class TruncationPolicy(Enum):
    """What an adapter does when content exceeds the platform limit.

    TRUNCATE: shorten the text and publish with a warning.
    REJECT: fail the post with ``ContentTooLongError``.
    """

    TRUNCATE = "truncate"
    REJECT = "reject"


# ===========================================================================
# PER-PLATFORM CONFIGURATION
# ===========================================================================


@dataclass
class PlatformConfig:
    """Settings for a single destination platform."""

    enabled: bool = True
    truncation: TruncationPolicy = TruncationPolicy.REJECT


def _default_platforms() -> Dict[str, PlatformConfig]:
    # TikTok's content-posting scope needs app review, so it ships disabled.
    return {
        "twitter": PlatformConfig(enabled=True, truncation=TruncationPolicy.TRUNCATE),
        "linkedin": PlatformConfig(enabled=True, truncation=TruncationPolicy.REJECT),
        "instagram": PlatformConfig(enabled=True, truncation=TruncationPolicy.REJECT),
        "tiktok": PlatformConfig(enabled=False, truncation=TruncationPolicy.TRUNCATE),
    }


# ===========================================================================
# NOTIFICATIONS
# ===========================================================================


@dataclass
class NotificationConfig:
    """Failure notification settings.

    ``smtp_user`` and ``smtp_password`` both have to be present for e-mail
    to be sent; otherwise the transport logs and skips.
    """

    enabled: bool = True
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""
    app_url: str = "https://app.socialcraftai.com"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)


# ===========================================================================
# STUCK-POST RECOVERY
# ===========================================================================


@dataclass
class RecoveryConfig:
    """Settings for the sweep that fails posts stuck in ``processing``."""

    enabled: bool = True
    stuck_timeout_minutes: int = 10
    interval_ticks: int = 10


# ===========================================================================
# GLOBAL SETTINGS
# ===========================================================================


@dataclass
class Settings:
    """
    Global engine settings.

    Loaded from ``config/settings.yaml`` when available, falling back to
    sensible defaults. Environment variables override YAML values for
    secrets and deployment-specific configuration.
    """

    # Scheduler cadence and batching
    tick_interval_seconds: int = 60
    batch_size: int = 20
    adapter_timeout_seconds: float = 30.0

    # Token vault
    encryption_key: str = ""
    require_encryption: bool = False

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    platforms: Dict[str, PlatformConfig] = field(default_factory=_default_platforms)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    recovery: RecoveryConfig = field(default_factory=RecoveryConfig)

    def platform(self, name: str) -> PlatformConfig:
        """
        Get the configuration for one platform.

        Raises:
            ConfigurationError: If the platform is unknown (fail-fast).
        """
        if name not in self.platforms:
            raise ConfigurationError(
                f"Unknown platform '{name}'. "
                f"Valid platforms: {list(self.platforms.keys())}"
            )
        return self.platforms[name]

    def enabled_platforms(self) -> List[str]:
        """Names of platforms whose ``enabled`` flag is set."""
        return [name for name, cfg in self.platforms.items() if cfg.enabled]

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from a YAML file.

        If the file does not exist, returns an instance with all defaults.
        Environment variables override YAML values for specific keys.

        Args:
            path: Path to the YAML file. Defaults to
                ``<PROJECT_ROOT>/config/settings.yaml``.

        Returns:
            Populated Settings instance.

        Raises:
            ConfigurationError: If the YAML file cannot be parsed or a value
                has the wrong type.
        """
        path = path or PROJECT_ROOT / "config" / "settings.yaml"

        data: Dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    f"Failed to parse settings YAML at {path}: {exc}"
                ) from exc

        scheduler_data = data.get("scheduler", {}) or {}
        vault_data = data.get("vault", {}) or {}
        logging_data = data.get("logging", {}) or {}

        # -----------------------------------------------------------------
        # Scheduler (YAML, then env overrides)
        # -----------------------------------------------------------------
        tick_interval = _env_override(
            "SCHEDULER_TICK_SECONDS",
            scheduler_data.get("tick_interval_seconds", 60),
            int,
        )
        batch_size = _env_override(
            "SCHEDULER_BATCH_SIZE",
            scheduler_data.get("batch_size", 20),
            int,
        )
        adapter_timeout = _env_override(
            "ADAPTER_TIMEOUT_SECONDS",
            scheduler_data.get("adapter_timeout_seconds", 30.0),
            float,
        )
        if tick_interval <= 0 or batch_size <= 0 or adapter_timeout <= 0:
            raise ConfigurationError(
                "tick_interval_seconds, batch_size and adapter_timeout_seconds "
                "must all be positive"
            )

        # -----------------------------------------------------------------
        # Token vault (secrets come from the environment only)
        # -----------------------------------------------------------------
        encryption_key = (
            os.environ.get("TOKEN_ENCRYPTION_KEY")
            or os.environ.get("ENCRYPTION_KEY")
            or ""
        )
        require_encryption = _env_override(
            "REQUIRE_TOKEN_ENCRYPTION",
            vault_data.get("require_encryption", False),
            _parse_bool,
        )

        # -----------------------------------------------------------------
        # Platforms
        # -----------------------------------------------------------------
        platforms = _default_platforms()
        for name, overrides in (data.get("platforms", {}) or {}).items():
            current = platforms.get(name, PlatformConfig())
            overrides = overrides or {}
            if "enabled" in overrides:
                current.enabled = bool(overrides["enabled"])
            if "truncation" in overrides:
                current.truncation = _parse_policy(name, overrides["truncation"])
            platforms[name] = current

        for name, cfg in platforms.items():
            cfg.enabled = _env_override(
                f"PLATFORM_{name.upper()}_ENABLED", cfg.enabled, _parse_bool
            )

        # -----------------------------------------------------------------
        # Notifications
        # -----------------------------------------------------------------
        notif_data = data.get("notifications", {}) or {}
        notifications = NotificationConfig(
            enabled=_env_override(
                "FAILURE_EMAILS_ENABLED",
                notif_data.get("enabled", True),
                _parse_bool,
            ),
            smtp_host=os.environ.get("SMTP_HOST") or notif_data.get("smtp_host", "smtp.gmail.com"),
            smtp_port=_env_override("SMTP_PORT", notif_data.get("smtp_port", 587), int),
            smtp_user=os.environ.get("SMTP_USER", ""),
            smtp_password=os.environ.get("SMTP_PASSWORD", ""),
            smtp_from=os.environ.get("SMTP_FROM") or notif_data.get("smtp_from", ""),
            app_url=os.environ.get("APP_URL") or notif_data.get(
                "app_url", "https://app.socialcraftai.com"
            ),
        )

        # -----------------------------------------------------------------
        # Recovery
        # -----------------------------------------------------------------
        recovery_data = data.get("recovery", {}) or {}
        recovery = RecoveryConfig(
            enabled=bool(recovery_data.get("enabled", True)),
            stuck_timeout_minutes=_env_override(
                "STUCK_TIMEOUT_MINUTES",
                recovery_data.get("stuck_timeout_minutes", 10),
                int,
            ),
            interval_ticks=int(recovery_data.get("interval_ticks", 10)),
        )

        # -----------------------------------------------------------------
        # Assemble the Settings object
        # -----------------------------------------------------------------
        return cls(
            tick_interval_seconds=tick_interval,
            batch_size=batch_size,
            adapter_timeout_seconds=adapter_timeout,
            encryption_key=encryption_key,
            require_encryption=require_encryption,
            log_level=os.environ.get("LOG_LEVEL") or logging_data.get("level", "INFO"),
            log_dir=logging_data.get("dir", "logs"),
            platforms=platforms,
            notifications=notifications,
            recovery=recovery,
        )


# ===========================================================================
# PARSING HELPERS
# ===========================================================================


def _parse_bool(value: Any) -> bool:
    """Interpret YAML/env style booleans (``"true"``, ``"0"``, ``"no"`` ...)."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_policy(platform: str, value: Any) -> TruncationPolicy:
    try:
        return TruncationPolicy(str(value).strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"Invalid truncation policy '{value}' for platform '{platform}'. "
            f"Valid policies: {[p.value for p in TruncationPolicy]}"
        ) from None


def _env_override(env_key: str, default: Any, cast_fn: Callable[[Any], Any]) -> Any:
    """Return ``cast_fn(env value)`` if *env_key* is set, else ``cast_fn(default)``.

    Raises:
        ConfigurationError: If the value cannot be converted.
    """
    env_val = os.environ.get(env_key)
    raw = env_val if env_val is not None else default
    try:
        return cast_fn(raw)
    except (ValueError, TypeError) as exc:
        source = f"env var {env_key}" if env_val is not None else f"setting for {env_key}"
        raise ConfigurationError(
            f"Invalid value for {source}='{raw}': {exc}"
        ) from exc


# ===========================================================================
# SINGLETON SETTINGS ACCESSOR
# ===========================================================================

_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global Settings singleton.

    On first call, loads from ``config/settings.yaml`` (or defaults).
    Subsequent calls return the cached instance.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.from_yaml()
    return _settings_instance


def reset_settings() -> None:
    """
    Reset the cached Settings singleton.

    Useful for testing or when configuration files have been updated
    at runtime.
    """
    global _settings_instance
    _settings_instance = None


# ===========================================================================
# ENVIRONMENT VARIABLE VALIDATION
# ===========================================================================

# Required environment variables for the engine to function
REQUIRED_ENV_VARS: List[str] = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
]

# Optional but recommended environment variables
OPTIONAL_ENV_VARS: List[str] = [
    "TOKEN_ENCRYPTION_KEY",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASSWORD",
    "APP_URL",
]


def validate_env(strict: bool = True) -> Dict[str, bool]:
    """
    Validate that required environment variables are set.

    ``SUPABASE_SERVICE_KEY`` is accepted in place of
    ``SUPABASE_SERVICE_ROLE_KEY``.

    Args:
        strict: If ``True``, raise ``ConfigurationError`` when any required
            variable is missing. If ``False``, return the status dict
            without raising.

    Returns:
        Dict mapping variable name to presence status (``True`` if set).

    Raises:
        ConfigurationError: If ``strict=True`` and required vars are missing.
    """
    status: Dict[str, bool] = {}
    missing: List[str] = []

    for var in REQUIRED_ENV_VARS:
        present = bool(os.environ.get(var))
        if var == "SUPABASE_SERVICE_ROLE_KEY" and not present:
            present = bool(os.environ.get("SUPABASE_SERVICE_KEY"))
        status[var] = present
        if not present:
            missing.append(var)

    for var in OPTIONAL_ENV_VARS:
        status[var] = bool(os.environ.get(var))

    if strict and missing:
        raise ConfigurationError(
            f"Missing required environment variables: {missing}. "
            "See .env.example for the full list."
        )

    if not status["TOKEN_ENCRYPTION_KEY"] and not os.environ.get("ENCRYPTION_KEY"):
        logger.warning("TOKEN_ENCRYPTION_KEY is not set; tokens will not be encrypted")

    return status
