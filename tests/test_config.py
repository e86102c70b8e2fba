"""
Tests for src.config module.

Covers:
    - Settings defaults and per-platform lookups
    - Settings.from_yaml with YAML values and environment overrides
    - Singleton get_settings / reset_settings behaviour
    - validate_env
"""

import pytest

from src.config import (
    NotificationConfig,
    Settings,
    TruncationPolicy,
    get_settings,
    reset_settings,
    validate_env,
)
from src.exceptions import ConfigurationError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_singleton():
    """Ensure the Settings singleton is cleared before and after each test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def write_yaml(tmp_path):
    def _write(text: str):
        path = tmp_path / "settings.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


# ===========================================================================
# Defaults
# ===========================================================================


class TestSettingsDefaults:
    def test_scheduler_defaults(self):
        settings = Settings()
        assert settings.tick_interval_seconds == 60
        assert settings.batch_size == 20
        assert settings.adapter_timeout_seconds == 30.0
        assert settings.recovery.stuck_timeout_minutes == 10

    def test_default_platforms(self):
        settings = Settings()
        assert settings.enabled_platforms() == ["twitter", "linkedin", "instagram"]
        assert settings.platform("twitter").truncation is TruncationPolicy.TRUNCATE
        assert settings.platform("linkedin").truncation is TruncationPolicy.REJECT
        assert settings.platform("tiktok").enabled is False

    def test_unknown_platform_raises(self):
        with pytest.raises(ConfigurationError, match="Unknown platform 'myspace'"):
            Settings().platform("myspace")

    def test_smtp_configured_needs_user_and_password(self):
        assert not NotificationConfig().smtp_configured
        assert not NotificationConfig(smtp_user="bot").smtp_configured
        assert NotificationConfig(smtp_user="bot", smtp_password="pw").smtp_configured


# ===========================================================================
# from_yaml
# ===========================================================================


class TestFromYaml:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = Settings.from_yaml(tmp_path / "absent.yaml")
        assert settings.batch_size == 20
        assert settings.encryption_key == ""

    def test_yaml_values_loaded(self, write_yaml):
        path = write_yaml(
            """
scheduler:
  tick_interval_seconds: 30
  batch_size: 50
platforms:
  twitter:
    truncation: reject
  tiktok:
    enabled: true
notifications:
  app_url: https://example.app
recovery:
  stuck_timeout_minutes: 15
  interval_ticks: 5
"""
        )

        settings = Settings.from_yaml(path)

        assert settings.tick_interval_seconds == 30
        assert settings.batch_size == 50
        assert settings.platform("twitter").truncation is TruncationPolicy.REJECT
        assert settings.platform("tiktok").enabled is True
        assert settings.notifications.app_url == "https://example.app"
        assert settings.recovery.stuck_timeout_minutes == 15
        assert settings.recovery.interval_ticks == 5

    def test_env_overrides_yaml(self, write_yaml, monkeypatch):
        path = write_yaml("scheduler:\n  batch_size: 50\n")
        monkeypatch.setenv("SCHEDULER_BATCH_SIZE", "7")
        monkeypatch.setenv("PLATFORM_LINKEDIN_ENABLED", "false")
        monkeypatch.setenv("TOKEN_ENCRYPTION_KEY", "ab" * 32)
        monkeypatch.setenv("SMTP_USER", "bot@example.com")
        monkeypatch.setenv("FAILURE_EMAILS_ENABLED", "no")

        settings = Settings.from_yaml(path)

        assert settings.batch_size == 7
        assert "linkedin" not in settings.enabled_platforms()
        assert settings.encryption_key == "ab" * 32
        assert settings.notifications.smtp_user == "bot@example.com"
        assert settings.notifications.enabled is False

    def test_legacy_encryption_key_variable(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_KEY", "cd" * 32)
        assert Settings.from_yaml(tmp_path / "absent.yaml").encryption_key == "cd" * 32

    def test_invalid_env_value_raises(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCHEDULER_TICK_SECONDS", "soon")
        with pytest.raises(ConfigurationError, match="SCHEDULER_TICK_SECONDS"):
            Settings.from_yaml(tmp_path / "absent.yaml")

    def test_non_positive_values_raise(self, write_yaml):
        path = write_yaml("scheduler:\n  batch_size: 0\n")
        with pytest.raises(ConfigurationError, match="positive"):
            Settings.from_yaml(path)

    def test_invalid_truncation_policy_raises(self, write_yaml):
        path = write_yaml("platforms:\n  twitter:\n    truncation: shorten\n")
        with pytest.raises(ConfigurationError, match="Invalid truncation policy"):
            Settings.from_yaml(path)

    def test_malformed_yaml_raises(self, write_yaml):
        path = write_yaml("scheduler: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Failed to parse"):
            Settings.from_yaml(path)


# ===========================================================================
# Singleton
# ===========================================================================


class TestSingleton:
    def test_get_settings_cached(self):
        assert get_settings() is get_settings()

    def test_reset_settings_reloads(self):
        first = get_settings()
        reset_settings()
        assert get_settings() is not first


# ===========================================================================
# validate_env
# ===========================================================================


class TestValidateEnv:
    def test_missing_required_raises(self):
        with pytest.raises(ConfigurationError, match="SUPABASE_URL"):
            validate_env()

    def test_non_strict_returns_status(self):
        status = validate_env(strict=False)
        assert status["SUPABASE_URL"] is False
        assert status["TOKEN_ENCRYPTION_KEY"] is False

    def test_legacy_service_key_accepted(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://x.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_KEY", "legacy")

        status = validate_env()

        assert status["SUPABASE_SERVICE_ROLE_KEY"] is True

    def test_missing_encryption_key_warns(self, monkeypatch, caplog):
        monkeypatch.setenv("SUPABASE_URL", "https://x.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "key")

        validate_env()

        assert "TOKEN_ENCRYPTION_KEY is not set" in caplog.text
