"""Tests for configuration management."""

import pytest
from pydantic import ValidationError


def create_test_settings(**kwargs):
    """Helper to create Settings instance without loading .env file."""
    from pacekit.config import Settings

    # Disable .env file loading for tests
    return Settings(_env_file=None, **kwargs)


class TestSettingsDefaults:
    """Tests for default settings values."""

    def test_defaults(self) -> None:
        settings = create_test_settings()
        assert settings.environment == "production"
        assert settings.log_level == "INFO"
        assert settings.log_to_file is False
        assert settings.queuer_started is True
        assert settings.queuer_max_tracked_keys == 1000
        assert settings.queuer_default_concurrency == 1
        assert settings.queuer_default_wait_ms == 0

    def test_log_file_path(self) -> None:
        settings = create_test_settings(log_directory="/var/log/app", log_file_prefix="jobs")
        assert settings.log_file_path == "/var/log/app/jobs.log"

    def test_is_development(self) -> None:
        assert create_test_settings(environment="Development").is_development is True
        assert create_test_settings().is_development is False


class TestSettingsFromEnv:
    """Tests for PACEKIT_* environment overrides."""

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PACEKIT_LOG_LEVEL", "debug")
        monkeypatch.setenv("PACEKIT_QUEUER_DEFAULT_CONCURRENCY", "4")
        monkeypatch.setenv("PACEKIT_QUEUER_DEFAULT_WAIT_MS", "25")

        settings = create_test_settings()
        assert settings.log_level == "DEBUG"
        assert settings.queuer_default_concurrency == 4
        assert settings.queuer_default_wait_ms == 25

    def test_get_settings_is_cached(self) -> None:
        from pacekit.config import get_settings

        assert get_settings() is get_settings()

    def test_queuer_options_follow_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from pacekit.queue.options import AsyncQueuerOptions

        monkeypatch.setenv("PACEKIT_QUEUER_MAX_TRACKED_KEYS", "5")
        monkeypatch.setenv("PACEKIT_QUEUER_DEFAULT_CONCURRENCY", "3")

        options = AsyncQueuerOptions()
        assert options.max_tracked_keys == 5
        assert options.concurrency == 3


class TestSettingsValidation:
    """Tests for field validators."""

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError, match="log_level must be one of"):
            create_test_settings(log_level="LOUD")

    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValidationError, match="at least 1"):
            create_test_settings(queuer_default_concurrency=0)

    def test_max_tracked_keys_must_be_positive(self) -> None:
        with pytest.raises(ValidationError, match="at least 1"):
            create_test_settings(queuer_max_tracked_keys=0)

    def test_wait_cannot_be_negative(self) -> None:
        with pytest.raises(ValidationError, match="queuer_default_wait_ms"):
            create_test_settings(queuer_default_wait_ms=-1)
