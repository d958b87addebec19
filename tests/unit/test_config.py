"""Tests for configuration module."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from checkpoint_catalog.config import (
    IGDBConfig,
    LoggingConfig,
    RetryConfig,
    Settings,
    SyncConfig,
)

IGDB_ENV = {"IGDB_CLIENT_ID": "client-123", "IGDB_CLIENT_SECRET": "secret-456"}


class TestIGDBConfig:
    """Tests for IGDB API configuration."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        with patch.dict(os.environ, IGDB_ENV):
            config = IGDBConfig()

        assert config.base_url == "https://api.igdb.com/v4"
        assert config.token_url == "https://id.twitch.tv/oauth2/token"
        assert config.token_ttl_seconds == 3600
        assert config.requests_per_second == 4
        assert config.page_size == 50
        assert config.page_delay_seconds == 0.25

    def test_credentials_required(self) -> None:
        """Test that client id and secret are required."""
        with patch.dict(os.environ, {}, clear=True), pytest.raises(ValueError):
            IGDBConfig()

    def test_client_secret_is_secret(self) -> None:
        """Test that the client secret is stored as secret."""
        with patch.dict(os.environ, IGDB_ENV):
            config = IGDBConfig()

        assert "secret-456" not in repr(config.client_secret)
        assert config.client_secret.get_secret_value() == "secret-456"

    def test_trailing_slash_stripped(self) -> None:
        """Test URLs are normalized for path joining."""
        with patch.dict(os.environ, {**IGDB_ENV, "IGDB_BASE_URL": "https://proxy.local/v4/"}):
            config = IGDBConfig()

        assert config.base_url == "https://proxy.local/v4"

    def test_requests_per_second_bounds(self) -> None:
        """Test rate limit cannot exceed the upstream ceiling."""
        with patch.dict(os.environ, {**IGDB_ENV, "IGDB_REQUESTS_PER_SECOND": "20"}), pytest.raises(
            ValueError
        ):
            IGDBConfig()

    def test_page_size_bounds(self) -> None:
        """Test page size is capped at the IGDB maximum."""
        with patch.dict(os.environ, {**IGDB_ENV, "IGDB_PAGE_SIZE": "501"}), pytest.raises(
            ValueError
        ):
            IGDBConfig()


class TestSyncConfig:
    """Tests for sync configuration."""

    def test_default_values(self) -> None:
        """Test default thresholds and probe cap."""
        with patch.dict(os.environ, {}, clear=True):
            config = SyncConfig()

        assert config.slug_probe_limit == 100
        assert config.min_votes == 80
        assert config.min_rating == 75.0
        assert config.recency_days == 365
        assert config.purge_threshold == 50
        assert config.storage_path == Path("data/catalog/games.json")
        assert "Clair Obscur: Expedition 33" in config.safety_net_titles

    def test_safety_net_titles_from_comma_list(self) -> None:
        """Test comma-separated titles are split and trimmed."""
        with patch.dict(os.environ, {"SYNC_SAFETY_NET_TITLES": "Hades, Celeste ,,Tunic"}):
            config = SyncConfig()

        assert config.safety_net_titles == ["Hades", "Celeste", "Tunic"]

    def test_probe_limit_from_env(self) -> None:
        """Test the probe cap is configurable."""
        with patch.dict(os.environ, {"SYNC_SLUG_PROBE_LIMIT": "1000"}):
            config = SyncConfig()

        assert config.slug_probe_limit == 1000

    def test_probe_limit_must_be_positive(self) -> None:
        """Test a zero probe cap is rejected."""
        with pytest.raises(ValueError):
            SyncConfig(slug_probe_limit=0)


class TestRetryConfig:
    """Tests for retry configuration."""

    def test_default_values(self) -> None:
        """Test default retry values."""
        with patch.dict(os.environ, {}, clear=True):
            config = RetryConfig()

        assert config.max_attempts == 3

    def test_max_attempts_bounds(self) -> None:
        """Test max attempts validation."""
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)

        with pytest.raises(ValueError):
            RetryConfig(max_attempts=11)


class TestLoggingConfig:
    """Tests for logging configuration."""

    def test_default_values(self) -> None:
        """Test default logging values."""
        with patch.dict(os.environ, {}, clear=True):
            config = LoggingConfig()

        assert config.level == "INFO"
        assert config.format == "json"
        assert config.include_timestamp is True

    def test_invalid_format(self) -> None:
        """Test unknown formats are rejected."""
        with pytest.raises(ValueError):
            LoggingConfig(format="xml")  # type: ignore[arg-type]


class TestSettings:
    """Tests for the aggregated settings."""

    def test_sections_loaded_from_env(self) -> None:
        """Test every section picks up its own prefix."""
        with patch.dict(
            os.environ,
            {**IGDB_ENV, "SYNC_MIN_VOTES": "120", "LOG_LEVEL": "DEBUG", "ENVIRONMENT": "production"},
        ):
            settings = Settings()

        assert settings.igdb.client_id == "client-123"
        assert settings.sync.min_votes == 120
        assert settings.logging.level == "DEBUG"
        assert settings.is_production

    def test_sections_loaded_from_dotenv(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test every section reads a .env file in the working directory."""
        (tmp_path / ".env").write_text(
            "IGDB_CLIENT_ID=from-dotenv\n"
            "IGDB_CLIENT_SECRET=dotenv-secret\n"
            "SYNC_MIN_VOTES=150\n"
            "RETRY_MAX_ATTEMPTS=5\n"
            "LOG_FORMAT=console\n",
            encoding="utf-8",
        )
        monkeypatch.chdir(tmp_path)

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.igdb.client_id == "from-dotenv"
        assert settings.igdb.client_secret.get_secret_value() == "dotenv-secret"
        assert settings.sync.min_votes == 150
        assert settings.retry.max_attempts == 5
        assert settings.logging.format == "console"

    def test_environment_overrides_dotenv(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test process environment wins over the .env file."""
        (tmp_path / ".env").write_text(
            "IGDB_CLIENT_ID=from-dotenv\nIGDB_CLIENT_SECRET=dotenv-secret\n",
            encoding="utf-8",
        )
        monkeypatch.chdir(tmp_path)

        with patch.dict(os.environ, {"IGDB_CLIENT_ID": "from-env"}, clear=True):
            config = IGDBConfig()

        assert config.client_id == "from-env"
