"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from srcbuild.config import Settings, get_settings, print_settings_json


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        settings = Settings()

        assert settings.sources_dir == Path.home() / ".m2" / "srcdeps"
        assert settings.config_file == Path(".srcbuild.yaml")
        assert settings.log_level == "INFO"
        assert settings.git_executable == "git"
        assert settings.max_workspace_slots == 256
        assert settings.directory_create_retries == 256
        assert settings.build_timeout_ms == 300000
        assert settings.poll_interval_ms == 100

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "SRCBUILD_LOG_LEVEL": "DEBUG",
                "SRCBUILD_MAX_WORKSPACE_SLOTS": "4",
                "SRCBUILD_BUILD_TIMEOUT_MS": "1000",
            },
        ):
            settings = Settings()
            assert settings.log_level == "DEBUG"
            assert settings.max_workspace_slots == 4
            assert settings.build_timeout_ms == 1000

    def test_sources_dir_from_env(self) -> None:
        """Sources dir should be configurable via env."""
        with patch.dict(os.environ, {"SRCBUILD_SOURCES_DIR": "/tmp/test-sources"}):
            settings = Settings()
            assert settings.sources_dir == Path("/tmp/test-sources")

    def test_bounds(self) -> None:
        """Out of range values should be rejected."""
        with pytest.raises(ValidationError):
            Settings(max_workspace_slots=0)
        with pytest.raises(ValidationError):
            Settings(poll_interval_ms=500)


class TestGetSettings:
    """Test get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        settings = get_settings()
        assert isinstance(settings, Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_print_settings_json(self) -> None:
        """print_settings_json should return valid JSON."""
        settings = Settings()
        parsed = json.loads(print_settings_json(settings))

        assert "sources_dir" in parsed
        assert "config_file" in parsed
        assert "build_timeout_ms" in parsed
        assert "max_workspace_slots" in parsed

    def test_print_settings_json_default(self) -> None:
        """print_settings_json without args should use default settings."""
        parsed = json.loads(print_settings_json())
        assert "sources_dir" in parsed
