"""Configuration settings for srcbuild.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_sources_dir() -> Path:
    """Return the default root of the source workspaces."""
    return Path.home() / ".m2" / "srcdeps"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the SRCBUILD_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="SRCBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    sources_dir: Path = Field(
        default_factory=_default_sources_dir,
        description="Root directory for source workspaces",
    )
    config_file: Path = Field(
        default=Path(".srcbuild.yaml"),
        description="Repository configuration file",
    )

    # Operational modes
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    git_executable: str = Field(
        default="git",
        description="Git executable used by the git source provider",
    )

    # Concurrency
    max_workspace_slots: int = Field(
        default=256,
        ge=1,
        le=4096,
        description="Maximum concurrent workspaces per source repository",
    )
    directory_create_retries: int = Field(
        default=256,
        ge=1,
        description="Attempts made to create a workspace directory",
    )

    # Timeouts (in milliseconds)
    build_timeout_ms: int = Field(
        default=5 * 60 * 1000,
        ge=1,
        description="Timeout for each external command of a build",
    )
    poll_interval_ms: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Interval for polling running commands",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
