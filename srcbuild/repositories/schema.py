"""Pydantic models for the repository configuration file.

The configuration tells which dependencies are built from source, where
their sources live and how to build them:

    config_model_version: "1.0"
    verbosity: warn
    forward_properties: ["srcbuild.mvn.*"]
    builder_io: {stdin: inherit, stdout: inherit, stderr: "err2out"}
    repositories:
      org.example:
        selectors: [org.example]
        urls: ["git:https://github.com/example/example.git"]
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from srcbuild.shell.redirects import IoRedirects, parse_redirect_uri
from srcbuild.types import Verbosity

CONFIG_MODEL_VERSION = "1.0"
DEFAULT_FORWARD_PROPERTIES = ("srcbuild.mvn.*",)

# One Java-like identifier per dot-separated segment
REPOSITORY_ID_SEGMENT_PATTERN = re.compile(r"^[A-Za-z_$][\w$]*$")


def validate_repository_id(value: str) -> str:
    """Check that ``value`` is a dot-separated sequence of identifiers.

    Raises:
        ValueError: If a segment is empty or not an identifier.
    """
    if not value:
        raise ValueError("repository id cannot be empty")
    for segment in value.split("."):
        if not segment:
            raise ValueError(
                f"repository id [{value}] cannot start or end with a dot or contain two dots in a row"
            )
        if not REPOSITORY_ID_SEGMENT_PATTERN.match(segment):
            raise ValueError(
                f"repository id [{value}] contains invalid segment [{segment}]"
            )
    return value


class BuilderIoSchema(BaseModel):
    """Redirects of the child build streams, as redirect URIs.

    Attributes:
        stdin: ``inherit`` or ``read:<path>``.
        stdout: ``inherit``, ``write:<path>`` or ``append:<path>``.
        stderr: Same as stdout, or ``err2out``.
    """

    model_config = ConfigDict(extra="forbid")

    stdin: str = Field(default="inherit")
    stdout: str = Field(default="inherit")
    stderr: str = Field(default="inherit")

    @field_validator("stdin", "stdout", "stderr")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        """Validate the redirect URI grammar."""
        parse_redirect_uri(v)
        return v

    @model_validator(mode="after")
    def validate_streams(self) -> BuilderIoSchema:
        """Validate each URI is allowed for its stream."""
        self.to_io_redirects()
        return self

    def to_io_redirects(self) -> IoRedirects:
        return IoRedirects.from_uris(self.stdin, self.stdout, self.stderr)


class ScmRepositorySchema(BaseModel):
    """A source repository and the dependencies built from it.

    Attributes:
        id: Dot-separated identifier, also naming the workspace directory.
        selectors: groupIds of the dependencies built from this repository.
        urls: Candidate SCM URLs, tried in order.
        build_arguments: Extra arguments for the build tool.
        skip_tests: Skip tests of the child build.
        add_default_build_arguments: Use the build tool default arguments.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(description="Repository identifier")
    selectors: list[str] = Field(default_factory=list)
    urls: list[str] = Field(min_length=1, description="SCM URLs tried in order")
    build_arguments: list[str] = Field(default_factory=list)
    skip_tests: bool = Field(default=True)
    add_default_build_arguments: bool = Field(default=True)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return validate_repository_id(v)

    @field_validator("urls")
    @classmethod
    def validate_urls(cls, v: list[str]) -> list[str]:
        """Validate URLs are non-empty strings."""
        for url in v:
            if not url.strip():
                raise ValueError("urls cannot contain empty entries")
        return v

    @property
    def id_as_path(self) -> Path:
        """The id as a relative path, ``a.b.c`` becoming ``a/b/c``."""
        return Path(*self.id.split("."))

    def matches(self, group_id: str) -> bool:
        """Tell whether the dependency with ``group_id`` is built from here."""
        return group_id in self.selectors


class ConfigurationSchema(BaseModel):
    """The whole configuration file.

    Attributes:
        config_model_version: Version of this file format, must be "1.0".
        forward_properties: Properties forwarded to child builds.
        builder_io: Redirects of the child build streams.
        skip: Do not build anything from source.
        sources_directory: Overrides the workspace root from the settings.
        verbosity: Verbosity of the child builds.
        repositories: Repositories keyed by id.
    """

    model_config = ConfigDict(extra="forbid")

    config_model_version: str = Field(default=CONFIG_MODEL_VERSION)
    forward_properties: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FORWARD_PROPERTIES)
    )
    builder_io: BuilderIoSchema = Field(default_factory=BuilderIoSchema)
    skip: bool = Field(default=False)
    sources_directory: Path | None = Field(default=None)
    verbosity: Verbosity = Field(default=Verbosity.WARN)
    repositories: dict[str, ScmRepositorySchema] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def fill_repository_ids(cls, data: Any) -> Any:
        """Take repository ids from the mapping keys."""
        if not isinstance(data, dict):
            return data
        repositories = data.get("repositories")
        if not isinstance(repositories, dict):
            return data
        filled: dict[str, Any] = {}
        for key, value in repositories.items():
            if isinstance(value, dict):
                value = dict(value)
                repository_id = value.setdefault("id", key)
                if repository_id != key:
                    raise ValueError(
                        f"repository id [{repository_id}] does not match its key [{key}]"
                    )
            filled[key] = value
        return {**data, "repositories": filled}

    @field_validator("config_model_version")
    @classmethod
    def validate_model_version(cls, v: str) -> str:
        if v != CONFIG_MODEL_VERSION:
            raise ValueError(
                f"config_model_version must be '{CONFIG_MODEL_VERSION}', got '{v}'"
            )
        return v

    @field_validator("verbosity", mode="before")
    @classmethod
    def validate_verbosity(cls, v: Any) -> Any:
        """Accept verbosity names in any case."""
        if isinstance(v, str):
            return Verbosity.from_name(v)
        return v

    def find_repository(self, group_id: str) -> ScmRepositorySchema | None:
        """Return the first repository whose selectors contain ``group_id``."""
        for repository in self.repositories.values():
            if repository.matches(group_id):
                return repository
        return None


__all__ = [
    "CONFIG_MODEL_VERSION",
    "DEFAULT_FORWARD_PROPERTIES",
    "BuilderIoSchema",
    "ConfigurationSchema",
    "ScmRepositorySchema",
    "validate_repository_id",
]
