"""Build request model.

A BuildRequest describes one build of one source version: where to check
it out, which URLs to try, and how to run the build tool.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from srcbuild.shell.redirects import IoRedirects
from srcbuild.shell.runner import DEFAULT_TIMEOUT_MS
from srcbuild.types import Verbosity
from srcbuild.version import SourceVersion


@dataclass(frozen=True)
class BuildRequest:
    """Immutable description of a single build.

    Attributes:
        project_root_directory: Workspace the sources are checked out to.
        src_version: The version to check out and build.
        scm_urls: Candidate source URLs, tried in order.
        build_arguments: Arguments passed to the build tool.
        add_default_build_arguments: Prepend the build tool's default arguments.
        skip_tests: Ask the build tool to skip tests.
        build_environment: Environment variables added for the child build.
        forward_properties: Property names forwarded to the child build; a
            trailing ``*`` forwards every property with that prefix.
        verbosity: Verbosity of the child build.
        io_redirects: Redirects of the child build's streams.
        timeout_ms: Timeout of each external command.
    """

    project_root_directory: Path
    src_version: SourceVersion
    scm_urls: Sequence[str]
    build_arguments: Sequence[str] = ()
    add_default_build_arguments: bool = True
    skip_tests: bool = True
    build_environment: Mapping[str, str] = field(default_factory=dict)
    forward_properties: Sequence[str] = ()
    verbosity: Verbosity = Verbosity.INFO
    io_redirects: IoRedirects = field(default_factory=IoRedirects.inherit_all)
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __post_init__(self) -> None:
        if self.project_root_directory is None:
            raise ValueError("project_root_directory cannot be None")
        if self.src_version is None:
            raise ValueError("src_version cannot be None")
        if not self.scm_urls:
            raise ValueError("scm_urls cannot be empty")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")

        object.__setattr__(
            self, "project_root_directory", Path(self.project_root_directory)
        )
        object.__setattr__(self, "scm_urls", tuple(self.scm_urls))
        object.__setattr__(self, "build_arguments", tuple(self.build_arguments))
        object.__setattr__(
            self, "build_environment", MappingProxyType(dict(self.build_environment))
        )
        # Ordered set semantics
        object.__setattr__(
            self, "forward_properties", tuple(dict.fromkeys(self.forward_properties))
        )

    @staticmethod
    def builder() -> BuildRequestBuilder:
        return BuildRequestBuilder()


class BuildRequestBuilder:
    """Fluent builder of BuildRequest instances."""

    def __init__(self) -> None:
        self._project_root_directory: Path | None = None
        self._src_version: SourceVersion | None = None
        self._scm_urls: list[str] = []
        self._build_arguments: list[str] = []
        self._add_default_build_arguments = True
        self._skip_tests = True
        self._build_environment: dict[str, str] = {}
        self._forward_properties: list[str] = []
        self._verbosity = Verbosity.INFO
        self._io_redirects = IoRedirects.inherit_all()
        self._timeout_ms = DEFAULT_TIMEOUT_MS

    def project_root_directory(self, value: Path | str) -> BuildRequestBuilder:
        self._project_root_directory = Path(value)
        return self

    def src_version(self, value: SourceVersion) -> BuildRequestBuilder:
        self._src_version = value
        return self

    def scm_url(self, value: str) -> BuildRequestBuilder:
        self._scm_urls.append(value)
        return self

    def scm_urls(self, values: Iterable[str]) -> BuildRequestBuilder:
        self._scm_urls.extend(values)
        return self

    def build_argument(self, value: str) -> BuildRequestBuilder:
        self._build_arguments.append(value)
        return self

    def build_arguments(self, values: Iterable[str]) -> BuildRequestBuilder:
        self._build_arguments.extend(values)
        return self

    def add_default_build_arguments(self, value: bool) -> BuildRequestBuilder:
        self._add_default_build_arguments = value
        return self

    def skip_tests(self, value: bool) -> BuildRequestBuilder:
        self._skip_tests = value
        return self

    def build_environment(self, values: Mapping[str, str]) -> BuildRequestBuilder:
        self._build_environment.update(values)
        return self

    def build_environment_variable(self, name: str, value: str) -> BuildRequestBuilder:
        self._build_environment[name] = value
        return self

    def forward_properties(self, values: Iterable[str]) -> BuildRequestBuilder:
        self._forward_properties.extend(values)
        return self

    def verbosity(self, value: Verbosity) -> BuildRequestBuilder:
        self._verbosity = value
        return self

    def io_redirects(self, value: IoRedirects) -> BuildRequestBuilder:
        self._io_redirects = value
        return self

    def timeout_ms(self, value: int) -> BuildRequestBuilder:
        self._timeout_ms = value
        return self

    def build(self) -> BuildRequest:
        """Create the request.

        Raises:
            ValueError: If a required field is missing or invalid.
        """
        if self._project_root_directory is None:
            raise ValueError("project_root_directory is required")
        if self._src_version is None:
            raise ValueError("src_version is required")
        return BuildRequest(
            project_root_directory=self._project_root_directory,
            src_version=self._src_version,
            scm_urls=self._scm_urls,
            build_arguments=self._build_arguments,
            add_default_build_arguments=self._add_default_build_arguments,
            skip_tests=self._skip_tests,
            build_environment=self._build_environment,
            forward_properties=self._forward_properties,
            verbosity=self._verbosity,
            io_redirects=self._io_redirects,
            timeout_ms=self._timeout_ms,
        )


__all__ = ["BuildRequest", "BuildRequestBuilder"]
