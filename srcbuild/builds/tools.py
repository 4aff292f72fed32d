"""Build tools.

A build tool recognizes a checked-out project, rewrites its version to the
requested source version and runs the build. The Maven tools are the ones
bundled; ShellBuildTool is the base for any tool driven by an executable.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path

from srcbuild.builds.request import BuildRequest
from srcbuild.errors import BuildFailedError, NoBuildToolError, NonZeroExitError
from srcbuild.shell.runner import DEFAULT_POLL_INTERVAL, ShellCommand, run_command
from srcbuild.types import Verbosity

logger = logging.getLogger(__name__)

FORWARD_PROPERTIES_PROPERTY = "srcbuild.forwardProperties"

MAVEN_DEFAULT_ARGS = ("clean", "install")
MAVEN_SKIP_TESTS_ARGS = ("-DskipTests",)
MAVEN_POM_FILE_NAMES = (
    "pom.xml",
    "pom.atom",
    "pom.clj",
    "pom.groovy",
    "pom.rb",
    "pom.scala",
    "pom.yml",
)
MAVEN_WRAPPER_FILE_NAMES = ("mvnw", "mvnw.cmd")

PropertySource = Mapping[str, str] | Callable[[], Mapping[str, str]]


class BuildTool(ABC):
    """A tool able to build a checked-out project."""

    @abstractmethod
    def can_build(self, directory: Path) -> bool:
        """Tell whether this tool can build the project in ``directory``."""

    @abstractmethod
    def set_versions(self, request: BuildRequest) -> None:
        """Rewrite the project version to ``request.src_version``."""

    @abstractmethod
    def build(self, request: BuildRequest) -> None:
        """Build the project."""


def select_build_tool(tools: Iterable[BuildTool], directory: Path) -> BuildTool:
    """Select the first tool able to build ``directory``.

    Raises:
        NoBuildToolError: If no tool can build the directory.
    """
    for tool in tools:
        if tool.can_build(directory):
            logger.info("Selected build tool %s for %s", type(tool).__name__, directory)
            return tool
    raise NoBuildToolError(directory)


class ShellBuildTool(BuildTool):
    """Base for build tools driven by an executable.

    Args:
        executable: The program run for builds and version changes.
        default_args: Arguments used when the request asks for defaults.
        properties: Where forwarded properties are looked up, either a
            mapping or a callable returning one. Defaults to the environment
            of the current process at build time.
        poll_interval: Poll interval passed to the runner, in seconds.
    """

    def __init__(
        self,
        executable: str,
        default_args: Sequence[str] = (),
        properties: PropertySource | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.executable = executable
        self.default_args = tuple(default_args)
        self._properties = properties
        self.poll_interval = poll_interval

    def get_executable(self, request: BuildRequest) -> str:
        return self.executable

    def get_default_build_arguments(self) -> list[str]:
        return list(self.default_args)

    def get_verbosity_arguments(self, verbosity: Verbosity) -> list[str]:
        return []

    def get_skip_tests_arguments(self, skip_tests: bool) -> list[str]:
        return []

    @abstractmethod
    def get_set_versions_arguments(self, request: BuildRequest) -> list[str]:
        """Return the arguments rewriting the project version."""

    def properties(self) -> Mapping[str, str]:
        """Return the current property source."""
        if self._properties is None:
            return dict(os.environ)
        if callable(self._properties):
            return self._properties()
        return self._properties

    def get_forward_properties_arguments(
        self, forward_properties: Sequence[str]
    ) -> list[str]:
        """Expand forwarded property names to ``-D`` arguments.

        A name ending with ``*`` forwards every property starting with the
        text before the star. Names without a value are skipped.
        """
        properties = self.properties()
        result: list[str] = []
        for name in forward_properties:
            if name.endswith("*"):
                prefix = name[:-1]
                for key in sorted(properties):
                    if key.startswith(prefix):
                        result.append(f"-D{key}={properties[key]}")
            elif name in properties:
                result.append(f"-D{name}={properties[name]}")
        result.append(f"-D{FORWARD_PROPERTIES_PROPERTY}={','.join(forward_properties)}")
        return result

    def merge_arguments(self, request: BuildRequest) -> list[str]:
        """Compose the full argument list of a build."""
        result: list[str] = []
        if request.add_default_build_arguments:
            result.extend(self.get_default_build_arguments())
        result.extend(request.build_arguments)
        result.extend(self.get_verbosity_arguments(request.verbosity))
        result.extend(self.get_skip_tests_arguments(request.skip_tests))
        result.extend(self.get_forward_properties_arguments(request.forward_properties))
        return result

    def _run(self, request: BuildRequest, arguments: Sequence[str], stage: str) -> None:
        command = ShellCommand(
            executable=self.get_executable(request),
            arguments=arguments,
            working_directory=request.project_root_directory,
            environment=request.build_environment,
            io_redirects=request.io_redirects,
            timeout_ms=request.timeout_ms,
        )
        try:
            run_command(command, poll_interval=self.poll_interval)
        except NonZeroExitError as e:
            raise BuildFailedError(
                f"{stage} of [{request.src_version}] in "
                f"[{request.project_root_directory}] failed with exit code {e.exit_code}",
                exit_code=e.exit_code,
            ) from e

    def set_versions(self, request: BuildRequest) -> None:
        logger.info("Setting version %s in %s", request.src_version, request.project_root_directory)
        self._run(request, self.get_set_versions_arguments(request), "Setting version")

    def build(self, request: BuildRequest) -> None:
        logger.info("Building %s in %s", request.src_version, request.project_root_directory)
        self._run(request, self.merge_arguments(request), "Build")


def has_pom(directory: Path) -> bool:
    """Tell whether ``directory`` holds a Maven project descriptor."""
    return any((directory / name).exists() for name in MAVEN_POM_FILE_NAMES)


def has_wrapper(directory: Path) -> bool:
    """Tell whether ``directory`` holds a Maven wrapper script."""
    return any((directory / name).exists() for name in MAVEN_WRAPPER_FILE_NAMES)


class AbstractMavenBuildTool(ShellBuildTool):
    """Arguments shared by the Maven tools."""

    def __init__(
        self,
        executable: str,
        properties: PropertySource | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        super().__init__(
            executable,
            default_args=MAVEN_DEFAULT_ARGS,
            properties=properties,
            poll_interval=poll_interval,
        )

    def get_verbosity_arguments(self, verbosity: Verbosity) -> list[str]:
        if verbosity in (Verbosity.TRACE, Verbosity.DEBUG):
            return ["--debug"]
        if verbosity in (Verbosity.WARN, Verbosity.ERROR):
            return ["--quiet"]
        return []

    def get_skip_tests_arguments(self, skip_tests: bool) -> list[str]:
        return list(MAVEN_SKIP_TESTS_ARGS) if skip_tests else []

    def get_set_versions_arguments(self, request: BuildRequest) -> list[str]:
        return [
            "versions:set",
            f"-DnewVersion={request.src_version.raw}",
            "-DgenerateBackupPoms=false",
        ]


class MavenBuildTool(AbstractMavenBuildTool):
    """Builds Maven projects with the ``mvn`` found on PATH."""

    def __init__(
        self,
        properties: PropertySource | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        executable = "mvn.cmd" if os.name == "nt" else "mvn"
        super().__init__(executable, properties=properties, poll_interval=poll_interval)

    def can_build(self, directory: Path) -> bool:
        return has_pom(directory) and not has_wrapper(directory)


class MavenWrapperBuildTool(AbstractMavenBuildTool):
    """Builds Maven projects with their own ``mvnw`` wrapper."""

    def __init__(
        self,
        properties: PropertySource | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        executable = "mvnw.cmd" if os.name == "nt" else "mvnw"
        super().__init__(executable, properties=properties, poll_interval=poll_interval)

    def can_build(self, directory: Path) -> bool:
        return has_pom(directory) and has_wrapper(directory)

    def get_executable(self, request: BuildRequest) -> str:
        return str(request.project_root_directory / self.executable)


__all__ = [
    "FORWARD_PROPERTIES_PROPERTY",
    "BuildTool",
    "MavenBuildTool",
    "MavenWrapperBuildTool",
    "ShellBuildTool",
    "select_build_tool",
]
