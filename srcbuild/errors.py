"""Error definitions for srcbuild.

Every error raised by the engine derives from SrcBuildError and carries a
stable ``code`` string that callers (the CLI, batch results) can surface
without parsing messages.
"""

from __future__ import annotations

from collections.abc import Sequence

# Error code constants
MALFORMED_VERSION = "malformed_version"
LOCK_BUSY = "lock_busy"
LOCK_IO = "lock_io"
DIRECTORY_CREATE = "directory_create"
NO_WORKSPACE = "no_workspace"
PROCESS_START = "process_start"
PROCESS_TIMEOUT = "process_timeout"
NON_ZERO_EXIT = "non_zero_exit"
SCM_ERROR = "scm_error"
NO_PROVIDER = "no_provider"
NO_BUILD_TOOL = "no_build_tool"
BUILD_FAILED = "build_failed"
REPOSITORY_NOT_FOUND = "repository_not_found"
CONFIGURATION_ERROR = "configuration_error"


class SrcBuildError(Exception):
    """Base error for all srcbuild operations."""

    def __init__(self, message: str, code: str = "srcbuild_error") -> None:
        super().__init__(message)
        self.code = code


class MalformedVersionError(SrcBuildError, ValueError):
    """Raised when a source version string cannot be parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=MALFORMED_VERSION)


class LockBusyError(SrcBuildError):
    """Raised when a path is locked by another thread or process."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=LOCK_BUSY)


class LockIOError(SrcBuildError):
    """Raised when the filesystem level lock fails for a reason other than contention."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=LOCK_IO)


class DirectoryCreateError(SrcBuildError):
    """Raised when a directory cannot be created after retrying."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=DIRECTORY_CREATE)


class NoWorkspaceAvailableError(SrcBuildError):
    """Raised when every workspace slot of a project is locked."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=NO_WORKSPACE)


class CommandError(SrcBuildError):
    """Base error for external command execution failures.

    Attributes:
        command: The command line that failed, executable first.
    """

    def __init__(self, message: str, command: Sequence[str], code: str) -> None:
        super().__init__(message, code=code)
        self.command = list(command)


class ProcessStartError(CommandError):
    """Raised when a command cannot be spawned."""

    def __init__(self, message: str, command: Sequence[str]) -> None:
        super().__init__(message, command, code=PROCESS_START)


class ProcessTimeoutError(CommandError):
    """Raised when a command does not finish within its timeout."""

    def __init__(self, message: str, command: Sequence[str], timeout_ms: int) -> None:
        super().__init__(message, command, code=PROCESS_TIMEOUT)
        self.timeout_ms = timeout_ms


class NonZeroExitError(CommandError):
    """Raised when a command exits with a non-zero code."""

    def __init__(
        self,
        message: str,
        command: Sequence[str],
        exit_code: int,
        output: str | None = None,
    ) -> None:
        super().__init__(message, command, code=NON_ZERO_EXIT)
        self.exit_code = exit_code
        self.output = output


class ScmError(SrcBuildError):
    """Raised when sources cannot be checked out."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message, code=SCM_ERROR)
        self.url = url


class NoProviderError(SrcBuildError):
    """Raised when no source provider supports a URL."""

    def __init__(self, url: str) -> None:
        super().__init__(f"No source provider found for URL [{url}]", code=NO_PROVIDER)
        self.url = url


class NoBuildToolError(SrcBuildError):
    """Raised when no build tool can build a directory."""

    def __init__(self, directory: object) -> None:
        super().__init__(
            f"No build tool found for directory [{directory}]", code=NO_BUILD_TOOL
        )
        self.directory = directory


class BuildFailedError(SrcBuildError):
    """Raised when the build tool reports a failure."""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message, code=BUILD_FAILED)
        self.exit_code = exit_code


class RepositoryNotFoundError(SrcBuildError):
    """Raised when no configured repository matches a dependency."""

    def __init__(self, group_id: str) -> None:
        super().__init__(
            f"No source repository configured for groupId [{group_id}]",
            code=REPOSITORY_NOT_FOUND,
        )
        self.group_id = group_id


class ConfigurationError(SrcBuildError):
    """Raised when a configuration file cannot be loaded or validated."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=CONFIGURATION_ERROR)


__all__ = [
    "BuildFailedError",
    "CommandError",
    "ConfigurationError",
    "DirectoryCreateError",
    "LockBusyError",
    "LockIOError",
    "MalformedVersionError",
    "NoBuildToolError",
    "NoProviderError",
    "NoWorkspaceAvailableError",
    "NonZeroExitError",
    "ProcessStartError",
    "ProcessTimeoutError",
    "RepositoryNotFoundError",
    "ScmError",
    "SrcBuildError",
]
