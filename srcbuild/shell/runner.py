"""Runner for external commands.

This module handles:
- Describing a command (executable, arguments, working directory,
  environment overlay, redirects, timeout)
- Spawning it with subprocess and the requested stream redirects
- Enforcing the timeout by polling, terminating the child on expiry
- Terminating running children and their descendants when the call is
  interrupted or the interpreter exits
"""

from __future__ import annotations

import atexit
import functools
import logging
import os
import shlex
import signal
import subprocess
import time
from collections.abc import Mapping, Sequence
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from types import FrameType, MappingProxyType
from typing import IO, Any

from srcbuild.errors import NonZeroExitError, ProcessStartError, ProcessTimeoutError
from srcbuild.shell.redirects import IoRedirects, Redirect
from srcbuild.types import RedirectScheme

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5 * 60 * 1000
DEFAULT_POLL_INTERVAL = 0.1
# Seconds a terminated child gets before it is killed
TERMINATE_GRACE = 0.5
# Characters of captured output quoted in error messages
OUTPUT_TAIL_CHARS = 2000


@dataclass(frozen=True)
class ShellCommand:
    """An external command to execute.

    Attributes:
        executable: Program to run, resolved against PATH when not a path.
        arguments: Arguments passed after the executable.
        working_directory: Directory the command runs in.
        environment: Variables added to (or overwriting) the current environment.
        io_redirects: Redirects of stdin, stdout and stderr.
        timeout_ms: Milliseconds the command may run before it is terminated.
        capture_output: Pipe stdout (and merged stderr) into the result.
    """

    executable: str
    arguments: Sequence[str]
    working_directory: Path
    environment: Mapping[str, str] = field(default_factory=dict)
    io_redirects: IoRedirects = field(default_factory=IoRedirects.inherit_all)
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    capture_output: bool = False

    def __post_init__(self) -> None:
        if not self.executable:
            raise ValueError("executable cannot be empty")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "working_directory", Path(self.working_directory))
        object.__setattr__(
            self, "environment", MappingProxyType(dict(self.environment))
        )

    def as_cmd_list(self) -> list[str]:
        """Return the executable followed by the arguments."""
        return [self.executable, *self.arguments]

    def __str__(self) -> str:
        return shlex.join(self.as_cmd_list())


@dataclass(frozen=True)
class CommandResult:
    """Result of a finished command.

    Attributes:
        command: The executed command line.
        exit_code: Process exit code.
        output: Captured output when the command captured it, else None.
    """

    command: tuple[str, ...]
    exit_code: int
    output: str | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def assert_success(self) -> CommandResult:
        """Return self if the command succeeded.

        Raises:
            NonZeroExitError: If the exit code is not zero.
        """
        if self.exit_code != 0:
            message = f"Command {shlex.join(self.command)} exited with code {self.exit_code}"
            if self.output:
                message += f":\n{self.output[-OUTPUT_TAIL_CHARS:]}"
            raise NonZeroExitError(
                message,
                command=self.command,
                exit_code=self.exit_code,
                output=self.output,
            )
        return self


def _open_redirect(stack: ExitStack, redirect: Redirect) -> Any:
    """Translate a Redirect to a subprocess stream argument."""
    if redirect.scheme is RedirectScheme.INHERIT:
        return None
    if redirect.scheme is RedirectScheme.ERR2OUT:
        return subprocess.STDOUT

    if redirect.path is None:
        raise ValueError(f"Redirect [{redirect.scheme.value}] requires a path")
    if redirect.scheme is RedirectScheme.READ:
        handle: IO[bytes] = redirect.path.open("rb")
    elif redirect.scheme is RedirectScheme.WRITE:
        handle = redirect.path.open("wb")
    else:
        handle = redirect.path.open("ab")
    return stack.enter_context(handle)


def _signal_group(process: subprocess.Popen[Any], sig: signal.Signals) -> None:
    """Send a signal to the process group led by the child."""
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        # Every member has already exited
        pass


def _destroy(process: subprocess.Popen[Any]) -> None:
    """Terminate the child and its descendants, killing what does not exit.

    Children run in their own session, so the child's pid is also the id
    of the process group holding every descendant that did not leave it.
    """
    logger.debug("Terminating process group %d", process.pid)
    _signal_group(process, signal.SIGTERM)
    try:
        process.wait(timeout=TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        logger.debug("Killing process group %d", process.pid)
    _signal_group(process, signal.SIGKILL)


def _reap(process: subprocess.Popen[Any]) -> None:
    """Collect a destroyed child and close its pipes without blocking for long."""
    try:
        process.communicate(timeout=TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        logger.warning("Process %d still holds its pipes open; closing them", process.pid)
        for stream in (process.stdin, process.stdout, process.stderr):
            if stream is not None:
                stream.close()
        process.wait(timeout=TERMINATE_GRACE)


def _raise_system_exit(signum: int, frame: FrameType | None) -> None:
    raise SystemExit(128 + signum)


def install_termination_handler() -> None:
    """Turn SIGTERM into SystemExit so running children get destroyed.

    Must be called from the main thread.
    """
    signal.signal(signal.SIGTERM, _raise_system_exit)


def _wait_for(
    process: subprocess.Popen[Any],
    timeout_ms: int,
    poll_interval: float,
) -> str | None:
    """Wait for the process to exit, polling at most every poll_interval seconds.

    Returns:
        Captured stdout, if any.

    Raises:
        subprocess.TimeoutExpired: If the deadline passes first.
    """
    deadline = time.monotonic() + timeout_ms / 1000
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise subprocess.TimeoutExpired(process.args, timeout_ms / 1000)
        try:
            stdout, _ = process.communicate(timeout=min(remaining, poll_interval))
            return stdout
        except subprocess.TimeoutExpired:
            continue


def run_command(
    command: ShellCommand,
    check: bool = True,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> CommandResult:
    """Execute a command synchronously.

    Args:
        command: The command to execute.
        check: Raise NonZeroExitError if the command exits with non-zero code.
        poll_interval: Upper bound in seconds between liveness checks.

    Returns:
        CommandResult with the exit code and any captured output.

    Raises:
        ProcessStartError: If the command cannot be spawned.
        ProcessTimeoutError: If the command outlives its timeout.
        NonZeroExitError: If ``check`` and the exit code is not zero.
    """
    poll_interval = min(poll_interval, DEFAULT_POLL_INTERVAL)
    cmd = command.as_cmd_list()
    cmd_str = shlex.join(cmd)
    logger.info("Executing command: %s", cmd_str)
    logger.debug("Working directory: %s", command.working_directory)

    env: dict[str, str] | None = None
    if command.environment:
        env = dict(os.environ)
        env.update(command.environment)

    redirects = command.io_redirects
    with ExitStack() as stack:
        try:
            stdin = _open_redirect(stack, redirects.stdin)
            stdout = (
                subprocess.PIPE
                if command.capture_output
                else _open_redirect(stack, redirects.stdout)
            )
            stderr = _open_redirect(stack, redirects.stderr)
            process = subprocess.Popen(
                cmd,
                cwd=command.working_directory,
                env=env,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                text=command.capture_output,
                errors="replace" if command.capture_output else None,
                start_new_session=True,
            )
        except OSError as e:
            raise ProcessStartError(
                f"Could not start command [{cmd_str}]: {e}", command=cmd
            ) from e

        hook = functools.partial(_destroy, process)
        atexit.register(hook)
        try:
            output = _wait_for(process, command.timeout_ms, poll_interval)
        except subprocess.TimeoutExpired as e:
            _destroy(process)
            _reap(process)
            message = f"Command has not finished within [{command.timeout_ms}] ms: {cmd_str}"
            logger.error(message)
            raise ProcessTimeoutError(
                message, command=cmd, timeout_ms=command.timeout_ms
            ) from e
        except BaseException:
            _destroy(process)
            _reap(process)
            raise
        finally:
            atexit.unregister(hook)

    result = CommandResult(command=tuple(cmd), exit_code=process.returncode, output=output)
    logger.debug("Command %s exited with code %d", cmd_str, result.exit_code)
    if check:
        result.assert_success()
    return result


__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "CommandResult",
    "ShellCommand",
    "install_termination_handler",
    "run_command",
]
