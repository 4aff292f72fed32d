"""Tests for shell/runner.py module.

Runs small Python programs through sys.executable so that the tests need
no other external tools.
"""

import os
import signal
import subprocess
import sys
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from srcbuild.errors import NonZeroExitError, ProcessStartError, ProcessTimeoutError
from srcbuild.shell.redirects import IoRedirects, Redirect
from srcbuild.shell.runner import CommandResult, ShellCommand, run_command


ROOT = Path(__file__).resolve().parents[1]

# Records its pid atomically, then sleeps
SLEEPER = (
    "import os, time; from pathlib import Path; "
    "Path('child.tmp').write_text(str(os.getpid())); "
    "os.replace('child.tmp', 'child.pid'); time.sleep(30)"
)

# Starts a grandchild sharing stdout, records its pid, then sleeps
SPAWNER = (
    "import os, subprocess, sys, time; from pathlib import Path; "
    "p = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)']); "
    "Path('child.tmp').write_text(str(p.pid)); "
    "os.replace('child.tmp', 'child.pid'); time.sleep(30)"
)

# Runs argv[1] as a child with SIGTERM turned into SystemExit
PARENT = """
import sys
from pathlib import Path
from srcbuild.shell.runner import ShellCommand, install_termination_handler, run_command
install_termination_handler()
run_command(ShellCommand(sys.executable, ["-c", sys.argv[1]], Path.cwd()))
"""


def python_command(tmp_path: Path, code: str, **kwargs) -> ShellCommand:
    """Create a command running a Python snippet in tmp_path."""
    return ShellCommand(
        executable=sys.executable,
        arguments=["-c", code],
        working_directory=tmp_path,
        **kwargs,
    )


def wait_for_pid(path: Path, timeout: float = 10.0) -> int:
    """Wait for a pid file written by a test program and return the pid."""
    deadline = time.monotonic() + timeout
    while not path.exists():
        assert time.monotonic() < deadline, f"{path} was never written"
        time.sleep(0.05)
    return int(path.read_text())


def is_alive(pid: int) -> bool:
    """Tell whether a process exists and is not a zombie."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    try:
        status = Path(f"/proc/{pid}/status").read_text()
    except FileNotFoundError:
        return False
    return "\nState:\tZ" not in status


def wait_until_gone(pid: int, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while is_alive(pid):
        if time.monotonic() > deadline:
            return False
        time.sleep(0.05)
    return True


class TestShellCommand:
    """Tests for ShellCommand."""

    def test_cmd_list(self, tmp_path: Path) -> None:
        """Should put the executable before the arguments."""
        command = ShellCommand("mvn", ["clean", "install"], tmp_path)
        assert command.as_cmd_list() == ["mvn", "clean", "install"]
        assert str(command) == "mvn clean install"

    def test_frozen_collections(self, tmp_path: Path) -> None:
        """Arguments and environment should not be mutable after creation."""
        args = ["a"]
        env = {"K": "V"}
        command = ShellCommand("echo", args, tmp_path, environment=env)
        args.append("b")
        env["K2"] = "V2"
        assert command.arguments == ("a",)
        assert dict(command.environment) == {"K": "V"}
        with pytest.raises(TypeError):
            command.environment["X"] = "Y"  # type: ignore[index]

    def test_invalid_timeout(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            ShellCommand("echo", [], tmp_path, timeout_ms=0)


class TestRunCommand:
    """Tests for run_command."""

    def test_success_with_captured_output(self, tmp_path: Path) -> None:
        """Should capture stdout and report exit code 0."""
        result = run_command(
            python_command(tmp_path, "print('hello')", capture_output=True)
        )
        assert result.success
        assert result.exit_code == 0
        assert result.output is not None
        assert result.output.strip() == "hello"

    def test_working_directory(self, tmp_path: Path) -> None:
        """Should run in the working directory."""
        result = run_command(
            python_command(tmp_path, "import os; print(os.getcwd())", capture_output=True)
        )
        assert Path(result.output.strip()).resolve() == tmp_path.resolve()

    def test_environment_overlay(self, tmp_path: Path, monkeypatch) -> None:
        """Should add variables on top of the current environment."""
        monkeypatch.setenv("SRCBUILD_TEST_INHERITED", "parent")
        code = (
            "import os; print(os.environ['SRCBUILD_TEST_INHERITED'], "
            "os.environ['SRCBUILD_TEST_ADDED'])"
        )
        result = run_command(
            python_command(
                tmp_path,
                code,
                environment={"SRCBUILD_TEST_ADDED": "child"},
                capture_output=True,
            )
        )
        assert result.output.split() == ["parent", "child"]

    def test_non_zero_exit_raises(self, tmp_path: Path) -> None:
        """Should raise NonZeroExitError quoting the output."""
        code = "import sys; print('something broke'); sys.exit(3)"
        with pytest.raises(NonZeroExitError) as exc_info:
            run_command(python_command(tmp_path, code, capture_output=True))
        assert exc_info.value.exit_code == 3
        assert exc_info.value.code == "non_zero_exit"
        assert "something broke" in str(exc_info.value)

    def test_non_zero_exit_without_check(self, tmp_path: Path) -> None:
        """Should return the result when check is disabled."""
        result = run_command(
            python_command(tmp_path, "import sys; sys.exit(2)"), check=False
        )
        assert not result.success
        assert result.exit_code == 2

    def test_start_error(self, tmp_path: Path) -> None:
        """Should raise ProcessStartError for a missing executable."""
        command = ShellCommand("srcbuild-no-such-executable", [], tmp_path)
        with pytest.raises(ProcessStartError) as exc_info:
            run_command(command)
        assert exc_info.value.command == ["srcbuild-no-such-executable"]

    def test_timeout(self, tmp_path: Path) -> None:
        """Should terminate the process after the timeout."""
        command = python_command(tmp_path, "import time; time.sleep(30)", timeout_ms=300)
        start = time.monotonic()
        with pytest.raises(ProcessTimeoutError) as exc_info:
            run_command(command)
        elapsed = time.monotonic() - start
        assert exc_info.value.timeout_ms == 300
        assert "300" in str(exc_info.value)
        # Timeout plus polling and termination grace, far below the sleep
        assert elapsed < 5

    def test_timeout_with_descendant_holding_output(self, tmp_path: Path) -> None:
        """A grandchild keeping the output pipe open should not extend the timeout."""
        command = python_command(tmp_path, SPAWNER, timeout_ms=1000, capture_output=True)
        start = time.monotonic()
        with pytest.raises(ProcessTimeoutError):
            run_command(command)
        elapsed = time.monotonic() - start
        assert elapsed < 6
        grandchild = wait_for_pid(tmp_path / "child.pid")
        assert wait_until_gone(grandchild)

    def test_interrupt_destroys_child(self, tmp_path: Path) -> None:
        """An exception while waiting should terminate the child before propagating."""

        def interrupt_once_started(*args) -> None:
            wait_for_pid(tmp_path / "child.pid")
            raise KeyboardInterrupt

        with patch("srcbuild.shell.runner._wait_for", side_effect=interrupt_once_started):
            with pytest.raises(KeyboardInterrupt):
                run_command(python_command(tmp_path, SLEEPER))
        assert wait_until_gone(wait_for_pid(tmp_path / "child.pid"))

    def test_sigterm_destroys_child(self, tmp_path: Path) -> None:
        """SIGTERM to the calling process should take the running child down too."""
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(
            p for p in (str(ROOT), env.get("PYTHONPATH", "")) if p
        )
        parent = subprocess.Popen(
            [sys.executable, "-c", PARENT, SLEEPER], cwd=tmp_path, env=env
        )
        try:
            child = wait_for_pid(tmp_path / "child.pid")
            parent.send_signal(signal.SIGTERM)
            assert parent.wait(timeout=10) == 128 + signal.SIGTERM
        finally:
            if parent.poll() is None:
                parent.kill()
                parent.wait()
        assert wait_until_gone(child)

    def test_redirect_write_and_err2out(self, tmp_path: Path) -> None:
        """Should write stdout and merged stderr to a file."""
        log = tmp_path / "build.log"
        code = "import sys; print('out'); sys.stdout.flush(); print('err', file=sys.stderr)"
        run_command(
            python_command(
                tmp_path,
                code,
                io_redirects=IoRedirects(stdout=Redirect.write(log), stderr=Redirect.err2out()),
            )
        )
        assert log.read_text().split() == ["out", "err"]

    def test_redirect_append(self, tmp_path: Path) -> None:
        """Should append to an existing file."""
        log = tmp_path / "build.log"
        log.write_text("first\n")
        run_command(
            python_command(
                tmp_path,
                "print('second')",
                io_redirects=IoRedirects(stdout=Redirect.append(log)),
            )
        )
        assert log.read_text().split() == ["first", "second"]

    def test_redirect_stdin(self, tmp_path: Path) -> None:
        """Should read stdin from a file."""
        source = tmp_path / "in.txt"
        source.write_text("from file")
        result = run_command(
            python_command(
                tmp_path,
                "import sys; print(sys.stdin.read().upper())",
                io_redirects=IoRedirects(stdin=Redirect.read(source)),
                capture_output=True,
            )
        )
        assert result.output.strip() == "FROM FILE"

    def test_redirect_without_path(self, tmp_path: Path) -> None:
        """A file redirect that lost its path should be rejected, not opened."""
        redirect = Redirect.write(tmp_path / "out.log")
        object.__setattr__(redirect, "path", None)
        with pytest.raises(ValueError, match="requires a path"):
            run_command(
                python_command(tmp_path, "pass", io_redirects=IoRedirects(stdout=redirect))
            )


class TestCommandResult:
    """Tests for CommandResult."""

    def test_assert_success_returns_self(self) -> None:
        result = CommandResult(command=("true",), exit_code=0)
        assert result.assert_success() is result

    def test_assert_success_tail(self) -> None:
        """Should quote only the tail of long output."""
        output = "x" * 5000 + "END"
        result = CommandResult(command=("false",), exit_code=1, output=output)
        with pytest.raises(NonZeroExitError) as exc_info:
            result.assert_success()
        message = str(exc_info.value)
        assert message.endswith("END")
        assert len(message) < 2200
        assert exc_info.value.output == output
