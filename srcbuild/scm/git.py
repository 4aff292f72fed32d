"""Git source provider.

Drives the ``git`` executable through the command runner. A workspace
without a repository is cloned; an existing repository is cleaned, fetched
and hard reset, which is much cheaper than cloning again.

Every fetched ref or commit is verified against what the current URL
advertised before the checkout counts as successful, so a ref left over
from another URL never satisfies a request.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from srcbuild.errors import ScmError
from srcbuild.fs.paths import ensure_directory_exists_and_empty
from srcbuild.scm.base import SourceProvider
from srcbuild.shell.redirects import IoRedirects, Redirect
from srcbuild.shell.runner import (
    DEFAULT_POLL_INTERVAL,
    CommandResult,
    ShellCommand,
    run_command,
)
from srcbuild.types import WellKnownType
from srcbuild.version import VersionElement

if TYPE_CHECKING:
    from srcbuild.builds.request import BuildRequest

logger = logging.getLogger(__name__)

SCM_GIT_PREFIX = "git:"
WORKING_BRANCH = "srcbuild-working-branch"
DEFAULT_REMOTE_ALIAS = "origin"

_CAPTURE_REDIRECTS = IoRedirects(stderr=Redirect.err2out())


def remote_alias(index: int) -> str:
    """Return the remote name used for the URL at ``index``."""
    return DEFAULT_REMOTE_ALIAS if index == 0 else f"{DEFAULT_REMOTE_ALIAS}{index}"


def fetch_refspec(element: VersionElement, alias: str) -> str:
    """Return the refspec fetching what ``element`` needs from ``alias``."""
    name = element.version
    version_type = element.well_known_type
    if version_type is WellKnownType.BRANCH:
        return f"+refs/heads/{name}:refs/remotes/{alias}/{name}"
    if version_type is WellKnownType.TAG:
        return f"+refs/tags/{name}:refs/tags/{name}"
    return f"+refs/heads/*:refs/remotes/{alias}/*"


class GitSourceProvider(SourceProvider):
    """Checks out sources from git repositories (``git:`` URLs)."""

    scheme_prefix = SCM_GIT_PREFIX

    def __init__(
        self,
        git_executable: str = "git",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.git_executable = git_executable
        self.poll_interval = poll_interval

    def validate(self, request: BuildRequest) -> None:
        # Raises MalformedVersionError for types git cannot interpret
        request.src_version.primary.well_known_type

    def checkout_url(self, request: BuildRequest, url: str, index: int) -> None:
        directory = request.project_root_directory
        alias = remote_alias(index)
        element = request.src_version.primary
        if self.is_repository(request, directory):
            self.fetch_and_reset(request, directory, url, alias, element)
        else:
            self.clone(request, directory, url, alias, element)

    def _git(
        self,
        request: BuildRequest,
        directory: Path,
        *args: str,
        check: bool = True,
    ) -> CommandResult:
        environment = dict(request.build_environment)
        environment["GIT_TERMINAL_PROMPT"] = "0"
        command = ShellCommand(
            executable=self.git_executable,
            arguments=args,
            working_directory=directory,
            environment=environment,
            io_redirects=_CAPTURE_REDIRECTS,
            timeout_ms=request.timeout_ms,
            capture_output=True,
        )
        return run_command(command, check=check, poll_interval=self.poll_interval)

    def is_repository(self, request: BuildRequest, directory: Path) -> bool:
        """Tell whether ``directory`` is the top level of a valid repository."""
        if not (directory / ".git").is_dir():
            return False
        result = self._git(request, directory, "rev-parse", "--git-dir", check=False)
        return result.success and (result.output or "").strip() == ".git"

    def clone(
        self,
        request: BuildRequest,
        directory: Path,
        url: str,
        alias: str,
        element: VersionElement,
    ) -> None:
        """Clone ``url`` into an emptied ``directory`` and check out ``element``."""
        logger.info("Cloning %s to %s", url, directory)
        try:
            ensure_directory_exists_and_empty(directory)
        except OSError as e:
            raise ScmError(f"Could not empty [{directory}] before cloning: {e}", url=url) from e

        args = ["clone", "--origin", alias]
        if element.well_known_type is WellKnownType.REVISION:
            args.append("--no-checkout")
        else:
            args.extend(["--branch", element.version])
        args.extend([url, str(directory)])
        self._git(request, directory.parent, *args)

        commit = self.verify(request, directory, url, alias, element)
        self._git(request, directory, "checkout", "-B", WORKING_BRANCH, commit)
        self._git(request, directory, "reset", "--hard", commit)

    def fetch_and_reset(
        self,
        request: BuildRequest,
        directory: Path,
        url: str,
        alias: str,
        element: VersionElement,
    ) -> None:
        """Update an existing repository to ``element`` fetched from ``url``."""
        logger.info("Fetching %s from %s into %s", element, url, directory)
        self._git(request, directory, "reset", "--hard")
        self._git(request, directory, "clean", "-ffdx")
        self._git(request, directory, "checkout", "-B", WORKING_BRANCH)
        self.ensure_remote(request, directory, alias, url)

        args = ["fetch", "--force", "--no-tags"]
        if element.well_known_type is WellKnownType.REVISION:
            args.append("--prune")
        args.extend([alias, fetch_refspec(element, alias)])
        self._git(request, directory, *args)

        commit = self.verify(request, directory, url, alias, element)
        self._git(request, directory, "reset", "--hard", commit)

    def ensure_remote(
        self, request: BuildRequest, directory: Path, alias: str, url: str
    ) -> None:
        """Make ``alias`` a remote pointing to ``url``."""
        result = self._git(request, directory, "remote", "get-url", alias, check=False)
        if not result.success:
            self._git(request, directory, "remote", "add", alias, url)
        elif (result.output or "").strip() != url:
            self._git(request, directory, "remote", "set-url", alias, url)

    def verify(
        self,
        request: BuildRequest,
        directory: Path,
        url: str,
        alias: str,
        element: VersionElement,
    ) -> str:
        """Check that ``element`` was fetched from ``url``.

        Returns:
            The full id of the commit to check out.

        Raises:
            ScmError: If the ref or commit did not come from ``url``.
        """
        version_type = element.well_known_type
        if version_type is WellKnownType.BRANCH:
            ref = f"refs/remotes/{alias}/{element.version}"
        elif version_type is WellKnownType.TAG:
            ref = f"refs/tags/{element.version}"
        else:
            ref = element.version

        result = self._git(
            request, directory, "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}",
            check=False,
        )
        commit = (result.output or "").strip()
        if not result.success or not commit:
            raise ScmError(f"Could not find [{ref}] fetched from [{url}]", url=url)

        if version_type is WellKnownType.REVISION:
            # The commit must be reachable from a branch advertised by this URL
            refs = self._git(
                request,
                directory,
                "for-each-ref",
                "--contains",
                commit,
                "--format=%(refname)",
                f"refs/remotes/{alias}/",
            )
            if not (refs.output or "").strip():
                raise ScmError(
                    f"Commit [{commit}] is not reachable from any branch of [{url}]",
                    url=url,
                )

        logger.debug("Verified %s at commit %s from %s", element, commit, url)
        return commit


__all__ = [
    "SCM_GIT_PREFIX",
    "WORKING_BRANCH",
    "GitSourceProvider",
    "fetch_refspec",
    "remote_alias",
]
