"""Allocation of numbered build workspaces.

Each source repository gets a build home under the sources root. Inside it,
numbered slot directories ``0``, ``1``, ... hold one checkout each, so that
different versions of the same repository can be built concurrently while
builds of the same version reuse (and wait for) a warm workspace.
"""

from __future__ import annotations

import logging
from pathlib import Path

from srcbuild.errors import LockBusyError, LockIOError, NoWorkspaceAvailableError
from srcbuild.fs.locking import PathLock, PathLocker
from srcbuild.fs.paths import CREATE_RETRY_COUNT, ensure_directory_exists
from srcbuild.version import SourceVersion

logger = logging.getLogger(__name__)

DEFAULT_MAX_SLOTS = 256


class BuildDirectoriesManager:
    """Finds and locks a free workspace slot for a build."""

    def __init__(
        self,
        root_directory: Path,
        path_locker: PathLocker[SourceVersion] | PathLocker[object],
        max_slots: int = DEFAULT_MAX_SLOTS,
        create_retries: int = CREATE_RETRY_COUNT,
    ) -> None:
        if max_slots < 1:
            raise ValueError(f"max_slots must be at least 1, got {max_slots}")
        self.root_directory = Path(root_directory)
        self.path_locker = path_locker
        self.max_slots = max_slots
        self.create_retries = create_retries

    def open_build_directory(
        self, project_build_home: Path, src_version: SourceVersion
    ) -> PathLock:
        """Lock the first available slot of a project build home.

        Slots are tried in ascending order. A slot last used for the same
        version is waited for; a slot busy with another version is skipped.

        Args:
            project_build_home: Build home relative to the root directory.
            src_version: The version going to be built.

        Returns:
            A PathLock over the slot directory.

        Raises:
            NoWorkspaceAvailableError: If no slot can be locked.
            DirectoryCreateError: If the build home cannot be created.
        """
        scm_repository_dir = self.root_directory / project_build_home
        ensure_directory_exists(scm_repository_dir, self.create_retries)

        last_error: LockBusyError | LockIOError | None = None
        for slot in range(self.max_slots):
            checkout_dir = scm_repository_dir / str(slot)
            try:
                lock = self.path_locker.lock_directory(checkout_dir, src_version)
            except (LockBusyError, LockIOError) as e:
                last_error = e
                logger.debug("Could not lock slot %s: %s", checkout_dir, e)
                continue
            logger.info("Using workspace %s for %s", checkout_dir, src_version)
            return lock

        raise NoWorkspaceAvailableError(
            f"Could not lock any of 0-{self.max_slots - 1} subpaths of "
            f"[{scm_repository_dir}]"
        ) from last_error


__all__ = ["DEFAULT_MAX_SLOTS", "BuildDirectoriesManager"]
