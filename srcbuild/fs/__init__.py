"""Filesystem coordination.

This module handles:
- Retrying directory creation
- Thread and process level locking of paths
- Allocation of numbered workspace slots
"""

from srcbuild.fs.locking import PathLock, PathLocker, default_path_locker
from srcbuild.fs.paths import ensure_directory_exists, ensure_directory_exists_and_empty
from srcbuild.fs.workspaces import BuildDirectoriesManager

__all__ = [
    "BuildDirectoriesManager",
    "PathLock",
    "PathLocker",
    "default_path_locker",
    "ensure_directory_exists",
    "ensure_directory_exists_and_empty",
]
