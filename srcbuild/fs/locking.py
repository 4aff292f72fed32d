"""Exclusive locking of filesystem paths.

A path is locked on two levels:

1. Thread level - an in-process mutex per path, shared by all threads of
   the current process through the PathLocker registry.
2. Process level - an advisory ``flock`` on the sibling ``<path>.lock``
   file, which keeps other processes on the same machine away.

The flock is held per open file description, so two threads of one process
would each get their own and could starve each other; the thread level
mutex serializes them first.

Each path remembers the metadata (typically the source version) of its last
holder. A caller asking for the same metadata waits for the current holder;
a caller asking for different metadata fails immediately with
LockBusyError so that it can try another path.
"""

from __future__ import annotations

import fcntl
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, TypeVar

from srcbuild.errors import LockBusyError, LockIOError
from srcbuild.fs.paths import CREATE_RETRY_COUNT, ensure_directory_exists

logger = logging.getLogger(__name__)

M = TypeVar("M")


@dataclass
class _LockEntry(Generic[M]):
    """Thread level lock of one path and the metadata of its last holder."""

    metadata: M | None
    lock: threading.RLock = field(default_factory=threading.RLock)
    guard: threading.Lock = field(default_factory=threading.Lock)


def lock_file_path(path: Path) -> Path:
    """Return the ``<name>.lock`` sibling of ``path``."""
    return path.with_name(path.name + ".lock")


class PathLock:
    """Exclusive holdership of a path.

    Release it with close() or use it as a context manager. The lock must be
    released on the thread that acquired it.
    """

    def __init__(
        self,
        path: Path,
        fd: int,
        lock_file: Path,
        thread_lock: threading.RLock,
    ) -> None:
        self._path = path
        self._fd = fd
        self._lock_file = lock_file
        self._thread_lock = thread_lock
        self._closed = False

    @property
    def path(self) -> Path:
        """The locked path."""
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the filesystem lock, then the thread level lock."""
        if self._closed:
            return
        self._closed = True
        _close_fd(self._fd, self._lock_file)
        self._thread_lock.release()
        logger.debug("Unlocked %s", self._path)

    def __enter__(self) -> PathLock:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "held"
        return f"PathLock({str(self._path)!r}, {state})"


def _close_fd(fd: int | None, lock_file: Path) -> None:
    """Unlock and close a lock file, logging rather than raising I/O errors."""
    if fd is None:
        return
    try:
        fcntl.flock(fd, fcntl.LOCK_UN)
    except OSError as e:
        logger.warning("Could not unlock lock file [%s]: %s", lock_file, e)
    try:
        os.close(fd)
    except OSError as e:
        logger.warning("Could not close lock file [%s]: %s", lock_file, e)


class PathLocker(Generic[M]):
    """Registry granting exclusive access to paths.

    Entries are never removed; the set of workspace paths of a process is
    small and bounded.
    """

    def __init__(self, create_retries: int = CREATE_RETRY_COUNT) -> None:
        self._entries: dict[Path, _LockEntry[M]] = {}
        self._registry_lock = threading.Lock()
        self._create_retries = create_retries

    def _entry(self, path: Path, metadata: M | None) -> _LockEntry[M]:
        with self._registry_lock:
            entry = self._entries.get(path)
            if entry is None:
                entry = _LockEntry(metadata=metadata)
                self._entries[path] = entry
            return entry

    @staticmethod
    def _key(path: Path) -> Path:
        return Path(os.path.normpath(os.path.abspath(path)))

    def lock_directory(self, path: Path, metadata: M) -> PathLock:
        """Lock a directory, creating it if needed.

        Blocks only while another thread of this process holds ``path`` for
        equal ``metadata``.

        Args:
            path: Directory to lock.
            metadata: What the caller is going to use the directory for.

        Returns:
            A PathLock whose holder has exclusive access to ``path``.

        Raises:
            LockBusyError: If the path is held for different metadata or by
                another process.
            LockIOError: If the lock file cannot be opened or locked.
            DirectoryCreateError: If the directory cannot be created.
        """
        path = self._key(path)
        ensure_directory_exists(path, self._create_retries)
        entry = self._entry(path, metadata)

        with entry.guard:
            previous = entry.metadata
            same_metadata = previous == metadata
            if not same_metadata:
                # Change the metadata only if the path is free right now
                if not entry.lock.acquire(blocking=False):
                    raise LockBusyError(
                        f"Path [{path}] is locked by another thread for [{previous}]"
                    )
                entry.metadata = metadata

        if same_metadata:
            logger.debug("Waiting for thread level lock on %s", path)
            entry.lock.acquire()
            with entry.guard:
                entry.metadata = metadata

        logger.debug("Locked on thread level %s", path)
        try:
            return self._lock_in_filesystem(path, entry.lock)
        except (LockBusyError, LockIOError):
            # Still owned here, so no other thread can have changed it
            with entry.guard:
                entry.metadata = previous
            entry.lock.release()
            raise

    def try_lock_directory(self, path: Path) -> PathLock:
        """Lock a directory without ever blocking.

        Raises:
            LockBusyError: If the path is held by another thread or process.
            LockIOError: If the lock file cannot be opened or locked.
            DirectoryCreateError: If the directory cannot be created.
        """
        path = self._key(path)
        ensure_directory_exists(path, self._create_retries)
        entry = self._entry(path, None)
        if not entry.lock.acquire(blocking=False):
            raise LockBusyError(f"Path [{path}] is locked by another thread")
        logger.debug("Locked on thread level %s", path)
        try:
            return self._lock_in_filesystem(path, entry.lock)
        except (LockBusyError, LockIOError):
            entry.lock.release()
            raise

    def _lock_in_filesystem(self, path: Path, thread_lock: threading.RLock) -> PathLock:
        """Take the flock of ``path``; the caller releases ``thread_lock`` on failure."""
        lock_file = lock_file_path(path)
        fd: int | None = None
        try:
            fd = os.open(str(lock_file), os.O_RDWR | os.O_CREAT, 0o644)
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            # Held by another process, or by another PathLock of this thread
            _close_fd(fd, lock_file)
            raise LockBusyError(
                f"Could not acquire filesystem level lock on [{lock_file}]"
            ) from e
        except OSError as e:
            logger.warning("Could not acquire a lock for path [%s]: %s", lock_file, e)
            _close_fd(fd, lock_file)
            raise LockIOError(
                f"Could not acquire filesystem level lock on [{lock_file}]: {e}"
            ) from e

        logger.debug("Locked on filesystem %s with %s", path, lock_file)
        return PathLock(path, fd, lock_file, thread_lock)


_default_locker: PathLocker[object] | None = None
_default_locker_guard = threading.Lock()


def default_path_locker() -> PathLocker[object]:
    """Return the process-wide PathLocker."""
    global _default_locker
    with _default_locker_guard:
        if _default_locker is None:
            _default_locker = PathLocker()
        return _default_locker


__all__ = ["PathLock", "PathLocker", "default_path_locker", "lock_file_path"]
