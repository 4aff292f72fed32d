"""Directory helpers tolerant to transient filesystem errors."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

from srcbuild.errors import DirectoryCreateError

logger = logging.getLogger(__name__)

CREATE_RETRY_COUNT = 256
CREATE_RETRY_PAUSE = 0.01


def ensure_directory_exists(path: Path, retries: int = CREATE_RETRY_COUNT) -> Path:
    """Create a directory and its parents, retrying on transient errors.

    Args:
        path: Directory to create.
        retries: Maximum number of attempts.

    Returns:
        The path.

    Raises:
        DirectoryCreateError: If the directory still does not exist after
            ``retries`` attempts.
    """
    last_error: OSError | None = None
    for _ in range(retries):
        try:
            path.mkdir(parents=True, exist_ok=True)
            if path.is_dir():
                return path
        except PermissionError as e:
            # Concurrent creation of the same tree can briefly deny access
            last_error = e
            time.sleep(CREATE_RETRY_PAUSE)
        except OSError as e:
            last_error = e

    if last_error is not None:
        raise DirectoryCreateError(
            f"Could not create directory [{path}]: {last_error}"
        ) from last_error
    raise DirectoryCreateError(
        f"Could not create directory [{path}] attempting [{retries}] times"
    )


def ensure_directory_exists_and_empty(
    path: Path, retries: int = CREATE_RETRY_COUNT
) -> Path:
    """Create a directory or delete everything inside an existing one."""
    if not path.exists():
        return ensure_directory_exists(path, retries)

    logger.debug("Emptying directory %s", path)
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
    return path


__all__ = [
    "CREATE_RETRY_COUNT",
    "ensure_directory_exists",
    "ensure_directory_exists_and_empty",
]
