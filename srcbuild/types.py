"""Shared type definitions for srcbuild.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class Verbosity(str, Enum):
    """Verbosity requested from the child build."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @classmethod
    def from_name(cls, name: str) -> "Verbosity":
        """Look up a verbosity by its case-insensitive name.

        Raises:
            ValueError: If the name is not a known verbosity.
        """
        try:
            return cls(name.lower())
        except ValueError:
            raise ValueError(f"No such verbosity [{name}]") from None


class WellKnownType(str, Enum):
    """Version types understood by the bundled source providers."""

    BRANCH = "branch"
    REVISION = "revision"
    TAG = "tag"


class RedirectScheme(str, Enum):
    """Schemes of the I/O redirect URI grammar."""

    APPEND = "append"
    ERR2OUT = "err2out"
    INHERIT = "inherit"
    READ = "read"
    WRITE = "write"


class BatchMode(str, Enum):
    """How a batch of builds reacts to a failure."""

    FAIL_FAST = "fail-fast"
    BEST_EFFORT = "best-effort"


@dataclass
class OperationResult:
    """Result of an operation on a single request."""

    success: bool
    message: str
    code: str | None = None
    details: dict[str, object] = field(default_factory=dict)


__all__ = [
    "BatchMode",
    "OperationResult",
    "RedirectScheme",
    "Verbosity",
    "WellKnownType",
]
