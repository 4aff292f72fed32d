"""I/O redirects for external commands.

Redirects are configured with a small URI grammar ``<scheme>[:<path>]``:

- ``read:/path`` - read stdin from a file
- ``write:/path`` - write to a file, truncating it
- ``append:/path`` - append to a file
- ``inherit`` - use the stream of the current process
- ``err2out`` - merge stderr into stdout (stderr only)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from srcbuild.types import RedirectScheme

_PATH_SCHEMES = frozenset(
    {RedirectScheme.READ, RedirectScheme.WRITE, RedirectScheme.APPEND}
)
_STDIN_SCHEMES = frozenset({RedirectScheme.INHERIT, RedirectScheme.READ})
_STDOUT_SCHEMES = frozenset(
    {RedirectScheme.INHERIT, RedirectScheme.WRITE, RedirectScheme.APPEND}
)
_STDERR_SCHEMES = _STDOUT_SCHEMES | {RedirectScheme.ERR2OUT}


@dataclass(frozen=True)
class Redirect:
    """A single stream redirect.

    Attributes:
        scheme: Kind of redirect.
        path: File path for read, write and append; None otherwise.
    """

    scheme: RedirectScheme
    path: Path | None = None

    def __post_init__(self) -> None:
        if self.scheme in _PATH_SCHEMES and self.path is None:
            raise ValueError(f"Redirect [{self.scheme.value}] requires a path")
        if self.scheme not in _PATH_SCHEMES and self.path is not None:
            raise ValueError(f"Redirect [{self.scheme.value}] does not take a path")

    @classmethod
    def inherit(cls) -> Redirect:
        return cls(RedirectScheme.INHERIT)

    @classmethod
    def err2out(cls) -> Redirect:
        return cls(RedirectScheme.ERR2OUT)

    @classmethod
    def read(cls, path: Path | str) -> Redirect:
        return cls(RedirectScheme.READ, Path(path))

    @classmethod
    def write(cls, path: Path | str) -> Redirect:
        return cls(RedirectScheme.WRITE, Path(path))

    @classmethod
    def append(cls, path: Path | str) -> Redirect:
        return cls(RedirectScheme.APPEND, Path(path))

    def to_uri(self) -> str:
        """Render the redirect in the URI grammar."""
        if self.path is None:
            return self.scheme.value
        return f"{self.scheme.value}:{self.path}"


def parse_redirect_uri(uri: str) -> Redirect:
    """Parse a redirect URI.

    Args:
        uri: URI such as ``write:/tmp/build.log`` or ``err2out``.

    Returns:
        The parsed Redirect.

    Raises:
        ValueError: If the URI is empty, the scheme is unknown, a path is
            missing where one is required, or present where none is expected.
    """
    if not uri:
        raise ValueError("Redirect URI cannot be empty")

    scheme_str, colon, path = uri.partition(":")
    if colon and not scheme_str:
        raise ValueError(f"Colon found at position 0 of redirect URI [{uri}]")

    try:
        scheme = RedirectScheme(scheme_str.lower())
    except ValueError:
        raise ValueError(
            f"Unexpected redirect type [{scheme_str}] in redirect URI [{uri}]; only "
            "[read], [write], [append], [inherit] are supported. In addition, you "
            "can use [err2out] for the error stream"
        ) from None

    if scheme in _PATH_SCHEMES:
        if not path:
            raise ValueError(f"A path is expected after [{scheme.value}:] in [{uri}]")
        return Redirect(scheme, Path(path))

    if colon:
        raise ValueError(
            f"Unexpected characters found after [{scheme.value}] in [{uri}]"
        )
    return Redirect(scheme)


@dataclass(frozen=True)
class IoRedirects:
    """Redirects of the three standard streams of a command."""

    stdin: Redirect = Redirect(RedirectScheme.INHERIT)
    stdout: Redirect = Redirect(RedirectScheme.INHERIT)
    stderr: Redirect = Redirect(RedirectScheme.INHERIT)

    def __post_init__(self) -> None:
        if self.stdin.scheme not in _STDIN_SCHEMES:
            raise ValueError(f"Cannot use [{self.stdin.scheme.value}] for stdin")
        if self.stdout.scheme not in _STDOUT_SCHEMES:
            raise ValueError(f"Cannot use [{self.stdout.scheme.value}] for stdout")
        if self.stderr.scheme not in _STDERR_SCHEMES:
            raise ValueError(f"Cannot use [{self.stderr.scheme.value}] for stderr")

    @classmethod
    def inherit_all(cls) -> IoRedirects:
        return cls()

    @classmethod
    def from_uris(
        cls,
        stdin: str = "inherit",
        stdout: str = "inherit",
        stderr: str = "inherit",
    ) -> IoRedirects:
        """Create redirects from three URIs.

        Raises:
            ValueError: If any URI is invalid for its stream.
        """
        return cls(
            stdin=parse_redirect_uri(stdin),
            stdout=parse_redirect_uri(stdout),
            stderr=parse_redirect_uri(stderr),
        )

    @property
    def is_err2out(self) -> bool:
        """Whether stderr is merged into stdout."""
        return self.stderr.scheme is RedirectScheme.ERR2OUT


__all__ = ["IoRedirects", "Redirect", "parse_redirect_uri"]
