"""Tests for shell/redirects.py module."""

from pathlib import Path

import pytest

from srcbuild.shell.redirects import IoRedirects, Redirect, parse_redirect_uri
from srcbuild.types import RedirectScheme


class TestParseRedirectUri:
    """Tests for parse_redirect_uri."""

    def test_path_schemes(self) -> None:
        """Should parse read, write and append with their paths."""
        assert parse_redirect_uri("read:/tmp/in.txt") == Redirect.read("/tmp/in.txt")
        assert parse_redirect_uri("write:/tmp/out.log") == Redirect.write("/tmp/out.log")
        assert parse_redirect_uri("append:out.log") == Redirect.append(Path("out.log"))

    def test_pathless_schemes(self) -> None:
        """Should parse inherit and err2out."""
        assert parse_redirect_uri("inherit") == Redirect.inherit()
        assert parse_redirect_uri("err2out") == Redirect.err2out()

    def test_scheme_case_insensitive(self) -> None:
        """Scheme names should match in any case."""
        assert parse_redirect_uri("WRITE:/tmp/x").scheme is RedirectScheme.WRITE
        assert parse_redirect_uri("Inherit").scheme is RedirectScheme.INHERIT

    def test_path_keeps_colons(self) -> None:
        """Only the first colon should separate scheme and path."""
        assert parse_redirect_uri("write:/tmp/a:b").path == Path("/tmp/a:b")

    @pytest.mark.parametrize(
        "uri",
        ["", ":/tmp/x", "pipe:/tmp/x", "write", "write:", "read:", "inherit:/tmp/x", "err2out:x"],
    )
    def test_invalid(self, uri: str) -> None:
        """Should reject malformed URIs."""
        with pytest.raises(ValueError):
            parse_redirect_uri(uri)

    def test_round_trip_uri(self) -> None:
        """to_uri should render a parseable URI."""
        for uri in ["inherit", "err2out", "append:/var/log/build.log"]:
            assert parse_redirect_uri(uri).to_uri() == uri


class TestRedirect:
    """Tests for Redirect validation."""

    def test_path_required(self) -> None:
        with pytest.raises(ValueError):
            Redirect(RedirectScheme.WRITE)

    def test_path_rejected(self) -> None:
        with pytest.raises(ValueError):
            Redirect(RedirectScheme.INHERIT, Path("/tmp/x"))


class TestIoRedirects:
    """Tests for IoRedirects stream validation."""

    def test_defaults_inherit(self) -> None:
        """All streams should inherit by default."""
        redirects = IoRedirects.inherit_all()
        assert redirects.stdin == Redirect.inherit()
        assert redirects.stdout == Redirect.inherit()
        assert redirects.stderr == Redirect.inherit()
        assert not redirects.is_err2out

    def test_err2out_for_stderr(self) -> None:
        """err2out should be accepted for stderr."""
        redirects = IoRedirects.from_uris(stdout="write:/tmp/out", stderr="err2out")
        assert redirects.is_err2out

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"stdin": "write:/tmp/x"},
            {"stdin": "err2out"},
            {"stdout": "read:/tmp/x"},
            {"stdout": "err2out"},
            {"stderr": "read:/tmp/x"},
        ],
    )
    def test_invalid_stream_scheme(self, kwargs: dict[str, str]) -> None:
        """Should reject schemes not allowed for a stream."""
        with pytest.raises(ValueError):
            IoRedirects.from_uris(**kwargs)
