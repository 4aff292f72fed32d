"""Source provider abstraction and dispatch.

A source provider populates a workspace from one of the candidate URLs of a
BuildRequest. Providers are selected by the scheme prefix of the first URL,
e.g. ``git:https://example.com/repo.git``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from srcbuild.errors import NoProviderError, ScmError, SrcBuildError

if TYPE_CHECKING:
    from srcbuild.builds.request import BuildRequest

logger = logging.getLogger(__name__)


class SourceProvider(ABC):
    """Checks out sources for a build request."""

    #: URL prefix selecting this provider, stripped before use
    scheme_prefix: str = ""

    def supports(self, url: str) -> bool:
        """Tell whether this provider handles ``url``."""
        return bool(self.scheme_prefix) and url.startswith(self.scheme_prefix)

    def strip_prefix(self, url: str) -> str:
        """Return ``url`` without the scheme prefix of this provider."""
        if url.startswith(self.scheme_prefix):
            return url[len(self.scheme_prefix) :]
        return url

    def validate(self, request: BuildRequest) -> None:
        """Check the request before any URL is tried.

        Errors raised here are not retried with other URLs.
        """

    def checkout(self, request: BuildRequest) -> None:
        """Check out ``request.src_version`` to ``request.project_root_directory``.

        URLs are tried in order and the first success wins. Failures of
        earlier URLs are logged; only the failure of the last URL is raised.

        Raises:
            ScmError: If no URL could be checked out.
        """
        self.validate(request)

        last_error: ScmError | None = None
        for index, url in enumerate(request.scm_urls):
            use_url = self.strip_prefix(url)
            logger.info(
                "Attempting to checkout version %s from SCM URL %s",
                request.src_version,
                use_url,
            )
            try:
                self.checkout_url(request, use_url, index)
            except SrcBuildError as e:
                logger.warning(
                    "Could not checkout version %s from SCM URL %s: %s",
                    request.src_version,
                    use_url,
                    e,
                )
                last_error = ScmError(
                    f"Could not checkout version [{request.src_version}] from URL "
                    f"[{use_url}]: {e}",
                    url=use_url,
                )
                last_error.__cause__ = e
                continue
            logger.info(
                "Checked out version %s from %s to %s",
                request.src_version,
                use_url,
                request.project_root_directory,
            )
            return

        assert last_error is not None
        raise last_error

    @abstractmethod
    def checkout_url(self, request: BuildRequest, url: str, index: int) -> None:
        """Check out the requested version from a single URL.

        Args:
            request: The build request.
            url: The URL with the scheme prefix stripped.
            index: Position of the URL in ``request.scm_urls``.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(scheme_prefix={self.scheme_prefix!r})"


def select_provider(
    providers: Iterable[SourceProvider], urls: Sequence[str]
) -> SourceProvider:
    """Select the first provider supporting the first URL.

    Raises:
        NoProviderError: If no provider supports the URL.
    """
    if not urls:
        raise ValueError("urls cannot be empty")
    first_url = urls[0]
    for provider in providers:
        if provider.supports(first_url):
            return provider
    raise NoProviderError(first_url)


__all__ = ["SourceProvider", "select_provider"]
