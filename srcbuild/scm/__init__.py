"""Source control providers.

This module handles:
- Selecting a provider by URL scheme
- Retrying checkouts across candidate URLs
- Git clone / fetch-and-reset with verification
"""

from srcbuild.scm.base import SourceProvider, select_provider
from srcbuild.scm.git import GitSourceProvider

__all__ = ["GitSourceProvider", "SourceProvider", "select_provider"]
