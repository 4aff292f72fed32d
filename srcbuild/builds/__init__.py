"""Build orchestration module.

This module handles:
- Describing a build (BuildRequest)
- Build tool dispatch and the Maven tools
- Checkout, version rewrite and build of requests and batches
"""

from srcbuild.builds.request import BuildRequest, BuildRequestBuilder

__all__ = ["BuildRequest", "BuildRequestBuilder"]

# Lazy imports for submodules to avoid circular imports
# Access via srcbuild.builds.tools, srcbuild.builds.service
