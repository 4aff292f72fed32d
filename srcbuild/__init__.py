"""srcbuild - build dependencies from their source-control history.

This package checks out a dependency at the revision embedded in its
source version string, sets the project version and runs the project's own
build so the resulting binary lands in the host artifact repository.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
