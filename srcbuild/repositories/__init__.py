"""Repository configuration.

This module handles:
- Validation of the repository configuration schema
- Loading the YAML configuration file
- Finding the repository that builds a dependency
"""

from srcbuild.repositories.io import find_repository, load_configuration
from srcbuild.repositories.schema import (
    BuilderIoSchema,
    ConfigurationSchema,
    ScmRepositorySchema,
)

__all__ = [
    "BuilderIoSchema",
    "ConfigurationSchema",
    "ScmRepositorySchema",
    "find_repository",
    "load_configuration",
]
