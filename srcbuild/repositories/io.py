"""Loading of the repository configuration file.

The file is YAML; its content is validated with ConfigurationSchema. Any
problem reading or validating it is reported as a ConfigurationError.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from srcbuild.errors import ConfigurationError, RepositoryNotFoundError
from srcbuild.repositories.schema import ConfigurationSchema, ScmRepositorySchema


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    An empty file yields an empty dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def parse_configuration(data: dict[str, Any]) -> ConfigurationSchema:
    """Validate configuration data.

    Raises:
        ConfigurationError: If the data does not match the schema.
    """
    try:
        return ConfigurationSchema.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_configuration(path: Path) -> ConfigurationSchema:
    """Load and validate a configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Validated ConfigurationSchema instance.

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated.
    """
    try:
        data = load_yaml(path)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}") from e
    except (OSError, yaml.YAMLError, ValueError) as e:
        raise ConfigurationError(f"Could not read configuration [{path}]: {e}") from e
    return parse_configuration(data)


def dump_configuration(configuration: ConfigurationSchema, path: Path) -> None:
    """Write a configuration to a YAML file."""
    data = configuration.model_dump(mode="json", exclude_none=True)
    for repository in data.get("repositories", {}).values():
        repository.pop("id", None)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def find_repository(
    configuration: ConfigurationSchema, group_id: str
) -> ScmRepositorySchema:
    """Return the repository building dependencies with ``group_id``.

    Raises:
        RepositoryNotFoundError: If no repository selects ``group_id``.
    """
    repository = configuration.find_repository(group_id)
    if repository is None:
        raise RepositoryNotFoundError(group_id)
    return repository


__all__ = [
    "dump_configuration",
    "find_repository",
    "load_configuration",
    "load_yaml",
    "parse_configuration",
]
