"""Tests for repositories/schema.py and repositories/io.py modules."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from srcbuild.errors import ConfigurationError, RepositoryNotFoundError
from srcbuild.repositories.io import (
    dump_configuration,
    find_repository,
    load_configuration,
    load_yaml,
)
from srcbuild.repositories.schema import (
    BuilderIoSchema,
    ConfigurationSchema,
    ScmRepositorySchema,
    validate_repository_id,
)
from srcbuild.shell.redirects import Redirect
from srcbuild.types import Verbosity

SAMPLE_YAML = """\
config_model_version: "1.0"
verbosity: INFO
forward_properties:
  - srcbuild.mvn.*
  - my.prop
builder_io:
  stdout: "write:/tmp/build.log"
  stderr: err2out
repositories:
  org.example:
    selectors:
      - org.example
      - org.example.plugins
    urls:
      - git:https://github.com/example/example.git
      - git:https://mirror.example.com/example.git
    build_arguments: ["-Pfast"]
    skip_tests: false
  com.acme.tools:
    selectors: [com.acme]
    urls: [git:https://acme.example.com/tools.git]
"""


class TestRepositoryId:
    """Tests for repository id validation."""

    @pytest.mark.parametrize("value", ["org", "org.example", "a_b.$c.d1", "_x"])
    def test_valid(self, value: str) -> None:
        assert validate_repository_id(value) == value

    @pytest.mark.parametrize("value", ["", ".org", "org.", "org..example", "1org", "org.ex-ample"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            validate_repository_id(value)

    def test_id_as_path(self) -> None:
        repository = ScmRepositorySchema(id="org.example.tools", urls=["git:x"])
        assert repository.id_as_path == Path("org") / "example" / "tools"


class TestScmRepositorySchema:
    """Tests for ScmRepositorySchema."""

    def test_defaults(self) -> None:
        repository = ScmRepositorySchema(id="org", urls=["git:x"])
        assert repository.selectors == []
        assert repository.build_arguments == []
        assert repository.skip_tests is True
        assert repository.add_default_build_arguments is True

    def test_urls_required(self) -> None:
        with pytest.raises(ValidationError):
            ScmRepositorySchema(id="org", urls=[])
        with pytest.raises(ValidationError):
            ScmRepositorySchema(id="org", urls=["  "])

    def test_unknown_field(self) -> None:
        with pytest.raises(ValidationError):
            ScmRepositorySchema(id="org", urls=["git:x"], branch="main")

    def test_matches_exact_group_id(self) -> None:
        repository = ScmRepositorySchema(id="org", selectors=["org.example"], urls=["git:x"])
        assert repository.matches("org.example")
        assert not repository.matches("org.example.sub")


class TestBuilderIoSchema:
    """Tests for BuilderIoSchema."""

    def test_defaults(self) -> None:
        redirects = BuilderIoSchema().to_io_redirects()
        assert redirects.stdout == Redirect.inherit()

    def test_invalid_uri(self) -> None:
        with pytest.raises(ValidationError):
            BuilderIoSchema(stdout="pipe:/tmp/x")

    def test_invalid_for_stream(self) -> None:
        with pytest.raises(ValidationError):
            BuilderIoSchema(stdout="err2out")


class TestConfigurationSchema:
    """Tests for ConfigurationSchema."""

    def test_defaults(self) -> None:
        configuration = ConfigurationSchema()
        assert configuration.config_model_version == "1.0"
        assert configuration.verbosity is Verbosity.WARN
        assert configuration.forward_properties == ["srcbuild.mvn.*"]
        assert configuration.skip is False
        assert configuration.sources_directory is None
        assert configuration.repositories == {}

    def test_ids_from_keys(self) -> None:
        configuration = ConfigurationSchema.model_validate(
            {"repositories": {"org.example": {"urls": ["git:x"]}}}
        )
        assert configuration.repositories["org.example"].id == "org.example"

    def test_id_mismatch(self) -> None:
        with pytest.raises(ValidationError):
            ConfigurationSchema.model_validate(
                {"repositories": {"org.example": {"id": "org.other", "urls": ["git:x"]}}}
            )

    def test_invalid_id_key(self) -> None:
        with pytest.raises(ValidationError):
            ConfigurationSchema.model_validate({"repositories": {"org..x": {"urls": ["git:x"]}}})

    def test_model_version(self) -> None:
        with pytest.raises(ValidationError):
            ConfigurationSchema(config_model_version="2.0")

    def test_verbosity_case_insensitive(self) -> None:
        assert ConfigurationSchema(verbosity="DEBUG").verbosity is Verbosity.DEBUG


class TestLoadConfiguration:
    """Tests for load_configuration and friends."""

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "srcbuild.yaml"
        path.write_text(SAMPLE_YAML)
        configuration = load_configuration(path)

        assert configuration.verbosity is Verbosity.INFO
        assert configuration.forward_properties == ["srcbuild.mvn.*", "my.prop"]
        redirects = configuration.builder_io.to_io_redirects()
        assert redirects.stdout == Redirect.write("/tmp/build.log")
        assert redirects.is_err2out

        repository = find_repository(configuration, "org.example.plugins")
        assert repository.id == "org.example"
        assert repository.urls[1] == "git:https://mirror.example.com/example.git"
        assert repository.build_arguments == ["-Pfast"]
        assert repository.skip_tests is False
        assert find_repository(configuration, "com.acme").id == "com.acme.tools"

    def test_repository_not_found(self, tmp_path: Path) -> None:
        path = tmp_path / "srcbuild.yaml"
        path.write_text(SAMPLE_YAML)
        with pytest.raises(RepositoryNotFoundError):
            find_repository(load_configuration(path), "org.unknown")

    def test_empty_file(self, tmp_path: Path) -> None:
        """An empty file should give the default configuration."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml(path) == {}
        assert load_configuration(path).repositories == {}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_configuration(tmp_path / "missing.yaml")

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_configuration(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("repositories: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_configuration(path)

    def test_invalid_schema(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("verbosity: loud\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_configuration(path)
        assert exc_info.value.code == "configuration_error"

    def test_dump_and_load(self, tmp_path: Path) -> None:
        source = tmp_path / "srcbuild.yaml"
        source.write_text(SAMPLE_YAML)
        configuration = load_configuration(source)
        target = tmp_path / "copy.yaml"
        dump_configuration(configuration, target)
        assert load_configuration(target) == configuration
