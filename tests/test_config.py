"""Tests for configuration models and loading."""

import pytest
import yaml
from pydantic import ValidationError

from shipcheck.config import (
    ConfigError,
    ConfigLoader,
    PreflightConfig,
    StepName,
    SyncStrategy,
)


class TestPreflightConfig:
    """Tests for the configuration model."""

    def test_defaults(self):
        config = PreflightConfig()

        assert config.base_branch == "main"
        assert config.working_branch is None
        assert config.remote == "origin"
        assert config.sync_strategy == SyncStrategy.MERGE
        assert config.detect is True
        assert config.timeout is None
        assert config.build_retry.max_attempts == 3
        assert config.sync_target == "origin/main"

    def test_local_base(self):
        config = PreflightConfig(base_branch="develop", remote="")
        assert config.remote is None
        assert config.sync_target == "develop"

    @pytest.mark.parametrize("name", ["", "  ", "has space", "a..b", "ends/", "-flag", "x.lock"])
    def test_invalid_branch_names(self, name):
        with pytest.raises(ValidationError):
            PreflightConfig(base_branch=name)

    def test_valid_branch_names(self):
        config = PreflightConfig(base_branch="release/2.1", working_branch="feature/login-form")
        assert config.base_branch == "release/2.1"

    def test_retry_bounds(self):
        with pytest.raises(ValidationError):
            PreflightConfig(build_retry={"max_attempts": 0})
        with pytest.raises(ValidationError):
            PreflightConfig(build_retry={"max_attempts": 21})

    def test_timeout_positive(self):
        with pytest.raises(ValidationError):
            PreflightConfig(timeout=0)

    def test_declared_steps(self):
        config = PreflightConfig(steps={"lint": "make lint", "typecheck": None, "test": ""})

        declared = config.steps.declared()
        assert declared == {
            StepName.LINT: "make lint",
            StepName.TYPECHECK: None,
            StepName.TEST: None,
        }
        assert config.steps.command_for(StepName.BUILD) is None

    def test_false_disables_step(self):
        config = PreflightConfig(steps={"build": False})
        assert config.steps.declared() == {StepName.BUILD: None}

    def test_step_labels(self):
        assert StepName.TYPECHECK.label == "Typecheck"
        assert StepName.SYNC.label == "Sync"


class TestConfigLoader:
    """Tests for loading configuration files."""

    def test_load_file(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(
            "base_branch: develop\n"
            "sync_strategy: rebase\n"
            "steps:\n"
            "  lint: ruff check .\n"
            "  typecheck: null\n"
        )

        loader = ConfigLoader(path).load()

        assert loader.source == path
        assert loader.config.base_branch == "develop"
        assert loader.config.sync_strategy == SyncStrategy.REBASE
        assert loader.config.steps.declared() == {
            StepName.LINT: "ruff check .",
            StepName.TYPECHECK: None,
        }

    def test_directory_search_order(self, tmp_path):
        (tmp_path / ".shipcheck.yml").write_text("base_branch: hidden\n")
        (tmp_path / "shipcheck.yaml").write_text("base_branch: visible\n")

        loader = ConfigLoader(tmp_path).load()

        assert loader.config.base_branch == "visible"
        assert loader.source == tmp_path / "shipcheck.yaml"

    def test_directory_without_file(self, tmp_path):
        loader = ConfigLoader(tmp_path).load()

        assert loader.source is None
        assert loader.config == PreflightConfig()

    def test_missing_path(self, tmp_path):
        with pytest.raises(ConfigError):
            ConfigLoader(tmp_path / "nope.yaml").load()

    def test_no_path(self):
        with pytest.raises(ConfigError):
            ConfigLoader().load()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "shipcheck.yaml"
        path.write_text("steps: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigLoader(path).load()

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "shipcheck.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader(path).load()

    def test_validation_error_names_file(self, tmp_path):
        path = tmp_path / "shipcheck.yaml"
        path.write_text("sync_strategy: squash\n")

        with pytest.raises(ConfigError) as excinfo:
            ConfigLoader(path).load()
        assert str(path) in str(excinfo.value)

    def test_empty_file_is_defaults(self, tmp_path):
        path = tmp_path / "shipcheck.yaml"
        path.write_text("")

        assert ConfigLoader(path).load().config == PreflightConfig()

    def test_save_keeps_unset_steps_out(self, tmp_path):
        loader = ConfigLoader.from_dict({"steps": {"lint": "make lint", "build": None}})

        written = loader.save(tmp_path)

        assert written == tmp_path / "shipcheck.yaml"
        data = yaml.safe_load(written.read_text())
        assert data["steps"] == {"lint": "make lint", "build": None}
        assert data["sync_strategy"] == "merge"

        reloaded = ConfigLoader(written).load().config
        assert reloaded.steps.declared() == loader.config.steps.declared()

    def test_from_dict_invalid(self):
        with pytest.raises(ConfigError):
            ConfigLoader.from_dict({"timeout": -1})
