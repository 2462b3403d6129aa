"""
Configuration loader for YAML files.

Handles locating, loading, validating and saving the project
configuration file.
"""

import logging
from pathlib import Path
from typing import Optional, Dict, Any, Union
import yaml
from pydantic import ValidationError

from .models import PreflightConfig

logger = logging.getLogger(__name__)

# Looked up in this order when a directory is given
CONFIG_FILENAMES = (
    "shipcheck.yaml",
    "shipcheck.yml",
    ".shipcheck.yaml",
    ".shipcheck.yml",
)


class ConfigError(Exception):
    """Configuration loading or validation error."""
    pass


class ConfigLoader:
    """
    Loads and validates the preflight configuration from YAML.

    Accepts either a configuration file or a project directory, in which
    case the standard file names are searched. A directory without a
    configuration file yields the defaults.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to config file or project directory
        """
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[PreflightConfig] = None
        self._source: Optional[Path] = None

    def load(self) -> "ConfigLoader":
        """
        Load the configuration from the config path.

        Returns:
            Self for method chaining
        """
        if self.config_path is None:
            raise ConfigError("No configuration path specified")

        if self.config_path.is_file():
            self._load_file(self.config_path)
        elif self.config_path.is_dir():
            found = self.find_config_file(self.config_path)
            if found is None:
                logger.debug("No configuration file in %s, using defaults", self.config_path)
                self._config = PreflightConfig()
            else:
                self._load_file(found)
        else:
            raise ConfigError(f"Configuration path does not exist: {self.config_path}")

        return self

    @staticmethod
    def find_config_file(directory: Path) -> Optional[Path]:
        """Find the first standard configuration file in a directory."""
        for filename in CONFIG_FILENAMES:
            candidate = directory / filename
            if candidate.is_file():
                return candidate
        return None

    def _load_file(self, file_path: Path) -> None:
        data = self._read_yaml(file_path)
        self._config = self._parse(data, file_path)
        self._source = file_path
        logger.debug("Loaded configuration from %s", file_path)

    def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse a YAML file."""
        try:
            with open(file_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {file_path}: {e}")
        except IOError as e:
            raise ConfigError(f"Cannot read {file_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping at the top of {file_path}")
        return data

    def _parse(self, data: Dict[str, Any], file_path: Optional[Path] = None) -> PreflightConfig:
        """Parse preflight configuration."""
        try:
            return PreflightConfig(**data)
        except ValidationError as e:
            where = f" in {file_path}" if file_path else ""
            raise ConfigError(f"Invalid configuration{where}: {e}")

    @property
    def config(self) -> PreflightConfig:
        """Get the loaded configuration (defaults if nothing was loaded)."""
        if self._config is None:
            return PreflightConfig()
        return self._config

    @property
    def source(self) -> Optional[Path]:
        """File the configuration was read from, if any."""
        return self._source

    def save(self, output_path: Union[str, Path]) -> Path:
        """
        Save the current configuration to a YAML file.

        Args:
            output_path: File to write, or a directory to write shipcheck.yaml into

        Returns:
            Path of the written file
        """
        output_path = Path(output_path)
        if output_path.is_dir():
            output_path = output_path / CONFIG_FILENAMES[0]
        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.config.model_dump(mode="json")
        # Keep unset steps out of the file so they stay open to detection
        data["steps"] = self.config.steps.model_dump(mode="json", exclude_unset=True)
        with open(output_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        return output_path

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConfigLoader":
        """
        Create a ConfigLoader from a dictionary.

        Useful for programmatic configuration.
        """
        loader = cls()
        loader._config = loader._parse(data)
        return loader
