"""
Command Auto-Detection

Discovers the commands a project declares for each check step.

Detection order (first match per step wins):
1. Makefile targets
2. package.json scripts
3. pyproject.toml tool tables
4. setup.cfg sections
5. Standalone tool configuration files
6. Language toolchain manifests (Cargo.toml, go.mod)
"""

import configparser
import json
import logging
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..config.defaults import (
    CONFIG_FILES,
    MAKE_TARGETS,
    NPM_PLACEHOLDER_TEST,
    PACKAGE_MANAGERS,
    PACKAGE_SCRIPTS,
    PYPROJECT_TOOLS,
    SETUP_CFG_SECTIONS,
    TOOLCHAINS,
)
from ..config.models import CHECK_STEPS, PreflightConfig, StepName

logger = logging.getLogger(__name__)

MAKEFILE_NAMES = ["GNUmakefile", "makefile", "Makefile"]

# "target:" or "t1 t2:" but not "VAR := value"
_MAKE_TARGET = re.compile(
    r"^([A-Za-z0-9][A-Za-z0-9_./-]*(?:[ \t]+[A-Za-z0-9][A-Za-z0-9_./-]*)*)[ \t]*:(?![=:])",
    re.MULTILINE,
)

SOURCE_OPTION = "command-line option"
SOURCE_DETECTION_OFF = "detection disabled"


@dataclass
class DetectedCommand:
    """A command found for a step, and the declaration it came from."""
    step: StepName
    command: Optional[str]
    source: Optional[str] = None

    @property
    def configured(self) -> bool:
        return self.command is not None


class CommandDetector:
    """
    Auto-detects project-declared commands.

    Project declarations always win over built-in defaults: a built-in
    command is only proposed when a matching tool configuration exists.
    """

    def __init__(self, project_root: Path):
        """Initialize the detector."""
        self.project_root = Path(project_root)

    def detect(self) -> Dict[StepName, DetectedCommand]:
        """
        Detect commands for every check step.

        Returns:
            Mapping of step to detected command, only for steps found.
        """
        detectors = [
            self._detect_makefile,
            self._detect_package_json,
            self._detect_pyproject,
            self._detect_setup_cfg,
            self._detect_config_files,
            self._detect_toolchains,
        ]

        found: Dict[StepName, DetectedCommand] = {}
        for detector in detectors:
            for step, detected in detector().items():
                found.setdefault(step, detected)

        for step, detected in found.items():
            logger.debug("Detected %s: %s (%s)", step.value, detected.command, detected.source)
        return found

    def resolve(
        self,
        config: PreflightConfig,
        overrides: Optional[Mapping[StepName, str]] = None,
    ) -> Dict[StepName, DetectedCommand]:
        """
        Resolve the command for each check step.

        Precedence: explicit override, then the configuration file (an
        explicit null disables the step), then detection.

        Returns:
            Mapping for every check step; ``command`` is None when the step
            is not configured.
        """
        overrides = {StepName(k): v for k, v in (overrides or {}).items() if v}
        declared = config.steps.declared()
        detected = self.detect() if config.detect else {}

        resolved: Dict[StepName, DetectedCommand] = {}
        for step in CHECK_STEPS:
            if step in overrides:
                resolved[step] = DetectedCommand(step, overrides[step], SOURCE_OPTION)
            elif step in declared:
                resolved[step] = DetectedCommand(step, declared[step], "configuration")
            elif step in detected:
                resolved[step] = detected[step]
            else:
                source = None if config.detect else SOURCE_DETECTION_OFF
                resolved[step] = DetectedCommand(step, None, source)
        return resolved

    def _detect_makefile(self) -> Dict[StepName, DetectedCommand]:
        """Detect Makefile targets."""
        makefile = self._first_existing(MAKEFILE_NAMES)
        if makefile is None:
            return {}

        try:
            rules = _MAKE_TARGET.findall(makefile.read_text(errors="replace"))
        except OSError as e:
            logger.warning("Cannot read %s: %s", makefile, e)
            return {}

        targets = {name for rule in rules for name in rule.split()}
        found = {}
        for step, names in MAKE_TARGETS.items():
            for name in names:
                if name in targets:
                    found[step] = DetectedCommand(
                        step, f"make {name}", f"{makefile.name} target '{name}'"
                    )
                    break
        return found

    def _detect_package_json(self) -> Dict[StepName, DetectedCommand]:
        """Detect package.json scripts."""
        package = self.project_root / "package.json"
        data = self._read_json(package)
        scripts = data.get("scripts") if isinstance(data, dict) else None
        if not isinstance(scripts, dict):
            return {}

        runner = self._package_runner()
        found = {}
        for step, names in PACKAGE_SCRIPTS.items():
            for name in names:
                script = scripts.get(name)
                if not isinstance(script, str) or not script.strip():
                    continue
                if script.strip() == NPM_PLACEHOLDER_TEST:
                    continue
                found[step] = DetectedCommand(
                    step, f"{runner} {name}", f"package.json script '{name}'"
                )
                break
        return found

    def _package_runner(self) -> str:
        for lockfile, runner in PACKAGE_MANAGERS:
            if (self.project_root / lockfile).exists():
                return runner
        return "npm run"

    def _detect_pyproject(self) -> Dict[StepName, DetectedCommand]:
        """Detect tool tables in pyproject.toml."""
        pyproject = self.project_root / "pyproject.toml"
        if not pyproject.is_file():
            return {}

        try:
            with open(pyproject, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Cannot parse %s: %s", pyproject, e)
            return {}

        tools = data.get("tool", {})
        found = {}
        for step, rules in PYPROJECT_TOOLS.items():
            for tool, command in rules:
                if tool in tools:
                    found[step] = DetectedCommand(step, command, f"pyproject.toml [tool.{tool}]")
                    break

        if "build-system" in data:
            found[StepName.BUILD] = DetectedCommand(
                StepName.BUILD, "python -m build", "pyproject.toml [build-system]"
            )
        return found

    def _detect_setup_cfg(self) -> Dict[StepName, DetectedCommand]:
        """Detect tool sections in setup.cfg."""
        setup_cfg = self.project_root / "setup.cfg"
        if not setup_cfg.is_file():
            return {}

        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(setup_cfg)
        except configparser.Error as e:
            logger.warning("Cannot parse %s: %s", setup_cfg, e)
            return {}

        found = {}
        for step, rules in SETUP_CFG_SECTIONS.items():
            for section, command in rules:
                if parser.has_section(section):
                    found[step] = DetectedCommand(step, command, f"setup.cfg [{section}]")
                    break
        return found

    def _detect_config_files(self) -> Dict[StepName, DetectedCommand]:
        """Detect standalone tool configuration files."""
        found = {}
        for step, rules in CONFIG_FILES.items():
            for filename, command in rules:
                if (self.project_root / filename).is_file():
                    found[step] = DetectedCommand(step, command, filename)
                    break
        return found

    def _detect_toolchains(self) -> Dict[StepName, DetectedCommand]:
        """Detect language manifests providing a full toolchain."""
        found: Dict[StepName, DetectedCommand] = {}
        for manifest, commands in TOOLCHAINS.items():
            if not (self.project_root / manifest).is_file():
                continue
            for step, command in commands.items():
                found.setdefault(step, DetectedCommand(step, command, manifest))
        return found

    def _first_existing(self, names: List[str]) -> Optional[Path]:
        for name in names:
            path = self.project_root / name
            if path.is_file():
                return path
        return None

    @staticmethod
    def _read_json(path: Path) -> Any:
        if not path.is_file():
            return None
        try:
            with open(path, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Cannot parse %s: %s", path, e)
            return None
