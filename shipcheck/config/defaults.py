"""
Default configuration values and detection rules.

The rule tables map each check step to the project declarations that
provide a command for it. Earlier entries win.
"""

from typing import Dict, Any, List, Tuple

from .models import StepName


# Makefile / package.json target names, per step, in order of preference
MAKE_TARGETS: Dict[StepName, List[str]] = {
    StepName.LINT: ["lint"],
    StepName.TYPECHECK: ["typecheck", "type-check", "types", "mypy"],
    StepName.TEST: ["test", "tests"],
    StepName.BUILD: ["build"],
}

PACKAGE_SCRIPTS: Dict[StepName, List[str]] = {
    StepName.LINT: ["lint"],
    StepName.TYPECHECK: ["typecheck", "type-check", "types", "tsc"],
    StepName.TEST: ["test"],
    StepName.BUILD: ["build"],
}

# Lock file -> command prefix used to run a package.json script
PACKAGE_MANAGERS: List[Tuple[str, str]] = [
    ("pnpm-lock.yaml", "pnpm run"),
    ("yarn.lock", "yarn run"),
    ("bun.lockb", "bun run"),
    ("bun.lock", "bun run"),
    ("package-lock.json", "npm run"),
]

# What `npm init` writes; not a real test command
NPM_PLACEHOLDER_TEST = 'echo "Error: no test specified" && exit 1'

# pyproject.toml tool tables -> command
PYPROJECT_TOOLS: Dict[StepName, List[Tuple[str, str]]] = {
    StepName.LINT: [
        ("ruff", "ruff check ."),
        ("pylint", "pylint ."),
    ],
    StepName.TYPECHECK: [
        ("mypy", "mypy ."),
        ("pyright", "pyright"),
    ],
    StepName.TEST: [
        ("pytest", "pytest"),
    ],
}

# setup.cfg sections -> command
SETUP_CFG_SECTIONS: Dict[StepName, List[Tuple[str, str]]] = {
    StepName.LINT: [
        ("flake8", "flake8"),
    ],
    StepName.TYPECHECK: [
        ("mypy", "mypy ."),
    ],
    StepName.TEST: [
        ("tool:pytest", "pytest"),
    ],
}

# Standalone tool configuration files -> command
CONFIG_FILES: Dict[StepName, List[Tuple[str, str]]] = {
    StepName.LINT: [
        ("ruff.toml", "ruff check ."),
        (".ruff.toml", "ruff check ."),
        (".flake8", "flake8"),
        ("eslint.config.js", "npx eslint ."),
        ("eslint.config.mjs", "npx eslint ."),
        (".eslintrc.json", "npx eslint ."),
        (".eslintrc.js", "npx eslint ."),
        (".eslintrc.cjs", "npx eslint ."),
        (".eslintrc.yml", "npx eslint ."),
        (".golangci.yml", "golangci-lint run"),
    ],
    StepName.TYPECHECK: [
        ("mypy.ini", "mypy ."),
        (".mypy.ini", "mypy ."),
        ("pyrightconfig.json", "pyright"),
        ("tsconfig.json", "npx tsc --noEmit"),
    ],
    StepName.TEST: [
        ("pytest.ini", "pytest"),
        ("tox.ini", "tox"),
        ("conftest.py", "pytest"),
    ],
}

# Language manifests providing a full toolchain
TOOLCHAINS: Dict[str, Dict[StepName, str]] = {
    "Cargo.toml": {
        StepName.LINT: "cargo clippy -- -D warnings",
        StepName.TYPECHECK: "cargo check",
        StepName.TEST: "cargo test",
        StepName.BUILD: "cargo build",
    },
    "go.mod": {
        StepName.LINT: "go vet ./...",
        StepName.TEST: "go test ./...",
        StepName.BUILD: "go build ./...",
    },
}


def get_default_config() -> Dict[str, Any]:
    """Get the default configuration template written by `shipcheck init`."""
    return {
        "base_branch": "main",
        "working_branch": None,
        "remote": "origin",
        "sync_strategy": "merge",
        "detect": True,
        "timeout": None,
        "steps": {},
        "build_retry": {
            "max_attempts": 3,
            "fix_command": None,
        },
    }
