"""
Pydantic models for configuration validation.

These models define the schema for the project configuration file:
branches, sync strategy, per-step commands and the build retry policy.
"""

from enum import Enum
from typing import Dict, Optional, Tuple
from pydantic import BaseModel, Field, field_validator
import re


class StepName(str, Enum):
    """Preflight steps, declared in execution order."""
    SYNC = "sync"
    LINT = "lint"
    TYPECHECK = "typecheck"
    TEST = "test"
    BUILD = "build"

    @property
    def label(self) -> str:
        """Display name used in reports."""
        return self.value.capitalize()


STEP_ORDER: Tuple[StepName, ...] = (
    StepName.SYNC,
    StepName.LINT,
    StepName.TYPECHECK,
    StepName.TEST,
    StepName.BUILD,
)

# Steps that run a project command (everything after sync)
CHECK_STEPS: Tuple[StepName, ...] = STEP_ORDER[1:]


class SyncStrategy(str, Enum):
    """How the working branch is brought up to date with the base branch."""
    MERGE = "merge"
    REBASE = "rebase"


# Characters git refuses in branch names (see git-check-ref-format)
_BAD_REF = re.compile(r"[\s~^:?*\[\\]|\.\.|@\{|^-|/$|\.lock$")


def _check_ref(value: str, what: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{what} must not be empty")
    if _BAD_REF.search(value):
        raise ValueError(f"Invalid {what}: {value!r}")
    return value


# ============================================================
# Step Commands
# ============================================================

class StepCommands(BaseModel):
    """
    Commands configured for the check steps.

    A field left out of the file is open to detection; a field explicitly
    set to null disables the step.
    """

    lint: Optional[str] = Field(None, description="Lint command")
    typecheck: Optional[str] = Field(None, description="Type-check command")
    test: Optional[str] = Field(None, description="Test command")
    build: Optional[str] = Field(None, description="Build command")

    @field_validator("lint", "typecheck", "test", "build", mode="before")
    @classmethod
    def normalize_command(cls, v):
        """Treat blank strings and false as 'no command'."""
        if v is False:
            return None
        if isinstance(v, str) and not v.strip():
            return None
        if isinstance(v, str):
            return v.strip()
        return v

    def command_for(self, step: StepName) -> Optional[str]:
        """Get the command configured for a step."""
        return getattr(self, step.value, None)

    def declared(self) -> Dict[StepName, Optional[str]]:
        """Steps explicitly present in the configuration (including nulls)."""
        return {
            StepName(name): getattr(self, name)
            for name in self.model_fields_set
        }


class BuildRetryConfig(BaseModel):
    """Retry policy for the build step."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Total build attempts, including the first run",
    )
    fix_command: Optional[str] = Field(
        None,
        description="Shell command applying a minimal fix between attempts",
    )


# ============================================================
# Preflight Configuration (Main)
# ============================================================

class PreflightConfig(BaseModel):
    """
    Complete preflight configuration.

    Defines which branch is verified, how it is synced, and which
    commands run for each step.
    """

    base_branch: str = Field(default="main", description="Branch to sync with")
    working_branch: Optional[str] = Field(
        None, description="Branch under verification (default: current branch)"
    )
    remote: Optional[str] = Field(
        default="origin", description="Remote to fetch the base branch from"
    )
    sync_strategy: SyncStrategy = Field(default=SyncStrategy.MERGE)
    detect: bool = Field(default=True, description="Detect project-declared commands")
    timeout: Optional[float] = Field(
        None, gt=0, description="Per-command timeout in seconds"
    )
    steps: StepCommands = Field(default_factory=StepCommands)
    build_retry: BuildRetryConfig = Field(default_factory=BuildRetryConfig)

    @field_validator("base_branch")
    @classmethod
    def validate_base_branch(cls, v: str) -> str:
        return _check_ref(v, "base branch")

    @field_validator("working_branch")
    @classmethod
    def validate_working_branch(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_ref(v, "working branch")

    @field_validator("remote", mode="before")
    @classmethod
    def normalize_remote(cls, v):
        """An empty or false remote means 'use the local base branch'."""
        if v is False or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @property
    def sync_target(self) -> str:
        """Ref the working branch is integrated with."""
        if self.remote:
            return f"{self.remote}/{self.base_branch}"
        return self.base_branch
