"""Configuration handling for the preflight runner."""

from .models import (
    StepName,
    STEP_ORDER,
    CHECK_STEPS,
    SyncStrategy,
    StepCommands,
    BuildRetryConfig,
    PreflightConfig,
)
from .loader import ConfigLoader, ConfigError

__all__ = [
    "StepName",
    "STEP_ORDER",
    "CHECK_STEPS",
    "SyncStrategy",
    "StepCommands",
    "BuildRetryConfig",
    "PreflightConfig",
    "ConfigLoader",
    "ConfigError",
]
