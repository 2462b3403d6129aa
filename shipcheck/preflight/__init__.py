"""
Pre-flight Module

Runs the verification sequence before a change is proposed for review.
"""

from .models import (
    FailureKind,
    PreflightReport,
    RiskLevel,
    Step,
    StepResult,
    StepStatus,
)
from .runner import PreflightError, PreflightRunner, RetryLimitError

__all__ = [
    "PreflightRunner",
    "PreflightReport",
    "PreflightError",
    "RetryLimitError",
    "Step",
    "StepResult",
    "StepStatus",
    "FailureKind",
    "RiskLevel",
]
