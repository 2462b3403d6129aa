"""
Pre-flight Models

Shared data types for preflight runs.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..config.models import StepName


# Skip reasons
SKIP_NOT_CONFIGURED = "not configured"
SKIP_BLOCKED_BY_SYNC = "blocked by sync failure"
SKIP_BLOCKED_BY_FAILURE = "blocked by earlier failure"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    """Outcome of a single step."""
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class FailureKind(str, Enum):
    """Why a failed step failed."""
    EXIT_CODE = "exit_code"
    NOT_FOUND = "not_found"
    NOT_EXECUTABLE = "not_executable"
    TIMEOUT = "timeout"
    CONFLICT = "conflict"
    ERROR = "error"

    @property
    def description(self) -> str:
        return _FAILURE_DESCRIPTIONS[self]


_FAILURE_DESCRIPTIONS = {
    FailureKind.EXIT_CODE: "exited with failure",
    FailureKind.NOT_FOUND: "command not found",
    FailureKind.NOT_EXECUTABLE: "command not executable",
    FailureKind.TIMEOUT: "timed out",
    FailureKind.CONFLICT: "could not integrate base branch",
    FailureKind.ERROR: "could not be started",
}


class RiskLevel(str, Enum):
    """Risk of a change, assigned by whoever invokes the preflight."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Step:
    """A step to run: its name, command, and where the command came from."""
    name: StepName
    command: Optional[str] = None
    source: Optional[str] = None
    skip_reason: Optional[str] = None

    def __post_init__(self):
        if self.command is None and self.skip_reason is None:
            self.skip_reason = SKIP_NOT_CONFIGURED

    @property
    def configured(self) -> bool:
        return self.command is not None


@dataclass
class StepResult:
    """Result of a single preflight step."""
    step: StepName
    status: StepStatus
    command: Optional[str] = None
    output: str = ""
    reason: Optional[str] = None
    failure: Optional[FailureKind] = None
    exit_code: Optional[int] = None
    source: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)
    duration_ms: int = 0
    previous_attempts: List["StepResult"] = field(default_factory=list)

    @classmethod
    def skip(cls, step: Step, reason: Optional[str] = None) -> "StepResult":
        """Build a skipped result for a step."""
        return cls(
            step=step.name,
            status=StepStatus.SKIPPED,
            command=step.command,
            reason=reason or step.skip_reason or SKIP_NOT_CONFIGURED,
            source=step.source,
        )

    @property
    def passed(self) -> bool:
        return self.status == StepStatus.PASSED

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED

    @property
    def skipped(self) -> bool:
        return self.status == StepStatus.SKIPPED

    @property
    def not_configured(self) -> bool:
        return self.skipped and self.reason == SKIP_NOT_CONFIGURED

    @property
    def attempts(self) -> int:
        """Number of times the step's command ran."""
        if self.skipped:
            return 0
        return len(self.previous_attempts) + 1

    def to_dict(self, include_timestamps: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "step": self.step.value,
            "status": self.status.value,
            "command": self.command,
            "source": self.source,
            "reason": self.reason,
            "failure": self.failure.value if self.failure else None,
            "exit_code": self.exit_code,
            "output": self.output,
            "attempts": self.attempts,
            "previous_attempts": [
                a.to_dict(include_timestamps) for a in self.previous_attempts
            ],
        }
        if include_timestamps:
            data["started_at"] = self.started_at.isoformat()
            data["duration_ms"] = self.duration_ms
        return data

    def __str__(self) -> str:
        from .report import format_step_line
        return format_step_line(self)


@dataclass
class FileChange:
    """Lines added and removed in one file."""
    path: str
    added: int
    deleted: int
    binary: bool = False


@dataclass
class DiffScope:
    """Footprint of the working branch against the base branch."""
    base_ref: str
    files: List[FileChange] = field(default_factory=list)

    @property
    def lines_added(self) -> int:
        return sum(f.added for f in self.files)

    @property
    def lines_deleted(self) -> int:
        return sum(f.deleted for f in self.files)

    def summary(self) -> str:
        return (
            f"{len(self.files)} files changed, "
            f"+{self.lines_added}/-{self.lines_deleted} vs {self.base_ref}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_ref": self.base_ref,
            "files": [
                {"path": f.path, "added": f.added, "deleted": f.deleted, "binary": f.binary}
                for f in self.files
            ],
            "lines_added": self.lines_added,
            "lines_deleted": self.lines_deleted,
        }


@dataclass
class PreflightReport:
    """Complete preflight results for one invocation."""
    base_branch: str = "main"
    working_branch: Optional[str] = None
    results: List[StepResult] = field(default_factory=list)
    risk: Optional[RiskLevel] = None
    scope: Optional[DiffScope] = None
    created_at: datetime = field(default_factory=utcnow)

    def add(self, result: StepResult) -> None:
        self.results.append(result)

    def result_for(self, step: StepName) -> Optional[StepResult]:
        """Get the result recorded for a step."""
        for result in self.results:
            if result.step == step:
                return result
        return None

    def replace(self, result: StepResult) -> None:
        """Replace the recorded result for the same step."""
        for index, existing in enumerate(self.results):
            if existing.step == result.step:
                self.results[index] = result
                return
        self.results.append(result)

    @property
    def passed(self) -> bool:
        """True when no step failed. Skipped steps do not block success."""
        return bool(self.results) and not any(r.failed for r in self.results)

    @property
    def first_failure_index(self) -> Optional[int]:
        for index, result in enumerate(self.results):
            if result.failed:
                return index
        return None

    @property
    def failed_step(self) -> Optional[StepResult]:
        index = self.first_failure_index
        return self.results[index] if index is not None else None

    @property
    def skipped(self) -> List[StepResult]:
        return [r for r in self.results if r.skipped]

    def summary(self) -> str:
        """Get summary string."""
        ran = [r for r in self.results if not r.skipped]
        passed = len([r for r in ran if r.passed])
        skipped = len(self.skipped)

        if self.passed:
            status = "PASSED"
        else:
            status = f"FAILED at {self.failed_step.step.label}"

        return f"{status}: {passed}/{len(ran)} steps passed ({skipped} skipped)"

    def to_dict(self, include_timestamps: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "working_branch": self.working_branch,
            "base_branch": self.base_branch,
            "passed": self.passed,
            "first_failure_index": self.first_failure_index,
            "risk": self.risk.value if self.risk else None,
            "steps": [r.to_dict(include_timestamps) for r in self.results],
            "scope": self.scope.to_dict() if self.scope else None,
        }
        if include_timestamps:
            data["created_at"] = self.created_at.isoformat()
        return data
