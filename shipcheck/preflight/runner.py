"""
Pre-flight Runner

Main orchestrator for the preflight sequence:
sync -> lint -> typecheck -> test -> build.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union

from ..config.models import CHECK_STEPS, PreflightConfig, StepName, SyncStrategy
from .commands import CommandExecutor
from .fixers import BuildFixer
from .models import (
    SKIP_BLOCKED_BY_FAILURE,
    SKIP_BLOCKED_BY_SYNC,
    PreflightReport,
    RiskLevel,
    Step,
    StepResult,
    StepStatus,
    utcnow,
)
from .scope import collect_scope
from .sync import BranchSync

logger = logging.getLogger(__name__)


class PreflightError(Exception):
    """Runner used in a way the preflight sequence does not allow."""
    pass


class RetryLimitError(PreflightError):
    """The build step has used all of its attempts."""
    pass


class PreflightRunner:
    """
    Runs the preflight steps in fixed order and builds a report.

    - Sync runs first; if it fails every other step is skipped.
    - A step without a command is skipped as not configured.
    - The first failing step halts the run.
    - A failing build may be retried in place after a fix, up to
      ``max_build_attempts`` runs in total.
    """

    def __init__(
        self,
        commands: Optional[Mapping[Union[StepName, str], Optional[str]]] = None,
        base_branch: str = "main",
        working_branch: Optional[str] = None,
        remote: Optional[str] = "origin",
        strategy: SyncStrategy = SyncStrategy.MERGE,
        project_root: Optional[Path] = None,
        executor: Optional[CommandExecutor] = None,
        syncer: Optional[BranchSync] = None,
        max_build_attempts: int = 3,
        sources: Optional[Mapping[Union[StepName, str], str]] = None,
    ):
        """
        Initialize the runner.

        Args:
            commands: Step -> shell command; missing or None means not configured
            base_branch: Branch the working branch is synced with
            working_branch: Branch to verify (default: currently checked out)
            remote: Remote to fetch the base branch from, None for local only
            strategy: Merge or rebase
            project_root: Directory commands run in
            executor: Command executor (built from project_root if omitted)
            syncer: Branch sync implementation (built from the above if omitted)
            max_build_attempts: Total build runs allowed, including the first
            sources: Step -> where its command came from, for the report
        """
        if max_build_attempts < 1:
            raise ValueError("max_build_attempts must be at least 1")

        self.base_branch = base_branch
        self.working_branch = working_branch
        self.remote = remote
        self.max_build_attempts = max_build_attempts
        self.executor = executor or CommandExecutor(cwd=project_root)
        self.syncer = syncer or BranchSync(
            self.executor,
            base_branch=base_branch,
            working_branch=working_branch,
            remote=remote,
            strategy=strategy,
        )
        self.steps = self._build_steps(commands or {}, sources or {})

    @classmethod
    def from_config(
        cls,
        config: PreflightConfig,
        project_root: Optional[Path] = None,
        overrides: Optional[Mapping[StepName, str]] = None,
        executor: Optional[CommandExecutor] = None,
    ) -> "PreflightRunner":
        """
        Build a runner from configuration, resolving project-declared commands.

        Args:
            config: Loaded configuration
            project_root: Project directory (default: current directory)
            overrides: Commands given explicitly, e.g. on the command line
            executor: Command executor to use
        """
        from ..detect import CommandDetector

        root = Path(project_root) if project_root else Path.cwd()
        resolved = CommandDetector(root).resolve(config, overrides)

        return cls(
            commands={step: r.command for step, r in resolved.items()},
            sources={step: r.source for step, r in resolved.items() if r.source},
            base_branch=config.base_branch,
            working_branch=config.working_branch,
            remote=config.remote,
            strategy=config.sync_strategy,
            project_root=root,
            executor=executor or CommandExecutor(cwd=root, timeout=config.timeout),
            max_build_attempts=config.build_retry.max_attempts,
        )

    @staticmethod
    def _build_steps(
        commands: Mapping[Union[StepName, str], Optional[str]],
        sources: Mapping[Union[StepName, str], str],
    ) -> Dict[StepName, Step]:
        normalized = {StepName(k): v for k, v in commands.items()}
        named_sources = {StepName(k): v for k, v in sources.items()}

        if StepName.SYNC in normalized:
            raise ValueError("The sync step is driven by git and takes no command")

        steps = {}
        for name in CHECK_STEPS:
            command = normalized.get(name)
            if command is not None and not command.strip():
                command = None
            steps[name] = Step(name=name, command=command, source=named_sources.get(name))
        return steps

    @property
    def sync_target(self) -> str:
        if self.remote:
            return f"{self.remote}/{self.base_branch}"
        return self.base_branch

    def run(
        self,
        fixer: Optional[BuildFixer] = None,
        risk: Optional[RiskLevel] = None,
        measure_scope: bool = False,
    ) -> PreflightReport:
        """
        Run the full preflight sequence.

        Args:
            fixer: Called after each failed build attempt; True requests a retry
            risk: Risk level assigned by the caller, recorded as-is
            measure_scope: Also record the diff footprint against the base branch

        Returns:
            A fresh PreflightReport
        """
        report = PreflightReport(
            base_branch=self.base_branch,
            working_branch=self.working_branch,
            risk=RiskLevel(risk) if risk else None,
        )

        sync_result, branch = self._run_sync()
        report.add(sync_result)
        if branch:
            report.working_branch = branch

        if sync_result.failed:
            logger.warning("Sync with %s failed; skipping remaining steps", self.sync_target)
            for name in CHECK_STEPS:
                report.add(self._skip(self.steps[name], SKIP_BLOCKED_BY_SYNC))
            return report

        blocked = False
        for name in CHECK_STEPS:
            step = self.steps[name]

            if blocked:
                report.add(self._skip(step, SKIP_BLOCKED_BY_FAILURE))
                continue

            if not step.configured:
                logger.info("%s: no command configured, skipping", name.label)
                report.add(StepResult.skip(step))
                continue

            result = self._run_step(step)
            if result.failed and name == StepName.BUILD and fixer is not None:
                result = self._retry_until_fixed(result, fixer)

            report.add(result)
            if result.failed:
                logger.warning("%s failed: %s", name.label, step.command)
                blocked = True

        if measure_scope:
            report.scope = collect_scope(self.executor, self.sync_target)

        return report

    def retry_build(
        self,
        report: PreflightReport,
        fixer: Optional[BuildFixer] = None,
    ) -> StepResult:
        """
        Re-run only the build step of a report whose build failed.

        The caller is expected to have applied a minimal fix, or to pass a
        fixer that applies it. The report's build result is replaced and
        the failed attempt kept in its history.

        Raises:
            PreflightError: If the report's build did not fail
            RetryLimitError: If the build has used all its attempts
        """
        current = report.result_for(StepName.BUILD)
        if current is None or not current.failed:
            raise PreflightError("Build has not failed in this report; nothing to retry")
        if current.attempts >= self.max_build_attempts:
            raise RetryLimitError(
                f"Build already ran {current.attempts} times "
                f"(limit {self.max_build_attempts})"
            )

        if fixer is not None and not fixer(current):
            logger.info("Fixer declined; build result left as is")
            return current

        result = self._rerun_build(current)
        report.replace(result)
        return result

    def _run_sync(self) -> Tuple[StepResult, Optional[str]]:
        started_at = utcnow()
        outcome = self.syncer.sync()
        status = StepStatus.PASSED if outcome.ok else StepStatus.FAILED
        result = StepResult(
            step=StepName.SYNC,
            status=status,
            command=outcome.command,
            output=outcome.output,
            failure=outcome.failure,
            exit_code=outcome.exit_code,
            source="git",
            started_at=started_at,
            duration_ms=outcome.duration_ms,
        )
        return result, outcome.working_branch

    def _run_step(self, step: Step) -> StepResult:
        logger.info("%s: running %s", step.name.label, step.command)
        started_at = utcnow()
        outcome = self.executor.run(step.command)
        return StepResult(
            step=step.name,
            status=StepStatus.PASSED if outcome.ok else StepStatus.FAILED,
            command=step.command,
            output=outcome.output,
            failure=outcome.failure,
            exit_code=outcome.exit_code,
            source=step.source,
            started_at=started_at,
            duration_ms=outcome.duration_ms,
        )

    def _retry_until_fixed(self, result: StepResult, fixer: BuildFixer) -> StepResult:
        while result.failed and result.attempts < self.max_build_attempts:
            if not fixer(result):
                logger.info("Fixer gave up after build attempt %d", result.attempts)
                break
            result = self._rerun_build(result)

        if result.failed and result.attempts >= self.max_build_attempts:
            logger.warning("Build still failing after %d attempts", result.attempts)
        return result

    def _rerun_build(self, previous: StepResult) -> StepResult:
        result = self._run_step(self.steps[StepName.BUILD])
        result.previous_attempts = previous.previous_attempts + [
            dataclasses.replace(previous, previous_attempts=[])
        ]
        logger.info(
            "Build attempt %d %s", result.attempts, "passed" if result.passed else "failed"
        )
        return result

    @staticmethod
    def _skip(step: Step, blocked_reason: str) -> StepResult:
        """Skip a step; an unconfigured step keeps its own reason."""
        if not step.configured:
            return StepResult.skip(step)
        return StepResult.skip(step, blocked_reason)

