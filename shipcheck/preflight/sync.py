"""
Branch Sync

Brings the working branch up to date with the base branch before any
check runs.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..config.models import SyncStrategy
from .commands import CommandExecutor, CommandOutcome
from .models import FailureKind

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    """Result of syncing the working branch."""
    command: str
    working_branch: Optional[str]
    outcomes: List[CommandOutcome] = field(default_factory=list)
    failure: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def exit_code(self) -> Optional[int]:
        return self.outcomes[-1].exit_code if self.outcomes else None

    @property
    def output(self) -> str:
        """Transcript of every git command that ran."""
        parts = []
        for outcome in self.outcomes:
            parts.append(f"$ {outcome.command}")
            if outcome.output.strip():
                parts.append(outcome.output.rstrip())
        return "\n".join(parts)

    @property
    def duration_ms(self) -> int:
        return sum(o.duration_ms for o in self.outcomes)


class BranchSync:
    """
    Integrates the base branch into the working branch with git.

    Sequence:
    1. Resolve the current branch, checking out the working branch if needed
    2. Fetch the base branch from the remote (when a remote is configured)
    3. Merge or rebase onto the base branch, aborting on conflict
    """

    def __init__(
        self,
        executor: CommandExecutor,
        base_branch: str = "main",
        working_branch: Optional[str] = None,
        remote: Optional[str] = "origin",
        strategy: SyncStrategy = SyncStrategy.MERGE,
    ):
        self.executor = executor
        self.base_branch = base_branch
        self.working_branch = working_branch
        self.remote = remote
        self.strategy = SyncStrategy(strategy)

    @property
    def target(self) -> str:
        """Ref integrated into the working branch."""
        if self.remote:
            return f"{self.remote}/{self.base_branch}"
        return self.base_branch

    def integrate_command(self) -> List[str]:
        if self.strategy == SyncStrategy.REBASE:
            return ["git", "rebase", self.target]
        return ["git", "merge", "--no-edit", self.target]

    def sync(self) -> SyncOutcome:
        """
        Sync the working branch with the base branch.

        Returns:
            SyncOutcome describing every git command run
        """
        command = " ".join(self.integrate_command())
        result = SyncOutcome(command=command, working_branch=self.working_branch)

        head = self.executor.run(["git", "rev-parse", "--abbrev-ref", "HEAD"])
        result.outcomes.append(head)
        if not head.ok:
            result.failure = head.failure
            return result

        current = head.output.strip()
        if self.working_branch and self.working_branch != current:
            checkout = self.executor.run(["git", "checkout", self.working_branch])
            result.outcomes.append(checkout)
            if not checkout.ok:
                result.failure = checkout.failure
                return result
            current = self.working_branch
        elif current == "HEAD":
            short = self.executor.run(["git", "rev-parse", "--short", "HEAD"])
            result.outcomes.append(short)
            current = short.output.strip() if short.ok else None
            logger.warning("HEAD is detached at %s; syncing the detached checkout", current)

        result.working_branch = current

        if self.remote:
            fetch = self.executor.run(["git", "fetch", self.remote, self.base_branch])
            result.outcomes.append(fetch)
            if not fetch.ok:
                result.failure = fetch.failure
                return result

        integrate = self.executor.run(self.integrate_command())
        result.outcomes.append(integrate)
        if integrate.ok:
            logger.info("Synced %s with %s (%s)", current, self.target, self.strategy.value)
            return result

        result.failure = (
            FailureKind.CONFLICT
            if integrate.failure == FailureKind.EXIT_CODE
            else integrate.failure
        )
        self._abort()
        return result

    def _abort(self) -> None:
        """Leave the tree as it was before the failed merge or rebase."""
        abort = ["git", self.strategy.value, "--abort"]
        outcome = self.executor.run(abort)
        if not outcome.ok:
            logger.debug("%s: %s", " ".join(abort), outcome.output.strip())
