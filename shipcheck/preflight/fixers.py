"""
Build Fixers

A fixer is called between build attempts. It applies a minimal fix and
returns True to request another attempt, or False to give up.
"""

import logging
from typing import Callable, Optional

from rich.console import Console
from rich.prompt import Confirm
from rich.text import Text

from .commands import CommandExecutor
from .models import StepResult

logger = logging.getLogger(__name__)

BuildFixer = Callable[[StepResult], bool]


class CommandFixer:
    """Runs a shell command (formatter, code-mod, agent) to fix the build."""

    def __init__(self, command: str, executor: CommandExecutor):
        self.command = command
        self.executor = executor

    def __call__(self, failed: StepResult) -> bool:
        logger.info("Build attempt %d failed, running fix: %s", failed.attempts, self.command)
        outcome = self.executor.run(self.command)
        if not outcome.ok:
            logger.warning(
                "Fix command %r failed (%s); not retrying build",
                self.command,
                outcome.failure.description,
            )
            return False
        return True


class PromptFixer:
    """Asks the person at the terminal to apply a fix before retrying."""

    def __init__(self, console: Optional[Console] = None, tail_lines: int = 20):
        self.console = console or Console()
        self.tail_lines = tail_lines

    def __call__(self, failed: StepResult) -> bool:
        self.console.print(
            f"\n[red]Build failed[/red] (attempt {failed.attempts}): "
            f"[cyan]{failed.command}[/cyan]"
        )
        tail = failed.output.strip().splitlines()[-self.tail_lines:]
        if tail:
            self.console.print(Text("\n".join(tail), style="dim"))
        try:
            return Confirm.ask(
                "[yellow]Apply a minimal fix for this failure, then retry the build?[/yellow]",
                console=self.console,
            )
        except EOFError:
            logger.info("No answer on stdin; not retrying build")
            return False
