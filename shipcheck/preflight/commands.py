"""
Command Execution

Runs one external command for a step and classifies how it ended.
"""

import logging
import os
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from .models import FailureKind

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]

# POSIX shell exit statuses for launch failures
SHELL_NOT_EXECUTABLE = 126
SHELL_NOT_FOUND = 127


def display_command(command: Command) -> str:
    """Render a command the way it would be typed."""
    if isinstance(command, str):
        return command
    return shlex.join(command)


def _as_text(data: Union[str, bytes, None]) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


@dataclass
class CommandOutcome:
    """What happened when a command was run."""
    command: str
    exit_code: Optional[int]
    output: str
    failure: Optional[FailureKind] = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.failure is None


class CommandExecutor:
    """
    Runs external commands from the project root.

    String commands go through the shell so project-declared commands
    like ``npm run lint && npm run format:check`` work as written.
    Sequences are executed directly. stdout and stderr are captured
    together so failures can be surfaced verbatim.
    """

    def __init__(
        self,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the executor.

        Args:
            cwd: Directory commands run in (default: current directory)
            timeout: Seconds before a command is killed, None for no limit
            env: Extra environment variables for the commands
        """
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.timeout = timeout
        self.env = env

    def _environment(self) -> Optional[Dict[str, str]]:
        if not self.env:
            return None
        merged = dict(os.environ)
        merged.update(self.env)
        return merged

    def run(self, command: Command, timeout: Optional[float] = None) -> CommandOutcome:
        """
        Run a command and capture its output.

        Args:
            command: Shell string or argument sequence
            timeout: Overrides the executor timeout for this command

        Returns:
            CommandOutcome; never raises for command failures
        """
        shown = display_command(command)
        shell = isinstance(command, str)
        limit = timeout if timeout is not None else self.timeout

        logger.debug("Running %r in %s", shown, self.cwd)
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            proc = subprocess.Popen(
                command if shell else list(command),
                shell=shell,
                cwd=str(self.cwd),
                env=self._environment(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except FileNotFoundError as e:
            return CommandOutcome(
                command=shown,
                exit_code=None,
                output=str(e),
                failure=FailureKind.NOT_FOUND,
                duration_ms=elapsed(),
            )
        except PermissionError as e:
            return CommandOutcome(
                command=shown,
                exit_code=None,
                output=str(e),
                failure=FailureKind.NOT_EXECUTABLE,
                duration_ms=elapsed(),
            )
        except OSError as e:
            logger.error("Could not start %r: %s", shown, e)
            return CommandOutcome(
                command=shown,
                exit_code=None,
                output=str(e),
                failure=FailureKind.ERROR,
                duration_ms=elapsed(),
            )

        try:
            output, _ = proc.communicate(timeout=limit)
        except subprocess.TimeoutExpired:
            logger.warning("Command %r timed out after %ss", shown, limit)
            self._kill(proc)
            output, _ = proc.communicate()
            return CommandOutcome(
                command=shown,
                exit_code=None,
                output=_as_text(output) + f"\n[timed out after {limit}s]",
                failure=FailureKind.TIMEOUT,
                duration_ms=elapsed(),
            )

        failure = self._classify(proc.returncode, shell)
        logger.debug("Command %r exited %s in %dms", shown, proc.returncode, elapsed())

        return CommandOutcome(
            command=shown,
            exit_code=proc.returncode,
            output=output or "",
            failure=failure,
            duration_ms=elapsed(),
        )

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        """Kill the command and everything it started."""
        if hasattr(os, "killpg"):
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                logger.debug("Process group %d already gone", proc.pid)
        else:
            proc.kill()

    @staticmethod
    def _classify(returncode: int, shell: bool) -> Optional[FailureKind]:
        if returncode == 0:
            return None
        if shell and returncode == SHELL_NOT_FOUND:
            return FailureKind.NOT_FOUND
        if shell and returncode == SHELL_NOT_EXECUTABLE:
            return FailureKind.NOT_EXECUTABLE
        return FailureKind.EXIT_CODE
