"""Tests for build fixers."""

import io

from rich.console import Console

from shipcheck.config import StepName
from shipcheck.preflight.fixers import CommandFixer, PromptFixer
from shipcheck.preflight.models import FailureKind, StepResult, StepStatus

from conftest import ScriptedExecutor


def failed_build(output="error: cannot find symbol"):
    return StepResult(
        step=StepName.BUILD,
        status=StepStatus.FAILED,
        command="make build",
        output=output,
        failure=FailureKind.EXIT_CODE,
    )


class TestCommandFixer:
    def test_success_requests_retry(self, calls):
        executor = ScriptedExecutor(calls=calls)
        fixer = CommandFixer("make fmt", executor)

        assert fixer(failed_build()) is True
        assert calls == ["make fmt"]

    def test_failure_gives_up(self, calls):
        executor = ScriptedExecutor({"make fmt": (2, "fmt failed")}, calls=calls)

        assert CommandFixer("make fmt", executor)(failed_build()) is False


class TestPromptFixer:
    def make_console(self, answer):
        console = Console(file=io.StringIO(), force_terminal=False, width=100)
        console.input = lambda *args, **kwargs: answer
        return console

    def test_yes(self):
        console = self.make_console("y")

        assert PromptFixer(console=console)(failed_build()) is True
        assert "cannot find symbol" in console.file.getvalue()

    def test_no(self):
        console = self.make_console("n")

        assert PromptFixer(console=console)(failed_build()) is False

    def test_closed_stdin_gives_up(self):
        console = Console(file=io.StringIO(), force_terminal=False, width=100)

        def no_input(*args, **kwargs):
            raise EOFError

        console.input = no_input

        assert PromptFixer(console=console)(failed_build()) is False
