"""
Report rendering for preflight runs.

Renders a PreflightReport as plain text (one line per step), as a
Markdown verification section for a pull request body, or as JSON.
"""

import json
from typing import TYPE_CHECKING, List

from jinja2 import Environment, PackageLoader, StrictUndefined

from .models import FailureKind, StepStatus

if TYPE_CHECKING:
    from .models import PreflightReport, StepResult

PASS_MARK = "✅"
FAIL_MARK = "❌"

# Failing output is cut to its last lines in the Markdown body
OUTPUT_TAIL_LINES = 50


def format_step_line(result: "StepResult") -> str:
    """
    Format one step as ``<Step>: <✅|❌> (<command>)``.

    Skipped steps read ``<Step>: SKIPPED (<reason>)``.
    """
    label = result.step.label

    if result.status == StepStatus.SKIPPED:
        return f"{label}: SKIPPED ({result.reason})"

    details = [result.command or ""]
    if result.failure and result.failure != FailureKind.EXIT_CODE:
        details.append(result.failure.description)
    if result.attempts > 1:
        if result.passed:
            details.append(f"passed on attempt {result.attempts}")
        else:
            details.append(f"{result.attempts} attempts")

    mark = PASS_MARK if result.passed else FAIL_MARK
    return f"{label}: {mark} ({'; '.join(details)})"


def format_attempt_lines(result: "StepResult") -> List[str]:
    """Lines for the failed attempts that preceded the final one."""
    lines = []
    for number, attempt in enumerate(result.previous_attempts, start=1):
        reason = ""
        if attempt.failure and attempt.failure != FailureKind.EXIT_CODE:
            reason = f"; {attempt.failure.description}"
        lines.append(f"attempt {number}: {FAIL_MARK} ({attempt.command}{reason})")
    return lines


def overall_line(report: "PreflightReport") -> str:
    mark = PASS_MARK if report.passed else FAIL_MARK
    return f"Overall: {mark} {report.summary()}"


def output_tail(output: str, lines: int = OUTPUT_TAIL_LINES) -> str:
    kept = output.rstrip().splitlines()
    if len(kept) <= lines:
        return "\n".join(kept)
    return "\n".join([f"... ({len(kept) - lines} earlier lines omitted)"] + kept[-lines:])


def render_text(report: "PreflightReport") -> str:
    """Render the report as plain text, free of timestamps."""
    lines = []
    for result in report.results:
        lines.append(format_step_line(result))
        lines.extend(f"  {line}" for line in format_attempt_lines(result))
    if report.risk:
        lines.append(f"Risk: {report.risk.value.capitalize()}")
    if report.scope:
        lines.append(f"Scope: {report.scope.summary()}")
    lines.append(overall_line(report))
    return "\n".join(lines) + "\n"


def _environment() -> Environment:
    env = Environment(
        loader=PackageLoader("shipcheck", "templates"),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["step_line"] = format_step_line
    env.filters["attempt_lines"] = format_attempt_lines
    env.filters["tail"] = output_tail
    return env


def render_markdown(report: "PreflightReport") -> str:
    """Render the Markdown verification section for a PR body."""
    template = _environment().get_template("verification.md.j2")
    return template.render(
        report=report,
        failed=report.failed_step,
        pass_mark=PASS_MARK,
        fail_mark=FAIL_MARK,
    )


def render_json(report: "PreflightReport", include_timestamps: bool = True) -> str:
    return json.dumps(report.to_dict(include_timestamps), indent=2, ensure_ascii=False)
