"""
Command-line interface for shipcheck.

Provides commands for running the preflight sequence, inspecting which
commands a project declares, and managing the configuration file.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from . import __version__
from .config import CHECK_STEPS, STEP_ORDER, ConfigError, ConfigLoader, PreflightConfig, StepName
from .config.defaults import get_default_config
from .detect import CommandDetector
from .preflight import PreflightReport, PreflightRunner, RiskLevel
from .preflight.commands import CommandExecutor
from .preflight.fixers import CommandFixer, PromptFixer
from .preflight.report import (
    format_attempt_lines,
    render_json,
    render_markdown,
    render_text,
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

EXIT_FAILED = 1
EXIT_USAGE = 2


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_config(config: Optional[str], project: Path) -> ConfigLoader:
    """Load the config file, or search the project directory for one."""
    loader = ConfigLoader(config or project)
    try:
        loader.load()
    except ConfigError as e:
        err_console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(EXIT_USAGE)
    return loader


# ============================================================
# Main CLI Group
# ============================================================

@click.group()
@click.version_option(version=__version__, prog_name="shipcheck")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, verbose: bool):
    """
    shipcheck - preflight verification before a pull request

    Syncs the working branch with its base, then runs lint, typecheck,
    test and build in that order, stopping at the first failure.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


# ============================================================
# RUN Command
# ============================================================

@cli.command()
@click.option("--project", "-p", type=click.Path(exists=True, file_okay=False), default=".", help="Project directory")
@click.option("--config", "-c", type=click.Path(exists=True), envvar="SHIPCHECK_CONFIG", help="Configuration file (or set SHIPCHECK_CONFIG)")
@click.option("--branch", "-b", type=str, help="Working branch (default: current branch)")
@click.option("--base", type=str, envvar="SHIPCHECK_BASE_BRANCH", help="Base branch (or set SHIPCHECK_BASE_BRANCH)")
@click.option("--remote", type=str, envvar="SHIPCHECK_REMOTE", help="Remote to fetch the base from (or set SHIPCHECK_REMOTE)")
@click.option("--no-remote", is_flag=True, help="Integrate the local base branch without fetching")
@click.option("--strategy", type=click.Choice(["merge", "rebase"]), help="How to sync with the base branch")
@click.option("--lint", "lint_cmd", type=str, help="Lint command")
@click.option("--typecheck", "typecheck_cmd", type=str, help="Type-check command")
@click.option("--test", "test_cmd", type=str, help="Test command")
@click.option("--build", "build_cmd", type=str, help="Build command")
@click.option("--no-detect", is_flag=True, help="Do not detect project-declared commands")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Per-command timeout in seconds")
@click.option("--max-build-attempts", type=click.IntRange(1, 20), help="Total build attempts, including the first")
@click.option("--fix-command", type=str, envvar="SHIPCHECK_FIX_COMMAND", help="Command applying a fix between build attempts")
@click.option("--interactive", "-i", is_flag=True, help="Ask before each build retry")
@click.option("--risk", type=click.Choice([r.value for r in RiskLevel]), help="Risk level to record in the report")
@click.option("--scope", is_flag=True, help="Include the diff footprint against the base branch")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "text", "markdown", "json"]),
    default="table",
    help="Report format",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Also write the report to a file")
@click.pass_context
def run(
    ctx,
    project: str,
    config: Optional[str],
    branch: Optional[str],
    base: Optional[str],
    remote: Optional[str],
    no_remote: bool,
    strategy: Optional[str],
    lint_cmd: Optional[str],
    typecheck_cmd: Optional[str],
    test_cmd: Optional[str],
    build_cmd: Optional[str],
    no_detect: bool,
    timeout: Optional[float],
    max_build_attempts: Optional[int],
    fix_command: Optional[str],
    interactive: bool,
    risk: Optional[str],
    scope: bool,
    output_format: str,
    output: Optional[str],
):
    """Run the preflight sequence: sync, lint, typecheck, test, build."""
    project_path = Path(project).resolve()
    loader = _load_config(config, project_path)

    updates: Dict[str, object] = {}
    if branch:
        updates["working_branch"] = branch
    if base:
        updates["base_branch"] = base
    if remote:
        updates["remote"] = remote
    if no_remote:
        updates["remote"] = None
    if strategy:
        updates["sync_strategy"] = strategy
    if no_detect:
        updates["detect"] = False
    if timeout:
        updates["timeout"] = timeout

    retry = loader.config.build_retry.model_dump()
    if max_build_attempts:
        retry["max_attempts"] = max_build_attempts
    if fix_command:
        retry["fix_command"] = fix_command
    updates["build_retry"] = retry

    try:
        settings = PreflightConfig.model_validate(
            {**loader.config.model_dump(exclude={"steps"}), **updates, "steps": loader.config.steps}
        )
    except ValueError as e:
        err_console.print(f"[red]Invalid options: {e}[/red]")
        sys.exit(EXIT_USAGE)

    overrides = {
        StepName.LINT: lint_cmd,
        StepName.TYPECHECK: typecheck_cmd,
        StepName.TEST: test_cmd,
        StepName.BUILD: build_cmd,
    }

    executor = CommandExecutor(cwd=project_path, timeout=settings.timeout)
    runner = PreflightRunner.from_config(
        settings,
        project_root=project_path,
        overrides={k: v for k, v in overrides.items() if v},
        executor=executor,
    )

    fixer = None
    if interactive:
        fixer = PromptFixer(console=err_console)
    elif settings.build_retry.fix_command:
        fixer = CommandFixer(settings.build_retry.fix_command, executor)

    if output_format == "table":
        console.print(f"\n[bold blue]Running preflight[/bold blue] against [cyan]{runner.sync_target}[/cyan]\n")

    report = runner.run(
        fixer=fixer,
        risk=RiskLevel(risk) if risk else None,
        measure_scope=scope,
    )

    rendered = _render(report, output_format, verbose=ctx.obj.get("verbose", False))
    if output:
        Path(output).write_text(
            rendered if output_format != "table" else render_text(report),
            encoding="utf-8",
        )
        logger.info("Report written to %s", output)

    if not report.passed:
        sys.exit(EXIT_FAILED)


def _render(report: PreflightReport, output_format: str, verbose: bool = False) -> str:
    """Print the report in the requested format and return its text."""
    if output_format == "json":
        text = render_json(report)
        click.echo(text)
        return text
    if output_format == "markdown":
        text = render_markdown(report)
        click.echo(text, nl=False)
        return text
    if output_format == "text":
        text = render_text(report)
        click.echo(text, nl=False)
        return text

    _print_table(report, verbose)
    return ""


def _print_table(report: PreflightReport, verbose: bool) -> None:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Command")
    table.add_column("Details")

    for result in report.results:
        if result.passed:
            status = "[green]✅ PASS[/green]"
        elif result.failed:
            status = "[red]❌ FAIL[/red]"
        else:
            status = "[yellow]SKIPPED[/yellow]"

        details = []
        if result.skipped:
            details.append(result.reason or "")
        elif result.failure:
            details.append(result.failure.description)
        if result.attempts > 1:
            details.append(f"{result.attempts} attempts")
        if verbose and result.source:
            details.append(f"from {result.source}")

        table.add_row(
            result.step.label,
            status,
            result.command or "-",
            "; ".join(d for d in details if d),
        )

    console.print(table)

    for result in report.results:
        for line in format_attempt_lines(result):
            console.print(f"  [dim]{result.step.label} {line}[/dim]")

    if report.risk:
        console.print(f"Risk: [bold]{report.risk.value.capitalize()}[/bold]")
    if report.scope:
        console.print(f"Scope: {report.scope.summary()}")

    failed = report.failed_step
    if failed and failed.output.strip():
        console.print(Panel(
            failed.output.rstrip(),
            title=f"{failed.step.label} output",
            border_style="red",
        ))

    console.print()
    if report.passed:
        console.print(f"[green]{report.summary()}[/green]")
        console.print("\n[bold]Ready to open the pull request.[/bold]")
    else:
        console.print(f"[red]{report.summary()}[/red]")
        console.print("\n[bold]Fix the failure above and run again.[/bold]")


# ============================================================
# DETECT Command
# ============================================================

@cli.command()
@click.option("--project", "-p", type=click.Path(exists=True, file_okay=False), default=".", help="Project directory")
@click.option("--config", "-c", type=click.Path(exists=True), envvar="SHIPCHECK_CONFIG", help="Configuration file")
def detect(project: str, config: Optional[str]):
    """Show which command each step would run, and where it comes from."""
    project_path = Path(project).resolve()
    loader = _load_config(config, project_path)
    resolved = CommandDetector(project_path).resolve(loader.config)

    table = Table(title="Preflight Commands")
    table.add_column("Step", style="cyan")
    table.add_column("Command", style="green")
    table.add_column("Source", style="white")

    table.add_row("Sync", f"git {loader.config.sync_strategy.value} {loader.config.sync_target}", "git")
    for step in CHECK_STEPS:
        found = resolved[step]
        if found.configured:
            table.add_row(step.label, found.command, found.source or "")
        else:
            table.add_row(step.label, "[yellow]SKIPPED (not configured)[/yellow]", found.source or "")

    console.print(table)


# ============================================================
# INIT Command
# ============================================================

@cli.command()
@click.option("--project", "-p", type=click.Path(exists=True, file_okay=False), default=".", help="Project directory")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Config file to write (default: <project>/shipcheck.yaml)")
@click.option("--base", type=str, default="main", help="Base branch")
@click.option("--force", is_flag=True, help="Overwrite an existing file without asking")
def init(project: str, output: Optional[str], base: str, force: bool):
    """Write a configuration file from the commands the project declares."""
    project_path = Path(project).resolve()
    output_path = Path(output) if output else project_path / "shipcheck.yaml"

    if output_path.exists() and not force:
        if not Confirm.ask(f"[yellow]{output_path} exists. Overwrite?[/yellow]", console=console):
            console.print("[red]Aborted.[/red]")
            return

    data = get_default_config()
    data["base_branch"] = base
    detected = CommandDetector(project_path).detect()
    data["steps"] = {step.value: found.command for step, found in detected.items()}

    try:
        loader = ConfigLoader.from_dict(data)
    except ConfigError as e:
        err_console.print(f"[red]{e}[/red]")
        sys.exit(EXIT_USAGE)
    written = loader.save(output_path)

    missing = [step.label for step in CHECK_STEPS if step not in detected]
    lines = [
        "[green]Configuration written![/green]\n",
        f"File: [cyan]{written}[/cyan]",
        f"Detected: {len(detected)} of {len(CHECK_STEPS)} steps",
    ]
    if missing:
        lines.append(f"Not configured: [yellow]{', '.join(missing)}[/yellow]")
    lines.append("\n[bold]Next:[/bold] [yellow]shipcheck run[/yellow]")
    console.print(Panel.fit("\n".join(lines), title="Initialization Complete"))


# ============================================================
# VALIDATE Command
# ============================================================

@cli.command()
@click.option("--config", "-c", type=click.Path(exists=True), required=True, help="Configuration to validate")
def validate(config: str):
    """Validate a configuration file."""
    console.print(f"\n[bold blue]Validating configuration: {config}[/bold blue]\n")

    try:
        loader = ConfigLoader(config).load()
    except ConfigError as e:
        console.print(f"[red]✗ Validation failed: {e}[/red]")
        sys.exit(EXIT_FAILED)

    settings = loader.config
    console.print("[green]✓ Configuration is valid![/green]\n")

    table = Table(title="Configuration Summary")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Base branch", settings.base_branch)
    table.add_row("Working branch", settings.working_branch or "current branch")
    table.add_row("Sync", f"{settings.sync_strategy.value} {settings.sync_target}")
    table.add_row("Detection", "on" if settings.detect else "off")
    table.add_row("Timeout", f"{settings.timeout}s" if settings.timeout else "none")
    table.add_row("Build attempts", str(settings.build_retry.max_attempts))

    declared = settings.steps.declared()
    for step in CHECK_STEPS:
        if step in declared:
            table.add_row(step.label, declared[step] or "disabled")
        else:
            table.add_row(step.label, "detect" if settings.detect else "not configured")
    console.print(table)


# ============================================================
# STEPS Command
# ============================================================

@cli.command("steps")
def list_steps():
    """List the preflight steps in execution order."""
    for index, step in enumerate(STEP_ORDER, start=1):
        console.print(f"{index}. {step.label}")


# ============================================================
# Entry Point
# ============================================================

if __name__ == "__main__":
    cli()
