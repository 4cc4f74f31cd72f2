"""CLI entry point for panecraft."""

import logging
import os
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from panecraft import __version__
from panecraft.config import (
    Config,
    default_config,
    display_config_warnings,
    load_config,
    preset_source,
    resolve_window_mode,
    save_config,
    select_preset_key,
)
from panecraft.diagnostics import DiagnosticsReport, Severity, diagnose_preset_value, run_diagnostics
from panecraft.dry_run import render_dry_run_steps
from panecraft.errors import CoreError, ErrorCode
from panecraft.executor import CURRENT_PANE_ENV, ConfirmPaneClosure, execute_plan
from panecraft.models import WindowMode
from panecraft.pipeline import PipelineResult, run_pipeline
from panecraft.tmux_manager import CommandExecutor, DryRunCommandExecutor, TmuxCommandExecutor, is_inside_tmux
from panecraft.xdg_paths import ensure_config_dir, get_config_file_path

app = typer.Typer(
    name="panecraft",
    help="Build tmux pane layouts from declarative YAML presets.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("panecraft")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"panecraft {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _fail(error: CoreError) -> typer.Exit:
    if error.code == ErrorCode.USER_CANCELLED:
        err_console.print(f"[yellow]Aborted:[/] {escape(error.message)}")
    else:
        err_console.print(f"[red]Error:[/] {escape(str(error))}")
        if error.source:
            err_console.print(f"[dim]  in {escape(error.source)}[/]")
    logger.debug("Error details: %s", error.to_dict())
    return typer.Exit(1)


def _load(config_path: Path | None) -> Config:
    config, warnings = load_config(config_path)
    display_config_warnings(warnings, err_console)
    return config


def _read_preset_file(file: Path) -> str:
    try:
        return file.read_text(encoding="utf-8")
    except OSError as e:
        err_console.print(f"[red]Error:[/] Cannot read preset file {file}: {e}")
        raise typer.Exit(1) from e


def _build_pipeline(
    config: Config,
    preset: str | None,
    file: Path | None,
    config_path: Path | None,
) -> tuple[PipelineResult, object]:
    """Run the pipeline for a preset file or a configured preset.

    Returns:
        The pipeline result and the raw preset value (for preset-level settings).
    """
    if file is not None:
        document = _read_preset_file(file)
        result = run_pipeline(document=document, source=str(file))
        return result, yaml.safe_load(document)

    key = select_preset_key(config, preset)
    result = run_pipeline(value=config.presets[key], source=preset_source(key, config_path))
    return result, config.presets[key]


def _confirm_pane_closure(assume_yes: bool) -> ConfirmPaneClosure:
    def _confirm(panes: list[str], dry_run: bool) -> bool:
        if dry_run:
            console.print(f"[dim]Would close {len(panes)} pane(s): {', '.join(panes)}[/]")
            return True
        if assume_yes:
            return True
        return typer.confirm(
            f"Close {len(panes)} other pane(s) in the current window ({', '.join(panes)})?",
            default=False,
        )

    return _confirm


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version."),
    ] = None,
) -> None:
    """Build tmux pane layouts from declarative YAML presets."""


@app.command()
def apply(
    preset: Annotated[
        str | None,
        typer.Argument(help="Configured preset to apply (defaults to 'default' or the first preset)."),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Apply a preset from a YAML file instead of the config."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Preview commands without executing."),
    ] = False,
    current_window: Annotated[
        bool,
        typer.Option("--current-window", help="Reuse the current window, closing its other panes."),
    ] = False,
    window_mode: Annotated[
        WindowMode | None,
        typer.Option("--window-mode", "-w", help="Window mode, overriding the preset and config defaults."),
    ] = None,
    window_name: Annotated[
        str | None,
        typer.Option("--window-name", help="Name for a newly created window."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Close other panes without asking."),
    ] = False,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity."),
    ] = 0,
) -> None:
    """Apply a layout preset to tmux."""
    _configure_logging(verbose)
    config = _load(config_path)

    cli_mode = WindowMode.CURRENT_WINDOW if current_window else window_mode

    try:
        result, preset_value = _build_pipeline(config, preset, file, config_path)
        mode = resolve_window_mode(cli_mode, preset_value, config.defaults)
        name = window_name or config.defaults.window_name

        executor: CommandExecutor
        if dry_run:
            console.print(f"[bold]Dry run:[/] {escape(result.preset.name)} ({mode.value})")
            for line in render_dry_run_steps(result.emission):
                console.print(f"  {escape(line)}")
            console.print(f"[dim]Plan hash: {result.emission.hash}[/]")
            # Seed the simulation with the pane we are in so current-window replays cleanly
            current_pane = os.environ.get(CURRENT_PANE_ENV)
            executor = DryRunCommandExecutor([current_pane] if current_pane else None)
        else:
            if not is_inside_tmux():
                raise CoreError(
                    "execution",
                    ErrorCode.NOT_IN_TMUX_SESSION,
                    "Must be run inside a tmux session",
                )
            executor = TmuxCommandExecutor()

        outcome = execute_plan(
            result.emission,
            executor,
            window_mode=mode,
            window_name=name,
            confirm_kill=_confirm_pane_closure(yes),
        )
    except CoreError as e:
        raise _fail(e) from e

    if dry_run:
        console.print(f"[green]✓[/] Dry run replayed {outcome.executed_steps} steps")
    else:
        console.print(f"[green]✓[/] Applied preset {escape(repr(result.preset.name))}")


@app.command()
def plan(
    preset: Annotated[
        str | None,
        typer.Argument(help="Configured preset to plan."),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Plan a preset from a YAML file instead of the config."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
) -> None:
    """Print the emitted plan as JSON."""
    config = _load(config_path)
    try:
        result, _value = _build_pipeline(config, preset, file, config_path)
    except CoreError as e:
        raise _fail(e) from e

    console.print_json(result.emission.model_dump_json())
    console.print(f"Plan hash: {result.emission.hash}")


@app.command()
def diagnose(
    preset: Annotated[
        str | None,
        typer.Argument(help="Configured preset to diagnose."),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Diagnose a preset from a YAML file instead of the config."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
    known_issues: Annotated[
        list[str] | None,
        typer.Option("--known-issue", "-k", help="Extra issue to include in the report (repeatable)."),
    ] = None,
) -> None:
    """Report structural problems in a preset."""
    config = _load(config_path)
    issues = known_issues or []

    if file is not None:
        label = str(file)
        report = run_diagnostics(_read_preset_file(file), issues)
    else:
        try:
            key = select_preset_key(config, preset)
        except CoreError as e:
            raise _fail(e) from e
        label = preset_source(key, config_path)
        report = diagnose_preset_value(config.presets[key], issues)

    _render_diagnostics(label, report)


def _render_diagnostics(label: str, report: DiagnosticsReport) -> None:
    console.print(f"[bold]Diagnostics:[/] {escape(label)}")
    if report.worst_severity is None:
        console.print("[green]✓[/] No problems found")
        return

    console.print("\n[bold]Backlog[/]")
    for index, item in enumerate(report.backlog, start=1):
        console.print(f"{index}. {_SEVERITY_TAGS[item.severity]} {escape(item.summary)}")
        for action in item.actions:
            console.print(f"   - {escape(action)}")

    table = Table(title="Findings", title_justify="left", show_header=True, header_style="bold")
    table.add_column("Severity")
    table.add_column("Path", style="cyan")
    table.add_column("Description")
    for finding in report.findings:
        table.add_row(_SEVERITY_TAGS[finding.severity], escape(finding.path), escape(finding.description))
    console.print()
    console.print(table)

    console.print("\n[bold]Next steps[/]")
    for step in report.next_steps:
        console.print(f" - {escape(step)}")


_SEVERITY_TAGS = {
    Severity.HIGH: "[red]\\[HIGH][/]",
    Severity.MEDIUM: "[yellow]\\[MEDIUM][/]",
    Severity.LOW: "[blue]\\[LOW][/]",
}


@app.command("list")
def list_presets(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
) -> None:
    """List configured presets."""
    config = _load(config_path)

    if not config.presets:
        console.print("[dim]No presets configured. Run 'panecraft init-config' to create one.[/]")
        return

    table = Table(title="Presets")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Window mode", style="dim")

    for key, value in config.presets.items():
        name = value.get("name")
        mode = resolve_window_mode(None, value, config.defaults)
        table.add_row(key, name if isinstance(name, str) else "", mode.value)

    console.print(table)


@app.command()
def init_config(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
) -> None:
    """Create default configuration file."""
    if config_path is None:
        ensure_config_dir()
    config_file = config_path or get_config_file_path()

    if config_file.exists():
        err_console.print(f"[yellow]Config file already exists:[/] {config_file}")
        raise typer.Exit(1)

    save_config(default_config(), config_file)
    console.print(f"[green]✓[/] Created config file: {config_file}")


if __name__ == "__main__":
    app()
