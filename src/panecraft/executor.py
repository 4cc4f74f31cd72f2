"""Replay a plan emission against tmux.

The executor acquires a window, replays split and focus steps while mapping
virtual pane ids to the real ids tmux hands out, configures each terminal, and
finally restores focus. Failures abort at the failing command; nothing is rolled
back.
"""

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from panecraft.emitter import DYNAMIC_SIZE_PLACEHOLDER
from panecraft.errors import CoreError, ErrorCode, execution_error
from panecraft.models import (
    DynamicCellsSizing,
    EmittedTerminal,
    FocusStep,
    PercentSizing,
    PlanEmission,
    SplitStep,
    WindowMode,
)
from panecraft.pane_map import PaneMap
from panecraft.ratio import clamp_percentage, resolve_dynamic_cells
from panecraft.templates import TemplateTokenError, build_name_to_pane_id_map, replace_template_tokens
from panecraft.tmux_manager import CommandExecutor

logger = logging.getLogger(__name__)

# (panes_to_close, dry_run) -> proceed?
ConfirmPaneClosure = Callable[[list[str], bool], bool]

CURRENT_PANE_ENV = "TMUX_PANE"
PLACEHOLDER_PANE_ID = "%0"
_PANE_ID_FORMAT = "#{pane_id}"


@dataclass(frozen=True)
class PlanExecutionResult:
    """Outcome of a successful plan execution."""

    executed_steps: int
    focus_pane_id: str


def execute_plan(
    emission: PlanEmission,
    executor: CommandExecutor,
    window_mode: WindowMode | str = WindowMode.NEW_WINDOW,
    window_name: str | None = None,
    confirm_kill: ConfirmPaneClosure | None = None,
) -> PlanExecutionResult:
    """Apply a plan emission through a command executor.

    Args:
        emission: The emitted plan.
        executor: Runs tmux commands (live or dry-run).
        window_mode: Create a new window or reuse the current one.
        window_name: Optional name for a new window.
        confirm_kill: Asked before closing other panes in current-window mode.
            Defaults to proceeding.

    Returns:
        The number of executed steps and the virtual focus pane id.

    Raises:
        CoreError: On any execution failure, including USER_CANCELLED.
    """
    initial_virtual_id = emission.summary.initial_pane_id
    if not initial_virtual_id:
        raise execution_error(
            ErrorCode.INVALID_PLAN,
            "Plan emission is missing initial pane metadata",
            path="plan.initialPaneId",
        )

    try:
        mode = WindowMode(window_mode)
    except ValueError as e:
        raise execution_error(
            ErrorCode.INVALID_PLAN,
            f"Unknown window mode: {window_mode!r}",
            details={"windowMode": str(window_mode), "allowed": [m.value for m in WindowMode]},
        ) from e
    dry_run = executor.is_dry_run()
    pane_map = PaneMap()

    if mode == WindowMode.CURRENT_WINDOW:
        initial_real_id = _acquire_current_window(executor, initial_virtual_id, dry_run, confirm_kill)
    else:
        initial_real_id = _acquire_new_window(executor, initial_virtual_id, window_name)
    pane_map.register(initial_virtual_id, initial_real_id)
    logger.debug("Initial pane %s -> %s", initial_virtual_id, initial_real_id)

    executed_steps = 0
    for step in emission.steps:
        if isinstance(step, SplitStep):
            _execute_split_step(step, executor, pane_map, dry_run)
        elif isinstance(step, FocusStep):
            _execute_focus_step(step, executor, pane_map)
        else:
            raise execution_error(
                ErrorCode.INVALID_PLAN,
                f"Unsupported step kind: {getattr(step, 'kind', type(step).__name__)}",
                path=getattr(step, "id", None),
            )
        executed_steps += 1

    focus_virtual_id = emission.summary.focus_pane_id
    _configure_terminals(emission.terminals, executor, pane_map, focus_virtual_id, dry_run)

    # Terminal configuration may have moved the active pane
    final_focus = pane_map.resolve(focus_virtual_id)
    if final_focus:
        _run(
            executor,
            ["select-pane", "-t", final_focus],
            message="Failed to restore focus",
            path=focus_virtual_id,
        )

    logger.info("Applied %d steps, focus on %s", executed_steps, focus_virtual_id)
    return PlanExecutionResult(executed_steps=executed_steps, focus_pane_id=focus_virtual_id)


# --- window acquisition ----------------------------------------------------


def _acquire_current_window(
    executor: CommandExecutor,
    context_path: str,
    dry_run: bool,
    confirm_kill: ConfirmPaneClosure | None,
) -> str:
    current_pane_id = resolve_current_pane_id(executor, context_path, dry_run)
    panes_to_close = [pane for pane in list_window_pane_ids(executor, context_path) if pane != current_pane_id]

    if panes_to_close:
        confirmed = True if confirm_kill is None else confirm_kill(panes_to_close, dry_run)
        if confirmed is not True:
            raise execution_error(
                ErrorCode.USER_CANCELLED,
                "Aborted layout application for current window",
                path=context_path,
                details={"panes": panes_to_close},
            )
        kill_command = ["kill-pane", "-a", "-t", current_pane_id]
        _run(
            executor,
            kill_command,
            message="Failed to close existing panes",
            path=context_path,
            details={"command": kill_command},
        )

    return current_pane_id


def _acquire_new_window(executor: CommandExecutor, context_path: str, window_name: str | None) -> str:
    command = ["new-window", "-P", "-F", _PANE_ID_FORMAT]
    if window_name and window_name.strip():
        command.extend(["-n", window_name.strip()])
    output = _run(executor, command, message="Failed to create tmux window", path=context_path)
    return normalize_pane_id(output)


def resolve_current_pane_id(executor: CommandExecutor, context_path: str, dry_run: bool) -> str:
    """Find the real id of the pane we are running in.

    Uses ``$TMUX_PANE`` when set, a placeholder under dry-run, and otherwise asks tmux.

    Raises:
        CoreError: NOT_IN_TMUX_SESSION if tmux reports no pane.
    """
    env_pane_id = os.environ.get(CURRENT_PANE_ENV, "").strip()
    if env_pane_id:
        return env_pane_id
    if dry_run:
        return PLACEHOLDER_PANE_ID

    output = _run(
        executor,
        ["display-message", "-p", _PANE_ID_FORMAT],
        message="Failed to resolve current tmux pane",
        path=context_path,
    )
    pane_id = output.strip()
    if not pane_id:
        raise execution_error(
            ErrorCode.NOT_IN_TMUX_SESSION,
            "Unable to determine current tmux pane",
            path=context_path,
        )
    return pane_id


def list_window_pane_ids(executor: CommandExecutor, context_path: str) -> list[str]:
    """List the real pane ids of the current window."""
    output = _run(
        executor,
        ["list-panes", "-F", _PANE_ID_FORMAT],
        message="Failed to list tmux panes",
        path=context_path,
    )
    return [line.strip() for line in output.split("\n") if line.strip()]


def normalize_pane_id(raw: str) -> str:
    """Trim a pane id, substituting the placeholder for blank output."""
    trimmed = raw.strip()
    return trimmed or PLACEHOLDER_PANE_ID


# --- step replay -----------------------------------------------------------


def _resolve_step_target(step: SplitStep | FocusStep, pane_map: PaneMap) -> str:
    label = "Split" if isinstance(step, SplitStep) else "Focus"
    if not step.target_pane_id:
        raise execution_error(
            ErrorCode.MISSING_TARGET,
            f"{label} step missing target pane metadata",
            path=step.id,
        )
    real_id = pane_map.resolve(step.target_pane_id)
    if not real_id:
        raise execution_error(
            ErrorCode.INVALID_PANE,
            f"Unknown {label.lower()} target pane: {step.target_pane_id}",
            path=step.id,
        )
    return real_id


def _execute_split_step(step: SplitStep, executor: CommandExecutor, pane_map: PaneMap, dry_run: bool) -> None:
    target_real_id = _resolve_step_target(step, pane_map)

    panes_before = list_window_pane_ids(executor, step.id)
    command = build_split_command(step, target_real_id, executor, dry_run)
    _run(
        executor,
        command,
        message=f"Failed to execute split step {step.id}",
        path=step.id,
        details={"command": command},
    )
    panes_after = list_window_pane_ids(executor, step.id)

    known = set(panes_before)
    new_pane_id = next((pane for pane in panes_after if pane not in known), None)
    if new_pane_id is None:
        raise execution_error(
            ErrorCode.INVALID_PANE,
            "Unable to determine newly created pane",
            path=step.id,
            details={"before": panes_before, "after": panes_after},
        )

    if step.created_pane_id:
        pane_map.register(step.created_pane_id, new_pane_id)
        logger.debug("Split %s: %s -> %s", step.id, step.created_pane_id, new_pane_id)


def _execute_focus_step(step: FocusStep, executor: CommandExecutor, pane_map: PaneMap) -> None:
    target_real_id = _resolve_step_target(step, pane_map)
    command = ["select-pane", "-t", target_real_id]
    _run(
        executor,
        command,
        message=f"Failed to execute focus step {step.id}",
        path=step.id,
        details={"command": command},
    )


def build_split_command(step: SplitStep, target_real_id: str, executor: CommandExecutor, dry_run: bool) -> list[str]:
    """Build the ``split-window`` arguments for a step against a real target pane.

    Structured metadata (orientation, sizing) is authoritative; the step's
    virtual ``command`` is only used for display.

    Raises:
        CoreError: INVALID_PLAN on missing metadata, SPLIT_SIZE_RESOLUTION_FAILED
            when a fixed-cell split cannot be sized outside dry-run.
    """
    if step.orientation not in ("horizontal", "vertical"):
        raise execution_error(
            ErrorCode.INVALID_PLAN,
            "Split step missing orientation metadata",
            path=step.id,
            details={"orientation": step.orientation},
        )
    flag = "-h" if step.orientation == "horizontal" else "-v"

    if isinstance(step.sizing, DynamicCellsSizing):
        cells = _resolve_dynamic_size(step, step.sizing, target_real_id, executor, dry_run)
        return ["split-window", flag, "-t", target_real_id, "-l", cells]

    percentage = step.sizing.percentage if isinstance(step.sizing, PercentSizing) else step.percentage
    if percentage is None:
        raise execution_error(
            ErrorCode.INVALID_PLAN,
            "Split step missing percentage metadata",
            path=step.id,
        )
    return ["split-window", flag, "-t", target_real_id, "-p", str(clamp_percentage(percentage))]


def _resolve_dynamic_size(
    step: SplitStep,
    sizing: DynamicCellsSizing,
    target_real_id: str,
    executor: CommandExecutor,
    dry_run: bool,
) -> str:
    size_format = "#{pane_width}" if step.orientation == "horizontal" else "#{pane_height}"
    output = _run(
        executor,
        ["display-message", "-p", "-t", target_real_id, size_format],
        message="Failed to resolve tmux pane size",
        path=step.id,
    )
    raw = output.strip()
    pane_cells = int(raw) if raw.isdigit() else None

    try:
        resolved = resolve_dynamic_cells(sizing, pane_cells, step.id)
    except CoreError as e:
        if dry_run and e.code == ErrorCode.SPLIT_SIZE_RESOLUTION_FAILED:
            return DYNAMIC_SIZE_PLACEHOLDER
        raise
    return str(resolved.created_cells)


# --- terminal configuration ------------------------------------------------


def _configure_terminals(
    terminals: tuple[EmittedTerminal, ...],
    executor: CommandExecutor,
    pane_map: PaneMap,
    focus_virtual_id: str,
    dry_run: bool,
) -> None:
    # Checked up front so a broken layout fails even when {{focus_pane}} is unused
    if not pane_map.has(focus_virtual_id):
        raise execution_error(
            ErrorCode.INVALID_PANE,
            f"Unknown focus pane: {focus_virtual_id}",
            path=focus_virtual_id,
        )
    focus_real_id = pane_map.get(focus_virtual_id) or ""

    # Unresolvable terminals are left out here and fail when their turn comes
    resolvable: dict[str, str] = {}
    for terminal in terminals:
        candidate = pane_map.resolve(terminal.virtual_pane_id)
        if candidate:
            resolvable[terminal.virtual_pane_id] = candidate
    name_to_pane_id = build_name_to_pane_id_map(terminals, resolvable)

    for terminal in terminals:
        real_id = pane_map.resolve(terminal.virtual_pane_id)
        if not real_id:
            raise execution_error(
                ErrorCode.INVALID_PANE,
                f"Unknown terminal pane: {terminal.virtual_pane_id}",
                path=terminal.virtual_pane_id,
            )
        _configure_terminal(terminal, real_id, focus_real_id, name_to_pane_id, executor, dry_run)


def _configure_terminal(
    terminal: EmittedTerminal,
    real_id: str,
    focus_real_id: str,
    name_to_pane_id: dict[str, str],
    executor: CommandExecutor,
    dry_run: bool,
) -> None:
    path = terminal.virtual_pane_id

    if terminal.title:
        _run(
            executor,
            ["select-pane", "-t", real_id, "-T", terminal.title],
            message=f"Failed to set pane title for pane {path}",
            path=path,
            details={"title": terminal.title},
        )

    if terminal.cwd:
        _send_keys(executor, real_id, f'cd "{escape_double_quotes(terminal.cwd)}"', path, f"change directory for {path}")

    for key, value in (terminal.env or {}).items():
        _send_keys(executor, real_id, f'export {key}="{escape_double_quotes(value)}"', path, f"set {key} for {path}")

    if not terminal.command:
        return

    command = prepare_terminal_command(terminal, real_id, focus_real_id, name_to_pane_id)

    if terminal.delay and terminal.delay > 0:
        if dry_run:
            logger.info("Would wait %dms before running command in %s", terminal.delay, path)
        else:
            logger.debug("Waiting %dms before running command in %s", terminal.delay, path)
            time.sleep(terminal.delay / 1000)

    _send_keys(executor, real_id, command, path, f"execute command for pane {path}", {"command": terminal.command})


def prepare_terminal_command(
    terminal: EmittedTerminal,
    real_id: str,
    focus_real_id: str,
    name_to_pane_id: dict[str, str],
) -> str:
    """Substitute template tokens and append the ephemeral exit suffix.

    Raises:
        CoreError: TEMPLATE_TOKEN_ERROR if a token cannot be resolved.
    """
    command = terminal.command or ""
    try:
        replaced = replace_template_tokens(command, real_id, focus_real_id, name_to_pane_id)
    except TemplateTokenError as e:
        raise execution_error(
            ErrorCode.TEMPLATE_TOKEN_ERROR,
            f"Template token resolution failed for pane {terminal.virtual_pane_id}: {e}",
            path=terminal.virtual_pane_id,
            details={"command": command, "token_type": e.token_type, "available_panes": e.available_panes},
        ) from e

    if not terminal.ephemeral:
        return replaced
    if terminal.close_on_error:
        return f"{replaced}; exit"
    return f"{replaced}; [ $? -eq 0 ] && exit"


def escape_double_quotes(value: str) -> str:
    """Escape double quotes for a double-quoted shell word."""
    return value.replace('"', '\\"')


def _send_keys(
    executor: CommandExecutor,
    real_id: str,
    keys: str,
    path: str,
    action: str,
    details: dict[str, Any] | None = None,
) -> None:
    _run(executor, ["send-keys", "-t", real_id, keys, "Enter"], message=f"Failed to {action}", path=path, details=details)


# --- command wrapper -------------------------------------------------------


def _run(
    executor: CommandExecutor,
    command: list[str],
    *,
    message: str,
    path: str,
    details: dict[str, Any] | None = None,
) -> str:
    try:
        return executor.execute(list(command))
    except CoreError as e:
        raise execution_error(e.code, e.message, path=path, details=e.details or details) from e
    except Exception as e:
        raise execution_error(
            ErrorCode.TMUX_COMMAND_FAILED,
            message,
            path=path,
            details={**(details or {}), "reason": str(e)},
        ) from e
