"""Turn a layout plan into ordered backend command steps."""

import hashlib
import json
from collections.abc import Sequence

from panecraft.models import (
    CommandStep,
    EmissionSummary,
    EmittedTerminal,
    FixedCells,
    FocusStep,
    LayoutPlan,
    PercentSizing,
    PlanEmission,
    PlanNode,
    PlanSplit,
    PlanTerminal,
    SplitStep,
)
from panecraft.ratio import dynamic_sizing, has_fixed_cells, split_percentage

DYNAMIC_SIZE_PLACEHOLDER = "<dynamic>"


def direction_flag(orientation: str) -> str:
    """tmux flag for a split orientation."""
    return "-h" if orientation == "horizontal" else "-v"


def emit_plan(plan: LayoutPlan) -> PlanEmission:
    """Emit the command steps, terminal configuration, and hash for a plan.

    Args:
        plan: A valid layout plan.

    Returns:
        The plan emission.
    """
    steps: list[CommandStep] = []
    _collect_split_steps(plan.root, steps)

    focus_id = plan.focus_pane_id
    steps.append(
        FocusStep(
            id=f"{focus_id}:focus",
            summary=f"select pane {focus_id}",
            command=("select-pane", "-t", focus_id),
            target_pane_id=focus_id,
        )
    )

    return PlanEmission(
        steps=tuple(steps),
        terminals=tuple(_collect_terminals(plan.root)),
        summary=EmissionSummary(
            steps_count=len(steps),
            focus_pane_id=focus_id,
            initial_pane_id=initial_pane_id(plan.root),
        ),
        hash=plan_hash(plan, steps),
    )


def _collect_split_steps(node: PlanNode, steps: list[CommandStep]) -> None:
    if isinstance(node, PlanTerminal):
        return

    flag = direction_flag(node.orientation)
    dynamic = has_fixed_cells(node.ratio)

    for index in range(1, len(node.panes)):
        target_id = node.panes[index - 1].id
        created_id = node.panes[index].id
        if dynamic:
            percentage = None
            sizing = dynamic_sizing(node.ratio, index)
            size_args = ("-l", DYNAMIC_SIZE_PLACEHOLDER)
        else:
            percentage = split_percentage(_weights(node), index)
            sizing = PercentSizing(percentage=percentage)
            size_args = ("-p", str(percentage))

        steps.append(
            SplitStep(
                id=f"{node.id}:split:{index}",
                summary=f"split {target_id} ({flag})",
                command=("split-window", flag, "-t", target_id, *size_args),
                target_pane_id=target_id,
                created_pane_id=created_id,
                orientation=node.orientation,
                percentage=percentage,
                sizing=sizing,
            )
        )

    for pane in node.panes:
        _collect_split_steps(pane, steps)


def _weights(node: PlanSplit) -> list[float]:
    return [entry for entry in node.ratio if not isinstance(entry, FixedCells)]


def _collect_terminals(node: PlanNode) -> list[EmittedTerminal]:
    if isinstance(node, PlanSplit):
        return [terminal for pane in node.panes for terminal in _collect_terminals(pane)]
    return [
        EmittedTerminal(
            virtual_pane_id=node.id,
            name=node.name,
            command=node.command,
            cwd=node.cwd,
            env=node.env,
            delay=node.delay,
            title=node.title,
            focus=node.focus,
            ephemeral=node.ephemeral,
            close_on_error=node.close_on_error,
        )
    ]


def initial_pane_id(node: PlanNode) -> str:
    """Id of the leftmost leaf, which occupies the window before any split."""
    while isinstance(node, PlanSplit):
        node = node.panes[0]
    return node.id


def plan_hash(plan: LayoutPlan, steps: Sequence[CommandStep]) -> str:
    """SHA-256 over the canonical JSON form of the plan and its steps."""
    normalized = {
        "focusPaneId": plan.focus_pane_id,
        "root": plan.root.model_dump(mode="json"),
        "steps": [step.model_dump(mode="json") for step in steps],
    }
    encoded = json.dumps(normalized, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
