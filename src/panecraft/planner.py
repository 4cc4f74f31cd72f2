"""Assign deterministic pane ids and resolve focus for a compiled preset."""

from dataclasses import dataclass, field

from panecraft.errors import ErrorCode, plan_error
from panecraft.models import (
    CompiledPreset,
    FixedCells,
    LayoutNode,
    LayoutPlan,
    PlanNode,
    PlanSplit,
    PlanTerminal,
    SplitNode,
    TerminalNode,
)
from panecraft.ratio import normalize_ratio

ROOT_PANE_ID = "root"


@dataclass
class _Collected:
    """Ids gathered while walking the tree."""

    terminal_ids: list[str] = field(default_factory=list)
    focus_ids: list[str] = field(default_factory=list)


def child_pane_id(parent_id: str, index: int) -> str:
    """Virtual pane id of the ``index``-th child of ``parent_id``."""
    return f"{parent_id}.{index}"


def create_layout_plan(preset: CompiledPreset) -> LayoutPlan:
    """Build a layout plan from a compiled preset.

    Args:
        preset: The compiled preset.

    Returns:
        A plan where exactly one terminal has ``focus`` set.

    Raises:
        CoreError: FOCUS_CONFLICT, NO_TERMINAL_PANES, or RATIO_WEIGHT_MISSING.
    """
    source = preset.metadata.source

    if preset.layout is None:
        terminal = PlanTerminal(id=ROOT_PANE_ID, name=preset.name, command=preset.command, focus=True)
        return LayoutPlan(root=terminal, focus_pane_id=terminal.id)

    collected = _Collected()
    root = _build_node(preset.layout, ROOT_PANE_ID, "preset.layout", source, collected)

    if len(collected.focus_ids) > 1:
        raise plan_error(
            ErrorCode.FOCUS_CONFLICT,
            "More than one pane requests focus",
            source=source,
            path="preset.layout",
            details={"focus_pane_ids": collected.focus_ids},
        )
    if not collected.terminal_ids:
        raise plan_error(
            ErrorCode.NO_TERMINAL_PANES,
            "Layout contains no terminal panes",
            source=source,
            path="preset.layout",
        )

    focus_pane_id = collected.focus_ids[0] if collected.focus_ids else collected.terminal_ids[0]
    return LayoutPlan(root=_apply_focus(root, focus_pane_id), focus_pane_id=focus_pane_id)


def _build_node(node: LayoutNode, node_id: str, path: str, source: str, collected: _Collected) -> PlanNode:
    if isinstance(node, TerminalNode):
        collected.terminal_ids.append(node_id)
        if node.focus:
            collected.focus_ids.append(node_id)
        return PlanTerminal(id=node_id, **node.model_dump(exclude={"kind"}))

    if isinstance(node, SplitNode):
        if node.ratio and all(isinstance(entry, FixedCells) for entry in node.ratio):
            raise plan_error(
                ErrorCode.RATIO_WEIGHT_MISSING,
                "A ratio with fixed-cell entries needs at least one weighted entry",
                source=source,
                path=f"{path}.ratio",
                details={"ratio": [entry.cells for entry in node.ratio if isinstance(entry, FixedCells)]},
            )
        panes = tuple(
            _build_node(child, child_pane_id(node_id, index), f"{path}.panes[{index}]", source, collected)
            for index, child in enumerate(node.panes)
        )
        return PlanSplit(
            id=node_id,
            orientation=node.orientation,
            ratio=tuple(normalize_ratio(node.ratio)),
            panes=panes,
        )

    raise TypeError(f"Unsupported layout node: {type(node).__name__}")


def _apply_focus(node: PlanNode, focus_pane_id: str) -> PlanNode:
    if isinstance(node, PlanTerminal):
        return node.model_copy(update={"focus": node.id == focus_pane_id})
    return node.model_copy(update={"panes": tuple(_apply_focus(pane, focus_pane_id) for pane in node.panes)})
