"""Immutable data model for compiled presets, layout plans, and plan emissions."""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Orientation = Literal["horizontal", "vertical"]


class WindowMode(StrEnum):
    """Where a layout is applied."""

    NEW_WINDOW = "new-window"  # always create a fresh window
    CURRENT_WINDOW = "current-window"  # reuse the active window, closing other panes


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class FixedCells(_Frozen):
    """A ratio entry with an absolute size in terminal cells."""

    kind: Literal["fixed-cells"] = "fixed-cells"
    cells: int = Field(gt=0)


# A positive weight or a fixed number of cells
RatioEntry = float | FixedCells


# --- compiled preset -------------------------------------------------------


class TerminalNode(_Frozen):
    """A leaf pane running an optional command."""

    kind: Literal["terminal"] = "terminal"
    name: str = ""
    command: str | None = None
    cwd: str | None = None
    env: dict[str, str] | None = None
    focus: bool = False
    ephemeral: bool = False
    close_on_error: bool = False
    delay: int | None = None  # milliseconds
    title: str | None = None
    options: dict[str, Any] | None = None


class SplitNode(_Frozen):
    """A container dividing its area among child nodes."""

    kind: Literal["split"] = "split"
    orientation: Orientation
    ratio: tuple[RatioEntry, ...]
    panes: tuple["LayoutNode", ...]


LayoutNode = Annotated[TerminalNode | SplitNode, Field(discriminator="kind")]


class PresetMetadata(_Frozen):
    """Where a preset came from, for error attribution."""

    source: str


class CompiledPreset(_Frozen):
    """A validated preset ready for planning."""

    name: str
    version: str = "legacy"
    command: str | None = None  # used only when there is no layout
    layout: LayoutNode | None = None
    metadata: PresetMetadata


# --- layout plan -----------------------------------------------------------


class PlanTerminal(TerminalNode):
    """A terminal with its virtual pane id and resolved focus."""

    id: str


class PlanSplit(_Frozen):
    """A split with its virtual pane id and normalized ratio."""

    kind: Literal["split"] = "split"
    id: str
    orientation: Orientation
    ratio: tuple[RatioEntry, ...]
    panes: tuple["PlanNode", ...]


PlanNode = Annotated[PlanTerminal | PlanSplit, Field(discriminator="kind")]


class LayoutPlan(_Frozen):
    """A layout tree with deterministic ids and exactly one focused terminal."""

    root: PlanNode
    focus_pane_id: str


# --- plan emission ---------------------------------------------------------


class PercentSizing(_Frozen):
    """The created pane takes a percentage of the target pane."""

    mode: Literal["percent"] = "percent"
    percentage: int


class DynamicCellsSizing(_Frozen):
    """Sizing resolved against the live pane size at execution time.

    ``target`` is the ratio entry that stays in the target pane; the remaining
    fields describe every entry that the created pane will later be divided into.
    """

    mode: Literal["dynamic-cells"] = "dynamic-cells"
    target: RatioEntry
    remaining_fixed_cells: int
    remaining_weight: float
    remaining_weight_pane_count: int


SplitSizing = Annotated[PercentSizing | DynamicCellsSizing, Field(discriminator="mode")]


class SplitStep(_Frozen):
    """Divide the target pane, producing the created pane."""

    kind: Literal["split"] = "split"
    id: str
    summary: str
    command: tuple[str, ...] = ()
    target_pane_id: str | None = None
    created_pane_id: str | None = None
    orientation: Orientation | None = None
    percentage: int | None = None
    sizing: SplitSizing | None = None


class FocusStep(_Frozen):
    """Make the target pane active."""

    kind: Literal["focus"] = "focus"
    id: str
    summary: str
    command: tuple[str, ...] = ()
    target_pane_id: str | None = None


CommandStep = Annotated[SplitStep | FocusStep, Field(discriminator="kind")]


class EmittedTerminal(_Frozen):
    """Per-pane configuration applied after the splits are replayed."""

    virtual_pane_id: str
    name: str
    command: str | None = None
    cwd: str | None = None
    env: dict[str, str] | None = None
    delay: int | None = None
    title: str | None = None
    focus: bool = False
    ephemeral: bool = False
    close_on_error: bool = False


class EmissionSummary(_Frozen):
    """Headline numbers for an emission."""

    steps_count: int
    focus_pane_id: str
    initial_pane_id: str


class PlanEmission(_Frozen):
    """Ordered backend steps plus terminal configuration and a content hash."""

    steps: tuple[CommandStep, ...]
    terminals: tuple[EmittedTerminal, ...]
    summary: EmissionSummary
    hash: str


SplitNode.model_rebuild()
CompiledPreset.model_rebuild()
PlanSplit.model_rebuild()
LayoutPlan.model_rebuild()
