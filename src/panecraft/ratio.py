"""Ratio parsing, normalization, and split sizing."""

import math
import re
from collections.abc import Sequence
from dataclasses import dataclass

from panecraft.errors import ErrorCode, execution_error
from panecraft.models import DynamicCellsSizing, FixedCells, RatioEntry

_FIXED_CELLS_PATTERN = re.compile(r"^\s*(\d+)\s*c\s*$")

MIN_SPLIT_PERCENTAGE = 1
MAX_SPLIT_PERCENTAGE = 99


def parse_ratio_entry(value: object) -> RatioEntry | None:
    """Parse one raw ratio entry from a preset document.

    Accepts finite positive numbers (booleans excluded) and fixed-cell tokens
    such as ``"30c"``.

    Args:
        value: The raw entry.

    Returns:
        A float weight or FixedCells, or None if the entry is invalid.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        if not math.isfinite(value) or value <= 0:
            return None
        return float(value)
    if isinstance(value, str):
        match = _FIXED_CELLS_PATTERN.match(value)
        if match and int(match.group(1)) > 0:
            return FixedCells(cells=int(match.group(1)))
    return None


def has_fixed_cells(ratio: Sequence[RatioEntry]) -> bool:
    """Check whether any entry is a fixed-cell entry."""
    return any(isinstance(entry, FixedCells) for entry in ratio)


def normalize_weights(weights: Sequence[float]) -> list[float]:
    """Normalize weights into fractions summing to 1.

    A zero sum yields equal ``1/n`` shares.

    Args:
        weights: Raw weights.

    Returns:
        Fractions in the same order.
    """
    if not weights:
        return []
    total = sum(weights)
    if total == 0:
        return [1 / len(weights)] * len(weights)
    return [value / total for value in weights]


def normalize_ratio(ratio: Sequence[RatioEntry]) -> list[RatioEntry]:
    """Normalize the weighted entries of a ratio, keeping fixed-cell entries as-is.

    Callers must ensure a mixed ratio has at least one weighted entry.
    """
    weights = [entry for entry in ratio if not isinstance(entry, FixedCells)]
    normalized = iter(normalize_weights(weights))
    return [entry if isinstance(entry, FixedCells) else next(normalized) for entry in ratio]


def round_half_up(value: float) -> int:
    """Round halves away from zero for positive values (2.5 -> 3)."""
    return math.floor(value + 0.5)


def clamp_percentage(value: float) -> int:
    """Round and clamp a split percentage into the range tmux accepts."""
    return min(MAX_SPLIT_PERCENTAGE, max(MIN_SPLIT_PERCENTAGE, round_half_up(value)))


def split_percentage(weights: Sequence[float], index: int) -> int:
    """Percentage of the remaining area given to the pane created by split ``index``.

    Each split divides only what remains of its own pane: the target currently
    holds entries ``index - 1`` onward and keeps entry ``index - 1``.

    Args:
        weights: Normalized weights of the split.
        index: 1-based split index (the created sibling's index).

    Returns:
        Percentage clamped to [1, 99].
    """
    remaining = sum(weights[index - 1 :])
    if remaining == 0:
        return 50
    return clamp_percentage(100 * sum(weights[index:]) / remaining)


def dynamic_sizing(ratio: Sequence[RatioEntry], index: int) -> DynamicCellsSizing:
    """Describe split ``index`` of a ratio containing fixed-cell entries."""
    rest = ratio[index:]
    fixed = [entry.cells for entry in rest if isinstance(entry, FixedCells)]
    weights = [entry for entry in rest if not isinstance(entry, FixedCells)]
    return DynamicCellsSizing(
        target=ratio[index - 1],
        remaining_fixed_cells=sum(fixed),
        remaining_weight=sum(weights),
        remaining_weight_pane_count=len(weights),
    )


@dataclass(frozen=True)
class CellSplit:
    """Cell counts resolved for one dynamic split."""

    target_cells: int
    created_cells: int


def resolve_dynamic_cells(sizing: DynamicCellsSizing, pane_cells: int | None, step_id: str) -> CellSplit:
    """Resolve a dynamic split against the live size of the target pane.

    Args:
        sizing: The step's dynamic sizing descriptor.
        pane_cells: Width (horizontal) or height (vertical) of the target pane.
        step_id: Step id for error attribution.

    Returns:
        Cells kept by the target and cells given to the created pane.

    Raises:
        CoreError: SPLIT_SIZE_RESOLUTION_FAILED when the size is unknown or too small.
    """
    details = {
        "pane_cells": pane_cells,
        "remaining_fixed_cells": sizing.remaining_fixed_cells,
        "remaining_weight": sizing.remaining_weight,
    }
    if pane_cells is None or pane_cells <= 0:
        raise execution_error(
            ErrorCode.SPLIT_SIZE_RESOLUTION_FAILED,
            "Pane size is required to resolve a fixed-cell split",
            path=step_id,
            details=details,
        )

    target = sizing.target
    if isinstance(target, FixedCells):
        target_cells = target.cells
    else:
        weighted_cells = pane_cells - sizing.remaining_fixed_cells
        total_weight = target + sizing.remaining_weight
        target_cells = round_half_up(weighted_cells * target / total_weight) if total_weight > 0 else weighted_cells

    created_cells = pane_cells - target_cells
    if target_cells < 1 or created_cells < 1:
        raise execution_error(
            ErrorCode.SPLIT_SIZE_RESOLUTION_FAILED,
            f"Pane of {pane_cells} cells is too small for the requested split",
            path=step_id,
            details=details,
        )
    return CellSplit(target_cells=target_cells, created_cells=created_cells)
