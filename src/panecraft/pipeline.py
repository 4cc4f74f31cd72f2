"""Compile, plan, and emit a preset in one call."""

from collections.abc import Callable
from dataclasses import dataclass

from panecraft.compiler import compile_preset, compile_preset_value
from panecraft.emitter import emit_plan
from panecraft.models import CompiledPreset, LayoutPlan, PlanEmission
from panecraft.planner import create_layout_plan


@dataclass(frozen=True)
class PipelineResult:
    """Every intermediate representation of one pipeline run."""

    preset: CompiledPreset
    plan: LayoutPlan
    emission: PlanEmission


def run_pipeline(
    document: str | None = None,
    source: str = "<inline>",
    value: object = None,
    compiler: Callable[[str, str], CompiledPreset] = compile_preset,
    value_compiler: Callable[[object, str], CompiledPreset] = compile_preset_value,
    planner: Callable[[CompiledPreset], LayoutPlan] = create_layout_plan,
    emitter: Callable[[LayoutPlan], PlanEmission] = emit_plan,
) -> PipelineResult:
    """Run compile -> plan -> emit.

    Pass either a YAML ``document`` or an already-parsed ``value``. Stages can be
    swapped out for testing.

    Args:
        document: YAML preset text.
        source: Label used to attribute errors.
        value: Parsed preset value, used when ``document`` is None.
        compiler: Document compiler.
        value_compiler: Compiler for an already-parsed ``value``.
        planner: Layout planner.
        emitter: Plan emitter.

    Returns:
        The compiled preset, plan, and emission.

    Raises:
        CoreError: From whichever stage fails first.
    """
    preset = compiler(document, source) if document is not None else value_compiler(value, source)
    plan = planner(preset)
    return PipelineResult(preset=preset, plan=plan, emission=emitter(plan))
