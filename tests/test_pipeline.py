"""Tests for panecraft.pipeline module."""

import pytest
import yaml

from panecraft.compiler import compile_preset, compile_preset_value
from panecraft.errors import CoreError, ErrorCode
from panecraft.models import CompiledPreset, LayoutPlan
from panecraft.pipeline import run_pipeline
from panecraft.planner import create_layout_plan


class TestRunPipeline:
    """Tests for run_pipeline function."""

    def test_all_stages(self, split_preset: str) -> None:
        """Should return every intermediate representation."""
        result = run_pipeline(document=split_preset, source="test.yaml")
        assert result.preset.name == "Example"
        assert result.plan.focus_pane_id == "root.0"
        assert result.emission.summary.steps_count == 4

    def test_document_and_value_agree(self, split_preset: str) -> None:
        """Should hash identically from text or parsed value."""
        from_text = run_pipeline(document=split_preset, source="a")
        from_value = run_pipeline(value=yaml.safe_load(split_preset), source="b")
        assert from_text.emission.hash == from_value.emission.hash

    def test_idempotent(self, split_preset: str) -> None:
        """Should produce identical emissions on repeated runs."""
        assert run_pipeline(document=split_preset).emission == run_pipeline(document=split_preset).emission

    def test_stage_error_propagates(self) -> None:
        """Should surface the first failing stage's error."""
        with pytest.raises(CoreError) as exc_info:
            run_pipeline(document="layout:\n  type: horizontal\n  ratio: [1, 2]\n  panes:\n    - name: a\n")
        assert exc_info.value.code == ErrorCode.LAYOUT_RATIO_MISMATCH
        assert exc_info.value.source == "<inline>"

    def test_injected_stages(self, split_preset: str) -> None:
        """Should call injected stages in order."""
        calls: list[str] = []

        def compiler(document: str, source: str) -> CompiledPreset:
            calls.append("compile")
            return compile_preset(document, source)

        def planner(preset: CompiledPreset) -> LayoutPlan:
            calls.append("plan")
            return create_layout_plan(preset)

        run_pipeline(document=split_preset, compiler=compiler, planner=planner)
        assert calls == ["compile", "plan"]

    def test_injected_value_compiler(self, split_preset: str) -> None:
        """Should use the injected value compiler for parsed input."""
        calls: list[object] = []

        def value_compiler(value: object, source: str) -> CompiledPreset:
            calls.append(value)
            return compile_preset_value(value, source)

        parsed = yaml.safe_load(split_preset)
        run_pipeline(value=parsed, value_compiler=value_compiler)
        assert calls == [parsed]

    def test_unusual_option_values(self) -> None:
        """Should emit and hash presets with binary and set option values."""
        document = 'layout:\n  name: a\n  command: ls\n  blob: !!binary "/w=="\n  tags: !!set {b, a}\n'
        result = run_pipeline(document=document)
        assert len(result.emission.hash) == 64
        assert result.preset.layout.options == {"blob": "/w==", "tags": ["a", "b"]}
        assert result.plan.root.model_dump(mode="json")["options"] == {"blob": "/w==", "tags": ["a", "b"]}

    def test_set_order_does_not_change_hash(self) -> None:
        """Should hash set option values independently of their written order."""
        first = run_pipeline(document="layout:\n  name: a\n  tags: !!set {alpha, beta, gamma}\n")
        second = run_pipeline(document="layout:\n  name: a\n  tags: !!set {gamma, alpha, beta}\n")
        assert first.emission.hash == second.emission.hash


class TestCoreError:
    """Tests for CoreError formatting."""

    def test_str_and_dict(self) -> None:
        """Should render code, message, and path."""
        with pytest.raises(CoreError) as exc_info:
            run_pipeline(document="- a\n", source="x.yaml")
        error = exc_info.value
        assert str(error) == "[PRESET_INVALID_DOCUMENT] Preset definition is not a mapping (preset)"
        assert error.to_dict() == {
            "kind": "compile",
            "code": "PRESET_INVALID_DOCUMENT",
            "message": "Preset definition is not a mapping",
            "source": "x.yaml",
            "path": "preset",
        }
