"""Structural diagnostics for preset documents.

A diagnosis never raises on a bad preset. Each problem becomes a finding with
the path it concerns, a severity and a description. Findings on the same path
are merged into one backlog item, keeping the highest severity.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum

import yaml

from panecraft.errors import CoreError
from panecraft.pipeline import run_pipeline

logger = logging.getLogger(__name__)


class Severity(StrEnum):
    """How urgently a finding should be addressed."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}


@dataclass(frozen=True)
class DiagnosticFinding:
    """One problem found in a preset."""

    path: str
    severity: Severity
    description: str


@dataclass(frozen=True)
class BacklogItem:
    """All findings for one path, merged."""

    id: str
    severity: Severity
    summary: str
    actions: tuple[str, ...]


@dataclass(frozen=True)
class DiagnosticsReport:
    """Findings and backlog, highest severity first, plus suggested next steps."""

    findings: tuple[DiagnosticFinding, ...]
    next_steps: tuple[str, ...]
    backlog: tuple[BacklogItem, ...]

    @property
    def worst_severity(self) -> Severity | None:
        return self.findings[0].severity if self.findings else None


@dataclass
class _Collector:
    findings: list[DiagnosticFinding] = field(default_factory=list)
    next_steps: dict[str, None] = field(default_factory=dict)
    backlog: dict[str, BacklogItem] = field(default_factory=dict)

    def add(self, path: str, severity: Severity, description: str, next_step: str | None = None) -> None:
        self.findings.append(DiagnosticFinding(path=path, severity=severity, description=description))
        if next_step:
            self.next_steps[next_step] = None

        existing = self.backlog.get(path)
        actions = dict.fromkeys(existing.actions if existing else ())
        actions[description] = None
        if next_step:
            actions[next_step] = None

        if existing is None:
            merged, summary = severity, description
        elif existing.severity.rank >= severity.rank:
            merged, summary = existing.severity, existing.summary
        else:
            merged, summary = severity, description
        self.backlog[path] = BacklogItem(id=path, severity=merged, summary=summary, actions=tuple(actions))

    def report(self) -> DiagnosticsReport:
        # sorted() is stable, so equal severities keep discovery order
        return DiagnosticsReport(
            findings=tuple(sorted(self.findings, key=lambda f: -f.severity.rank)),
            next_steps=tuple(self.next_steps),
            backlog=tuple(sorted(self.backlog.values(), key=lambda item: -item.severity.rank)),
        )


def run_diagnostics(document: str, known_issues: Sequence[str] = ()) -> DiagnosticsReport:
    """Diagnose a YAML preset document.

    Args:
        document: The preset YAML text.
        known_issues: Free-form issues to carry into the report as medium findings.

    Returns:
        The diagnostics report.
    """
    try:
        value = yaml.safe_load(document)
    except yaml.YAMLError as e:
        collector = _Collector()
        collector.add(
            "presetDocument",
            Severity.HIGH,
            f"Failed to parse preset YAML: {e}",
            "Fix the YAML syntax of the preset",
        )
        return collector.report()
    return diagnose_preset_value(value, known_issues)


def diagnose_preset_value(value: object, known_issues: Sequence[str] = ()) -> DiagnosticsReport:
    """Diagnose an already-parsed preset value.

    Structural checks run first. When none of them is severe, the preset is
    also run through compile, plan and emit, and a failure there is reported
    at the path the error names.
    """
    collector = _Collector()

    if not isinstance(value, Mapping):
        collector.add(
            "preset",
            Severity.HIGH,
            "Preset definition is not a mapping",
            "Rewrite the preset as a mapping with name and layout keys",
        )
    else:
        _check_focus(value, collector)
        _check_layout_shape(value, collector)
        if not any(finding.severity == Severity.HIGH for finding in collector.findings):
            _check_pipeline(value, collector)

    for index, issue in enumerate(known_issues):
        text = issue.strip()
        if text:
            collector.add(f"knownIssues[{index}]", Severity.MEDIUM, text, f"Track and resolve: {text}")

    report = collector.report()
    logger.debug("Diagnosis produced %d finding(s)", len(report.findings))
    return report


def _check_focus(preset: Mapping[object, object], collector: _Collector) -> None:
    layout = preset.get("layout")
    if layout is None:
        return
    if _count_focus(layout) > 1:
        collector.add(
            "preset.layout",
            Severity.HIGH,
            "More than one pane sets focus: true",
            "Keep focus: true on a single terminal",
        )


def _check_layout_shape(preset: Mapping[object, object], collector: _Collector) -> None:
    layout = preset.get("layout")
    if layout is None:
        collector.add(
            "preset.layout",
            Severity.LOW,
            "No layout defined; the preset opens a single pane",
            "Add a layout tree if the preset should open more than one pane",
        )
        return
    panes = layout.get("panes") if isinstance(layout, Mapping) else None
    if not isinstance(panes, list):
        collector.add(
            "preset.layout.panes",
            Severity.LOW,
            "Layout has no panes list",
            "Add a split with a panes list, or keep the layout as a single terminal",
        )


def _check_pipeline(preset: Mapping[object, object], collector: _Collector) -> None:
    try:
        run_pipeline(value=preset, source="diagnose")
    except CoreError as e:
        collector.add(
            e.path or "preset",
            Severity.HIGH,
            f"[{e.code}] {e.message}",
            "Fix the reported error, then check the result with 'panecraft plan'",
        )


def _count_focus(node: object) -> int:
    if isinstance(node, list):
        return sum(_count_focus(child) for child in node)
    if not isinstance(node, Mapping):
        return 0
    own = 1 if node.get("focus") is True else 0
    panes = node.get("panes")
    return own + (_count_focus(panes) if isinstance(panes, list) else 0)
