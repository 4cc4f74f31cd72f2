"""Compile preset documents into validated layout trees."""

import base64
import datetime
import json
import math
from collections.abc import Mapping
from typing import Any

import yaml

from panecraft.errors import ErrorCode, compile_error
from panecraft.models import CompiledPreset, LayoutNode, PresetMetadata, RatioEntry, SplitNode, TerminalNode
from panecraft.ratio import parse_ratio_entry

DEFAULT_PRESET_NAME = "Unnamed preset"
PRESET_VERSION = "legacy"
LAYOUT_ROOT_PATH = "preset.layout"

# Terminal keys with a dedicated field; anything else lands in ``options``
_TERMINAL_KEYS = frozenset(
    {"name", "command", "cwd", "env", "focus", "ephemeral", "closeOnError", "delay", "title", "options"}
)
_ORIENTATIONS = ("horizontal", "vertical")


def compile_preset(document: str, source: str) -> CompiledPreset:
    """Parse a YAML preset document and compile it.

    Args:
        document: The YAML text.
        source: Label used to attribute errors (file path, config key).

    Returns:
        The compiled preset.

    Raises:
        CoreError: PRESET_PARSE_ERROR on invalid YAML, or any compile-time code.
    """
    try:
        parsed = yaml.safe_load(document)
    except yaml.YAMLError as e:
        raise compile_error(
            ErrorCode.PRESET_PARSE_ERROR,
            f"Failed to parse preset YAML: {e}",
            source=source,
            details={"reason": str(e)},
        ) from e
    return compile_preset_value(parsed, source)


def compile_preset_value(value: object, source: str) -> CompiledPreset:
    """Compile an already-parsed preset value.

    Args:
        value: The preset mapping.
        source: Label used to attribute errors.

    Returns:
        The compiled preset.

    Raises:
        CoreError: On any compile-time validation failure.
    """
    if not isinstance(value, Mapping):
        raise compile_error(
            ErrorCode.PRESET_INVALID_DOCUMENT,
            "Preset definition is not a mapping",
            source=source,
            path="preset",
        )

    raw_name = value.get("name")
    name = raw_name if isinstance(raw_name, str) and raw_name.strip() else DEFAULT_PRESET_NAME

    layout: LayoutNode | None = None
    if value.get("layout") is not None:
        layout = _convert_node(value["layout"], source, LAYOUT_ROOT_PATH)

    command = value.get("command")
    return CompiledPreset(
        name=name,
        version=PRESET_VERSION,
        command=command if isinstance(command, str) else None,
        layout=layout,
        metadata=PresetMetadata(source=source),
    )


def _convert_node(node: object, source: str, path: str) -> LayoutNode:
    if isinstance(node, Mapping):
        if isinstance(node.get("type"), str) and "panes" in node:
            return _convert_split(node, source, path)
        if "panes" not in node and (isinstance(node.get("name"), str) or isinstance(node.get("command"), str)):
            return _convert_terminal(node)

    raise compile_error(
        ErrorCode.LAYOUT_INVALID_NODE,
        "Layout node is neither a split nor a terminal",
        source=source,
        path=path,
        details={"node": node},
    )


def _convert_split(node: Mapping[str, Any], source: str, path: str) -> SplitNode:
    orientation = node["type"]
    if orientation not in _ORIENTATIONS:
        raise compile_error(
            ErrorCode.LAYOUT_INVALID_ORIENTATION,
            "Split type must be 'horizontal' or 'vertical'",
            source=source,
            path=f"{path}.type",
            details={"type": orientation},
        )

    panes = node.get("panes")
    if not isinstance(panes, list) or not panes:
        raise compile_error(
            ErrorCode.LAYOUT_PANES_MISSING,
            "Split requires a non-empty 'panes' list",
            source=source,
            path=f"{path}.panes",
        )

    raw_ratio = node.get("ratio")
    if not isinstance(raw_ratio, list) or not raw_ratio:
        raise compile_error(
            ErrorCode.LAYOUT_RATIO_MISSING,
            "Split requires a non-empty 'ratio' list",
            source=source,
            path=f"{path}.ratio",
        )

    if len(raw_ratio) != len(panes):
        raise compile_error(
            ErrorCode.LAYOUT_RATIO_MISMATCH,
            "'ratio' and 'panes' must have the same length",
            source=source,
            path=path,
            details={"ratio_length": len(raw_ratio), "panes_length": len(panes)},
        )

    ratio: list[RatioEntry] = []
    for index, raw_entry in enumerate(raw_ratio):
        entry = parse_ratio_entry(raw_entry)
        if entry is None:
            raise compile_error(
                ErrorCode.RATIO_INVALID_VALUE,
                "Ratio entries must be positive numbers or fixed-cell tokens like '30c'",
                source=source,
                path=f"{path}.ratio[{index}]",
                details={"value": raw_entry},
            )
        ratio.append(entry)

    children = [_convert_node(child, source, f"{path}.panes[{index}]") for index, child in enumerate(panes)]
    return SplitNode(orientation=orientation, ratio=tuple(ratio), panes=tuple(children))


def _convert_terminal(node: Mapping[str, Any]) -> TerminalNode:
    name = node.get("name")
    command = node.get("command")
    cwd = node.get("cwd")
    title = node.get("title")
    return TerminalNode(
        name=name if isinstance(name, str) else "",
        command=command if isinstance(command, str) else None,
        cwd=cwd if isinstance(cwd, str) else None,
        env=_normalize_env(node.get("env")),
        focus=node.get("focus") is True,
        ephemeral=node.get("ephemeral") is True,
        close_on_error=node.get("closeOnError") is True,
        delay=_normalize_delay(node.get("delay")),
        title=title if isinstance(title, str) else None,
        options=_collect_options(node),
    )


def _normalize_env(env: object) -> dict[str, str] | None:
    if not isinstance(env, Mapping):
        return None
    # Non-string values are dropped, not rejected
    entries = {str(key): value for key, value in env.items() if isinstance(value, str)}
    return entries or None


def _normalize_delay(delay: object) -> int | None:
    if isinstance(delay, bool) or not isinstance(delay, int | float):
        return None
    if not math.isfinite(delay) or delay <= 0:
        return None
    return int(delay)


def _collect_options(node: Mapping[str, Any]) -> dict[str, Any] | None:
    options = {str(key): _json_safe(value) for key, value in node.items() if key not in _TERMINAL_KEYS}
    explicit = node.get("options")
    if isinstance(explicit, Mapping):
        options = {**_json_safe(explicit), **options}
    return options or None


def _json_safe(value: Any) -> Any:
    """Convert a YAML value into a canonical JSON-compatible form.

    Binary scalars become base64 text, sets become sorted lists, and
    timestamps become ISO strings, so the plan hash does not depend on
    process state.
    """
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, set | frozenset):
        items = [_json_safe(item) for item in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))
    if isinstance(value, list | tuple):
        return [_json_safe(item) for item in value]
    if isinstance(value, datetime.date):
        return value.isoformat()
    return value
