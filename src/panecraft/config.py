"""Configuration management for panecraft."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import BaseModel, ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from panecraft.errors import CoreError, ErrorCode
from panecraft.models import WindowMode
from panecraft.xdg_paths import get_config_file_path

DEFAULT_PRESET_KEY = "default"

# Preset-level key selecting the window mode, spelled like other preset document keys
PRESET_WINDOW_MODE_KEY = "windowMode"


class Defaults(BaseModel):
    """Settings applied when neither the command line nor the preset decides."""

    window_mode: WindowMode | None = None
    window_name: str | None = None


class Config(BaseModel):
    """Configuration settings for panecraft."""

    defaults: Defaults = Defaults()
    # Raw preset documents, compiled on demand
    presets: dict[str, dict[str, Any]] = {}


@dataclass
class ConfigWarning:
    """A config validation warning."""

    file: str
    field_name: str
    message: str
    value: object = field(default=None, repr=False)


def _file_warning(path: Path, message: str, value: object = None) -> ConfigWarning:
    return ConfigWarning(file=str(path), field_name="(file)", message=message, value=value)


def _load_yaml_file(path: Path) -> tuple[dict[str, object], list[ConfigWarning]]:
    """Read a config file into a mapping.

    A missing or empty file is an empty mapping. Unreadable, unparsable or
    non-mapping content is reported as a warning instead of raised.
    """
    if not path.exists():
        return {}, []

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        return {}, [_file_warning(path, f"YAML parse error: {e}")]
    except OSError as e:
        return {}, [_file_warning(path, f"File read error: {e}")]

    if raw is None:
        return {}, []
    if not isinstance(raw, dict):
        return {}, [_file_warning(path, "Top-level YAML value must be a mapping", type(raw).__name__)]
    return cast(dict[str, object], raw), []


def _drop_invalid_entries(raw: dict[str, object], errors: list[Any]) -> dict[str, object]:
    """Remove the entries a validation error points at.

    A bad preset is dropped on its own; any other bad key goes as a whole.
    """
    recovered = dict(raw)
    for error in errors:
        loc = error["loc"]
        if not loc:
            continue
        presets = recovered.get("presets")
        if loc[0] == "presets" and len(loc) > 1 and isinstance(presets, dict):
            recovered["presets"] = {key: value for key, value in presets.items() if key != loc[1]}
        else:
            recovered.pop(str(loc[0]), None)
    return recovered


def load_config(config_path: Path | None = None) -> tuple[Config, list[ConfigWarning]]:
    """Load configuration from a single YAML file.

    Invalid entries are reported as warnings and dropped, so one bad preset
    does not hide the rest of the file.

    Args:
        config_path: Optional path to config file. Uses default if None.

    Returns:
        Tuple of (loaded Config, list of ConfigWarnings).
    """
    path = config_path or get_config_file_path()
    raw, warnings = _load_yaml_file(path)

    try:
        return Config.model_validate(raw), warnings
    except ValidationError as e:
        errors = e.errors()

    warnings.extend(
        ConfigWarning(
            file=str(path),
            field_name=".".join(str(part) for part in error["loc"]),
            message=error["msg"],
            value=error.get("input"),
        )
        for error in errors
    )
    try:
        return Config.model_validate(_drop_invalid_entries(raw, errors)), warnings
    except ValidationError:
        return Config(), warnings


def display_config_warnings(warnings: list[ConfigWarning], console: Console) -> None:
    """Print config warnings as a table, grouped under their file."""
    if not warnings:
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("Field", style="bold", no_wrap=True)
    table.add_column("Problem", style="yellow")
    table.add_column("Value", style="dim")
    for warning in warnings:
        shown = "" if warning.value is None else repr(warning.value)
        table.add_row(warning.field_name, warning.message, shown)

    files = ", ".join(dict.fromkeys(warning.file for warning in warnings))
    console.print(Panel(table, title="[yellow]Config Warnings[/]", subtitle=files, border_style="yellow"))


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save configuration to YAML file.

    Args:
        config: The configuration to save.
        config_path: Optional path to config file. Uses default if None.
    """
    path = config_path or get_config_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_none=True)
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def default_config() -> Config:
    """Starter configuration written by ``init-config``."""
    return Config(
        defaults=Defaults(window_mode=WindowMode.NEW_WINDOW),
        presets={
            "default": {
                "name": "Development",
                "layout": {
                    "type": "horizontal",
                    "ratio": [2, 1],
                    "panes": [
                        {"name": "editor", "command": "${EDITOR:-vim} .", "focus": True},
                        {
                            "type": "vertical",
                            "ratio": [1, 1],
                            "panes": [
                                {"name": "shell"},
                                {"name": "git", "command": "git status"},
                            ],
                        },
                    ],
                },
            },
        },
    )


def select_preset_key(config: Config, name: str | None) -> str:
    """Choose which configured preset to apply.

    Without a name, the preset keyed ``default`` wins, else the first one defined.

    Raises:
        CoreError: PRESET_NOT_FOUND if the preset does not exist.
    """
    if name is not None:
        if name not in config.presets:
            raise CoreError(
                "compile",
                ErrorCode.PRESET_NOT_FOUND,
                f"Preset {name!r} not found",
                path=f"presets.{name}",
                details={"available": list(config.presets)},
            )
        return name

    if DEFAULT_PRESET_KEY in config.presets:
        return DEFAULT_PRESET_KEY
    if not config.presets:
        raise CoreError("compile", ErrorCode.PRESET_NOT_FOUND, "No presets defined", path="presets")
    return next(iter(config.presets))


def preset_source(key: str, config_path: Path | None = None) -> str:
    """Label attributing a configured preset's errors: ``<file>#presets.<key>``."""
    path = config_path or get_config_file_path()
    return f"{path}#presets.{key}"


def resolve_window_mode(
    cli: WindowMode | None,
    preset_value: object,
    defaults: Defaults,
) -> WindowMode:
    """Pick the window mode: command line, then preset, then config defaults.

    Falls back to ``new-window``. An unrecognized preset value is ignored.
    """
    if cli is not None:
        return cli
    if isinstance(preset_value, dict):
        raw = preset_value.get(PRESET_WINDOW_MODE_KEY)
        if raw in {mode.value for mode in WindowMode}:
            return WindowMode(raw)
    if defaults.window_mode is not None:
        return defaults.window_mode
    return WindowMode.NEW_WINDOW
