"""Structured errors shared by every stage of the layout pipeline."""

from enum import StrEnum
from typing import Any, Literal

ErrorKind = Literal["compile", "plan", "emit", "execution"]


class ErrorCode(StrEnum):
    """Stable error codes."""

    # compile
    PRESET_PARSE_ERROR = "PRESET_PARSE_ERROR"
    PRESET_INVALID_DOCUMENT = "PRESET_INVALID_DOCUMENT"
    LAYOUT_INVALID_NODE = "LAYOUT_INVALID_NODE"
    LAYOUT_INVALID_ORIENTATION = "LAYOUT_INVALID_ORIENTATION"
    LAYOUT_PANES_MISSING = "LAYOUT_PANES_MISSING"
    LAYOUT_RATIO_MISSING = "LAYOUT_RATIO_MISSING"
    LAYOUT_RATIO_MISMATCH = "LAYOUT_RATIO_MISMATCH"
    RATIO_INVALID_VALUE = "RATIO_INVALID_VALUE"

    # plan
    FOCUS_CONFLICT = "FOCUS_CONFLICT"
    NO_TERMINAL_PANES = "NO_TERMINAL_PANES"
    RATIO_WEIGHT_MISSING = "RATIO_WEIGHT_MISSING"

    # execution
    MISSING_TARGET = "MISSING_TARGET"
    INVALID_PANE = "INVALID_PANE"
    INVALID_PLAN = "INVALID_PLAN"
    TEMPLATE_TOKEN_ERROR = "TEMPLATE_TOKEN_ERROR"
    NOT_IN_TMUX_SESSION = "NOT_IN_TMUX_SESSION"
    USER_CANCELLED = "USER_CANCELLED"
    TMUX_COMMAND_FAILED = "TMUX_COMMAND_FAILED"
    TMUX_NOT_FOUND = "TMUX_NOT_FOUND"
    SPLIT_SIZE_RESOLUTION_FAILED = "SPLIT_SIZE_RESOLUTION_FAILED"

    # cli
    PRESET_NOT_FOUND = "PRESET_NOT_FOUND"


class CoreError(Exception):
    """An error raised by the compiler, planner, emitter, or plan executor.

    Attributes:
        kind: Pipeline stage that produced the error.
        code: Stable taxonomy code.
        message: Human-readable description.
        source: Label of the preset source, when known.
        path: Layout path (``preset.layout.panes[1]``) or step id (``root:split:1``).
        details: Extra structured context.
    """

    def __init__(
        self,
        kind: ErrorKind,
        code: ErrorCode | str,
        message: str,
        *,
        source: str | None = None,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.code = code
        self.message = message
        self.source = source
        self.path = path
        self.details: dict[str, Any] = details or {}

    def __str__(self) -> str:
        location = f" ({self.path})" if self.path else ""
        return f"[{self.code}] {self.message}{location}"

    def __repr__(self) -> str:
        return f"CoreError(kind={self.kind!r}, code={str(self.code)!r}, path={self.path!r})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for logging or JSON output."""
        data: dict[str, Any] = {"kind": self.kind, "code": str(self.code), "message": self.message}
        if self.source is not None:
            data["source"] = self.source
        if self.path is not None:
            data["path"] = self.path
        if self.details:
            data["details"] = self.details
        return data


def compile_error(code: ErrorCode, message: str, **kwargs: Any) -> CoreError:
    """Build a compile-stage error."""
    return CoreError("compile", code, message, **kwargs)


def plan_error(code: ErrorCode, message: str, **kwargs: Any) -> CoreError:
    """Build a plan-stage error."""
    return CoreError("plan", code, message, **kwargs)


def execution_error(code: ErrorCode | str, message: str, **kwargs: Any) -> CoreError:
    """Build an execution-stage error."""
    return CoreError("execution", code, message, **kwargs)
