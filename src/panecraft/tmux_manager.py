"""Command executors that talk to tmux, or pretend to."""

import logging
import os
import shlex
import subprocess
from typing import Protocol

from panecraft.errors import ErrorCode, execution_error

logger = logging.getLogger(__name__)

# Timeout for all tmux subprocess calls (seconds)
_TMUX_TIMEOUT = 10


class CommandExecutor(Protocol):
    """Runs tmux commands on behalf of the plan executor."""

    def execute(self, args: list[str]) -> str:
        """Run ``tmux <args>`` and return its stdout."""
        ...

    def is_dry_run(self) -> bool:
        """Whether commands are only simulated."""
        ...


def is_inside_tmux() -> bool:
    """Check if we're running inside a tmux session."""
    return os.environ.get("TMUX") is not None


def command_string(args: list[str]) -> str:
    """Render tmux arguments as a copy-pasteable shell command."""
    return shlex.join(["tmux", *args])


class TmuxCommandExecutor:
    """Runs commands against the live tmux server."""

    def __init__(self, timeout: float = _TMUX_TIMEOUT) -> None:
        self.timeout = timeout

    def execute(self, args: list[str]) -> str:
        """Run a tmux command.

        Args:
            args: Arguments after ``tmux``.

        Returns:
            Stdout without the trailing newline.

        Raises:
            CoreError: TMUX_NOT_FOUND if tmux is missing, TMUX_COMMAND_FAILED otherwise.
        """
        rendered = command_string(args)
        logger.debug("Executing: %s", rendered)
        try:
            result = subprocess.run(
                ["tmux", *args],
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise execution_error(
                ErrorCode.TMUX_NOT_FOUND,
                "tmux is required but was not found on PATH",
                details={"command": rendered},
            ) from e
        except subprocess.CalledProcessError as e:
            raise execution_error(
                ErrorCode.TMUX_COMMAND_FAILED,
                "Failed to execute tmux command",
                details={"command": rendered, "exit_code": e.returncode, "stderr": (e.stderr or "").strip()},
            ) from e
        except subprocess.TimeoutExpired as e:
            raise execution_error(
                ErrorCode.TMUX_COMMAND_FAILED,
                f"tmux command timed out after {self.timeout}s",
                details={"command": rendered},
            ) from e
        return result.stdout.rstrip("\n")

    def is_dry_run(self) -> bool:
        return False


class DryRunCommandExecutor:
    """Records commands and simulates the panes tmux would create.

    Pane ids are handed out as ``%0``, ``%1``, ... so a plan can be replayed end
    to end without a tmux server.
    """

    def __init__(self, pane_ids: list[str] | None = None) -> None:
        self.panes: list[str] = list(pane_ids) if pane_ids else ["%0"]
        self.commands: list[list[str]] = []
        self._next_id = 1 + max((_pane_number(pane) for pane in self.panes), default=-1)

    def execute(self, args: list[str]) -> str:
        """Record a command and return the output tmux would produce."""
        self.commands.append(list(args))
        logger.info("Would execute: %s", command_string(args))

        if not args:
            return ""
        name = args[0]
        if name == "new-window":
            self.panes = [self._allocate()]
            return self.panes[0]
        if name == "split-window":
            self.panes.append(self._allocate())
            return ""
        if name == "list-panes":
            return "\n".join(self.panes)
        if name == "kill-pane" and "-a" in args:
            keep = args[args.index("-t") + 1] if "-t" in args else self.panes[0]
            self.panes = [pane for pane in self.panes if pane == keep]
            return ""
        if name == "display-message" and args[-1] == "#{pane_id}":
            return self.panes[0] if self.panes else ""
        return ""

    def is_dry_run(self) -> bool:
        return True

    def _allocate(self) -> str:
        pane_id = f"%{self._next_id}"
        self._next_id += 1
        return pane_id


def _pane_number(pane_id: str) -> int:
    digits = pane_id.lstrip("%")
    return int(digits) if digits.isdigit() else -1
