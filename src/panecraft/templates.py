"""Template tokens in terminal commands.

Supported tokens:

- ``{{this_pane}}``: the pane receiving the command
- ``{{focus_pane}}``: the pane focused once the layout is applied
- ``{{pane_id:<name>}}``: the pane of the terminal named ``<name>``
"""

import re
from collections.abc import Iterable, Mapping

from panecraft.models import EmittedTerminal

# One pass over all tokens so substituted ids are never re-scanned
_TOKEN_PATTERN = re.compile(r"\{\{(this_pane|focus_pane|pane_id:([^}]+))\}\}")


class TemplateTokenError(ValueError):
    """A template token could not be resolved."""

    def __init__(self, message: str, token_type: str, available_panes: list[str] | None = None) -> None:
        super().__init__(message)
        self.token_type = token_type
        self.available_panes = available_panes or []


def replace_template_tokens(
    command: str,
    current_pane_id: str,
    focus_pane_id: str,
    name_to_pane_id: Mapping[str, str],
) -> str:
    """Substitute template tokens with real pane ids.

    Args:
        command: The command text.
        current_pane_id: Real id of the pane receiving the command.
        focus_pane_id: Real id of the focus pane.
        name_to_pane_id: Terminal name to real pane id.

    Returns:
        The command with every token replaced.

    Raises:
        TemplateTokenError: If a ``pane_id`` token names an unknown pane.
    """

    def _substitute(match: re.Match[str]) -> str:
        token = match.group(1)
        if token == "this_pane":
            return current_pane_id
        if token == "focus_pane":
            return focus_pane_id

        name = match.group(2).strip()
        pane_id = name_to_pane_id.get(name)
        if pane_id is None:
            available = list(name_to_pane_id)
            raise TemplateTokenError(
                f"Pane name {name!r} not found. Available panes: {', '.join(available)}",
                "pane_id",
                available,
            )
        return pane_id

    return _TOKEN_PATTERN.sub(_substitute, command)


def build_name_to_pane_id_map(terminals: Iterable[EmittedTerminal], pane_ids: Mapping[str, str]) -> dict[str, str]:
    """Map terminal names to real pane ids.

    Only terminals present in ``pane_ids`` are included. When names repeat,
    the last terminal in layout order wins.

    Args:
        terminals: Emitted terminals.
        pane_ids: Virtual pane id to real pane id.

    Returns:
        Terminal name to real pane id.
    """
    mapping: dict[str, str] = {}
    for terminal in terminals:
        real_id = pane_ids.get(terminal.virtual_pane_id)
        if real_id is not None:
            mapping[terminal.name] = real_id
    return mapping
