"""Tests for panecraft.templates module."""

import pytest

from panecraft.models import EmittedTerminal
from panecraft.templates import TemplateTokenError, build_name_to_pane_id_map, replace_template_tokens


class TestReplaceTemplateTokens:
    """Tests for replace_template_tokens function."""

    def test_this_and_focus(self) -> None:
        """Should substitute this_pane and focus_pane."""
        result = replace_template_tokens("tmux send -t {{focus_pane}} from {{this_pane}}", "%2", "%1", {})
        assert result == "tmux send -t %1 from %2"

    def test_named_pane(self) -> None:
        """Should substitute pane_id tokens by terminal name."""
        result = replace_template_tokens("watch {{pane_id:server}}", "%2", "%1", {"server": "%3"})
        assert result == "watch %3"

    def test_name_whitespace_trimmed(self) -> None:
        """Should trim whitespace around the pane name."""
        assert replace_template_tokens("{{pane_id: server }}", "%2", "%1", {"server": "%3"}) == "%3"

    def test_unknown_name(self) -> None:
        """Should raise with the available names."""
        with pytest.raises(TemplateTokenError) as exc_info:
            replace_template_tokens("{{pane_id:db}}", "%2", "%1", {"server": "%3", "client": "%4"})
        assert exc_info.value.token_type == "pane_id"
        assert exc_info.value.available_panes == ["server", "client"]

    def test_no_tokens(self) -> None:
        """Should leave plain commands alone."""
        assert replace_template_tokens("echo {{unknown}}", "%2", "%1", {}) == "echo {{unknown}}"


class TestBuildNameToPaneIdMap:
    """Tests for build_name_to_pane_id_map function."""

    def test_last_duplicate_wins(self) -> None:
        """Should map repeated names to the last terminal."""
        terminals = [
            EmittedTerminal(virtual_pane_id="root.0", name="shell"),
            EmittedTerminal(virtual_pane_id="root.1", name="shell"),
            EmittedTerminal(virtual_pane_id="root.2", name="logs"),
        ]
        mapping = build_name_to_pane_id_map(terminals, {"root.0": "%1", "root.1": "%2", "root.2": "%3"})
        assert mapping == {"shell": "%2", "logs": "%3"}

    def test_skips_unmapped(self) -> None:
        """Should skip terminals without a real pane."""
        terminals = [EmittedTerminal(virtual_pane_id="root.0", name="a")]
        assert build_name_to_pane_id_map(terminals, {}) == {}
