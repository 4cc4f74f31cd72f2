"""Tests for the panecraft CLI."""

import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from panecraft import __version__
from panecraft.__main__ import app
from tests.fakes import FakeTmux

runner = CliRunner()

CONFIG = """
defaults:
  window_name: work
presets:
  pair:
    name: Pair
    layout:
      type: horizontal
      ratio: [1, 1]
      panes:
        - name: left
          command: vim
        - name: right
  solo:
    name: Solo
    windowMode: current-window
    command: htop
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config file with two presets."""
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    return path


@pytest.fixture
def outside_tmux() -> Iterator[None]:
    """Run without tmux environment variables."""
    env = {k: v for k, v in os.environ.items() if k not in ("TMUX", "TMUX_PANE")}
    with patch.dict(os.environ, env, clear=True):
        yield


@pytest.fixture
def inside_tmux() -> Iterator[None]:
    """Pretend to run inside tmux in pane %0."""
    with patch.dict(os.environ, {"TMUX": "/tmp/tmux-1000/default,1,0", "TMUX_PANE": "%0"}):
        yield


class TestVersion:
    """Tests for --version."""

    def test_version(self) -> None:
        """Should print the version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"panecraft {__version__}" in result.output


class TestApplyDryRun:
    """Tests for apply --dry-run."""

    @pytest.mark.usefixtures("outside_tmux")
    def test_file(self, tmp_path: Path, split_preset: str) -> None:
        """Should print rendered steps and the plan hash."""
        preset = tmp_path / "preset.yaml"
        preset.write_text(split_preset)
        result = runner.invoke(app, ["apply", "-f", str(preset), "-C", str(tmp_path / "none.yaml"), "-n"])

        assert result.exit_code == 0, result.output
        assert "split root.0 (-h): tmux split-window -h -t root.0 -p 67" in result.output
        assert "Plan hash:" in result.output
        assert "Dry run replayed 4 steps" in result.output

    @pytest.mark.usefixtures("outside_tmux")
    def test_configured_preset(self, config_file: Path) -> None:
        """Should apply a named preset from the config file."""
        result = runner.invoke(app, ["apply", "pair", "-C", str(config_file), "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "Pair (new-window)" in result.output
        assert "split root.0 (-h): tmux split-window -h -t root.0 -p 50" in result.output

    @pytest.mark.usefixtures("outside_tmux")
    def test_preset_window_mode(self, config_file: Path) -> None:
        """Should honour a preset's windowMode."""
        result = runner.invoke(app, ["apply", "solo", "-C", str(config_file), "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "Solo (current-window)" in result.output

    @pytest.mark.usefixtures("outside_tmux")
    def test_window_mode_option(self, config_file: Path) -> None:
        """Should let --window-mode override the preset."""
        result = runner.invoke(app, ["apply", "solo", "-C", str(config_file), "-n", "-w", "new-window"])
        assert result.exit_code == 0, result.output
        assert "Solo (new-window)" in result.output

    @pytest.mark.usefixtures("outside_tmux")
    def test_unknown_preset(self, config_file: Path) -> None:
        """Should report unknown presets."""
        result = runner.invoke(app, ["apply", "nope", "-C", str(config_file), "-n"])
        assert result.exit_code == 1
        assert "PRESET_NOT_FOUND" in result.output

    @pytest.mark.usefixtures("outside_tmux")
    def test_compile_error(self, tmp_path: Path) -> None:
        """Should report compile errors with their code."""
        preset = tmp_path / "bad.yaml"
        preset.write_text("layout:\n  type: horizontal\n  ratio: [1, 2]\n  panes:\n    - name: a\n")
        result = runner.invoke(app, ["apply", "-f", str(preset), "-C", str(tmp_path / "none.yaml"), "-n"])
        assert result.exit_code == 1
        assert "LAYOUT_RATIO_MISMATCH" in result.output

    @pytest.mark.usefixtures("outside_tmux")
    def test_missing_file(self, tmp_path: Path) -> None:
        """Should fail cleanly when the preset file cannot be read."""
        result = runner.invoke(
            app, ["apply", "-f", str(tmp_path / "missing.yaml"), "-C", str(tmp_path / "none.yaml"), "-n"]
        )
        assert result.exit_code == 1
        assert "Cannot read preset file" in result.output


class TestApplyLive:
    """Tests for apply against tmux."""

    @pytest.mark.usefixtures("outside_tmux")
    def test_requires_tmux(self, config_file: Path) -> None:
        """Should refuse to run outside tmux."""
        result = runner.invoke(app, ["apply", "pair", "-C", str(config_file)])
        assert result.exit_code == 1
        assert "NOT_IN_TMUX_SESSION" in result.output

    @pytest.mark.usefixtures("inside_tmux")
    def test_new_window(self, config_file: Path) -> None:
        """Should create a named window and build the layout."""
        tmux = FakeTmux()
        with patch("panecraft.__main__.TmuxCommandExecutor", return_value=tmux):
            result = runner.invoke(app, ["apply", "pair", "-C", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Applied preset 'Pair'" in result.output
        assert tmux.commands[0] == ["new-window", "-P", "-F", "#{pane_id}", "-n", "work"]
        assert tmux.sent_keys() == [("%1", "vim")]

    @pytest.mark.usefixtures("inside_tmux")
    def test_current_window_declined(self, config_file: Path) -> None:
        """Should abort when the user declines closing panes."""
        tmux = FakeTmux(panes=["%0", "%1"])
        with patch("panecraft.__main__.TmuxCommandExecutor", return_value=tmux):
            result = runner.invoke(app, ["apply", "pair", "-C", str(config_file), "--current-window"], input="n\n")

        assert result.exit_code == 1
        assert "Aborted" in result.output
        assert "kill-pane" not in tmux.command_names()

    @pytest.mark.usefixtures("inside_tmux")
    def test_current_window_yes(self, config_file: Path) -> None:
        """Should close other panes without asking when --yes is given."""
        tmux = FakeTmux(panes=["%0", "%1"])
        with patch("panecraft.__main__.TmuxCommandExecutor", return_value=tmux):
            result = runner.invoke(app, ["apply", "pair", "-C", str(config_file), "--current-window", "-y"])

        assert result.exit_code == 0, result.output
        assert ["kill-pane", "-a", "-t", "%0"] in tmux.commands


class TestPlan:
    """Tests for the plan command."""

    def test_prints_emission(self, config_file: Path) -> None:
        """Should print the emission as JSON with its hash."""
        result = runner.invoke(app, ["plan", "pair", "-C", str(config_file)])
        assert result.exit_code == 0, result.output
        assert '"hash"' in result.output
        assert '"root:split:1"' in result.output
        assert "Plan hash:" in result.output

    def test_binary_and_set_options(self, tmp_path: Path) -> None:
        """Should plan presets whose extra terminal keys hold binary or set values."""
        preset = tmp_path / "preset.yaml"
        preset.write_text('layout:\n  name: a\n  command: ls\n  blob: !!binary "/w=="\n  tags: !!set {b, a}\n')
        result = runner.invoke(app, ["plan", "-f", str(preset), "-C", str(tmp_path / "none.yaml")])
        assert result.exit_code == 0, result.output
        assert "Plan hash:" in result.output

    @pytest.mark.usefixtures("outside_tmux")
    def test_matches_dry_run_hash(self, config_file: Path) -> None:
        """Should report the same hash as a dry run."""
        plan_result = runner.invoke(app, ["plan", "pair", "-C", str(config_file)])
        dry_result = runner.invoke(app, ["apply", "pair", "-C", str(config_file), "-n"])
        hash_line = plan_result.output.strip().splitlines()[-1]
        assert hash_line.startswith("Plan hash: ")
        assert hash_line in dry_result.output


class TestDiagnose:
    """Tests for the diagnose command."""

    def test_clean_preset(self, config_file: Path) -> None:
        """Should report no problems for a valid preset."""
        result = runner.invoke(app, ["diagnose", "pair", "-C", str(config_file)])
        assert result.exit_code == 0, result.output
        assert "No problems found" in result.output

    def test_reports_findings(self, tmp_path: Path) -> None:
        """Should list focus conflicts and known issues by severity."""
        preset = tmp_path / "preset.yaml"
        preset.write_text(
            "layout:\n  type: vertical\n  ratio: [1, 1]\n  panes:\n"
            "    - name: main\n      focus: true\n    - name: aux\n      focus: true\n"
        )
        result = runner.invoke(
            app,
            ["diagnose", "-f", str(preset), "-C", str(tmp_path / "none.yaml"), "-k", "window names drift"],
        )
        assert result.exit_code == 0, result.output
        assert "[HIGH]" in result.output
        assert "[MEDIUM]" in result.output
        assert "focus: true" in result.output
        assert "window names drift" in result.output
        assert "Next steps" in result.output

    def test_unknown_preset(self, config_file: Path) -> None:
        """Should fail for unknown presets."""
        result = runner.invoke(app, ["diagnose", "nope", "-C", str(config_file)])
        assert result.exit_code == 1
        assert "PRESET_NOT_FOUND" in result.output


class TestListPresets:
    """Tests for the list command."""

    def test_lists_presets(self, config_file: Path) -> None:
        """Should show each preset with its window mode."""
        result = runner.invoke(app, ["list", "-C", str(config_file)])
        assert result.exit_code == 0, result.output
        assert "pair" in result.output
        assert "Solo" in result.output
        assert "current-window" in result.output

    def test_empty(self, tmp_path: Path) -> None:
        """Should hint at init-config when nothing is configured."""
        result = runner.invoke(app, ["list", "-C", str(tmp_path / "none.yaml")])
        assert result.exit_code == 0
        assert "init-config" in result.output


class TestInitConfig:
    """Tests for the init-config command."""

    def test_creates_file(self, tmp_path: Path) -> None:
        """Should write a loadable starter config once."""
        path = tmp_path / "config.yaml"
        result = runner.invoke(app, ["init-config", "-C", str(path)])
        assert result.exit_code == 0, result.output
        assert path.exists()

        listed = runner.invoke(app, ["list", "-C", str(path)])
        assert "default" in listed.output

        again = runner.invoke(app, ["init-config", "-C", str(path)])
        assert again.exit_code == 1
        assert "already exists" in again.output
