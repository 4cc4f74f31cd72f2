"""Shared fixtures for panecraft tests."""

from collections.abc import Callable

import pytest

from tests.fakes import FakeTmux


@pytest.fixture
def make_fake_tmux() -> Callable[..., FakeTmux]:
    """Factory for FakeTmux executors."""
    return FakeTmux


@pytest.fixture
def fake_tmux() -> FakeTmux:
    """A FakeTmux starting with a single pane."""
    return FakeTmux()


@pytest.fixture
def no_tmux_pane(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run without ``$TMUX_PANE`` set."""
    monkeypatch.delenv("TMUX_PANE", raising=False)


SPLIT_PRESET = """
name: Example
layout:
  type: horizontal
  ratio: [1, 1, 1]
  panes:
    - name: A
      command: vim
    - type: vertical
      ratio: [1, 2]
      panes:
        - name: B
        - name: C
          command: htop
    - name: D
"""


@pytest.fixture
def split_preset() -> str:
    """Three columns with the middle one split in two."""
    return SPLIT_PRESET
