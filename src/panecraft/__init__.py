"""Compile declarative tmux layout presets into replayable pane plans."""

__version__ = "0.3.0"
