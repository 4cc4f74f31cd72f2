"""Human-readable rendering of a plan emission."""

from panecraft.models import PlanEmission
from panecraft.tmux_manager import command_string


def render_dry_run_steps(emission: PlanEmission) -> list[str]:
    """Render one ``<summary>: tmux <argv>`` line per step.

    Fixed-cell splits show ``<dynamic>`` in place of a size, since the real
    size depends on the live pane.
    """
    return [f"{step.summary}: {command_string(list(step.command))}" for step in emission.steps]
