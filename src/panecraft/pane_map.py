"""Virtual-to-real pane id bookkeeping for a single plan execution."""


class PaneMap:
    """Maps virtual pane ids (``root.1.0``) to real tmux pane ids (``%3``).

    Lookups fall back to the nearest registered ancestor, then to any registered
    descendant, because steps may address a subtree root while the real pane was
    registered under a finer id (or the reverse).
    """

    def __init__(self) -> None:
        self._panes: dict[str, str] = {}

    def register(self, virtual_id: str, real_id: str) -> None:
        """Record the real pane backing a virtual id."""
        self._panes[virtual_id] = real_id

    def has(self, virtual_id: str) -> bool:
        """Exact-match membership, without fallback."""
        return bool(self._panes.get(virtual_id))

    def get(self, virtual_id: str) -> str | None:
        """Exact-match lookup, without fallback."""
        return self._panes.get(virtual_id) or None

    def resolve(self, virtual_id: str) -> str | None:
        """Resolve a virtual id, falling back to ancestors and then descendants.

        Fallback hits are remembered under ``virtual_id``.

        Args:
            virtual_id: The virtual pane id.

        Returns:
            The real pane id, or None if nothing related is registered.
        """
        direct = self._panes.get(virtual_id)
        if direct:
            return direct

        ancestor = virtual_id
        while "." in ancestor:
            ancestor = ancestor.rsplit(".", 1)[0]
            candidate = self._panes.get(ancestor)
            if candidate:
                self._panes[virtual_id] = candidate
                return candidate

        prefix = f"{virtual_id}."
        for key, candidate in self._panes.items():
            if key.startswith(prefix) and candidate:
                self._panes[virtual_id] = candidate
                return candidate

        return None

    def __len__(self) -> int:
        return len(self._panes)

    def __repr__(self) -> str:
        return f"PaneMap({self._panes!r})"
