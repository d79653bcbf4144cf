"""
StreamGo — Cleanup Registry

Teardown callbacks grouped by context name. Handlers bound to UI the shell
injects into the web page (e.g. the external player options) register their
detach function here; flushing the context when the user navigates away
leaves nothing bound, so a return visit never double-binds.
"""

from typing import Callable


class CleanupRegistry:

    def __init__(self):
        self._contexts: dict[str, list[Callable[[], None]]] = {}

    def register(self, context: str, teardown: Callable[[], None]):
        """Append a teardown callback to ``context``."""
        self._contexts.setdefault(context, []).append(teardown)

    def flush(self, context: str) -> int:
        """
        Run and forget every teardown for ``context``, in registration order.
        Returns the number of callbacks that ran (failed ones included).
        """
        callbacks = self._contexts.pop(context, None)
        if not callbacks:
            return 0
        for fn in callbacks:
            try:
                fn()
            except Exception as e:
                print(f"[cleanup] Teardown error in {context}: {e}")
        return len(callbacks)

    def pending(self, context: str) -> int:
        return len(self._contexts.get(context, ()))

    def contexts(self) -> list[str]:
        return list(self._contexts.keys())
