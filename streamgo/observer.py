"""
StreamGo — Change-Watch Coordinator

One structural-change watch over the web page (a MutationObserver on
document.body, see host_page.py) shared by every component that reacts to the
host UI re-rendering. Handlers subscribe by id; the underlying watch is
connected when the first handler arrives and disconnected when the last one
leaves.

Batches arriving from the page are merged and delivered on the next paint
frame, so a burst of mutations costs at most one dispatch per handler per
frame. A failing handler is reported and skipped; the others still run.
"""

from typing import Callable


class HandlerRegistration:
    """A single subscriber. ``active=False`` keeps it registered but silent."""

    __slots__ = ("id", "callback", "active")

    def __init__(self, handler_id: str, callback: Callable[[list], None], active: bool = True):
        self.id = handler_id
        self.callback = callback
        self.active = active

    def __repr__(self):
        return f"HandlerRegistration({self.id!r}, active={self.active})"


class ChangeWatchCoordinator:
    """
    ``source`` is the underlying watch: ``connect(on_batch)`` starts delivering
    lists of change records to ``on_batch``; ``disconnect()`` stops it.
    ``scheduler`` provides request_frame/cancel_frame (frames.py).
    """

    def __init__(self, source, scheduler):
        self._source = source
        self._scheduler = scheduler
        self._handlers: dict[str, HandlerRegistration] = {}
        self._started = False      # watcher exists (has handlers)
        self._connected = False    # watcher currently delivering
        self._paused = False       # held off by pause_all until resume_all
        self._frame_handle = None
        self._pending: list = []
        self.dispatch_count = 0

    # ── state ───────────────────────────────────────────────────────────

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_watching(self) -> bool:
        return self._connected

    def handler_ids(self) -> list[str]:
        return list(self._handlers.keys())

    def get(self, handler_id: str) -> HandlerRegistration | None:
        return self._handlers.get(handler_id)

    # ── registration ────────────────────────────────────────────────────

    def register(self, handler_id: str, callback: Callable[[list], None]):
        """Attach (or replace) a handler; starts the watch on first use."""
        self._handlers[handler_id] = HandlerRegistration(handler_id, callback, True)
        print(f"[observer] Handler registered: {handler_id}")
        if not self._started:
            self._started = True
            if not self._paused:
                self._connect()
            print("[observer] Unified change watch initialized")

    def unregister(self, handler_id: str):
        if self._handlers.pop(handler_id, None) is None:
            return
        print(f"[observer] Handler unregistered: {handler_id}")
        if not self._handlers and self._started:
            self._disconnect()
            self._started = False
            if self._frame_handle is not None:
                self._scheduler.cancel_frame(self._frame_handle)
                self._frame_handle = None
            self._pending = []
            print("[observer] Unified change watch disconnected (no handlers)")

    def set_active(self, handler_id: str, active: bool):
        reg = self._handlers.get(handler_id)
        if reg is not None:
            reg.active = bool(active)

    # ── pause / resume (scroll bursts) ──────────────────────────────────

    def pause_all(self):
        """
        Stop the underlying watch until resume_all. Holds across the last
        handler leaving and a new one arriving. A dispatch already scheduled
        still runs.
        """
        self._paused = True
        self._disconnect()

    def resume_all(self):
        self._paused = False
        if self._started and not self._connected:
            self._connect()

    # ── internals ───────────────────────────────────────────────────────

    def _connect(self):
        self._source.connect(self._on_batch)
        self._connected = True

    def _disconnect(self):
        if not self._connected:
            return
        self._source.disconnect()
        self._connected = False

    def _on_batch(self, records):
        if not self._started:
            return
        self._pending.extend(records or ())
        if self._frame_handle is not None:
            self._scheduler.cancel_frame(self._frame_handle)
        self._frame_handle = self._scheduler.request_frame(self._dispatch)

    def _dispatch(self):
        self._frame_handle = None
        batch, self._pending = self._pending, []
        self.dispatch_count += 1
        for reg in list(self._handlers.values()):
            # A handler may unregister or deactivate another one mid-dispatch.
            if self._handlers.get(reg.id) is not reg or not reg.active:
                continue
            try:
                reg.callback(batch)
            except Exception as e:
                print(f"[observer] Handler {reg.id} error: {e}")
