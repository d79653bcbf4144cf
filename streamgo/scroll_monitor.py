"""
StreamGo — Scroll Performance Monitor

Watches scroll / wheel / touchmove input forwarded from the page and keeps the
change-watch coordinator paused for the whole burst. The first event of a
burst marks the page (body.scrolling-active, html.performance-mode) and pauses
the coordinator; every further event re-arms a short debounce. When the
debounce expires the idle transition is confirmed on the next frame, and only
if no input arrived in the meantime.
"""

from .constants import (
    CLASS_PERFORMANCE_MODE,
    CLASS_SCROLLING_ACTIVE,
    MARKER_BODY,
    MARKER_ROOT,
    TIMEOUTS,
)


class ScrollPerformanceMonitor:

    def __init__(self, coordinator, scheduler, markers, debounce_ms: int = TIMEOUTS["SCROLL_DEBOUNCE"]):
        self._coordinator = coordinator
        self._scheduler = scheduler
        self._markers = markers
        self._debounce_ms = debounce_ms
        self._installed = False
        self._scrolling = False
        self._last_input = 0.0
        self._timeout_handle = None
        self._frame_handle = None
        self.bursts = 0
        self.idle_transitions = 0

    @property
    def is_scrolling(self) -> bool:
        return self._scrolling

    def install(self, input_signal) -> bool:
        """Connect to the page's input signal. Only the first call has effect."""
        if self._installed:
            return False
        input_signal.connect(self.on_input)
        self._installed = True
        print(f"[scroll] Scroll state detection initialized ({self._debounce_ms}ms, observers paused during scroll)")
        return True

    def on_input(self, kind=None):
        self._last_input = self._scheduler.now_ms()

        if not self._scrolling:
            self._scrolling = True
            self.bursts += 1
            self._markers.set_marker(MARKER_BODY, CLASS_SCROLLING_ACTIVE, True)
            self._markers.set_marker(MARKER_ROOT, CLASS_PERFORMANCE_MODE, True)
            self._coordinator.pause_all()

        if self._timeout_handle is not None:
            self._scheduler.cancel(self._timeout_handle)
        self._timeout_handle = self._scheduler.call_later(self._debounce_ms, self._on_debounce)

    def _on_debounce(self):
        self._timeout_handle = None
        if self._frame_handle is not None:
            self._scheduler.cancel_frame(self._frame_handle)
        self._frame_handle = self._scheduler.request_frame(self._confirm_idle)

    def _confirm_idle(self):
        self._frame_handle = None
        if not self._scrolling:
            return
        if self._scheduler.now_ms() - self._last_input < self._debounce_ms:
            return
        self._scrolling = False
        self.idle_transitions += 1
        self._markers.set_marker(MARKER_BODY, CLASS_SCROLLING_ACTIVE, False)
        self._markers.set_marker(MARKER_ROOT, CLASS_PERFORMANCE_MODE, False)
        self._coordinator.resume_all()
