"""
StreamGo — Frame Scheduler

QTimer-backed scheduler shared by every component that waits: the change-watch
coordinator (one dispatch per paint frame), the scroll monitor debounce, the
stream locator's retry delays and the interception cooldown.

Interface (the core modules only rely on these five methods):
  request_frame(cb) -> handle     run cb at the next frame boundary
  cancel_frame(handle)
  call_later(delay_ms, cb) -> handle
  start_interval(interval_ms, cb) -> handle
  cancel(handle)
  now_ms() -> float               monotonic milliseconds

Everything runs on the GUI thread. Cancelling an unknown or already-fired
handle is a no-op.
"""

import itertools
import time

from PySide6.QtCore import QObject, QTimer, Qt

from .constants import TIMEOUTS


class QtFrameScheduler(QObject):

    def __init__(self, frame_ms: int = TIMEOUTS["FRAME"], parent=None):
        super().__init__(parent)
        self._frame_ms = max(1, int(frame_ms))
        self._ids = itertools.count(1)
        self._timers: dict[int, QTimer] = {}
        self._epoch = time.monotonic()

    # ── time ────────────────────────────────────────────────────────────

    def now_ms(self) -> float:
        return (time.monotonic() - self._epoch) * 1000.0

    def _until_next_frame(self) -> int:
        phase = self.now_ms() % self._frame_ms
        return max(1, int(round(self._frame_ms - phase)))

    # ── scheduling ──────────────────────────────────────────────────────

    def request_frame(self, callback) -> int:
        return self._arm(self._until_next_frame(), callback, repeat=False)

    def cancel_frame(self, handle):
        self.cancel(handle)

    def call_later(self, delay_ms, callback) -> int:
        return self._arm(max(0, int(delay_ms)), callback, repeat=False)

    def start_interval(self, interval_ms, callback) -> int:
        return self._arm(max(1, int(interval_ms)), callback, repeat=True)

    def cancel(self, handle):
        if handle is None:
            return
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def cancel_all(self):
        for handle in list(self._timers.keys()):
            self.cancel(handle)

    def _arm(self, delay_ms: int, callback, repeat: bool) -> int:
        handle = next(self._ids)
        timer = QTimer(self)
        timer.setTimerType(Qt.TimerType.PreciseTimer)
        timer.setSingleShot(not repeat)
        timer.setInterval(delay_ms)

        def _fire():
            if not repeat:
                self._timers.pop(handle, None)
                timer.deleteLater()
            callback()

        timer.timeout.connect(_fire)
        self._timers[handle] = timer
        timer.start()
        return handle
