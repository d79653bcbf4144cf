"""Stand-ins for the Qt-backed capabilities the core is built from."""
from __future__ import annotations

import itertools
from typing import Any, Callable, Dict, List, Optional


class FakeScheduler:
    """Manual clock. Timers fire from advance(); frames fire from run_frame()."""

    def __init__(self) -> None:
        self.now = 0.0
        self._ids = itertools.count(1)
        self._timers: Dict[int, list] = {}
        self._frames: Dict[int, Callable[[], None]] = {}
        self.frames_run = 0

    def now_ms(self) -> float:
        return self.now

    def request_frame(self, callback) -> int:
        handle = next(self._ids)
        self._frames[handle] = callback
        return handle

    def cancel_frame(self, handle) -> None:
        self._frames.pop(handle, None)

    def call_later(self, delay_ms, callback) -> int:
        handle = next(self._ids)
        self._timers[handle] = [self.now + delay_ms, None, callback]
        return handle

    def start_interval(self, interval_ms, callback) -> int:
        handle = next(self._ids)
        self._timers[handle] = [self.now + interval_ms, interval_ms, callback]
        return handle

    def cancel(self, handle) -> None:
        if handle is None:
            return
        self._timers.pop(handle, None)
        self._frames.pop(handle, None)

    @property
    def pending_frames(self) -> int:
        return len(self._frames)

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    def run_frame(self) -> int:
        frames, self._frames = self._frames, {}
        for callback in frames.values():
            callback()
        self.frames_run += 1
        return len(frames)

    def advance(self, ms: float) -> None:
        target = self.now + ms
        while True:
            due = [(entry[0], handle) for handle, entry in self._timers.items() if entry[0] <= target]
            if not due:
                break
            when, handle = min(due)
            entry = self._timers[handle]
            self.now = when
            if entry[1] is None:
                del self._timers[handle]
            else:
                entry[0] = when + entry[1]
            entry[2]()
        self.now = target


class FakeSignal:
    def __init__(self) -> None:
        self.slots: List[Callable] = []

    def connect(self, slot) -> None:
        self.slots.append(slot)

    def disconnect(self, slot) -> None:
        self.slots.remove(slot)

    def emit(self, *args) -> None:
        for slot in list(self.slots):
            slot(*args)


class FakeEvents:
    def __init__(self) -> None:
        self.routeChanged = FakeSignal()
        self.clickCaptured = FakeSignal()
        self.inputReceived = FakeSignal()
        self.playerOptionSelected = FakeSignal()


class FakeWatchSource:
    def __init__(self) -> None:
        self.callback: Optional[Callable] = None
        self.connects = 0
        self.disconnects = 0

    @property
    def connected(self) -> bool:
        return self.callback is not None

    def connect(self, on_batch) -> None:
        self.callback = on_batch
        self.connects += 1

    def disconnect(self) -> None:
        self.callback = None
        self.disconnects += 1

    def emit(self, records) -> None:
        if self.callback is not None:
            self.callback(records)


class FakeHost:
    """Records every page operation; answers queries synchronously."""

    def __init__(self) -> None:
        self.states: List[Any] = []
        self.default_state: Any = None
        self.video_src: Optional[str] = None
        self.state_calls = 0
        self.video_calls = 0
        self.markers: Dict[tuple, bool] = {}
        self.marker_log: List[tuple] = []
        self.play_blocked = False
        self.pause_calls: List[bool] = []
        self.navigations: List[str] = []
        self.back_count = 0
        self.resume_index: Optional[list] = None
        self.menu_present = True
        self.inject_calls = 0
        self.options_removed = 0

    def player_state(self, callback) -> None:
        index = self.state_calls
        self.state_calls += 1
        state = self.states[index] if index < len(self.states) else self.default_state
        callback(state)

    def video_source(self, callback) -> None:
        self.video_calls += 1
        callback(self.video_src)

    def pause_videos(self, only_playing: bool = False) -> None:
        self.pause_calls.append(only_playing)

    def set_play_blocked(self, on: bool) -> None:
        self.play_blocked = on

    def set_marker(self, target: str, name: str, on: bool) -> None:
        self.markers[(target, name)] = on
        self.marker_log.append((target, name, on))

    def marker(self, target: str, name: str) -> bool:
        return self.markers.get((target, name), False)

    def navigate(self, route: str) -> None:
        self.navigations.append(route)

    def history_back(self) -> None:
        self.back_count += 1

    def inject_player_options(self, options, callback) -> None:
        self.inject_calls += 1
        self.last_options = options
        callback(self.menu_present)

    def remove_player_options(self) -> None:
        self.options_removed += 1

    def set_resume_index(self, content_ids) -> None:
        self.resume_index = list(content_ids)


class FakeLauncher:
    def __init__(self) -> None:
        self.launches: List[dict] = []

    def launch(self, player, url, title="", custom_path=None) -> bool:
        self.launches.append({"player": player, "url": url, "title": title, "custom_path": custom_path})
        return True


class MemoryStore:
    """KeyValueStore without the disk."""

    def __init__(self, data: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(data or {})
        self.writes = 0

    def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.data[key] = str(value)
        self.writes += 1

    def remove_item(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> list:
        return list(self.data.keys())


class Clock:
    """Epoch-ms clock that ticks forward on every read."""

    def __init__(self, start: float = 1_700_000_000_000.0, step: float = 1.0) -> None:
        self.value = start
        self.step = step

    def __call__(self) -> float:
        current = self.value
        self.value += self.step
        return current
