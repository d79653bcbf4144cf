"""
StreamGo — Storage Library

JSON persistence for the shell: atomic .tmp+rename writes, .bak last-known-good
fallback, debounced writes, and a small string key/value store that plays the
role the web UI's localStorage plays for the Electron build (player setting,
custom player path, Quick Resume fingerprints).
"""

import json
import os
import shutil
import threading
import time
from typing import Any

# ========== DATA PATH ==========

_user_data_dir: str | None = None


def init_data_dir(path: str):
    """
    Set the userData directory. Must be called once at app startup.
    Typically: QStandardPaths.writableLocation(QStandardPaths.AppDataLocation)
    """
    global _user_data_dir
    _user_data_dir = path
    os.makedirs(path, exist_ok=True)


def data_path(file: str) -> str:
    """Build file path in app's userData directory."""
    if _user_data_dir is None:
        raise RuntimeError("storage.init_data_dir() must be called before data_path()")
    return os.path.join(_user_data_dir, file)


# ========== JSON I/O ==========


def read_json(p: str, fallback: Any = None) -> Any:
    """
    Read JSON file safely with fallback.
    On failure, attempts .bak restore (last-known-good backup).
    """
    bak_path = f"{p}.bak"
    try:
        with open(p, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        pass
    try:
        with open(bak_path, "r", encoding="utf-8") as f:
            bak = json.load(f)
    except (OSError, ValueError):
        return fallback
    try:
        write_json_sync(p, bak)
    except OSError as e:
        print(f"[storage] .bak restore failed for {os.path.basename(p)}: {e}")
    return bak


def write_json_sync(p: str, obj: Any):
    """
    Synchronous atomic JSON write with retry logic.
    Used by read_json for .bak restore, and by debounce flush.
    """
    start = time.monotonic()
    dir_name = os.path.dirname(p)
    if dir_name:
        os.makedirs(dir_name, exist_ok=True)

    json_str = json.dumps(obj, indent=2, ensure_ascii=False)
    base_name = os.path.basename(p)
    tmp = os.path.join(dir_name, f".{base_name}.{os.getpid()}.{int(time.time() * 1000)}.tmp")
    bak_path = f"{p}.bak"

    retries = 3
    while retries > 0:
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(json_str)
            os.replace(tmp, p)

            # Update last-known-good backup
            try:
                shutil.copy2(p, bak_path)
            except OSError:
                pass

            duration_ms = (time.monotonic() - start) * 1000
            if duration_ms > 10:
                print(f"[PERF] write_json({base_name}): {duration_ms:.0f}ms")
            return
        except OSError:
            retries -= 1
            if retries == 0:
                raise
            time.sleep(0.05)


# ========== DEBOUNCED WRITES ==========

_debounced_lock = threading.Lock()
_debounced_writes: dict[str, dict] = {}


def write_json_debounced(p: str, obj: Any, delay_ms: int = 150):
    """Write JSON with debounce to reduce disk churn."""
    with _debounced_lock:
        prev = _debounced_writes.get(p)
        if prev and prev.get("timer"):
            prev["timer"].cancel()

        timer = threading.Timer(delay_ms / 1000.0, _flush_single, args=(p,))
        timer.daemon = True
        _debounced_writes[p] = {"latest_obj": obj, "timer": timer}
        timer.start()


def _flush_single(p: str):
    with _debounced_lock:
        entry = _debounced_writes.pop(p, None)
    if entry is None:
        return
    try:
        write_json_sync(p, entry["latest_obj"])
    except OSError as e:
        print(f"[storage] Debounced write failed for {os.path.basename(p)}: {e}")


def flush_all_writes():
    """
    Flush all pending debounced writes immediately.
    Used during app shutdown.
    """
    with _debounced_lock:
        entries = dict(_debounced_writes)
        for entry in entries.values():
            timer = entry.get("timer")
            if timer:
                timer.cancel()
        _debounced_writes.clear()

    for p, entry in entries.items():
        try:
            write_json_sync(p, entry["latest_obj"])
        except OSError as e:
            print(f"[storage] Flush failed for {os.path.basename(p)}: {e}")


# ========== KEY/VALUE STORE ==========


class KeyValueStore:
    """
    Persisted string key/value store (localStorage semantics).

    Values are always strings; a missing key reads as None. The whole map is
    kept in memory and written through on every change, debounced unless
    ``debounce`` is False.
    """

    def __init__(self, path: str, debounce: bool = True):
        self._path = path
        self._debounce = debounce
        raw = read_json(path, {})
        self._data: dict[str, str] = {}
        if isinstance(raw, dict):
            for k, v in raw.items():
                if isinstance(v, str):
                    self._data[str(k)] = v

    @property
    def path(self) -> str:
        return self._path

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str):
        self._data[key] = str(value)
        self._persist()

    def remove_item(self, key: str):
        if self._data.pop(key, None) is not None:
            self._persist()

    def keys(self) -> list[str]:
        return list(self._data.keys())

    def _persist(self):
        snapshot = dict(self._data)
        if self._debounce:
            write_json_debounced(self._path, snapshot)
        else:
            write_json_sync(self._path, snapshot)
