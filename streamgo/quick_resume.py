"""
StreamGo — Quick Resume

Remembers which stream was playing for each title so a Continue Watching
click can jump straight into the player instead of going through the detail
page and stream resolution again.

Persisted layout (KeyValueStore key STORAGE_KEYS["LAST_STREAMS"]), one JSON
object:

    {
      "tt0111161":        {streamHash, videoId, contentId, type, timestamp, ...},
      "tt0903747:3:7":    {... series episode ...},
      "tt0903747":        {... same record, latest episode of the series ...}
    }

At most ``max_entries`` records are kept; the oldest by timestamp go first.
A record older than ``max_age_days`` is never used for a shortcut.
"""

import json
import re
import time

from .constants import (
    RESUME_MAX_AGE_DAYS,
    RESUME_MAX_ENTRIES,
    STORAGE_KEYS,
    TIMEOUTS,
)
from .locator import extract_stream_url

PLAYER_ROUTE_RE = re.compile(r"#/player/([^/]+)/([^/]+)(?:/(.+))?")
DETAIL_ROUTE_RE = re.compile(r"#/detail/([^/]+)/([^/]+)")

DAY_MS = 24 * 60 * 60 * 1000


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class SavedStreamInfo:
    __slots__ = ("stream_hash", "video_id", "content_id", "type", "season", "episode", "timestamp", "stream_url")

    def __init__(self, stream_hash, video_id, content_id, type="movie",
                 season=None, episode=None, timestamp=0, stream_url=None):
        self.stream_hash = stream_hash
        self.video_id = video_id
        self.content_id = content_id
        self.type = type
        self.season = season
        self.episode = episode
        self.timestamp = timestamp
        self.stream_url = stream_url

    def to_dict(self) -> dict:
        out = {
            "streamHash": self.stream_hash,
            "videoId": self.video_id,
            "contentId": self.content_id,
            "type": self.type,
            "timestamp": self.timestamp,
        }
        if self.season is not None:
            out["season"] = self.season
        if self.episode is not None:
            out["episode"] = self.episode
        if self.stream_url:
            out["streamUrl"] = self.stream_url
        return out

    @classmethod
    def from_dict(cls, d) -> "SavedStreamInfo | None":
        """None for anything that isn't a usable record."""
        if not isinstance(d, dict):
            return None
        stream_hash = d.get("streamHash")
        video_id = d.get("videoId")
        content_id = d.get("contentId")
        if not (isinstance(stream_hash, str) and isinstance(video_id, str) and isinstance(content_id, str)):
            return None
        try:
            timestamp = float(d.get("timestamp", 0))
        except (TypeError, ValueError):
            return None
        return cls(
            stream_hash,
            video_id,
            content_id,
            type=d.get("type") or "movie",
            season=d.get("season"),
            episode=d.get("episode"),
            timestamp=timestamp,
            stream_url=d.get("streamUrl"),
        )

    def player_route(self) -> str:
        route = f"#/player/{self.video_id}/{self.stream_hash}"
        if self.type == "series" and self.season and self.episode:
            route += f"/{self.season}:{self.episode}"
        return route

    def __repr__(self):
        return f"SavedStreamInfo({self.content_id!r}, {self.type!r}, hash={self.stream_hash!r})"


def content_id_from_href(href: str) -> str | None:
    m = DETAIL_ROUTE_RE.search(href or "")
    return m.group(2) if m else None


class QuickResumeStore:

    def __init__(
        self,
        store,
        scheduler=None,
        host=None,
        max_entries: int = RESUME_MAX_ENTRIES,
        max_age_days: float = RESUME_MAX_AGE_DAYS,
        settle_ms: int = TIMEOUTS["RESUME_SETTLE"],
        clock=_epoch_ms,
    ):
        self._store = store
        self._scheduler = scheduler
        self._host = host
        self._max_entries = max(1, int(max_entries))
        self._max_age_ms = float(max_age_days) * DAY_MS
        self._settle_ms = settle_ms
        self._clock = clock
        self._pending = None

    # ── persisted map ───────────────────────────────────────────────────

    def load(self) -> dict:
        raw = self._store.get_item(STORAGE_KEYS["LAST_STREAMS"])
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            print("[QuickResume] Stored streams are corrupt, starting empty")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        self._store.set_item(STORAGE_KEYS["LAST_STREAMS"], json.dumps(data))

    def _evict(self, data: dict) -> dict:
        if len(data) <= self._max_entries:
            return data

        def _ts(value):
            try:
                return float(value.get("timestamp", 0)) if isinstance(value, dict) else 0.0
            except (TypeError, ValueError):
                return 0.0

        # Newest first; among equal timestamps the later insertion wins.
        ranked = sorted(
            enumerate(data.items()),
            key=lambda pair: (_ts(pair[1][1]), pair[0]),
            reverse=True,
        )
        kept = {key for _, (key, _) in ranked[:self._max_entries]}
        return {k: v for k, v in data.items() if k in kept}

    # ── save ────────────────────────────────────────────────────────────

    def schedule_save(self, route: str):
        """Save once the player state has had time to populate."""
        if self._scheduler is None or self._host is None:
            return
        self._scheduler.cancel(self._pending)

        def _settled():
            self._pending = None
            self._host.player_state(lambda state: self.save(route, state))

        self._pending = self._scheduler.call_later(self._settle_ms, _settled)

    def cancel_pending(self):
        if self._scheduler is not None:
            self._scheduler.cancel(self._pending)
        self._pending = None

    def save(self, route: str, state) -> str | None:
        """Record the stream for ``route``. Returns the storage key, or None."""
        meta = state.get("metaItem") if isinstance(state, dict) else None
        content = meta.get("content") if isinstance(meta, dict) else None
        content_id = content.get("id") if isinstance(content, dict) else None
        if not content_id:
            print("[QuickResume] No content ID found, skipping save")
            return None

        m = PLAYER_ROUTE_RE.search(route or "")
        if not m:
            print("[QuickResume] Could not parse player URL")
            return None
        video_id, stream_hash, episode_id = m.group(1), m.group(2), m.group(3)
        content_type = content.get("type") or "movie"

        info = SavedStreamInfo(
            stream_hash,
            video_id,
            content_id,
            type=content_type,
            timestamp=int(self._clock()),
            stream_url=extract_stream_url(state),
        )
        series_info = state.get("seriesInfo")
        if isinstance(series_info, dict):
            info.season = series_info.get("season")
            info.episode = series_info.get("episode")

        if content_type == "series" and episode_id:
            key = f"{content_id}:{episode_id}"
        else:
            key = content_id

        data = self.load()
        record = info.to_dict()
        # Re-insert so dict order tracks recency.
        data.pop(key, None)
        data[key] = record
        if content_type == "series":
            data.pop(content_id, None)
            data[content_id] = dict(record)
        self._write(self._evict(data))
        print(f"[QuickResume] Saved stream for {key}: hash={stream_hash}")
        return key

    # ── lookup ──────────────────────────────────────────────────────────

    def lookup(self, content_id: str) -> SavedStreamInfo | None:
        return SavedStreamInfo.from_dict(self.load().get(content_id))

    def is_fresh(self, info: SavedStreamInfo, now: float | None = None) -> bool:
        now = self._clock() if now is None else now
        return now - info.timestamp <= self._max_age_ms

    def fresh_lookup(self, content_id: str) -> SavedStreamInfo | None:
        info = self.lookup(content_id)
        if info is None:
            print(f"[QuickResume] No saved stream for {content_id}, using normal flow")
            return None
        if not self.is_fresh(info):
            print(f"[QuickResume] Saved stream for {content_id} is too old, using normal flow")
            return None
        return info

    def resume_route(self, href: str) -> str | None:
        """Player route for a Continue Watching link, or None to fall through."""
        content_id = content_id_from_href(href)
        if not content_id:
            return None
        info = self.fresh_lookup(content_id)
        return info.player_route() if info is not None else None

    def fresh_content_ids(self) -> list[str]:
        """Content ids with a usable record (pushed to the page for click checks)."""
        now = self._clock()
        out = []
        for key, value in self.load().items():
            info = SavedStreamInfo.from_dict(value)
            # Episode keys duplicate the bare content-id record.
            if info is None or info.content_id != key:
                continue
            if self.is_fresh(info, now):
                out.append(key)
        return out
