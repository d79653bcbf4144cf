"""
StreamGo — Stream Locator

The web player never announces "stream resolved", so the locator polls the
player state (core.transport.getState("player")) with a bounded budget:
LOCATOR_ATTEMPTS attempts, TIMEOUTS["LOCATOR_DELAY"] ms apart (4 s total by
default). Each attempt checks, in order:

  1. stream.content.url                                 ready stream
  2. selected.stream.deepLinks.externalPlayer.streaming deep link
  3. stream.url, stream.externalUrl                     legacy fields
  4. src of the first <video> element                   last resort

The first http(s) address wins. Exhausting the budget delivers None; callers
treat that as "let the built-in player handle it", not as an error.
"""

from typing import Any, Callable

from .constants import FALLBACK_TITLE, LOCATOR_ATTEMPTS, TIMEOUTS
from .retry import RetryPoll

URL_SCHEMES = ("http://", "https://")


def _dig(obj: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def is_stream_url(value) -> bool:
    return isinstance(value, str) and value.lower().startswith(URL_SCHEMES)


def extract_stream_url(state) -> str | None:
    """First playable address in a player-state snapshot, in priority order."""
    if not isinstance(state, dict):
        return None
    candidates = (
        _dig(state, "stream", "content", "url"),
        _dig(state, "selected", "stream", "deepLinks", "externalPlayer", "streaming"),
        _dig(state, "stream", "url"),
        _dig(state, "stream", "externalUrl"),
    )
    for url in candidates:
        if is_stream_url(url):
            return url
    return None


def build_title(state, fallback: str = FALLBACK_TITLE) -> str:
    """
    "<name> S<season>E<episode>" when the series position is known, the plain
    content name otherwise, then the state's own title, then ``fallback``.
    """
    if not isinstance(state, dict):
        return fallback
    name = _dig(state, "metaItem", "content", "name")
    if isinstance(name, str) and name.strip():
        title = name.strip()
        season = _dig(state, "seriesInfo", "season")
        episode = _dig(state, "seriesInfo", "episode")
        if season and episode:
            title += f" S{season}E{episode}"
        return title
    plain = state.get("title")
    if isinstance(plain, str) and plain.strip():
        return plain.strip()
    return fallback


class StreamLocator:
    """
    ``host`` must provide player_state(cb) and video_source(cb), both
    answering asynchronously through the callback. ``guard`` runs after every
    miss (the interceptor passes its pause/mute sweep, since the web player
    may start playing while we poll).
    """

    def __init__(
        self,
        host,
        scheduler,
        attempts: int = LOCATOR_ATTEMPTS,
        delay_ms: int = TIMEOUTS["LOCATOR_DELAY"],
    ):
        self._host = host
        self._scheduler = scheduler
        self._attempts = attempts
        self._delay_ms = delay_ms
        self._poll: RetryPoll | None = None
        self.last_state: dict | None = None

    @property
    def attempts_made(self) -> int:
        return self._poll.attempt if self._poll is not None else 0

    def locate(self, on_result: Callable[[str | None], None], guard: Callable[[], None] | None = None) -> RetryPoll:
        self.cancel()
        self.last_state = None

        def _on_miss(attempt):
            if guard is not None:
                guard()

        def _on_done(url):
            if url:
                print(f"[ExternalPlayer] Found stream URL after {self.attempts_made} attempt(s): {url}")
            else:
                print(f"[ExternalPlayer] Failed to get stream URL after {self._attempts} attempts")
            on_result(url)

        self._poll = RetryPoll(
            self._scheduler,
            self._probe,
            self._attempts,
            self._delay_ms,
            _on_done,
            on_miss=_on_miss,
            label="ExternalPlayer",
        )
        return self._poll.start()

    def cancel(self):
        if self._poll is not None and not self._poll.finished:
            self._poll.cancel()
        self._poll = None

    def _probe(self, deliver):
        def _on_state(state):
            if isinstance(state, dict):
                self.last_state = state
            url = extract_stream_url(state)
            if url:
                deliver(url)
                return
            self._host.video_source(_on_video_source)

        def _on_video_source(src):
            deliver(src if is_stream_url(src) else None)

        self._host.player_state(_on_state)
