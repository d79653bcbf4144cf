"""
StreamGo — External Player Interception

Diverts playback from the web player to VLC / MPC-HC.

  IDLE ──enter player route──▶ PRIMING ──▶ LOCATING ──url──▶ LAUNCHING ──▶ COOLDOWN ──10 s──▶ IDLE
                                              │
                                              └──no url──▶ IDLE (web player proceeds)

PRIMING hides the <video> surface (body.external-player-active; controls and
nav bar stay visible), blocks play() in the page and keeps every video paused
and muted on a short interval. LOCATING hands off to the StreamLocator.
LAUNCHING derives the window title and sends one launch request.
COOLDOWN keeps pausing anything that tries to play for a fixed window, which
also gives the web UI time to record the item in Continue Watching, then
navigates back so the user is not left on an empty player page.

Only one session exists at a time. Triggers arriving outside IDLE are ignored.
Leaving the player route while the stream is still being located drops the
session; leaving it during COOLDOWN only cancels the final navigate-back.
"""

import enum

from .constants import (
    CLASS_EXTERNAL_PLAYER_ACTIVE,
    CLEANUP_PLAYER_SESSION,
    MARKER_BODY,
    STORAGE_KEYS,
    TIMEOUTS,
    is_external_player,
    is_player_route,
)
from .locator import build_title

GUARD_HANDLER_ID = "external-player-guard"


class InterceptionState(enum.Enum):
    IDLE = "idle"
    PRIMING = "priming"
    LOCATING = "locating"
    LAUNCHING = "launching"
    COOLDOWN = "cooldown"


class InterceptionSession:
    """The one in-flight interception. Owned by PlaybackInterceptor."""

    def __init__(self, player: str, custom_path: str | None = None):
        self.busy = True
        self.player = player
        self.custom_path = custom_path
        self.title = ""
        self.resolved_url: str | None = None

    def __repr__(self):
        return f"InterceptionSession(player={self.player!r}, busy={self.busy}, url={self.resolved_url!r})"


class PlaybackInterceptor:
    """
    host      page capability: set_marker, set_play_blocked, pause_videos,
              history_back (host_page.HostPage)
    settings  KeyValueStore holding the player choice and custom path
    launcher  launch(player, url, title, custom_path) (external_player.py)
    locator   StreamLocator
    coordinator, cleanup
              optional; while a session runs, page changes that add nodes
              trigger an immediate pause sweep, and the subscription is
              torn down through the "external-player-session" context
    """

    def __init__(
        self,
        host,
        scheduler,
        settings,
        launcher,
        locator,
        cooldown_ms: int = TIMEOUTS["COOLDOWN"],
        guard_interval_ms: int = TIMEOUTS["GUARD_INTERVAL"],
        coordinator=None,
        cleanup=None,
    ):
        self._host = host
        self._scheduler = scheduler
        self._settings = settings
        self._launcher = launcher
        self._locator = locator
        self._coordinator = coordinator
        self._cleanup = cleanup
        self._cooldown_ms = cooldown_ms
        self._guard_interval_ms = guard_interval_ms
        self._state = InterceptionState.IDLE
        self._session: InterceptionSession | None = None
        self._guard_handle = None
        self._cooldown_handle = None
        self._route_url = ""
        self.launch_count = 0

    # ── state ───────────────────────────────────────────────────────────

    @property
    def state(self) -> InterceptionState:
        return self._state

    @property
    def session(self) -> InterceptionSession | None:
        return self._session

    @property
    def busy(self) -> bool:
        return self._session is not None and self._session.busy

    def configured_player(self) -> str:
        return self._settings.get_item(STORAGE_KEYS["EXTERNAL_PLAYER"]) or ""

    def should_block_playback(self, url: str) -> bool:
        """Policy consulted before the page may start internal playback."""
        return is_external_player(self.configured_player()) and is_player_route(url)

    # ── entry points ────────────────────────────────────────────────────

    def enter_player_route(self, url: str) -> bool:
        """Start a session if none is running and the playback policy diverts ``url``."""
        self._route_url = url or ""
        player = self.configured_player()
        print(f'[ExternalPlayer] Checking interception - stored player: "{player}"')

        if self._state is not InterceptionState.IDLE:
            print("[ExternalPlayer] Already handling, skipping...")
            return False

        if not self.should_block_playback(url):
            print("[ExternalPlayer] Skipping - using built-in or M3U player")
            self.disarm()
            return False

        custom_path = self._settings.get_item(STORAGE_KEYS["EXTERNAL_PLAYER_PATH"]) or None
        self._session = InterceptionSession(player, custom_path)
        self._set_state(InterceptionState.PRIMING)
        print(f"[ExternalPlayer] Intercepting for {player}...")
        self._host.set_marker(MARKER_BODY, CLASS_EXTERNAL_PLAYER_ACTIVE, True)
        self._host.set_play_blocked(True)
        self._stop_videos()
        self._guard_handle = self._scheduler.start_interval(self._guard_interval_ms, self._stop_videos)
        self._watch_new_videos()

        self._set_state(InterceptionState.LOCATING)
        self._locator.locate(self._on_located, guard=self._stop_videos)
        return True

    def arm(self) -> bool:
        """
        Play button clicked with an external player configured: hide the
        video surface before the route change arrives. Does not start a
        session; enter_player_route does.
        """
        if self._state is not InterceptionState.IDLE:
            return False
        if not is_external_player(self.configured_player()):
            return False
        print("[ExternalPlayer] Play button clicked - preparing for external player")
        self._host.set_marker(MARKER_BODY, CLASS_EXTERNAL_PLAYER_ACTIVE, True)
        self._host.set_play_blocked(True)
        return True

    def leave_player_route(self, url: str = ""):
        """
        The user navigated away from the player. A session still looking for
        the stream is dropped; one already in cooldown keeps guarding but will
        not navigate back.
        """
        self._route_url = url or ""
        if self._state in (InterceptionState.PRIMING, InterceptionState.LOCATING):
            print("[ExternalPlayer] Left player route before the stream resolved, cancelling")
            self._locator.cancel()
            self._finish(navigate_back=False)
        self.disarm()

    def disarm(self):
        """Clear markers left by arm() when no session follows."""
        if self._state is not InterceptionState.IDLE:
            return
        self._host.set_marker(MARKER_BODY, CLASS_EXTERNAL_PLAYER_ACTIVE, False)
        self._host.set_play_blocked(False)

    def abort(self):
        """Tear the session down without navigating (app shutdown)."""
        if self._state is InterceptionState.IDLE:
            return
        print(f"[ExternalPlayer] Aborting session in state {self._state.value}")
        self._locator.cancel()
        self._finish(navigate_back=False)

    # ── transitions ─────────────────────────────────────────────────────

    def _on_located(self, url):
        if self._session is None or self._state is not InterceptionState.LOCATING:
            return
        if not url:
            # Built-in player takes over.
            self._finish(navigate_back=False)
            return
        self._session.resolved_url = url
        self._launch()

    def _launch(self):
        session = self._session
        self._set_state(InterceptionState.LAUNCHING)
        session.title = build_title(self._locator.last_state)
        print(f"[ExternalPlayer] Title: {session.title}")
        print(f"[ExternalPlayer] URL: {session.resolved_url}")
        self._stop_videos()

        print(f"[ExternalPlayer] Launching {session.player} (custom path: {session.custom_path or 'auto-detect'})")
        self.launch_count += 1
        try:
            self._launcher.launch(session.player, session.resolved_url, session.title, session.custom_path)
        except Exception as e:
            print(f"[ExternalPlayer] Launch error: {e}")

        self._set_state(InterceptionState.COOLDOWN)
        print(f"[ExternalPlayer] Waiting {self._cooldown_ms / 1000:g} seconds for Continue Watching to register...")
        self._cancel_guard()
        self._guard_handle = self._scheduler.start_interval(self._guard_interval_ms, self._stop_playing_videos)
        self._cooldown_handle = self._scheduler.call_later(self._cooldown_ms, self._end_cooldown)

    def _end_cooldown(self):
        self._cooldown_handle = None
        if self._state is not InterceptionState.COOLDOWN:
            return
        if not is_player_route(self._route_url):
            print("[ExternalPlayer] Cooldown over, player route already left")
            self._finish(navigate_back=False)
            return
        print("[ExternalPlayer] Navigating back...")
        self._finish(navigate_back=True)

    def _finish(self, navigate_back: bool):
        self._cancel_guard()
        if self._cleanup is not None:
            self._cleanup.flush(CLEANUP_PLAYER_SESSION)
        self._scheduler.cancel(self._cooldown_handle)
        self._cooldown_handle = None
        if self._session is not None:
            self._session.busy = False
        self._session = None
        self._set_state(InterceptionState.IDLE)
        self._host.set_marker(MARKER_BODY, CLASS_EXTERNAL_PLAYER_ACTIVE, False)
        self._host.set_play_blocked(False)
        if navigate_back:
            self._host.history_back()

    # ── helpers ─────────────────────────────────────────────────────────

    def _set_state(self, state: InterceptionState):
        self._state = state

    def _cancel_guard(self):
        self._scheduler.cancel(self._guard_handle)
        self._guard_handle = None

    def _watch_new_videos(self):
        if self._coordinator is None:
            return
        self._coordinator.register(GUARD_HANDLER_ID, self._on_page_changes)
        if self._cleanup is not None:
            self._cleanup.register(CLEANUP_PLAYER_SESSION, lambda: self._coordinator.unregister(GUARD_HANDLER_ID))

    def _on_page_changes(self, batch):
        if any(isinstance(r, dict) and r.get("added") for r in batch):
            self._stop_videos()

    def _stop_videos(self):
        if self._session is None:
            return
        self._host.pause_videos(only_playing=False)

    def _stop_playing_videos(self):
        if self._session is None:
            return
        self._host.pause_videos(only_playing=True)
