"""
StreamGo — External Player Options

Adds VLC and MPC-HC to the web UI's "default player" dropdown while the
settings page is open. The dropdown is re-rendered by the web UI at will, so a
change-watch handler re-injects the options whenever they disappear. Everything
bound here is registered under the "external-player-menu" cleanup context and
torn down as soon as the user leaves settings.
"""

from .constants import (
    BACKOFF_DELAYS,
    CLEANUP_PLAYER_MENU,
    PLAYER_DISPLAY_NAMES,
    PLAYER_MPCHC,
    PLAYER_VLC,
    STORAGE_KEYS,
)
from .retry import RetryPoll

HANDLER_ID = "external-player-menu"


class PlayerMenu:

    def __init__(self, coordinator, cleanup, host, settings, scheduler, selection_signal):
        self._coordinator = coordinator
        self._cleanup = cleanup
        self._host = host
        self._settings = settings
        self._scheduler = scheduler
        self._selection_signal = selection_signal
        self._active = False
        self._poll: RetryPoll | None = None
        self.injections = 0

    @property
    def active(self) -> bool:
        return self._active

    def options(self) -> list[dict]:
        current = self._settings.get_item(STORAGE_KEYS["EXTERNAL_PLAYER"]) or ""
        return [
            {"id": p, "label": PLAYER_DISPLAY_NAMES[p], "selected": p == current}
            for p in (PLAYER_VLC, PLAYER_MPCHC)
        ]

    def activate(self):
        """Settings page entered. Safe to call on every settings navigation."""
        if self._active:
            return
        self._active = True
        self._selection_signal.connect(self._on_selected)
        self._coordinator.register(HANDLER_ID, self._on_changes)

        self._cleanup.register(CLEANUP_PLAYER_MENU, lambda: self._coordinator.unregister(HANDLER_ID))
        self._cleanup.register(CLEANUP_PLAYER_MENU, lambda: self._selection_signal.disconnect(self._on_selected))
        self._cleanup.register(CLEANUP_PLAYER_MENU, self._cancel_poll)
        self._cleanup.register(CLEANUP_PLAYER_MENU, self._host.remove_player_options)
        self._cleanup.register(CLEANUP_PLAYER_MENU, self._reset)
        self._ensure_injected()

    def deactivate(self):
        self._cleanup.flush(CLEANUP_PLAYER_MENU)

    # ── internals ───────────────────────────────────────────────────────

    def _reset(self):
        self._active = False

    def _cancel_poll(self):
        if self._poll is not None:
            self._poll.cancel()
            self._poll = None

    def _on_changes(self, batch):
        self._ensure_injected()

    def _ensure_injected(self):
        if not self._active:
            return
        if self._poll is not None and not self._poll.finished:
            return
        opts = self.options()

        def _probe(deliver):
            self._host.inject_player_options(opts, lambda ok: deliver(True if ok else None))

        def _done(ok):
            self._poll = None
            if ok:
                self.injections += 1

        self._poll = RetryPoll(
            self._scheduler,
            _probe,
            len(BACKOFF_DELAYS),
            BACKOFF_DELAYS,
            _done,
            label="ExternalPlayerMenu",
        )
        self._poll.start()

    def _on_selected(self, player: str):
        player = (player or "").strip()
        self._settings.set_item(STORAGE_KEYS["EXTERNAL_PLAYER"], player)
        print(f"[ExternalPlayer] Player selected: {player or 'builtin'}")
