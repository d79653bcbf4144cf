"""
StreamGo — Shared Constants

Storage keys, player kinds, route prefixes and timing values used across the
shell. Values match the keys the web UI already writes to localStorage so a
profile migrated from the Electron build keeps its settings.
"""

# ========== STORAGE KEYS ==========

STORAGE_KEYS = {
    "EXTERNAL_PLAYER": "externalPlayer",
    "EXTERNAL_PLAYER_PATH": "externalPlayerPath",
    "LAST_STREAMS": "lastStreams",
}

LOCAL_STORAGE_FILE = "local_storage.json"


# ========== PLAYERS ==========

PLAYER_BUILTIN = "builtin"
PLAYER_M3U = "m3u"
PLAYER_VLC = "vlc"
PLAYER_MPCHC = "mpchc"

EXTERNAL_PLAYERS = frozenset([PLAYER_VLC, PLAYER_MPCHC])

# Settings that leave playback to the host's own player.
PASS_THROUGH_PLAYERS = frozenset(["", PLAYER_BUILTIN, "disabled", PLAYER_M3U])

PLAYER_DISPLAY_NAMES = {
    PLAYER_VLC: "VLC",
    PLAYER_MPCHC: "MPC-HC",
}


# ========== ROUTES ==========

PLAYER_ROUTE = "#/player"
SETTINGS_ROUTE = "#/settings"


# ========== UI MARKERS ==========

CLASS_EXTERNAL_PLAYER_ACTIVE = "external-player-active"
CLASS_SCROLLING_ACTIVE = "scrolling-active"
CLASS_PERFORMANCE_MODE = "performance-mode"

MARKER_BODY = "body"
MARKER_ROOT = "html"


# ========== TIMEOUTS (ms) ==========

TIMEOUTS = {
    "FRAME": 16,
    "SCROLL_DEBOUNCE": 50,
    "LOCATOR_DELAY": 200,
    "GUARD_INTERVAL": 100,
    "COOLDOWN": 10000,
    "RESUME_SETTLE": 1000,
}

LOCATOR_ATTEMPTS = 20

# Element waits back off through these delays.
BACKOFF_DELAYS = (50, 100, 200, 400, 800)


# ========== QUICK RESUME ==========

RESUME_MAX_ENTRIES = 100
RESUME_MAX_AGE_DAYS = 30

FALLBACK_TITLE = "Stream"

CLEANUP_PLAYER_MENU = "external-player-menu"
CLEANUP_PLAYER_SESSION = "external-player-session"


def is_external_player(player) -> bool:
    """True when the setting names a player we divert playback to."""
    return (player or "") in EXTERNAL_PLAYERS


def is_player_route(url: str) -> bool:
    return PLAYER_ROUTE in (url or "")


def is_settings_route(url: str) -> bool:
    return SETTINGS_ROUTE in (url or "")
