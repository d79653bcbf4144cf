from __future__ import annotations

import pytest

from streamgo.cleanup import CleanupRegistry
from streamgo.constants import CLASS_EXTERNAL_PLAYER_ACTIVE, CLEANUP_PLAYER_SESSION, MARKER_BODY
from streamgo.interception import GUARD_HANDLER_ID, InterceptionState, PlaybackInterceptor
from streamgo.locator import StreamLocator
from streamgo.observer import ChangeWatchCoordinator

from fakes import MemoryStore

ROUTE = "https://web.stremio.com/#/player/tt0903747%3A3%3A7/abc123/tt0903747:3:7"
READY = {
    "stream": {"content": {"url": "https://cdn/episode.mkv"}},
    "metaItem": {"content": {"name": "Breaking Bad"}},
    "seriesInfo": {"season": 3, "episode": 7},
}


@pytest.fixture
def parts(host, scheduler, launcher, source):
    settings = MemoryStore({"externalPlayer": "vlc"})
    coordinator = ChangeWatchCoordinator(source, scheduler)
    cleanup = CleanupRegistry()
    locator = StreamLocator(host, scheduler, attempts=20, delay_ms=200)
    interceptor = PlaybackInterceptor(
        host,
        scheduler,
        settings,
        launcher,
        locator,
        cooldown_ms=10000,
        guard_interval_ms=100,
        coordinator=coordinator,
        cleanup=cleanup,
    )
    return interceptor, settings, coordinator, cleanup


def test_url_on_third_attempt_launches_exactly_once(parts, host, scheduler, launcher):
    interceptor, _settings, _coord, _cleanup = parts
    host.states = [{}, {}, READY]

    assert interceptor.enter_player_route(ROUTE) is True
    assert interceptor.state is InterceptionState.LOCATING
    assert interceptor.busy
    assert host.play_blocked
    assert host.marker(MARKER_BODY, CLASS_EXTERNAL_PLAYER_ACTIVE)

    scheduler.advance(400)
    assert launcher.launches == [
        {"player": "vlc", "url": "https://cdn/episode.mkv", "title": "Breaking Bad S3E7", "custom_path": None}
    ]
    assert interceptor.state is InterceptionState.COOLDOWN
    assert interceptor.launch_count == 1

    scheduler.advance(5000)
    assert len(launcher.launches) == 1


def test_second_trigger_while_busy_is_ignored(parts, host, scheduler, launcher):
    interceptor, _settings, _coord, _cleanup = parts
    host.states = [{}, READY]

    assert interceptor.enter_player_route(ROUTE) is True
    assert interceptor.enter_player_route(ROUTE) is False
    scheduler.advance(200)
    assert interceptor.enter_player_route(ROUTE) is False
    scheduler.advance(1000)
    assert len(launcher.launches) == 1


def test_cooldown_pauses_playing_videos_then_navigates_back(parts, host, scheduler):
    interceptor, _settings, _coord, _cleanup = parts
    host.default_state = READY

    interceptor.enter_player_route(ROUTE)
    assert interceptor.state is InterceptionState.COOLDOWN
    host.pause_calls.clear()

    scheduler.advance(9999)
    assert host.back_count == 0
    assert host.pause_calls and all(host.pause_calls)

    scheduler.advance(1)
    assert host.back_count == 1
    assert interceptor.state is InterceptionState.IDLE
    assert not interceptor.busy
    assert not host.play_blocked
    assert not host.marker(MARKER_BODY, CLASS_EXTERNAL_PLAYER_ACTIVE)
    assert scheduler.pending_timers == 0


def test_exhaustion_returns_to_idle_without_launch(parts, host, scheduler, launcher):
    interceptor, _settings, coordinator, cleanup = parts
    host.default_state = {"stream": None}

    interceptor.enter_player_route(ROUTE)
    scheduler.advance(20 * 200)

    assert launcher.launches == []
    assert interceptor.state is InterceptionState.IDLE
    assert interceptor.session is None
    assert not interceptor.busy
    assert host.back_count == 0
    assert not host.play_blocked
    assert coordinator.handler_ids() == []
    assert cleanup.pending(CLEANUP_PLAYER_SESSION) == 0


def test_builtin_player_is_left_alone(parts, host, launcher):
    interceptor, settings, _coord, _cleanup = parts
    settings.set_item("externalPlayer", "builtin")

    assert interceptor.enter_player_route(ROUTE) is False
    assert interceptor.state is InterceptionState.IDLE
    assert host.state_calls == 0
    assert launcher.launches == []
    assert not interceptor.should_block_playback(ROUTE)


def test_should_block_playback_needs_player_route(parts):
    interceptor, _settings, _coord, _cleanup = parts
    assert interceptor.should_block_playback(ROUTE)
    assert not interceptor.should_block_playback("https://web.stremio.com/#/board")


def test_new_video_nodes_trigger_pause_sweep(parts, host, scheduler, source):
    interceptor, _settings, coordinator, _cleanup = parts
    host.default_state = {}

    interceptor.enter_player_route(ROUTE)
    assert GUARD_HANDLER_ID in coordinator.handler_ids()
    before = len(host.pause_calls)
    source.emit([{"added": 1, "removed": 0}])
    scheduler.run_frame()
    assert len(host.pause_calls) == before + 1


def test_launch_error_still_reaches_cooldown(parts, host, scheduler, launcher):
    interceptor, _settings, _coord, _cleanup = parts
    host.default_state = READY

    def broken(*args, **kwargs):
        raise OSError("exec format error")

    launcher.launch = broken
    interceptor.enter_player_route(ROUTE)
    assert interceptor.state is InterceptionState.COOLDOWN
    scheduler.advance(10000)
    assert interceptor.state is InterceptionState.IDLE
    assert host.back_count == 1


def test_custom_path_is_passed_to_launcher(parts, host, launcher):
    interceptor, settings, _coord, _cleanup = parts
    settings.set_item("externalPlayerPath", "/opt/vlc/vlc")
    host.default_state = READY

    interceptor.enter_player_route(ROUTE)
    assert launcher.launches[0]["custom_path"] == "/opt/vlc/vlc"


def test_arm_hides_video_without_starting_session(parts, host):
    interceptor, _settings, _coord, _cleanup = parts

    assert interceptor.arm() is True
    assert host.play_blocked
    assert interceptor.state is InterceptionState.IDLE
    assert not interceptor.busy

    interceptor.disarm()
    assert not host.play_blocked
    assert not host.marker(MARKER_BODY, CLASS_EXTERNAL_PLAYER_ACTIVE)


def test_abort_tears_down_without_navigation(parts, host, scheduler, launcher):
    interceptor, _settings, _coord, _cleanup = parts
    host.default_state = {}

    interceptor.enter_player_route(ROUTE)
    interceptor.abort()
    scheduler.advance(10000)
    assert interceptor.state is InterceptionState.IDLE
    assert host.back_count == 0
    assert launcher.launches == []
    assert scheduler.pending_timers == 0


def test_untitled_stream_falls_back_to_generic_title(parts, host, scheduler, launcher):
    interceptor, _settings, _coord, _cleanup = parts
    host.states = [{}, {}, {"stream": {"content": {"url": "https://x/stream.m3u8"}}}]

    interceptor.enter_player_route("#/player/vid1/hashA")
    scheduler.advance(400)
    assert launcher.launches == [
        {"player": "vlc", "url": "https://x/stream.m3u8", "title": "Stream", "custom_path": None}
    ]


def test_playback_policy_gates_session_start(parts, host, launcher):
    interceptor, settings, _coord, _cleanup = parts
    host.default_state = READY

    assert interceptor.enter_player_route("https://web.stremio.com/#/detail/series/tt0903747") is False
    assert interceptor.state is InterceptionState.IDLE
    assert host.state_calls == 0

    settings.set_item("externalPlayer", "m3u")
    assert interceptor.enter_player_route(ROUTE) is False

    settings.set_item("externalPlayer", "mpchc")
    assert interceptor.enter_player_route(ROUTE) is True
    assert launcher.launches[0]["player"] == "mpchc"
