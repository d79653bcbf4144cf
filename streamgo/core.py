"""
StreamGo — Playback Core

Builds the coordination core from its capabilities and wires it to the page
events. Nothing here touches Qt directly: the window passes in the host page,
the scheduler, the key/value store and the launcher, which keeps the whole
core constructible in tests with fakes.
"""

from .cleanup import CleanupRegistry
from .interception import PlaybackInterceptor
from .locator import StreamLocator
from .navigation import NavigationController
from .observer import ChangeWatchCoordinator
from .player_menu import PlayerMenu
from .quick_resume import QuickResumeStore
from .scroll_monitor import ScrollPerformanceMonitor


class StreamGoCore:
    """
    host           HostPage (or a fake with the same methods)
    scheduler      QtFrameScheduler (or a fake)
    settings       storage.KeyValueStore
    launcher       ExternalPlayerLauncher
    watch_source   underlying change watch for the coordinator
    events         object exposing routeChanged / clickCaptured /
                   inputReceived / playerOptionSelected signals
    """

    def __init__(self, host, scheduler, settings, launcher, watch_source, events, **tunables):
        self.host = host
        self.scheduler = scheduler
        self.settings = settings
        self.events = events

        self.cleanup = CleanupRegistry()
        self.coordinator = ChangeWatchCoordinator(watch_source, scheduler)
        self.scroll_monitor = ScrollPerformanceMonitor(
            self.coordinator,
            scheduler,
            host,
            **_pick(tunables, debounce_ms="scroll_debounce_ms"),
        )
        self.locator = StreamLocator(
            host,
            scheduler,
            **_pick(tunables, attempts="locator_attempts", delay_ms="locator_delay_ms"),
        )
        self.interceptor = PlaybackInterceptor(
            host,
            scheduler,
            settings,
            launcher,
            self.locator,
            coordinator=self.coordinator,
            cleanup=self.cleanup,
            **_pick(tunables, cooldown_ms="cooldown_ms", guard_interval_ms="guard_interval_ms"),
        )
        self.quick_resume = QuickResumeStore(
            settings,
            scheduler,
            host,
            **_pick(
                tunables,
                max_entries="resume_max_entries",
                max_age_days="resume_max_age_days",
                settle_ms="resume_settle_ms",
                clock="clock",
            ),
        )
        self.player_menu = PlayerMenu(
            self.coordinator,
            self.cleanup,
            host,
            settings,
            scheduler,
            events.playerOptionSelected,
        )
        self.navigation = NavigationController(
            host,
            self.interceptor,
            self.quick_resume,
            self.cleanup,
            self.player_menu,
        )
        self._attached = False

    def attach(self):
        """Start listening to the page. Idempotent."""
        if self._attached:
            return
        self._attached = True
        self.events.routeChanged.connect(self.navigation.on_route_changed)
        self.events.clickCaptured.connect(self.navigation.on_click)
        self.scroll_monitor.install(self.events.inputReceived)
        print("[streamgo] Playback core attached")

    def shutdown(self):
        self.interceptor.abort()
        self.quick_resume.cancel_pending()
        for context in self.cleanup.contexts():
            self.cleanup.flush(context)


def _pick(tunables: dict, **names) -> dict:
    """Map core-level tunable names onto a component's keyword arguments."""
    return {arg: tunables[key] for arg, key in names.items() if key in tunables}
