"""
StreamGo — Navigation Hooks

The single entry point the window wires to the page: route changes
(hashchange) and capture-phase clicks. Everything else in the core is driven
from here or from the background coordinator / scroll monitor.
"""

from .constants import CLEANUP_PLAYER_MENU, is_player_route, is_settings_route
from .quick_resume import DETAIL_ROUTE_RE


class NavigationController:

    def __init__(self, host, interceptor, quick_resume, cleanup, player_menu=None):
        self._host = host
        self._interceptor = interceptor
        self._quick_resume = quick_resume
        self._cleanup = cleanup
        self._player_menu = player_menu
        self.current_url = ""

    def on_route_changed(self, url: str):
        self.current_url = url or ""

        if is_player_route(url):
            print("[Navigation] Detected player route - checking external player setting...")
            self._interceptor.enter_player_route(url)
            self._quick_resume.schedule_save(url)
        else:
            self._interceptor.leave_player_route(url)
            self._quick_resume.cancel_pending()

        if is_settings_route(url):
            if self._player_menu is not None:
                self._player_menu.activate()
        else:
            self._cleanup.flush(CLEANUP_PLAYER_MENU)

        self.push_resume_index()

    def on_click(self, info) -> bool:
        """
        ``info`` describes the clicked element (see host_page.PAGE_SHIM_JS):
          continueWatching  card inside a Continue Watching row
          detailHref        the card's #/detail/<type>/<id> link
          intercepted       the page already cancelled the default navigation
          isPlayButton      a play / continue button
        Returns True when the click resulted in a navigation from here.
        """
        if not isinstance(info, dict):
            return False

        if info.get("continueWatching") and info.get("detailHref"):
            href = info["detailHref"]
            route = self._quick_resume.resume_route(href)
            if route:
                print(f"[QuickResume] Intercepting Continue Watching click, navigating to: {route}")
                self._host.navigate(route)
                return True
            if info.get("intercepted"):
                # Page cancelled the click on a stale index; finish it normally.
                m = DETAIL_ROUTE_RE.search(href)
                if m:
                    self._host.navigate(m.group(0))
                    return True
            return False

        if info.get("isPlayButton"):
            self._interceptor.arm()
        return False

    def push_resume_index(self):
        self._host.set_resume_index(self._quick_resume.fresh_content_ids())
