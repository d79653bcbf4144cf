"""
StreamGo — Host Page Bridge

Everything the core needs from the Stremio web UI running in QWebEnginePage.

Architecture:
  - PAGE_SHIM_JS is injected at DocumentCreation together with Qt's
    qwebchannel.js. It owns the DOM side: the MutationObserver, input and
    hashchange listeners, the capture-phase click check, play() blocking,
    pausing videos, CSS markers and the injected player options.
  - PageEventsBridge (QObject, registered on QWebChannel as "streamgo")
    receives the page's calls as @Slot methods and re-emits them as Qt
    signals the core connects to.
  - HostPage wraps runJavaScript() so the core can query and drive the page
    without knowing about Qt. Queries answer through callbacks.

QWebChannel transport:
  - @Slot methods = page → Python (events, async query answers)
  - runJavaScript   = Python → page
"""

import itertools
import json

from PySide6.QtCore import QObject, QTimer, Signal, Slot
from PySide6.QtWebChannel import QWebChannel
from PySide6.QtWebEngineCore import QWebEngineScript

from .constants import CLASS_EXTERNAL_PLAYER_ACTIVE, MARKER_BODY

# Player state is answered asynchronously by the page; give up after this.
STATE_QUERY_TIMEOUT_MS = 150


def _loads(s, fallback=None):
    if not s:
        return fallback
    try:
        return json.loads(s)
    except ValueError:
        return fallback


# ---------------------------------------------------------------------------
# Page → Python
# ---------------------------------------------------------------------------

class PageEventsBridge(QObject):
    """Receives shim calls; emits Qt signals for the core."""

    changesObserved = Signal(list)      # [{added, removed}, ...] per batch
    inputReceived = Signal(str)         # scroll | wheel | touchmove
    routeChanged = Signal(str)          # full URL after hashchange
    clickCaptured = Signal(object)      # dict, see NavigationController.on_click
    playerOptionSelected = Signal(str)  # vlc | mpchc | builtin | m3u
    playerStateReady = Signal(int, object)
    shimReady = Signal()

    @Slot()
    def ready(self):
        self.shimReady.emit()

    @Slot(str)
    def mutations(self, payload):
        records = _loads(payload, [])
        self.changesObserved.emit(records if isinstance(records, list) else [])

    @Slot(str)
    def userInput(self, kind):
        self.inputReceived.emit(kind or "")

    @Slot(str)
    def hashChanged(self, url):
        self.routeChanged.emit(url or "")

    @Slot(str)
    def clicked(self, payload):
        info = _loads(payload, {})
        if isinstance(info, dict):
            self.clickCaptured.emit(info)

    @Slot(str)
    def playerSelected(self, player):
        self.playerOptionSelected.emit(player or "")

    @Slot(int, str)
    def playerState(self, request_id, payload):
        state = _loads(payload)
        self.playerStateReady.emit(request_id, state if isinstance(state, dict) else None)


# ---------------------------------------------------------------------------
# Python → Page
# ---------------------------------------------------------------------------

class PageMutationSource:
    """Change-watch source for ChangeWatchCoordinator backed by the shim's observer."""

    def __init__(self, host: "HostPage"):
        self._host = host
        self._callback = None

    def connect(self, on_batch):
        if self._callback is not None:
            self.disconnect()
        self._callback = on_batch
        self._host.events.changesObserved.connect(on_batch)
        self._host.set_watching(True)

    def disconnect(self):
        if self._callback is None:
            return
        self._host.set_watching(False)
        self._host.events.changesObserved.disconnect(self._callback)
        self._callback = None


class HostPage(QObject):

    def __init__(self, page, events: PageEventsBridge, parent=None):
        super().__init__(parent)
        self._page = page
        self.events = events
        self._ids = itertools.count(1)
        self._pending_states: dict[int, object] = {}
        self._play_blocked = False
        self._watching = False
        self.events.playerStateReady.connect(self._resolve_state)
        # A reload drops every page-side flag; restore them once the shim reconnects.
        self.events.shimReady.connect(self._restore_page_flags)

    def run_js(self, code: str, callback=None):
        if callback is None:
            self._page.runJavaScript(code, QWebEngineScript.ScriptWorldId.MainWorld)
        else:
            self._page.runJavaScript(code, QWebEngineScript.ScriptWorldId.MainWorld, callback)

    def mutation_source(self) -> PageMutationSource:
        return PageMutationSource(self)

    # ── queries ─────────────────────────────────────────────────────────

    def player_state(self, callback):
        request_id = next(self._ids)
        self._pending_states[request_id] = callback
        QTimer.singleShot(STATE_QUERY_TIMEOUT_MS, lambda: self._resolve_state(request_id, None))
        self.run_js(f"window.__streamgo && window.__streamgo.requestPlayerState({request_id});")

    def _resolve_state(self, request_id, state):
        callback = self._pending_states.pop(request_id, None)
        if callback is not None:
            callback(state)

    def video_source(self, callback):
        self.run_js(
            "(function(){var v=document.querySelector('video');"
            "return v && v.src ? String(v.src) : null;})()",
            lambda value: callback(value if isinstance(value, str) else None),
        )

    # ── playback ────────────────────────────────────────────────────────

    def pause_videos(self, only_playing: bool = False):
        self.run_js(f"window.__streamgo && window.__streamgo.pauseVideos({json.dumps(bool(only_playing))});")

    def set_play_blocked(self, on: bool):
        self._play_blocked = bool(on)
        self.run_js(f"window.__streamgo && window.__streamgo.setPlayBlocked({json.dumps(self._play_blocked)});")

    # ── markers / navigation ────────────────────────────────────────────

    def set_marker(self, target: str, name: str, on: bool):
        self.run_js(
            "window.__streamgo && window.__streamgo.setMarker("
            f"{json.dumps(target)}, {json.dumps(name)}, {json.dumps(bool(on))});"
        )

    def navigate(self, route: str):
        self.run_js(f"location.hash = {json.dumps(route.lstrip('#'))};")

    def history_back(self):
        self.run_js("history.back();")

    # ── injected UI ─────────────────────────────────────────────────────

    def inject_player_options(self, options, callback):
        self.run_js(
            f"window.__streamgo ? window.__streamgo.injectPlayerOptions({json.dumps(options)}) : false",
            lambda ok: callback(bool(ok)),
        )

    def remove_player_options(self):
        self.run_js("window.__streamgo && window.__streamgo.removePlayerOptions();")

    def set_resume_index(self, content_ids):
        self.run_js(f"window.__streamgo && window.__streamgo.setResumeIndex({json.dumps(list(content_ids))});")

    def set_watching(self, on: bool):
        self._watching = bool(on)
        self.run_js(f"window.__streamgo && window.__streamgo.watch({json.dumps(self._watching)});")

    def _restore_page_flags(self):
        if self._watching:
            self.set_watching(True)
        if self._play_blocked:
            self.set_play_blocked(True)
            self.set_marker(MARKER_BODY, CLASS_EXTERNAL_PLAYER_ACTIVE, True)


# ---------------------------------------------------------------------------
# Page shim
# ---------------------------------------------------------------------------

PAGE_SHIM_JS = r"""
(function () {
  if (window.__streamgo) return;
  var bridge = null;
  var queue = [];
  function post(method) {
    var args = Array.prototype.slice.call(arguments, 1);
    if (bridge) { bridge[method].apply(bridge, args); } else { queue.push([method, args]); }
  }

  var sg = window.__streamgo = {
    playBlocked: false,
    resumeIndex: {},
    observer: null,
    watching: false,
    injected: []
  };

  // ── structural-change watch ──
  sg.watch = function (on) {
    sg.watching = !!on;
    if (!on) {
      if (sg.observer) { sg.observer.disconnect(); sg.observer = null; }
      return;
    }
    if (sg.observer) return;
    if (!document.body) {
      document.addEventListener('DOMContentLoaded', function () { if (sg.watching) sg.watch(true); }, { once: true });
      return;
    }
    sg.observer = new MutationObserver(function (records) {
      var out = [];
      for (var i = 0; i < records.length; i++) {
        out.push({ added: records[i].addedNodes.length, removed: records[i].removedNodes.length });
      }
      post('mutations', JSON.stringify(out));
    });
    sg.observer.observe(document.body, { childList: true, subtree: true, attributes: false });
  };

  // ── input (one report per frame) ──
  var inputFrame = 0;
  function onInput(e) {
    if (inputFrame) return;
    inputFrame = requestAnimationFrame(function () { inputFrame = 0; });
    post('userInput', e.type);
  }
  document.addEventListener('scroll', onInput, { capture: true, passive: true });
  document.addEventListener('wheel', onInput, { passive: true });
  document.addEventListener('touchmove', onInput, { passive: true });

  window.addEventListener('hashchange', function () { post('hashChanged', location.href); });

  // ── markers ──
  sg.setMarker = function (target, name, on) {
    var el = target === 'html' ? document.documentElement : document.body;
    if (el) el.classList.toggle(name, !!on);
  };

  var style = document.createElement('style');
  style.id = 'streamgo-external-player-css';
  style.textContent =
    'body.external-player-active video { visibility: hidden !important; opacity: 0 !important; }' +
    'body.external-player-active::after { content: "Launching external player..."; position: fixed;' +
    ' top: 50%; left: 50%; transform: translate(-50%, -50%); color: white; font-size: 18px;' +
    ' z-index: 99999; background: rgba(0,0,0,0.8); padding: 20px 40px; border-radius: 8px;' +
    ' pointer-events: none; }';
  function addStyle() { (document.head || document.documentElement).appendChild(style); }
  if (document.documentElement) addStyle(); else document.addEventListener('DOMContentLoaded', addStyle, { once: true });

  // ── playback ──
  var originalPlay = HTMLVideoElement.prototype.play;
  HTMLVideoElement.prototype.play = function () {
    if (sg.playBlocked) {
      console.log("[streamgo] Blocked play() while an external player is active");
      this.pause();
      this.muted = true;
      return Promise.resolve();
    }
    return originalPlay.call(this);
  };
  sg.setPlayBlocked = function (on) { sg.playBlocked = !!on; };
  sg.pauseVideos = function (onlyPlaying) {
    var videos = document.querySelectorAll('video');
    for (var i = 0; i < videos.length; i++) {
      var v = videos[i];
      if (onlyPlaying && v.paused) continue;
      try { v.pause(); v.muted = true; } catch (e) { /* element gone */ }
    }
  };

  // ── player state ──
  sg.requestPlayerState = function (requestId) {
    Promise.resolve().then(function () {
      if (window.core && core.transport && core.transport.getState) return core.transport.getState('player');
      return (window.stremio && window.stremio.player && window.stremio.player.state) ||
             (window.player && window.player.state) || null;
    }).then(function (state) {
      post('playerState', requestId, JSON.stringify(state || null));
    }, function () {
      post('playerState', requestId, 'null');
    });
  };

  // ── continue watching ──
  sg.setResumeIndex = function (ids) {
    sg.resumeIndex = {};
    for (var i = 0; i < ids.length; i++) sg.resumeIndex[ids[i]] = true;
  };
  document.addEventListener('click', function (e) {
    var target = e.target;
    if (!target || !target.closest) return;
    var info = {};
    var metaItem = target.closest('[class*="meta-item"]');
    if (metaItem) {
      var row = metaItem.closest('[class*="board-row"]');
      var titleEl = row && row.querySelector('[class*="title"]');
      var rowTitle = ((titleEl && titleEl.textContent) || '').toLowerCase();
      var anchor = metaItem.querySelector('a[href*="/detail/"]');
      if (anchor && (rowTitle.indexOf('continue') >= 0 || rowTitle.indexOf('watching') >= 0)) {
        var m = anchor.href.match(/#\/detail\/([^/]+)\/([^/]+)/);
        info.continueWatching = true;
        info.detailHref = anchor.href;
        if (m && sg.resumeIndex[m[2]]) {
          e.preventDefault();
          e.stopPropagation();
          info.intercepted = true;
        }
      }
    }
    if (target.closest('[class*="play-icon"], [class*="play-btn"], [class*="action-play"], [class*="PlayIcon"], .play-button, .continue-watching-item')) {
      info.isPlayButton = true;
    }
    if (info.continueWatching || info.isPlayButton) post('clicked', JSON.stringify(info));
  }, true);

  // ── external player options ──
  var MENU_SELECTORS = ['div[class*="menu-container"]', 'div[class*="popup-container"]',
    'div[class*="dropdown-container"]', 'div[class*="picker-container"]', 'div[class*="select-menu"]'];
  function setOptionText(el, text) {
    var set = false;
    var nodes = el.querySelectorAll('*');
    for (var i = 0; i < nodes.length; i++) {
      if (nodes[i].children.length === 0 && nodes[i].textContent) { nodes[i].textContent = text; set = true; }
    }
    if (!set) el.textContent = text;
  }
  function bind(el, type, fn) {
    el.addEventListener(type, fn);
    sg.injected.push(function () { el.removeEventListener(type, fn); });
  }
  sg.injectPlayerOptions = function (options) {
    if (document.querySelector('[data-streamgo-option]')) return true;
    for (var s = 0; s < MENU_SELECTORS.length; s++) {
      var menus = document.querySelectorAll(MENU_SELECTORS[s]);
      for (var k = 0; k < menus.length; k++) {
        var items = menus[k].querySelectorAll('div[class*="option"]');
        if (!items.length) items = menus[k].querySelectorAll('div[class*="menu-item"]');
        if (!items.length) items = menus[k].querySelectorAll('div[class*="item"]');
        var template = null;
        for (var j = 0; j < items.length; j++) {
          var text = (items[j].textContent || '').toLowerCase().trim();
          if (text === 'disabled' || text.indexOf('m3u') >= 0) template = items[j];
        }
        if (!template) continue;
        var parent = template.parentElement || menus[k];
        options.forEach(function (opt) {
          var el = template.cloneNode(true);
          el.setAttribute('data-streamgo-option', opt.id);
          el.className = el.className.replace(/selected[^\s]*/gi, '').replace(/checked[^\s]*/gi, '');
          el.style.cursor = 'pointer';
          setOptionText(el, opt.label);
          bind(el, 'click', function (e) {
            e.preventDefault();
            e.stopPropagation();
            post('playerSelected', opt.id);
            document.body.click();
          });
          parent.appendChild(el);
          sg.injected.push(function () { if (el.parentNode) el.parentNode.removeChild(el); });
        });
        Array.prototype.forEach.call(items, function (item) {
          bind(item, 'click', function () {
            var t = (item.textContent || '').toLowerCase().trim();
            if (t === 'disabled') post('playerSelected', 'builtin');
            else if (t.indexOf('m3u') >= 0) post('playerSelected', 'm3u');
          });
        });
        return true;
      }
    }
    return false;
  };
  sg.removePlayerOptions = function () {
    var fns = sg.injected;
    sg.injected = [];
    for (var i = 0; i < fns.length; i++) { try { fns[i](); } catch (e) { /* detached */ } }
  };

  // ── channel ──
  function connect() {
    new QWebChannel(qt.webChannelTransport, function (channel) {
      bridge = channel.objects.streamgo;
      for (var i = 0; i < queue.length; i++) bridge[queue[i][0]].apply(bridge, queue[i][1]);
      queue = [];
      bridge.ready();
      console.log("[streamgo] Page shim connected");
      bridge.hashChanged(location.href);
    });
  }
  if (typeof QWebChannel !== 'undefined' && window.qt && qt.webChannelTransport) connect();
  else console.log("[streamgo] QWebChannel transport missing, page events disabled");
})();
"""


# ═══════════════════════════════════════════════════════════════════════════
# SETUP — called from app.py
# ═══════════════════════════════════════════════════════════════════════════

def _read_qrc_text(path: str) -> str:
    """Read a Qt resource file (qrc://) as UTF-8 text."""
    from PySide6.QtCore import QFile, QIODevice
    f = QFile(path)
    if f.open(QIODevice.OpenModeFlag.ReadOnly):
        data = bytes(f.readAll()).decode("utf-8", errors="replace")
        f.close()
        return data
    return ""


def setup_host_page(page, parent=None) -> HostPage:
    """
    Register the events bridge on a QWebChannel and inject the page shim.
    Call this BEFORE loading the page.
    """
    events = PageEventsBridge(parent)
    channel = QWebChannel(parent)
    channel.registerObject("streamgo", events)
    page.setWebChannel(channel)

    qwc_js = _read_qrc_text(":/qtwebchannel/qwebchannel.js")
    # Keep newlines: flattening turns // comments into line eaters
    combined = qwc_js + "\n" + PAGE_SHIM_JS if qwc_js else PAGE_SHIM_JS

    script = QWebEngineScript()
    script.setName("streamgo_page_shim")
    script.setSourceCode(combined)
    script.setInjectionPoint(QWebEngineScript.InjectionPoint.DocumentCreation)
    script.setWorldId(QWebEngineScript.ScriptWorldId.MainWorld)
    script.setRunsOnSubFrames(False)
    page.scripts().insert(script)

    host = HostPage(page, events, parent)
    # Keep a Python reference so GC doesn't destroy the channel
    host._channel = channel
    return host
