"""
StreamGo — App Shell

PySide6 desktop shell around the Stremio web UI.
Creates a QMainWindow hosting a QWebEngineView and wires the playback core:
  - page shim + QWebChannel events bridge (host_page.py)
  - QTimer frame scheduler (frames.py)
  - persisted key/value settings (storage.py)
  - external player launcher (external_player.py)

Handles:
  - App lifecycle, single-instance lock (QLocalServer)
  - User data directory selection
  - DevTools policy
  - Quit cleanup (abort interception, flush writes)
"""

import argparse
import json
import os
import sys
from pathlib import Path

from PySide6.QtCore import QUrl
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtNetwork import QLocalServer, QLocalSocket
from PySide6.QtWidgets import QApplication, QMainWindow
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWebEngineCore import QWebEnginePage, QWebEngineProfile, QWebEngineSettings

from . import storage
from .constants import LOCAL_STORAGE_FILE
from .core import StreamGoCore
from .external_player import ExternalPlayerLauncher
from .frames import QtFrameScheduler
from .host_page import setup_host_page

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

APP_NAME = "StreamGo"
SOCKET_NAME = "StreamGoShell"
DEFAULT_URL = "https://web.stremio.com/"


# ---------------------------------------------------------------------------
# User data directory selection
# ---------------------------------------------------------------------------

def pick_user_data_dir() -> str:
    """Platform config dir; prefers an existing folder from an older app name."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))

    candidates = [base / "streamgo", base / "StreamGo", base / "stremio-enhanced"]
    for c in candidates:
        if (c / LOCAL_STORAGE_FILE).is_file():
            return str(c)
    return str(candidates[0])


# ---------------------------------------------------------------------------
# WebEngine page that logs console messages
# ---------------------------------------------------------------------------

class StreamGoWebPage(QWebEnginePage):
    """Custom page to pipe the shim's console messages to stdout."""

    def javaScriptConsoleMessage(self, level, message, line, source):
        if "[streamgo]" in message:
            print(message)


# ---------------------------------------------------------------------------
# Main Window
# ---------------------------------------------------------------------------

class StreamGoWindow(QMainWindow):

    def __init__(self, url: str = DEFAULT_URL, dev_tools: bool = False):
        super().__init__()

        self.setWindowTitle(APP_NAME)
        self.setMinimumSize(800, 600)
        self.resize(1500, 850)
        self.setStyleSheet("background-color: #000000;")

        self._profile = QWebEngineProfile.defaultProfile()
        self._profile.setPersistentStoragePath(
            os.path.join(storage.data_path(""), "WebEngine")
        )

        self._web_page = StreamGoWebPage(self._profile, self)
        self._web_view = QWebEngineView()
        self._web_view.setPage(self._web_page)

        settings = self._web_view.settings()
        settings.setAttribute(QWebEngineSettings.WebAttribute.JavascriptEnabled, True)
        settings.setAttribute(QWebEngineSettings.WebAttribute.LocalStorageEnabled, True)
        settings.setAttribute(QWebEngineSettings.WebAttribute.PlaybackRequiresUserGesture, False)

        self.setCentralWidget(self._web_view)

        # --- Page shim + events bridge (must be set up before load) ---
        self._host = setup_host_page(self._web_page, self)
        self._scheduler = QtFrameScheduler(parent=self)
        self._settings = storage.KeyValueStore(storage.data_path(LOCAL_STORAGE_FILE))
        self._core = StreamGoCore(
            self._host,
            self._scheduler,
            self._settings,
            ExternalPlayerLauncher(),
            self._host.mutation_source(),
            self._host.events,
        )
        self._core.attach()

        # --- DevTools ---
        self._dev_tools = dev_tools
        self._dev_tools_view: QWebEngineView | None = None

        self._web_view.load(QUrl(url))
        self._web_view.loadFinished.connect(self._on_load_finished)

    @property
    def core(self) -> StreamGoCore:
        return self._core

    def _on_load_finished(self, ok: bool):
        if not ok:
            print(f"[streamgo] Failed to load web UI: {self._web_view.url().toString()}")
        self.show()

    def open_url(self, url: str):
        """Load a URL handed over by a second launch. Bare routes stay in the current UI."""
        if url.startswith("#"):
            self._host.navigate(url)
        else:
            self._web_view.load(QUrl(url))

    def bring_to_front(self):
        if self.isMinimized():
            self.showNormal()
        self.show()
        self.raise_()
        self.activateWindow()

    def toggle_dev_tools(self):
        if not self._dev_tools:
            return
        if self._dev_tools_view is None:
            self._dev_tools_view = QWebEngineView()
            self._web_page.setDevToolsPage(self._dev_tools_view.page())
        if self._dev_tools_view.isVisible():
            self._dev_tools_view.hide()
        else:
            self._dev_tools_view.show()

    def shutdown(self):
        self._core.shutdown()
        self._scheduler.cancel_all()
        storage.flush_all_writes()

    def closeEvent(self, event):
        """Abort interception and flush pending writes before quitting."""
        self.shutdown()
        super().closeEvent(event)


# ---------------------------------------------------------------------------
# Single-instance lock via QLocalServer
# ---------------------------------------------------------------------------

def encode_handoff(url: str = "") -> bytes:
    """Message a second launch sends to the running window."""
    return json.dumps({"url": url or ""}).encode("utf-8")


def decode_handoff(data: bytes) -> dict:
    try:
        msg = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return {"url": ""}
    if not isinstance(msg, dict) or not isinstance(msg.get("url"), str):
        return {"url": ""}
    return msg


class SingleInstanceGuard:
    """
    First launch owns the local socket. Later launches hand their --url to it
    and exit; the running window raises itself and loads that URL.
    """

    def __init__(self, name: str = SOCKET_NAME):
        self._name = name
        self._server: QLocalServer | None = None

    def try_lock(self, url: str = "", on_handoff=None) -> bool:
        """True when this process is the first instance."""
        peer = QLocalSocket()
        peer.connectToServer(self._name)
        if peer.waitForConnected(500):
            peer.write(encode_handoff(url))
            peer.waitForBytesWritten(1000)
            peer.disconnectFromServer()
            return False

        # A crashed instance leaves the socket file behind on Linux/macOS.
        QLocalServer.removeServer(self._name)
        self._server = QLocalServer()
        if not self._server.listen(self._name):
            print(f"[streamgo] Instance lock unavailable: {self._server.errorString()}")
        elif on_handoff is not None:
            self._server.newConnection.connect(lambda: self._accept(on_handoff))
        return True

    def _accept(self, on_handoff):
        conn = self._server.nextPendingConnection() if self._server else None
        if conn is None:
            return
        conn.waitForReadyRead(1000)
        msg = decode_handoff(conn.readAll().data())
        conn.disconnectFromServer()
        on_handoff(msg)


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="StreamGo: Stremio desktop shell")
    parser.add_argument("--url", default="", help=f"Web UI to load (default {DEFAULT_URL})")
    parser.add_argument("--data-dir", dest="data_dir", default="", help="Override the user data directory")
    parser.add_argument("--dev-tools", dest="dev_tools", action="store_true",
                        help="Enable DevTools (Ctrl+Shift+I / F12)")
    return parser.parse_known_args(argv)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    args, _unknown = parse_args()

    requested_url = args.url or os.environ.get("STREAMGO_URL", "")
    dev_tools = args.dev_tools or os.environ.get("STREAMGO_DEVTOOLS") == "1"

    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(APP_NAME)

    win = None

    def on_handoff(msg):
        if win is None:
            return
        win.bring_to_front()
        if msg.get("url"):
            win.open_url(msg["url"])

    guard = SingleInstanceGuard()
    if not guard.try_lock(requested_url, on_handoff):
        print("[streamgo] Already running; handed the request to the open window.")
        sys.exit(0)

    user_data = args.data_dir or pick_user_data_dir()
    storage.init_data_dir(user_data)
    print(f"[streamgo] userData: {user_data}")

    win = StreamGoWindow(url=requested_url or DEFAULT_URL, dev_tools=dev_tools)
    if dev_tools:
        for keys in ("Ctrl+Shift+I", "F12"):
            QShortcut(QKeySequence(keys), win, win.toggle_dev_tools)

    app.aboutToQuit.connect(win.shutdown)
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
