"""
StreamGo — External Player Launcher

Finds and starts VLC or MPC-HC for a resolved stream. Launching is
fire-and-forget: the child is detached and its exit is never awaited.
Failures are reported and swallowed here so the interception flow always
reaches its cooldown and returns to idle.
"""

import glob
import os
import shutil
import subprocess
import sys

from .constants import PLAYER_MPCHC, PLAYER_VLC

# ========== KNOWN LOCATIONS ==========


def _program_files_dirs() -> list[str]:
    dirs = []
    for var in ("ProgramFiles", "ProgramFiles(x86)", "ProgramW6432"):
        v = os.environ.get(var)
        if v and v not in dirs:
            dirs.append(v)
    for d in ("C:\\Program Files", "C:\\Program Files (x86)"):
        if d not in dirs:
            dirs.append(d)
    return dirs


def candidate_paths(player: str, platform: str | None = None) -> list[str]:
    """Install locations to probe for ``player`` on ``platform`` (sys.platform)."""
    platform = platform or sys.platform
    out = []
    if player == PLAYER_VLC:
        if platform == "win32":
            out = [os.path.join(d, "VideoLAN", "VLC", "vlc.exe") for d in _program_files_dirs()]
        elif platform == "darwin":
            out = [
                "/Applications/VLC.app/Contents/MacOS/VLC",
                os.path.expanduser("~/Applications/VLC.app/Contents/MacOS/VLC"),
            ]
        else:
            out = [
                "/usr/bin/vlc",
                "/usr/local/bin/vlc",
                "/snap/bin/vlc",
                "/var/lib/flatpak/exports/bin/org.videolan.VLC",
                os.path.expanduser("~/.local/share/flatpak/exports/bin/org.videolan.VLC"),
            ]
    elif player == PLAYER_MPCHC:
        if platform == "win32":
            for d in _program_files_dirs():
                out.append(os.path.join(d, "MPC-HC", "mpc-hc64.exe"))
                out.append(os.path.join(d, "MPC-HC", "mpc-hc.exe"))
                out.append(os.path.join(d, "K-Lite Codec Pack", "MPC-HC64", "mpc-hc64.exe"))
    return out


_PATH_NAMES = {
    PLAYER_VLC: ["vlc"],
    PLAYER_MPCHC: ["mpc-hc64", "mpc-hc"],
}


class ExternalPlayerLauncher:

    def __init__(self, platform: str | None = None):
        self._platform = platform or sys.platform
        self._detected: dict[str, str | None] = {}

    # ── detection ───────────────────────────────────────────────────────

    def detect(self, player: str, refresh: bool = False) -> str | None:
        """Executable path for ``player``, or None when it isn't installed."""
        if not refresh and player in self._detected:
            return self._detected[player]
        found = None
        for p in candidate_paths(player, self._platform):
            if os.path.isfile(p):
                found = p
                break
        if found is None:
            for name in _PATH_NAMES.get(player, []):
                found = shutil.which(name)
                if found:
                    break
        if found is None and self._platform == "win32":
            # Versioned folders, e.g. "VLC 3.0"
            for d in _program_files_dirs():
                hits = glob.glob(os.path.join(d, "VideoLAN*", "*", "vlc.exe")) if player == PLAYER_VLC else []
                if hits:
                    found = hits[0]
                    break
        self._detected[player] = found
        print(f"[ExternalPlayer] Detect {player}: {found or 'not found'}")
        return found

    def resolve(self, player: str, custom_path: str | None = None) -> str | None:
        if custom_path and os.path.isfile(custom_path):
            return custom_path
        if custom_path:
            print(f"[ExternalPlayer] Custom path not found, auto-detecting: {custom_path}")
        return self.detect(player)

    # ── launch ──────────────────────────────────────────────────────────

    def build_command(self, player: str, exe: str, url: str, title: str) -> list[str]:
        if player == PLAYER_VLC:
            cmd = [exe, url]
            if title:
                cmd.append(f"--meta-title={title}")
            return cmd
        if player == PLAYER_MPCHC:
            return [exe, url, "/play"]
        return [exe, url]

    def launch(self, player: str, url: str, title: str = "", custom_path: str | None = None) -> bool:
        exe = self.resolve(player, custom_path)
        if not exe:
            print(f"[ExternalPlayer] {player} executable not found, cannot launch")
            return False
        cmd = self.build_command(player, exe, url, title)
        kwargs = {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.DEVNULL,
            "stderr": subprocess.DEVNULL,
        }
        if self._platform == "win32":
            kwargs["creationflags"] = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        else:
            kwargs["start_new_session"] = True
        try:
            subprocess.Popen(cmd, **kwargs)
        except OSError as e:
            print(f"[ExternalPlayer] Launch failed for {player}: {e}")
            return False
        print(f"[ExternalPlayer] Launched {player}: {exe}")
        return True
