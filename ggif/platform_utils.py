"""
Cross-platform utilities for ggif.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.

Supported platforms:
  - Windows 10/11
  - macOS 12+ (Monterey and newer)
  - Linux (X11 or Wayland clipboard tools)
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

_CLIPBOARD_TIMEOUT = 5  # seconds

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application data directory, created if needed.

    - Windows : ``%APPDATA%\\ggif``
    - macOS   : ``~/Library/Application Support/ggif``
    - Linux   : ``$XDG_CONFIG_HOME/ggif`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / "ggif"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_path() -> Path:
    """Return the path to the log file (inside the config directory)."""
    return get_config_dir() / "ggif.log"


def get_default_config_file() -> Path:
    """Return the dotfile in the user's home directory read at startup."""
    return Path.home() / ".ggif.json"


# ---- clipboard ---------------------------------------------------------


def _clipboard_command() -> list[str] | None:
    """Return the argv of a tool that copies stdin to the clipboard."""
    if IS_WINDOWS:
        return ["clip"]
    if IS_MACOS:
        return ["pbcopy"]
    if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-copy"):
        return ["wl-copy"]
    if shutil.which("xclip"):
        return ["xclip", "-selection", "clipboard"]
    if shutil.which("xsel"):
        return ["xsel", "--clipboard", "--input"]
    return None


def copy_to_clipboard(text: str) -> bool:
    """Replace the system clipboard contents with *text*.  Returns True on success."""
    cmd = _clipboard_command()
    if cmd is None:
        logger.warning("No clipboard tool found (install xclip, xsel or wl-copy).")
        return False
    try:
        subprocess.run(
            cmd,
            input=text.encode("utf-8"),
            check=True,
            timeout=_CLIPBOARD_TIMEOUT,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except (OSError, subprocess.SubprocessError):
        logger.warning("Could not copy to clipboard with %s.", cmd[0], exc_info=True)
        return False
    logger.debug("Copied to clipboard: %s", text)
    return True
