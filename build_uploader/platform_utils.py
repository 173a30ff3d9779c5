"""
Cross-platform utilities for Build Uploader.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.

Supported platforms:
  - Windows 10/11
  - macOS 12+ (Monterey and newer)
  - Linux
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

_APP_DIR_NAME = "BuildUploader"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory, created if needed.

    - Windows : ``%APPDATA%\\BuildUploader``
    - macOS   : ``~/Library/Application Support/BuildUploader``
    - Linux   : ``$XDG_CONFIG_HOME/BuildUploader`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / _APP_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_path() -> Path:
    """Return the path to the log file (inside the config directory)."""
    return get_config_dir() / "build_uploader.log"


def get_default_state_dir() -> Path:
    """Return the default directory holding processed-build markers."""
    return get_config_dir() / "state"


# ---- publishing tool ---------------------------------------------------


def default_publish_tool_name() -> str:
    """Return the file name of the publish wrapper script for this OS."""
    return "Publish-Build.bat" if IS_WINDOWS else "publish-build.sh"


def build_tool_command(tool_path: Path, args: list[str]) -> list[str]:
    """
    Return the argv used to launch *tool_path* with *args*.

    Batch files cannot be executed directly on Windows, so they are run
    through ``cmd.exe /c``.
    """
    if IS_WINDOWS and tool_path.suffix.lower() in (".bat", ".cmd"):
        return ["cmd.exe", "/c", str(tool_path), *args]
    return [str(tool_path), *args]


# ---- hotkeys -----------------------------------------------------------


def can_listen_for_hotkeys() -> bool:
    """Return True if the ``keyboard`` listener will work on this OS.

    The ``keyboard`` library needs root on macOS and Linux; its listener
    thread dies in the background otherwise.
    """
    if IS_WINDOWS:
        return True
    return os.geteuid() == 0
