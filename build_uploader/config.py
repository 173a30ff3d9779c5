"""Configuration management for Build Uploader.

Stores and retrieves process-wide settings from a JSON config file
in the platform-appropriate application data directory.  A handful of
settings can be overridden from the environment, which is convenient
when the uploader runs on a build machine or in a container.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from build_uploader.errors import ConfigurationError
from build_uploader.platform_utils import (
    default_publish_tool_name,
    get_default_state_dir,
)
from build_uploader.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from build_uploader.platform_utils import (
    get_log_path as _platform_log_path,
)

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://build-api.cloud.unity3d.com/api/v1"

DEFAULT_CONFIG: dict[str, Any] = {
    "polling_frequency_minutes": 15,
    "targets_directory": "configs",
    "download_directory": "",
    "state_directory": "",  # blank = <config dir>/state
    "publish_tool_directory": "",
    "publish_tool_name": "",  # blank = platform default wrapper script
    "webhook_url": "",  # default notification endpoint (blank = none)
    "api_base_url": DEFAULT_API_BASE_URL,
    "request_timeout_seconds": 60,
    "watch_targets_directory": True,  # rescan when a target file changes
    "log_level": "INFO",
    # ---- log rotation ----
    "max_log_size_mb": 10,
    "log_backup_count": 3,
    # ---- global hotkeys ----
    "hotkey_rescan": "ctrl+shift+f10",
    "hotkey_quit": "",  # blank = no hotkey assigned
}

# Environment variable -> config key
ENV_OVERRIDES: dict[str, str] = {
    "BUILD_UPLOADER_POLLING_FREQUENCY": "polling_frequency_minutes",
    "BUILD_UPLOADER_TARGETS_DIRECTORY": "targets_directory",
    "BUILD_UPLOADER_DOWNLOAD_DIRECTORY": "download_directory",
    "BUILD_UPLOADER_STATE_DIRECTORY": "state_directory",
    "BUILD_UPLOADER_PUBLISH_TOOL_DIRECTORY": "publish_tool_directory",
    "BUILD_UPLOADER_WEBHOOK_URL": "webhook_url",
}


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_log_path() -> Path:
    """Return the path to the log file."""
    return _platform_log_path()


class Config:
    """Process-wide settings backed by a JSON file."""

    def __init__(self, path: Path | None = None, environ: dict[str, str] | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._environ = os.environ if environ is None else environ
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)
        self._apply_environment()

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    def _apply_environment(self) -> None:
        for var, key in ENV_OVERRIDES.items():
            value = self._environ.get(var)
            if value:
                self._data[key] = value
                logger.debug("Setting %s overridden by %s", key, var)

    # ---- accessors ----

    @property
    def path(self) -> Path:
        """Return the path of the backing config file."""
        return self._path

    @property
    def polling_frequency(self) -> int:
        """Return the poll interval in minutes."""
        try:
            return int(self._data["polling_frequency_minutes"])
        except (TypeError, ValueError):
            return 0

    @polling_frequency.setter
    def polling_frequency(self, value: int) -> None:
        """Set the poll interval (minimum 1 minute)."""
        self._data["polling_frequency_minutes"] = max(1, int(value))

    @property
    def targets_directory(self) -> Path:
        """Return the directory holding one JSON file per watch target."""
        return Path(self._data["targets_directory"])

    @property
    def download_directory(self) -> Path | None:
        """Return the directory build archives are downloaded into."""
        value = self._data.get("download_directory", "")
        return Path(value) if value else None

    @property
    def state_directory(self) -> Path:
        """Return the directory holding processed-build markers."""
        value = self._data.get("state_directory", "")
        return Path(value) if value else get_default_state_dir()

    @property
    def publish_tool_directory(self) -> Path | None:
        """Return the directory of the external publishing tool."""
        value = self._data.get("publish_tool_directory", "")
        return Path(value) if value else None

    @property
    def publish_tool_name(self) -> str:
        """Return the publish wrapper script name inside the tool directory."""
        return self._data.get("publish_tool_name") or default_publish_tool_name()

    @property
    def webhook_url(self) -> str:
        """Return the default notification webhook URL (may be empty)."""
        return self._data.get("webhook_url", "") or ""

    @webhook_url.setter
    def webhook_url(self, value: str) -> None:
        """Set the default notification webhook URL."""
        self._data["webhook_url"] = value.strip()

    @property
    def api_base_url(self) -> str:
        """Return the base URL of the build API."""
        return (self._data.get("api_base_url") or DEFAULT_API_BASE_URL).rstrip("/")

    @property
    def request_timeout(self) -> float:
        """Return the HTTP request timeout in seconds."""
        return max(1.0, float(self._data.get("request_timeout_seconds", 60)))

    @property
    def watch_targets_directory(self) -> bool:
        """Return whether target file changes trigger a rescan."""
        return bool(self._data.get("watch_targets_directory", True))

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        """Set the logging level name."""
        self._data["log_level"] = value

    # ---- log rotation ----

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return max(1, int(self._data.get("max_log_size_mb", 10)))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return max(0, int(self._data.get("log_backup_count", 3)))

    # ---- global hotkeys ----

    @property
    def hotkey_rescan(self) -> str:
        """Return the rescan hotkey combo."""
        return self._data.get("hotkey_rescan", "ctrl+shift+f10").strip().lower()

    @property
    def hotkey_quit(self) -> str:
        """Return the quit hotkey combo."""
        return self._data.get("hotkey_quit", "").strip().lower()

    # ---- validation ----

    def validate(self) -> None:
        """Raise ConfigurationError when a required setting is missing."""
        problems = []
        if self.polling_frequency < 1:
            problems.append("polling_frequency_minutes must be a positive integer")
        if self.download_directory is None:
            problems.append("download_directory is not set")
        if self.publish_tool_directory is None:
            problems.append("publish_tool_directory is not set")
        if problems:
            raise ConfigurationError(
                f"Invalid configuration in {self._path}: " + "; ".join(problems)
            )
