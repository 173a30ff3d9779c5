"""Targets-directory watcher for Build Uploader.

Uses the watchdog library to notice when a watch-target file is added
or edited, and asks the scheduler for a rescan so the new settings are
picked up without waiting for the next poll.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import Any

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

TRIGGER_CONFIG_CHANGE = "config-change"


class TargetFileHandler(FileSystemEventHandler):
    """Watchdog handler that turns ``*.json`` changes into rescan requests."""

    def __init__(self, on_change: Callable[[str], None]):
        super().__init__()
        self._on_change = on_change

    @staticmethod
    def _is_target_file(path: str) -> bool:
        name = os.path.basename(path)
        return name.lower().endswith(".json") and not name.startswith(".")

    def _handle(self, path: Any) -> None:
        path = os.fsdecode(path)
        if self._is_target_file(path):
            logger.info("Target config changed: %s", os.path.basename(path))
            self._on_change(TRIGGER_CONFIG_CHANGE)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a new target file."""
        if not event.is_directory:
            self._handle(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle an edited target file."""
        if not event.is_directory:
            self._handle(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a target file renamed into place (editors save this way)."""
        if not event.is_directory:
            self._handle(event.dest_path)


class TargetsWatcher:
    """Watches the targets directory for the lifetime of the app.

    Usage:
        watcher = TargetsWatcher(targets_dir, scheduler.request_pass)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(self, targets_dir: str, on_change: Callable[[str], None]):
        self.targets_dir = str(targets_dir)
        self._handler = TargetFileHandler(on_change)
        self._observer: Any | None = None

    def start(self) -> None:
        """Start watching the targets directory."""
        if not os.path.isdir(self.targets_dir):
            logger.error("Targets directory does not exist: %s", self.targets_dir)
            raise FileNotFoundError(
                f"Targets directory does not exist: {self.targets_dir}"
            )

        observer = Observer()
        self._observer = observer
        observer.schedule(self._handler, self.targets_dir, recursive=False)
        observer.start()
        logger.info("Watching '%s' for target changes", self.targets_dir)

    def stop(self) -> None:
        """Stop watching and release resources."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.info("Targets watcher stopped.")

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        return self._observer is not None and self._observer.is_alive()
