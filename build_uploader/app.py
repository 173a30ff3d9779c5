"""
Main application controller for Build Uploader.

Ties together configuration, the pass orchestrator and its scheduler,
the targets-directory watcher and global hotkeys, and runs them in the
foreground until interrupted.
"""

import logging
import logging.handlers
import signal
import sys
import threading
from pathlib import Path

from build_uploader import __app_name__, __version__
from build_uploader.cloud_build import CloudBuildClient
from build_uploader.config import Config, get_log_path
from build_uploader.hotkeys import GlobalHotkeys
from build_uploader.notify import WebhookNotifier
from build_uploader.orchestrator import Orchestrator, PassReport
from build_uploader.publisher import PublishInvoker
from build_uploader.scheduler import TRIGGER_MANUAL, PassScheduler
from build_uploader.stager import ArtifactStager
from build_uploader.state import StateStore
from build_uploader.watcher import TargetsWatcher

logger = logging.getLogger(__name__)


def build_orchestrator(cfg: Config) -> Orchestrator:
    """Create the orchestrator and its collaborators from *cfg*."""
    timeout = cfg.request_timeout
    return Orchestrator(
        targets_dir=cfg.targets_directory,
        state=StateStore(cfg.state_directory),
        client=CloudBuildClient(cfg.api_base_url, request_timeout=timeout),
        stager=ArtifactStager(cfg.download_directory, request_timeout=timeout),
        publisher=PublishInvoker(cfg.publish_tool_directory, cfg.publish_tool_name),
        notifier=WebhookNotifier(cfg.webhook_url, request_timeout=timeout),
    )


class App:
    """Central controller for the headless uploader."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config = Config(config_path)
        self.orchestrator: Orchestrator | None = None
        self.scheduler: PassScheduler | None = None
        self.watcher: TargetsWatcher | None = None
        self._stop_event = threading.Event()
        self._hotkeys = GlobalHotkeys(
            rescan_key=self.config.hotkey_rescan,
            quit_key=self.config.hotkey_quit,
            on_rescan=self.on_rescan,
            on_quit=self.on_quit,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def prepare(self) -> None:
        """Set up logging, validate settings and build the pipeline."""
        self._setup_logging()
        logger.info("%s %s starting.", __app_name__, __version__)
        self.config.validate()
        self.orchestrator = build_orchestrator(self.config)

    def run_once(self) -> PassReport | None:
        """Run a single pass on this thread and return its report.

        Returns None if a pass was already in flight.
        """
        return self._ensure_scheduler().run_now(TRIGGER_MANUAL)

    def run(self) -> None:
        """Run passes on the configured interval until asked to stop."""
        self._ensure_scheduler()

        if self.config.watch_targets_directory:
            self._start_watcher()
        self._hotkeys.register()

        signal.signal(signal.SIGINT, self._on_signal)
        signal.signal(signal.SIGTERM, self._on_signal)

        self.scheduler.start(run_immediately=True)
        if self._hotkeys.registered:
            print(f"{__app_name__} running. Press {self.config.hotkey_rescan} to rescan, "
                  "Ctrl-C to stop…")
        else:
            print(f"{__app_name__} running (press Ctrl-C to stop)…")

        while not self._stop_event.wait(timeout=1):
            pass
        self._shutdown()

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def on_rescan(self) -> None:
        """Ask for an immediate pass (hotkey callback)."""
        if self.scheduler is None:
            return
        self.scheduler.request_pass(TRIGGER_MANUAL)

    def on_quit(self) -> None:
        """Request a clean shutdown."""
        logger.info("Shutting down…")
        self._stop_event.set()

    def _on_signal(self, signum, frame) -> None:
        logger.info("Received signal %d.", signum)
        self.on_quit()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_scheduler(self) -> PassScheduler:
        if self.orchestrator is None:
            self.prepare()
        if self.scheduler is None:
            self.scheduler = PassScheduler(
                self.orchestrator.run_pass, self.config.polling_frequency
            )
        return self.scheduler

    def _start_watcher(self) -> None:
        self.watcher = TargetsWatcher(
            str(self.config.targets_directory), self.scheduler.request_pass
        )
        try:
            self.watcher.start()
        except FileNotFoundError as exc:
            logger.warning("Not watching targets directory: %s", exc)
            self.watcher = None

    def _shutdown(self) -> None:
        self._hotkeys.unregister()
        if self.watcher:
            self.watcher.stop()
            self.watcher = None
        if self.scheduler:
            self.scheduler.stop()
        logger.info("%s stopped.", __app_name__)

    def _setup_logging(self) -> None:
        """Configure rotating file log and stderr handler."""
        log_path = get_log_path()
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

        # Rotating file handler
        max_bytes = self.config.max_log_size_mb * 1024 * 1024
        fh = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=max_bytes,
            backupCount=self.config.log_backup_count,
            encoding="utf-8",
        )
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root_logger.addHandler(fh)

        # Console output for operators watching the process
        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(level)
        sh.setFormatter(fmt)
        root_logger.addHandler(sh)
