"""Pass scheduling for Build Uploader.

Runs the orchestrator's pass on a fixed interval from a single worker
thread.  Manual rescans (hotkey, target file change) go through the
same worker: a request wakes it early, cancelling the pending timer,
and the timer is re-armed once that pass has finished.  Requests made
while a pass is running collapse into one follow-up pass, so there is
never more than one pass in flight.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

logger = logging.getLogger(__name__)

TRIGGER_STARTUP = "startup"
TRIGGER_TIMER = "timer"
TRIGGER_MANUAL = "manual"


class PassScheduler:
    """Timer plus manual trigger feeding one pass at a time into *run_pass*."""

    def __init__(self, run_pass: Callable[[str], Any], interval_minutes: int):
        self._run_pass = run_pass
        self._interval = timedelta(minutes=max(1, int(interval_minutes)))
        self._pass_lock = threading.Lock()
        self._request = threading.Event()
        self._request_lock = threading.Lock()
        self._requested_trigger = TRIGGER_MANUAL
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.next_run_at: datetime | None = None

    @property
    def interval(self) -> timedelta:
        return self._interval

    @property
    def is_running(self) -> bool:
        """Return whether the worker thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def pass_in_progress(self) -> bool:
        return self._pass_lock.locked()

    # ---- lifecycle ----

    def start(self, run_immediately: bool = True) -> None:
        """Start the worker thread; the first pass runs right away by default."""
        if self.is_running:
            return
        self._stop.clear()
        self._request.clear()
        self._thread = threading.Thread(
            target=self._loop,
            args=(run_immediately,),
            daemon=True,
            name="PassScheduler",
        )
        self._thread.start()
        logger.info("Scheduler started (every %s).", self._interval)

    def stop(self, timeout: float | None = None) -> None:
        """Prevent further passes; waits up to *timeout* for one in flight."""
        self._stop.set()
        self._request.set()  # wake the worker
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None
        self.next_run_at = None
        logger.info("Scheduler stopped.")

    # ---- triggers ----

    def request_pass(self, trigger: str = TRIGGER_MANUAL) -> None:
        """Ask the worker to run a pass now instead of waiting for the timer."""
        if self._stop.is_set():
            logger.debug("Ignoring %s pass request; scheduler is stopping.", trigger)
            return
        with self._request_lock:
            if not self._request.is_set():
                self._requested_trigger = trigger
            self._request.set()
        logger.info("Rescan requested (%s).", trigger)

    def run_now(self, trigger: str = TRIGGER_MANUAL) -> Any:
        """Run one pass on the calling thread.

        Returns the pass result, or None without running anything if
        another pass is already in flight.
        """
        if not self._pass_lock.acquire(blocking=False):
            logger.info("A pass is already running; %s pass skipped.", trigger)
            return None
        try:
            return self._execute(trigger)
        finally:
            self._pass_lock.release()

    # ---- internals ----

    def _loop(self, run_immediately: bool) -> None:
        if run_immediately and not self._stop.is_set():
            self._guarded(TRIGGER_STARTUP)
        while not self._stop.is_set():
            self._schedule_next()
            woke = self._request.wait(timeout=self._interval.total_seconds())
            if self._stop.is_set():
                break
            trigger = TRIGGER_TIMER
            if woke:
                with self._request_lock:
                    trigger = self._requested_trigger
                    self._requested_trigger = TRIGGER_MANUAL
                    self._request.clear()
            self._guarded(trigger)

    def _guarded(self, trigger: str) -> None:
        with self._pass_lock:
            self._execute(trigger)

    def _execute(self, trigger: str) -> Any:
        try:
            return self._run_pass(trigger)
        except Exception:
            logger.exception("Unexpected error during %s pass", trigger)
            return None

    def _schedule_next(self) -> None:
        self.next_run_at = datetime.now() + self._interval
        logger.info(
            "Checking for new builds in %d minutes at %s",
            int(self._interval.total_seconds() // 60),
            self.next_run_at.strftime("%m/%d/%y %H:%M"),
        )
