"""
One pass over every configured watch target.

For each target the pass asks the build API for the newest successful
build, compares it with the target's processed-build marker, and only
for a strictly newer build stages, claims, publishes and reports it.
Targets are handled one after another and a failure in one of them
never stops the rest of the pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from build_uploader.cloud_build import CloudBuildClient
from build_uploader.errors import ConfigurationError, PublishError
from build_uploader.notify import WebhookNotifier
from build_uploader.publisher import PublishInvoker, PublishOutcome
from build_uploader.stager import ArtifactStager
from build_uploader.state import StateStore
from build_uploader.targets import WatchTarget, iter_target_files, load_watch_target

logger = logging.getLogger(__name__)

# Per-target result statuses
STATUS_NO_BUILD = "no_build"
STATUS_ALREADY_PROCESSED = "already_processed"
STATUS_ALREADY_STAGED = "already_staged"
STATUS_PUBLISHED = "published"
STATUS_PUBLISH_FAILED = "publish_failed"
STATUS_ERROR = "error"

NO_HISTORY = -1


@dataclass
class TargetResult:
    """What happened to one watch target during a pass."""

    target: str
    status: str
    build_number: int | None = None
    error: str = ""


@dataclass
class PassContext:
    """State of the pass in flight, threaded through the per-target steps."""

    trigger: str
    started_at: datetime = field(default_factory=datetime.now)
    results: list[TargetResult] = field(default_factory=list)

    def record(self, result: TargetResult) -> TargetResult:
        self.results.append(result)
        return result


@dataclass
class PassReport:
    """Summary of a finished pass."""

    trigger: str
    started_at: datetime
    finished_at: datetime
    results: list[TargetResult]

    def by_target(self) -> dict[str, TargetResult]:
        return {r.target: r for r in self.results}

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)


class Orchestrator:
    """Sequences metadata lookup, staging, publishing and notification per target."""

    def __init__(
        self,
        targets_dir: Path,
        state: StateStore,
        client: CloudBuildClient,
        stager: ArtifactStager,
        publisher: PublishInvoker,
        notifier: WebhookNotifier,
    ) -> None:
        self.targets_dir = Path(targets_dir)
        self.state = state
        self.client = client
        self.stager = stager
        self.publisher = publisher
        self.notifier = notifier

    def run_pass(self, trigger: str = "timer") -> PassReport:
        """Process every watch target once and return what happened."""
        ctx = PassContext(trigger=trigger)
        logger.info("Scanning for new cloud builds (%s)", trigger)

        try:
            files = iter_target_files(self.targets_dir)
        except ConfigurationError as exc:
            logger.error("%s", exc)
            files = []

        for path in files:
            logger.info("Processing config file: %s", path.stem)
            try:
                self._process_file(ctx, path)
            except Exception as exc:
                logger.exception("Error while processing %s", path.stem)
                ctx.record(TargetResult(path.stem, STATUS_ERROR, error=str(exc)))
            logger.info("Finished processing config file: %s", path.stem)

        report = PassReport(
            trigger=ctx.trigger,
            started_at=ctx.started_at,
            finished_at=datetime.now(),
            results=list(ctx.results),
        )
        logger.info(
            "Finished scanning for new cloud builds: %d target(s), %d published, "
            "%d failed, %d error(s)",
            len(report.results),
            report.count(STATUS_PUBLISHED),
            report.count(STATUS_PUBLISH_FAILED),
            report.count(STATUS_ERROR),
        )
        return report

    # ------------------------------------------------------------------
    # Per-target sequence
    # ------------------------------------------------------------------

    def _process_file(self, ctx: PassContext, path: Path) -> TargetResult:
        return self.process_target(ctx, load_watch_target(path))

    def process_target(self, ctx: PassContext, target: WatchTarget) -> TargetResult:
        latest = self.client.latest_build(target.source)
        if latest is None:
            logger.info("No usable build for %s; skipping.", target.name)
            return ctx.record(TargetResult(target.name, STATUS_NO_BUILD))

        marker = self.state.get(target.identity)
        last = NO_HISTORY if marker is None else marker
        if latest.build_number <= last:
            logger.info("Build %d already processed for %s", latest.build_number, target.name)
            return ctx.record(
                TargetResult(target.name, STATUS_ALREADY_PROCESSED, latest.build_number)
            )

        # Don't claim a build the publisher cannot handle.
        self.publisher.check_template(target)

        if not self.stager.stage(latest, Path(target.destination.content_dir)):
            return ctx.record(
                TargetResult(target.name, STATUS_ALREADY_STAGED, latest.build_number)
            )

        self.state.set(target.identity, latest.build_number)
        logger.info("Marked build %d as processed for %s", latest.build_number, target.name)

        try:
            outcome = self.publisher.publish(target, latest)
        except ConfigurationError as exc:
            logger.error("Cannot publish %s: %s", latest, exc)
            outcome = PublishOutcome(success=False, exit_code=None, output=str(exc))

        self.notifier.notify(target, latest, outcome)

        try:
            outcome.raise_for_status()
        except PublishError as exc:
            logger.warning("Build %d for %s was not published: %s", latest.build_number, target.name, exc)
            return ctx.record(
                TargetResult(target.name, STATUS_PUBLISH_FAILED, latest.build_number, str(exc))
            )
        return ctx.record(TargetResult(target.name, STATUS_PUBLISHED, latest.build_number))
