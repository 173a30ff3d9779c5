"""Webhook notification helper for Build Uploader.

Posts a one-line summary of each publish attempt to a chat webhook
(Slack-compatible ``{"text": ...}`` payload).  Delivery problems are
logged and swallowed: a lost notification never fails a pass.
"""

import logging

import requests

from build_uploader.cloud_build import BuildDefinition
from build_uploader.errors import NotificationError
from build_uploader.publisher import PublishOutcome
from build_uploader.targets import WatchTarget

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"


def format_message(
    display_name: str,
    build_number: int,
    branch_name: str | None,
    success: bool,
    detail: str = "",
) -> str:
    """Return the human-readable message for a publish outcome."""
    branch = branch_name or "default"
    if success:
        return (
            f"{display_name} build {build_number:,} has been published "
            f"to the {branch} branch."
        )
    return (
        f"Failed to publish {display_name} build {build_number:,} "
        f"to the {branch} branch: {detail.strip() or UNKNOWN_ERROR}"
    )


class WebhookNotifier:
    """Sends publish outcomes to the target's webhook or the process default."""

    def __init__(
        self,
        default_url: str = "",
        session: requests.Session | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.default_url = default_url or ""
        self._session = session or requests.Session()
        self._request_timeout = request_timeout

    def resolve_url(self, target: WatchTarget) -> str:
        """Return the webhook URL for *target*, or an empty string for none."""
        return target.notification_url or self.default_url

    def notify(
        self, target: WatchTarget, build: BuildDefinition, outcome: PublishOutcome
    ) -> bool:
        """Post the outcome message.  Returns True if the webhook accepted it."""
        url = self.resolve_url(target)
        if not url:
            logger.debug("No webhook configured for %s; skipping notification.", target.name)
            return False

        message = format_message(
            target.destination.display_name,
            build.build_number,
            target.destination.branch_name,
            outcome.success,
            outcome.output,
        )
        logger.info("Sending webhook notification for %s", target.name)
        try:
            self._post(url, message)
        except NotificationError as exc:
            logger.warning("Notification for %s not delivered: %s", target.name, exc)
            return False
        return True

    def _post(self, url: str, message: str) -> None:
        try:
            response = self._session.post(
                url, json={"text": message}, timeout=self._request_timeout
            )
        except requests.RequestException as exc:
            raise NotificationError(str(exc)) from exc
        if not 200 <= response.status_code < 300:
            raise NotificationError(f"webhook returned HTTP {response.status_code}")
