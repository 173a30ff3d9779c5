"""Client for the cloud build API.

Finds the newest successful build of a build target and turns the raw
API record into a :class:`BuildDefinition`.  Decoding is strict: a
record that does not carry the documented fields is rejected instead
of being half-read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import requests

from build_uploader.config import DEFAULT_API_BASE_URL
from build_uploader.errors import RemoteFetchError
from build_uploader.targets import BuildSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildDefinition:
    """One successful remote build that is a candidate for publishing."""

    build_number: int
    file_name: str
    download_url: str
    commit_id: str
    commit_message: str
    scm_branch: str

    def __str__(self) -> str:
        return f"Build({self.file_name})"


def _field(record: dict[str, Any], path: str, kind: type) -> Any:
    """Walk the dotted *path* in *record* and check the leaf type."""
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            raise RemoteFetchError(f"build record is missing '{path}'")
        value = value[part]
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise RemoteFetchError(
            f"build record field '{path}' has type {type(value).__name__}, "
            f"expected {kind.__name__}"
        )
    return value


def parse_build(record: Any, project_name: str) -> BuildDefinition:
    """Decode one API build record."""
    if not isinstance(record, dict):
        raise RemoteFetchError(f"build record is {type(record).__name__}, expected object")

    number = _field(record, "build", int)
    href = _field(record, "links.download_primary.href", str)
    extension = _field(record, "links.download_primary.meta.type", str)
    target_id = _field(record, "buildtargetid", str)
    branch = _field(record, "scmBranch", str)

    changeset = record.get("changeset") or []
    if not isinstance(changeset, list):
        raise RemoteFetchError("build record field 'changeset' is not a list")
    if changeset:
        head = changeset[0]
        if not isinstance(head, dict):
            raise RemoteFetchError("changeset entry is not an object")
        commit_id = _field(head, "commitId", str)
        message = _field(head, "message", str)
    else:
        # Triggered builds carry no changeset; only the revision is known.
        commit_id = _field(record, "lastBuiltRevision", str)
        message = ""

    return BuildDefinition(
        build_number=number,
        file_name=f"{number}_{project_name}_{target_id}_{branch}.{extension}",
        download_url=href,
        commit_id=commit_id,
        commit_message=message,
        scm_branch=branch,
    )


def select_latest(records: list[Any], project_name: str) -> BuildDefinition | None:
    """Return the record with the highest build number (first one wins on ties)."""
    latest: BuildDefinition | None = None
    for record in records:
        build = parse_build(record, project_name)
        if latest is None or build.build_number > latest.build_number:
            latest = build
    return latest


class CloudBuildClient:
    """Reads successful builds from the cloud build API."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        *,
        request_timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    def builds_url(self, source: BuildSource) -> str:
        return (
            f"{self.base_url}/orgs/{quote(source.organization_id)}"
            f"/projects/{quote(source.project_name)}"
            f"/buildtargets/{quote(source.target_id)}/builds"
        )

    def fetch_successful_builds(self, source: BuildSource) -> list[Any]:
        """Return the raw list of successful build records, or raise RemoteFetchError."""
        headers = {
            "Accept": "application/json",
            "Authorization": f"Basic {source.api_key}",
        }
        try:
            response = self._session.get(
                self.builds_url(source),
                params={"buildStatus": "success"},
                headers=headers,
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            raise RemoteFetchError(f"build API request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise RemoteFetchError(
                f"build API returned HTTP {response.status_code} "
                f"for {source.project_name}/{source.target_id}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteFetchError(f"build API returned invalid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise RemoteFetchError(
                f"build API returned {type(payload).__name__}, expected a list of builds"
            )
        return payload

    def latest_build(self, source: BuildSource) -> BuildDefinition | None:
        """Return the newest successful build, or None when there is nothing usable."""
        logger.info(
            "Downloading cloud build information for %s/%s",
            source.project_name,
            source.target_id,
        )
        try:
            records = self.fetch_successful_builds(source)
            logger.debug("Parsing %d build record(s)", len(records))
            latest = select_latest(records, source.project_name)
        except RemoteFetchError as exc:
            logger.error("Failed to download cloud build information: %s", exc)
            return None

        if latest is None:
            logger.info("No successful builds found for %s", source.target_id)
        else:
            logger.info("Found build: %d.", latest.build_number)
        return latest
