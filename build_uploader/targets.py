"""Watch-target definitions and their JSON loader.

Each watch target lives in its own ``*.json`` file inside the targets
directory and pairs one cloud build target (the source) with one
publishing destination.  Files are re-read at the start of every pass.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from build_uploader.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildSource:
    """Locator and credential for one cloud build target."""

    organization_id: str
    project_name: str
    target_id: str
    api_key: str


@dataclass(frozen=True)
class PublishDestination:
    """Everything the publishing tool needs to upload one build."""

    username: str
    password: str
    app_id: str
    executable_path: str
    content_dir: str
    app_script_template: str
    display_name: str
    branch_name: str | None = None
    use_drm: bool = False


@dataclass(frozen=True)
class WatchTarget:
    """One (source build, destination publish) pairing."""

    name: str
    source: BuildSource
    destination: PublishDestination
    notification_url: str | None = None

    @property
    def identity(self) -> tuple[str, str, str, str, str]:
        """The fields that distinguish this target's processed-build marker."""
        return (
            self.source.organization_id,
            self.source.project_name,
            self.source.target_id,
            self.destination.app_id,
            self.destination.branch_name or "",
        )


def iter_target_files(directory: Path) -> list[Path]:
    """Return the target config files in *directory*, sorted by name."""
    if not directory.is_dir():
        raise ConfigurationError(f"Targets directory does not exist: {directory}")
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == ".json")


def _section(data: dict[str, Any], key: str, path: Path) -> dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise ConfigurationError(f"{path.name}: missing '{key}' section")
    return value


def _required(section: dict[str, Any], key: str, where: str) -> str:
    value = section.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigurationError(f"{where}: '{key}' is required")
    return str(value)


def load_watch_target(path: Path) -> WatchTarget:
    """Parse one target config file, raising ConfigurationError if it is invalid."""
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigurationError(f"Could not read target config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name}: expected a JSON object")

    src = _section(data, "source", path)
    dst = _section(data, "destination", path)
    where_src = f"{path.name} [source]"
    where_dst = f"{path.name} [destination]"

    source = BuildSource(
        organization_id=_required(src, "organization_id", where_src),
        project_name=_required(src, "project_name", where_src),
        target_id=_required(src, "target_id", where_src),
        api_key=_required(src, "api_key", where_src),
    )
    destination = PublishDestination(
        username=_required(dst, "username", where_dst),
        password=_required(dst, "password", where_dst),
        app_id=_required(dst, "app_id", where_dst),
        executable_path=_required(dst, "executable_path", where_dst),
        content_dir=_required(dst, "content_dir", where_dst),
        app_script_template=_required(dst, "app_script_template", where_dst),
        display_name=dst.get("display_name") or source.project_name,
        branch_name=dst.get("branch_name") or None,
        use_drm=bool(dst.get("use_drm", False)),
    )

    notification = data.get("notification") or {}
    url = notification.get("url") if isinstance(notification, dict) else None

    return WatchTarget(
        name=path.stem,
        source=source,
        destination=destination,
        notification_url=url or None,
    )
