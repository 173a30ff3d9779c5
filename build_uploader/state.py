"""Durable "last processed build" markers, one small file per watch target."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)

_SLUG_PATTERN = re.compile(r"[^A-Za-z0-9]+")
_DIGEST_LENGTH = 16


def marker_name(identity: Sequence[str]) -> str:
    """Return the marker file name for a target *identity*.

    The readable slug is for humans; the digest of the unit-separator
    joined fields keeps distinct identities from colliding when the
    slugs happen to match.
    """
    joined = "\x1f".join(identity)
    digest = hashlib.sha256(joined.encode("utf-8")).hexdigest()[:_DIGEST_LENGTH]
    slug = _SLUG_PATTERN.sub("-", "_".join(p for p in identity if p)).strip("-")
    return f"{slug[:80]}-{digest}.build" if slug else f"{digest}.build"


class StateStore:
    """Reads and writes processed-build markers under *directory*."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, identity: Sequence[str]) -> Path:
        return self.directory / marker_name(identity)

    def get(self, identity: Sequence[str]) -> int | None:
        """Return the last processed build number, or None if there is no history."""
        path = self.path_for(identity)
        try:
            raw = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        if not raw:
            logger.warning("Empty build marker %s; treating as no history.", path.name)
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(
                "Unreadable build marker %s (%r); treating as no history.", path.name, raw
            )
            return None

    def set(self, identity: Sequence[str], build_number: int) -> None:
        """Overwrite the marker for *identity* with *build_number*."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(identity)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(f"{int(build_number)}\n")
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("Marker %s set to %d", path.name, build_number)
