"""
Artifact staging for Build Uploader.

Downloads a build archive into the download directory, then replaces
the target's content directory with the archive's contents.  The
publishing tool only ever sees a complete content directory: the
archive is unpacked next to it first and swapped in once extraction
has finished.  The downloaded archive is removed afterwards; the
download directory is not a cache.
"""

import logging
import os
import shutil
import time
import zipfile
import zlib
from pathlib import Path

import requests

from build_uploader.cloud_build import BuildDefinition
from build_uploader.errors import StagingError

logger = logging.getLogger(__name__)

_DOWNLOAD_CHUNK = 256 * 1024  # 256 KiB write chunks

# What ZipFile can raise on a damaged, encrypted or unsupported archive.
# NotImplementedError is a RuntimeError.
_ARCHIVE_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    zlib.error,
    EOFError,
    RuntimeError,
)


class ArtifactStager:
    """
    Fetches build archives and unpacks them into content directories.

    Parameters
    ----------
    download_dir : Path
        Where archives are written while they are being staged.
    session : requests.Session, optional
        HTTP session used for downloads.
    request_timeout : float
        Connect/read timeout for the download request, in seconds.
    """

    def __init__(
        self,
        download_dir: Path,
        session: requests.Session | None = None,
        request_timeout: float = 60.0,
    ):
        self.download_dir = Path(download_dir)
        self._session = session or requests.Session()
        self._request_timeout = request_timeout

    def archive_path(self, build: BuildDefinition) -> Path:
        return self.download_dir / build.file_name

    def stage(self, build: BuildDefinition, content_dir: Path) -> bool:
        """
        Download *build* and unpack it into *content_dir*.

        Returns False when the archive is already present in the download
        directory, meaning another run is handling (or has handled) it.
        Raises StagingError on any download, archive or filesystem failure.
        """
        archive = self.archive_path(build)
        if archive.exists():
            logger.info("Build already processed: %s exists", archive)
            return False

        content_dir = Path(content_dir)
        started = time.time()
        logger.info("Downloading new build %s", build)
        self._download(build.download_url, archive)
        logger.info("Downloaded %s in %.1fs", archive.name, time.time() - started)

        self._extract_replacing(archive, content_dir)

        try:
            archive.unlink()
        except OSError as exc:
            raise StagingError(f"Could not remove downloaded archive {archive}: {exc}") from exc
        return True

    # ---- internals ----

    def _download(self, url: str, archive: Path) -> None:
        partial = archive.with_name(archive.name + ".part")
        try:
            self.download_dir.mkdir(parents=True, exist_ok=True)
            with self._session.get(url, stream=True, timeout=self._request_timeout) as response:
                response.raise_for_status()
                with open(partial, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=_DOWNLOAD_CHUNK):
                        if chunk:
                            fh.write(chunk)
            os.replace(partial, archive)
        except requests.RequestException as exc:
            partial.unlink(missing_ok=True)
            raise StagingError(f"Download failed for {archive.name}: {exc}") from exc
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise StagingError(f"Could not write {archive}: {exc}") from exc

    def _extract_replacing(self, archive: Path, content_dir: Path) -> None:
        scratch = content_dir.with_name(content_dir.name + ".staging")
        try:
            if scratch.exists():
                shutil.rmtree(scratch)
            scratch.mkdir(parents=True)
            logger.info("Unzipping build into %s", content_dir)
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(scratch)

            if content_dir.exists():
                logger.info("Deleting existing content in %s", content_dir)
                shutil.rmtree(content_dir)
            os.replace(scratch, content_dir)
            logger.info("Unzipped build")
        except OSError as exc:
            self._discard(archive, scratch)
            raise StagingError(f"Could not replace content directory {content_dir}: {exc}") from exc
        except _ARCHIVE_ERRORS as exc:
            self._discard(archive, scratch)
            raise StagingError(f"Corrupt build archive {archive.name}: {exc}") from exc

    @staticmethod
    def _discard(archive: Path, scratch: Path) -> None:
        # Both must go, or the next pass sees the archive and skips the build.
        shutil.rmtree(scratch, ignore_errors=True)
        archive.unlink(missing_ok=True)
