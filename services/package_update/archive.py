"""Download package archives into the staging area."""

from __future__ import annotations

import concurrent.futures
import logging
import os
import shutil
import tempfile
from http.client import HTTPException
from pathlib import Path
from typing import Any, Sequence
from urllib.error import URLError
from urllib.request import Request, urlopen

from app.version import get_user_agent
from services.package_update.constants import STAGED_ARCHIVE_PREFIX, STAGED_ARCHIVE_SUFFIX
from services.package_update.models import DownloadError, StagedArchive, UpdateAction


_LOGGER = logging.getLogger(__name__)


class ArchiveFetcher:
    """Stage package archives under ``staging_dir``.

    Every download gets a fresh file from :func:`tempfile.mkstemp`, so names
    never derive from package ids or versions and parallel downloads cannot
    overwrite each other.  Staged files are left for the host to clean up.
    """

    def __init__(
        self,
        staging_dir: Path,
        *,
        max_parallel: int = 4,
        timeout: float | None = None,
    ) -> None:
        self._staging_dir = Path(staging_dir)
        self._max_parallel = max(1, int(max_parallel))
        self._timeout = timeout

    @property
    def staging_dir(self) -> Path:
        return self._staging_dir

    def fetch(self, url: str, package_id: str = "") -> StagedArchive:
        """Download ``url`` to a newly allocated staging path."""

        target_path = self._allocate_path()
        _LOGGER.info("Downloading %s from %s", package_id or "archive", url)
        kwargs: dict[str, Any] = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout
        try:
            request = Request(url, headers={"User-Agent": get_user_agent()})
            with urlopen(request, **kwargs) as response, target_path.open("wb") as destination:  # nosec - HTTPS
                status = getattr(response, "status", 200)
                if status is not None and not 200 <= int(status) < 300:
                    raise DownloadError(f"Failed to download {url}: HTTP {status}")
                shutil.copyfileobj(response, destination)
        except DownloadError:
            raise
        except (HTTPException, OSError, URLError, ValueError) as exc:
            raise DownloadError(f"Failed to download {url}: {exc}") from exc
        _LOGGER.debug("Staged %s at %s", package_id or url, target_path)
        return StagedArchive(package_id=package_id, path=target_path)

    def fetch_all(self, actions: Sequence[UpdateAction]) -> list[StagedArchive]:
        """Download every action's archive, returning results in plan order."""

        if not actions:
            return []
        if len(actions) == 1 or self._max_parallel == 1:
            return [self.fetch(action.archive_url, action.package_id) for action in actions]

        workers = min(self._max_parallel, len(actions))
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="package-update-download"
        )
        try:
            futures = [
                executor.submit(self.fetch, action.archive_url, action.package_id)
                for action in actions
            ]
            # ``result`` re-raises the first failing download in plan order.
            return [future.result() for future in futures]
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    def _allocate_path(self) -> Path:
        try:
            self._staging_dir.mkdir(parents=True, exist_ok=True)
            fd, raw_path = tempfile.mkstemp(
                prefix=STAGED_ARCHIVE_PREFIX,
                suffix=STAGED_ARCHIVE_SUFFIX,
                dir=self._staging_dir,
            )
            os.close(fd)
        except OSError as exc:
            raise DownloadError(f"Unable to allocate staging file in {self._staging_dir}: {exc}") from exc
        return Path(raw_path)


__all__ = ["ArchiveFetcher"]
