"""Hand staged archives to the host package manager."""

from __future__ import annotations

import logging
from typing import Sequence

from services.package_update.constants import DIALOG_TITLE, RECOMPILE_NOTICE
from services.package_update.host import PackageHost
from services.package_update.markers import ContinuationMarkers, MarkerKind, write_marker
from services.package_update.models import InstallError, StagedArchive, describe_error
from services.package_update.notifier import Notifier

_LOGGER = logging.getLogger(__name__)


class InstallApplicator:
    """Install a batch of staged archives and signal the pending restart."""

    def __init__(
        self,
        host: PackageHost,
        markers: ContinuationMarkers,
        notifier: Notifier,
    ) -> None:
        self._host = host
        self._markers = markers
        self._notifier = notifier

    def apply(self, staged: Sequence[StagedArchive], *, self_update: bool = False) -> None:
        """Install ``staged`` as one batch.

        The host either accepts the whole batch or the call raises
        :class:`InstallError`; nothing is rolled back here.
        """

        if not staged:
            _LOGGER.debug("No staged archives to install")
            return

        references = [archive.reference for archive in staged]
        _LOGGER.info(
            "Installing %s package archive(s): %s",
            len(references),
            ", ".join(archive.package_id or str(archive.path) for archive in staged),
        )
        try:
            self._host.add_and_remove_packages(add=references)
        except Exception as exc:
            raise InstallError(
                f"Package manager rejected the update: {describe_error(exc)}"
            ) from exc

        kind = MarkerKind.SELF_UPDATED if self_update else MarkerKind.UPDATED
        try:
            write_marker(self._markers, kind)
        except OSError as exc:
            raise InstallError(f"Unable to write update marker: {exc}") from exc

        if not self_update:
            try:
                self._notifier.show_info(DIALOG_TITLE, RECOMPILE_NOTICE)
            except Exception:
                _LOGGER.exception("Unable to show recompile notice")


__all__ = ["InstallApplicator"]
