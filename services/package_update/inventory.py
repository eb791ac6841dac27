"""Read the packages installed in the host."""

from __future__ import annotations

import logging

from services.package_update.host import PackageHost
from services.package_update.models import InventoryError, LocalPackage, describe_error


_LOGGER = logging.getLogger(__name__)


class InventoryReader:
    """Enumerate installed packages through the host package manager.

    Results are never cached: the host may recompile and change its installed
    set between two cycles.
    """

    def __init__(self, host: PackageHost) -> None:
        self._host = host

    def list_installed(self) -> list[LocalPackage]:
        try:
            installed = list(self._host.list_installed())
        except Exception as exc:
            raise InventoryError(
                f"Failed to list installed packages: {describe_error(exc)}"
            ) from exc
        _LOGGER.debug(
            "Host reports %s installed package(s): %s",
            len(installed),
            ", ".join(f"{package.id}@{package.version}" for package in installed),
        )
        return installed


__all__ = ["InventoryReader"]
