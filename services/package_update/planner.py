"""Decide which installed packages need replacing."""

from __future__ import annotations

import logging
from typing import Sequence

from services.package_update.models import (
    LocalPackage,
    RemoteManifest,
    RemotePackage,
    UpdateAction,
    UpdatePlan,
)


_LOGGER = logging.getLogger(__name__)

__all__ = ["needs_update", "plan_updates"]


def needs_update(local: LocalPackage, remote: RemotePackage) -> bool:
    """Return ``True`` when ``remote`` should replace ``local``.

    Versions are compared as plain strings: any difference counts, including
    what would look like a downgrade.  A remote entry without an archive URL
    can never be installed.
    """

    return local.version != remote.latest_version and remote.installable


def plan_updates(
    remote: RemoteManifest,
    local: Sequence[LocalPackage],
    *,
    self_package_id: str,
) -> UpdatePlan:
    """Join ``local`` and ``remote`` by package id and build the cycle's plan.

    Packages missing on either side are ignored.  A pending update of
    ``self_package_id`` wins over everything else: the plan then holds only
    that action and the remaining packages wait for a later cycle.
    """

    pairs: list[tuple[LocalPackage, RemotePackage]] = []
    for installed in local:
        candidate = remote.find(installed.id)
        if candidate is not None:
            pairs.append((installed, candidate))

    for installed, candidate in pairs:
        if installed.id != self_package_id:
            continue
        if needs_update(installed, candidate):
            _LOGGER.info(
                "Upgrading updater from %s to %s",
                installed.version,
                candidate.latest_version,
            )
            return UpdatePlan(self_update=_action_for(installed, candidate))
        break

    updates: list[UpdateAction] = []
    seen: set[str] = set()
    for installed, candidate in pairs:
        if installed.id in seen:
            continue
        seen.add(installed.id)
        if not needs_update(installed, candidate):
            if installed.version != candidate.latest_version:
                _LOGGER.debug(
                    "Skipping %s %s -> %s: registry has no archive",
                    installed.id,
                    installed.version,
                    candidate.latest_version,
                )
            continue
        _LOGGER.info(
            "Upgrading %s from %s to %s",
            installed.id,
            installed.version,
            candidate.latest_version,
        )
        updates.append(_action_for(installed, candidate))

    if not updates:
        _LOGGER.info("All installed packages are up to date")
    return UpdatePlan(updates=tuple(updates))


def _action_for(installed: LocalPackage, candidate: RemotePackage) -> UpdateAction:
    archive_url = candidate.latest_archive_url
    if archive_url is None:
        raise ValueError(f"Registry entry {candidate.id} has no archive to install")
    return UpdateAction(
        package_id=installed.id,
        archive_url=archive_url,
        from_version=installed.version,
        to_version=candidate.latest_version,
    )
