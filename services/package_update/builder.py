"""Helpers for constructing and scheduling the update orchestrator."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from app.config import UpdaterConfig, get_updater_config
from services.package_update.archive import ArchiveFetcher
from services.package_update.constants import (
    LOCAL_REGISTRY_ENV,
    PROJECT_DIR_ENV,
    REGISTRY_URL_ENV,
)
from services.package_update.host import PackageHost, ProjectPackageHost
from services.package_update.installers import InstallApplicator
from services.package_update.inventory import InventoryReader
from services.package_update.manifest import (
    LocalFolderManifestClient,
    ManifestClient,
    ManifestSource,
)
from services.package_update.markers import ContinuationMarkers
from services.package_update.notifier import LoggingNotifier, Notifier
from services.package_update.orchestrator import RunGuard, UpdateOrchestrator


_LOGGER = logging.getLogger(__name__)

# Shared by every orchestrator built in this process so manual and automated
# triggers serialise against each other.
_PROCESS_GUARD = RunGuard()


def get_process_run_guard() -> RunGuard:
    return _PROCESS_GUARD


def resolve_project_dir(project_dir: Path | str | None = None) -> Path:
    """Return the host working directory used for packages and markers."""

    if project_dir is not None:
        return Path(project_dir).expanduser()
    override = os.environ.get(PROJECT_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.cwd()


def _build_manifest_source(
    config: UpdaterConfig, registry_url: str | None
) -> ManifestSource:
    local_dir = os.environ.get(LOCAL_REGISTRY_ENV)
    if local_dir:
        folder = Path(local_dir)
        if folder.exists():
            _LOGGER.info("Using local package registry at %s", folder)
            return LocalFolderManifestClient(folder)
        _LOGGER.warning("Configured local registry directory does not exist: %s", folder)

    url = registry_url or os.environ.get(REGISTRY_URL_ENV) or config.registry_url
    return ManifestClient(url, timeout=config.downloads.timeout_seconds)


def build_update_orchestrator(
    project_dir: Path | str | None = None,
    *,
    config: UpdaterConfig | None = None,
    host: PackageHost | None = None,
    notifier: Notifier | None = None,
    registry_url: str | None = None,
    guard: RunGuard | None = None,
) -> UpdateOrchestrator:
    """Construct an :class:`UpdateOrchestrator` for the current environment."""

    config = config or get_updater_config()
    root = resolve_project_dir(project_dir)
    host = host or ProjectPackageHost(root)
    notifier = notifier or LoggingNotifier()
    markers = ContinuationMarkers.for_project(root, config.markers)
    fetcher = ArchiveFetcher(
        root.joinpath(*config.staging_dir.split("/")),
        max_parallel=config.downloads.max_parallel,
        timeout=config.downloads.timeout_seconds,
    )
    _LOGGER.debug("Building update orchestrator for project %s", root)
    return UpdateOrchestrator(
        _build_manifest_source(config, registry_url),
        InventoryReader(host),
        fetcher,
        InstallApplicator(host, markers, notifier),
        notifier,
        self_package_id=config.self_package_id,
        guard=guard or _PROCESS_GUARD,
    )


def schedule_startup_update_check(
    project_dir: Path | str | None = None,
    *,
    enabled: bool = True,
    host: PackageHost | None = None,
    notifier: Notifier | None = None,
) -> threading.Thread | None:
    """Kick off an automated background update cycle."""

    if not enabled:
        _LOGGER.debug("Automatic updates disabled by user preference")
        return None

    orchestrator = build_update_orchestrator(project_dir, host=host, notifier=notifier)
    return orchestrator.start_cycle(automated=True)


__all__ = [
    "build_update_orchestrator",
    "get_process_run_guard",
    "resolve_project_dir",
    "schedule_startup_update_check",
]
