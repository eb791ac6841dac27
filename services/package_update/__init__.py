"""Public API for the package update orchestrator."""

from __future__ import annotations

from services.package_update.archive import ArchiveFetcher
from services.package_update.builder import (
    build_update_orchestrator,
    get_process_run_guard,
    schedule_startup_update_check,
)
from services.package_update.constants import (
    LOCAL_REGISTRY_ENV,
    PROJECT_DIR_ENV,
    REGISTRY_URL_ENV,
)
from services.package_update.host import HostInvocationError, PackageHost, ProjectPackageHost
from services.package_update.installers import InstallApplicator
from services.package_update.inventory import InventoryReader
from services.package_update.manifest import (
    LocalFolderManifestClient,
    ManifestClient,
    ManifestSource,
    decode_manifest,
)
from services.package_update.markers import ContinuationMarkers, MarkerKind, marker_exists
from services.package_update.models import (
    AutomatedSelfUpdateError,
    CycleOutcome,
    DownloadError,
    InstallError,
    InventoryError,
    LocalPackage,
    ManifestFetchError,
    RemoteManifest,
    RemotePackage,
    StagedArchive,
    UpdateAction,
    UpdateError,
    UpdatePlan,
    find_root_cause,
)
from services.package_update.notifier import LoggingNotifier, MessageBoxNotifier, Notifier
from services.package_update.orchestrator import RunGuard, RunState, UpdateOrchestrator
from services.package_update.planner import plan_updates

__all__ = [
    "LOCAL_REGISTRY_ENV",
    "PROJECT_DIR_ENV",
    "REGISTRY_URL_ENV",
    "ArchiveFetcher",
    "AutomatedSelfUpdateError",
    "ContinuationMarkers",
    "CycleOutcome",
    "DownloadError",
    "HostInvocationError",
    "InstallApplicator",
    "InstallError",
    "InventoryError",
    "InventoryReader",
    "LocalFolderManifestClient",
    "LocalPackage",
    "LoggingNotifier",
    "ManifestClient",
    "ManifestFetchError",
    "ManifestSource",
    "MarkerKind",
    "MessageBoxNotifier",
    "Notifier",
    "PackageHost",
    "ProjectPackageHost",
    "RemoteManifest",
    "RemotePackage",
    "RunGuard",
    "RunState",
    "StagedArchive",
    "UpdateAction",
    "UpdateError",
    "UpdateOrchestrator",
    "UpdatePlan",
    "build_update_orchestrator",
    "decode_manifest",
    "find_root_cause",
    "get_process_run_guard",
    "marker_exists",
    "plan_updates",
    "schedule_startup_update_check",
]
