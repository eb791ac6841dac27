"""Data models used by the package update orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Tuple

from services.package_update.constants import FILE_REFERENCE_PREFIX


@dataclass(frozen=True)
class RemotePackage:
    """A package entry advertised by the update registry."""

    id: str
    display_name: str
    latest_version: str
    latest_archive_url: str | None = None

    @property
    def installable(self) -> bool:
        return bool(self.latest_archive_url)


@dataclass(frozen=True)
class RemoteManifest:
    """Decoded registry document, packages kept in registry order."""

    packages: Tuple[RemotePackage, ...]

    def find(self, package_id: str) -> RemotePackage | None:
        for package in self.packages:
            if package.id == package_id:
                return package
        return None


@dataclass(frozen=True)
class LocalPackage:
    """A package currently installed in the host project."""

    id: str
    version: str


@dataclass(frozen=True)
class UpdateAction:
    """Replace ``package_id`` with the archive found at ``archive_url``."""

    package_id: str
    archive_url: str
    from_version: str = ""
    to_version: str = ""


@dataclass(frozen=True)
class UpdatePlan:
    """Actions computed for a single update cycle.

    When ``self_update`` is set it is the only action executed in the cycle;
    ``updates`` is then always empty.
    """

    self_update: UpdateAction | None = None
    updates: Tuple[UpdateAction, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return self.self_update is None and not self.updates

    @property
    def actions(self) -> Tuple[UpdateAction, ...]:
        if self.self_update is not None:
            return (self.self_update,)
        return self.updates


@dataclass(frozen=True)
class StagedArchive:
    """A downloaded archive waiting in the staging area."""

    package_id: str
    path: Path

    @property
    def reference(self) -> str:
        """Return the local-file reference handed to the package host."""

        return f"{FILE_REFERENCE_PREFIX}{self.path}"


class CycleOutcome(str, Enum):
    """How a requested update cycle ended."""

    SKIPPED = "skipped"
    UP_TO_DATE = "up_to_date"
    SELF_UPDATED = "self_updated"
    UPDATED = "updated"
    FAILED = "failed"


class UpdateError(RuntimeError):
    """Base class for failures raised while running an update cycle."""


class ManifestFetchError(UpdateError):
    """Raised when the registry document cannot be fetched or decoded."""


class InventoryError(UpdateError):
    """Raised when the host cannot list its installed packages."""


class DownloadError(UpdateError):
    """Raised when a package archive cannot be downloaded or staged."""


class InstallError(UpdateError):
    """Raised when the host rejects a batch of staged archives."""


class AutomatedSelfUpdateError(UpdateError):
    """Raised when an automated cycle would have to replace the updater itself."""


def find_root_cause(error: BaseException) -> BaseException:
    """Peel generic wrapper errors until the underlying failure is reached.

    An error counts as a wrapper when it exposes a truthy ``wraps_cause``
    attribute and carries a ``__cause__``.
    """

    seen: set[int] = set()
    while getattr(error, "wraps_cause", False) and error.__cause__ is not None:
        if id(error) in seen:
            break
        seen.add(id(error))
        error = error.__cause__
    return error


def describe_error(error: BaseException) -> str:
    """Return a user-facing description of ``error``'s root cause."""

    cause = find_root_cause(error)
    message = str(cause).strip()
    return message or type(cause).__name__
