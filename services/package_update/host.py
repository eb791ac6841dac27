"""Host package manager implementations."""

from __future__ import annotations

import json
import logging
import shutil
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Protocol, Sequence

from services.package_update import constants
from services.package_update.models import LocalPackage


_LOGGER = logging.getLogger(__name__)


class HostInvocationError(RuntimeError):
    """Generic "invocation failed" wrapper raised by the host package manager.

    The real failure is always attached as ``__cause__``.
    """

    wraps_cause = True


class PackageHost(Protocol):
    """Protocol describing the host package manager."""

    def list_installed(self) -> Sequence[LocalPackage]:
        """Return the packages currently installed in the host."""

    def add_and_remove_packages(
        self, add: Sequence[str] = (), remove: Sequence[str] = ()
    ) -> None:
        """Install ``add`` references and uninstall ``remove`` ids as one batch."""


class ProjectPackageHost:
    """Embedded packages stored under ``<project>/Packages/<id>``.

    Each installed package is a directory holding a ``package.json`` with its
    ``name`` and ``version``.  Archives are npm-style tarballs whose files
    live below a single ``package/`` directory.
    """

    def __init__(self, project_dir: Path) -> None:
        self._project_dir = Path(project_dir)

    @property
    def project_dir(self) -> Path:
        return self._project_dir

    @property
    def packages_dir(self) -> Path:
        return self._project_dir / constants.PACKAGES_DIRNAME

    def list_installed(self) -> list[LocalPackage]:
        try:
            return self._read_installed()
        except (OSError, ValueError) as exc:
            raise HostInvocationError("Package manager invocation failed") from exc

    def add_and_remove_packages(
        self, add: Sequence[str] = (), remove: Sequence[str] = ()
    ) -> None:
        try:
            self._apply_batch(list(add), list(remove))
        except (OSError, ValueError, tarfile.TarError) as exc:
            raise HostInvocationError("Package manager invocation failed") from exc

    def _read_installed(self) -> list[LocalPackage]:
        if not self.packages_dir.is_dir():
            _LOGGER.debug("No embedded packages directory at %s", self.packages_dir)
            return []
        installed: list[LocalPackage] = []
        for package_dir in sorted(self.packages_dir.iterdir()):
            if not package_dir.is_dir() or package_dir.name.startswith("."):
                continue
            manifest_path = package_dir / constants.PACKAGE_MANIFEST_NAME
            if not manifest_path.is_file():
                continue
            name, version = _read_package_manifest(manifest_path)
            installed.append(LocalPackage(id=name or package_dir.name, version=version))
        return installed

    def _apply_batch(self, add: list[str], remove: list[str]) -> None:
        if not add and not remove:
            return
        self.packages_dir.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix=".pkg-add-", dir=self.packages_dir))
        try:
            prepared = self._prepare_additions(add, scratch)
            for package_id in remove:
                target = self.packages_dir / _validate_package_id(package_id)
                if target.exists():
                    _LOGGER.info("Removing package %s", package_id)
                    shutil.rmtree(target)
            for package_id, source in prepared:
                self._swap_into_place(package_id, source, scratch)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

    def _prepare_additions(self, add: list[str], scratch: Path) -> list[tuple[str, Path]]:
        # Everything is extracted and validated before any installed package changes.
        prepared: list[tuple[str, Path]] = []
        seen: set[str] = set()
        for index, reference in enumerate(add):
            archive_path = _resolve_file_reference(reference)
            extract_dir = scratch / f"add-{index}"
            extract_tarball_safely(archive_path, extract_dir)
            package_root = _locate_package_root(extract_dir)
            name, version = _read_package_manifest(package_root / constants.PACKAGE_MANIFEST_NAME)
            if not name:
                raise ValueError(f"Package archive {archive_path.name} does not declare a name")
            package_id = _validate_package_id(name)
            if package_id in seen:
                raise ValueError(f"Package {package_id} was added more than once in one batch")
            seen.add(package_id)
            _LOGGER.debug("Prepared %s %s from %s", package_id, version, archive_path)
            prepared.append((package_id, package_root))
        return prepared

    def _swap_into_place(self, package_id: str, source: Path, scratch: Path) -> None:
        target = self.packages_dir / package_id
        backup: Path | None = None
        if target.exists():
            backup = scratch / f"previous-{package_id}"
            target.rename(backup)
        try:
            source.rename(target)
        except OSError:
            if backup is not None:
                backup.rename(target)
            raise
        _LOGGER.info("Installed package %s into %s", package_id, target)


def extract_tarball_safely(archive_path: Path, target_dir: Path) -> None:
    """Extract ``archive_path`` below ``target_dir`` rejecting unsafe members."""

    target_dir.mkdir(parents=True, exist_ok=True)
    root = target_dir.resolve()
    total_bytes = 0
    processed_entries = 0
    with tarfile.open(archive_path, "r:*") as archive:
        for member in archive:
            processed_entries += 1
            if processed_entries > constants.MAX_ARCHIVE_ENTRIES:
                raise ValueError("Package archive contained too many entries")
            path = PurePosixPath(member.name)
            if path.is_absolute() or ".." in path.parts:
                raise ValueError(f"Package archive contained an unsafe path: {member.name}")
            destination = (root / Path(*path.parts)).resolve() if path.parts else root
            try:
                destination.relative_to(root)
            except ValueError:
                raise ValueError(f"Package archive contained an unsafe path: {member.name}")
            if member.isdir():
                destination.mkdir(parents=True, exist_ok=True)
                continue
            if not member.isfile():
                raise ValueError(f"Package archive contained a link or device entry: {member.name}")
            if member.size > constants.MAX_ARCHIVE_FILE_SIZE:
                raise ValueError(f"Package archive contained an oversized file: {member.name}")
            total_bytes += member.size
            if total_bytes > constants.MAX_ARCHIVE_TOTAL_BYTES:
                raise ValueError("Package archive expanded beyond safe limits")
            source = archive.extractfile(member)
            if source is None:
                raise ValueError(f"Unable to read package archive member {member.name}")
            destination.parent.mkdir(parents=True, exist_ok=True)
            with source, destination.open("wb") as target:
                shutil.copyfileobj(source, target)
    _LOGGER.debug(
        "Extracted %s entries totalling %s bytes from %s",
        processed_entries,
        total_bytes,
        archive_path,
    )


def _resolve_file_reference(reference: str) -> Path:
    if not reference.startswith(constants.FILE_REFERENCE_PREFIX):
        raise ValueError(f"Only local file package references are supported: {reference}")
    path = Path(reference[len(constants.FILE_REFERENCE_PREFIX):])
    if not path.is_file():
        raise FileNotFoundError(f"Package archive not found: {path}")
    return path


def _locate_package_root(extract_dir: Path) -> Path:
    conventional = extract_dir / constants.TARBALL_ROOT
    if (conventional / constants.PACKAGE_MANIFEST_NAME).is_file():
        return conventional
    if (extract_dir / constants.PACKAGE_MANIFEST_NAME).is_file():
        return extract_dir
    entries = [entry for entry in extract_dir.iterdir() if entry.is_dir()]
    if len(entries) == 1 and (entries[0] / constants.PACKAGE_MANIFEST_NAME).is_file():
        return entries[0]
    raise ValueError("Package archive does not contain a package.json")


def _read_package_manifest(path: Path) -> tuple[str, str]:
    payload = json.loads(path.read_text(encoding="utf-8-sig"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path} is not a JSON object")
    name = payload.get("name")
    version = payload.get("version")
    return (
        name.strip() if isinstance(name, str) else "",
        version if isinstance(version, str) else "",
    )


def _validate_package_id(package_id: str) -> str:
    cleaned = package_id.strip()
    if not cleaned or cleaned in {".", ".."} or "/" in cleaned or "\\" in cleaned:
        raise ValueError(f"Invalid package id: {package_id!r}")
    return cleaned


__all__ = [
    "HostInvocationError",
    "PackageHost",
    "ProjectPackageHost",
    "extract_tarball_safely",
]
