from __future__ import annotations

import io
import json
import tarfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from app.config import load_updater_config
from services.package_update import (
    ArchiveFetcher,
    ContinuationMarkers,
    InstallApplicator,
    InventoryReader,
    LocalPackage,
    RemoteManifest,
    RunGuard,
    StagedArchive,
    UpdateOrchestrator,
)

SELF_ID = "com.vrcfury.updater"


class FakeResponse(io.BytesIO):
    def __init__(self, payload: bytes, status: int = 200) -> None:
        super().__init__(payload)
        self.status = status

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def fake_urlopen_factory(
    responses: dict[str, bytes | Exception], requested: list[str] | None = None
) -> Callable[..., FakeResponse]:
    def fake_urlopen(request, **kwargs):  # type: ignore[no-untyped-def]
        url = getattr(request, "full_url", request)
        if requested is not None:
            requested.append(url)
        outcome = responses.get(url)
        if outcome is None:
            raise AssertionError(f"Unexpected URL requested: {url}")
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)

    return fake_urlopen


def registry_payload(*packages: dict) -> bytes:
    return json.dumps({"packages": list(packages)}).encode("utf-8")


def registry_entry(package_id: str, version: str, url: str | None) -> dict:
    entry = {"id": package_id, "displayName": package_id.split(".")[-1], "latestVersion": version}
    if url is not None:
        entry["latestUpmTargz"] = url
    return entry


def build_package_tarball(
    name: str, version: str, files: dict[str, bytes] | None = None
) -> bytes:
    manifest = json.dumps({"name": name, "version": version}).encode("utf-8")
    entries = {"package/package.json": manifest}
    for relative, content in (files or {"Runtime/Main.cs": b"// main"}).items():
        entries[f"package/{relative}"] = content
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for member_name, content in entries.items():
            info = tarfile.TarInfo(member_name)
            info.size = len(content)
            archive.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def install_local_package(project_dir: Path, name: str, version: str) -> Path:
    package_dir = project_dir / "Packages" / name
    package_dir.mkdir(parents=True, exist_ok=True)
    (package_dir / "package.json").write_text(
        json.dumps({"name": name, "version": version}), encoding="utf-8"
    )
    return package_dir


def installed_version(project_dir: Path, name: str) -> str:
    payload = json.loads((project_dir / "Packages" / name / "package.json").read_text(encoding="utf-8"))
    return payload["version"]


@dataclass
class StaticManifestSource:
    manifest: RemoteManifest | None = None
    error: Exception | None = None
    calls: int = 0

    def fetch_manifest(self) -> RemoteManifest:
        self.calls += 1
        if self.error is not None:
            raise self.error
        assert self.manifest is not None
        return self.manifest


@dataclass
class RecordingHost:
    installed: list[LocalPackage] = field(default_factory=list)
    list_error: Exception | None = None
    add_error: Exception | None = None
    list_calls: int = 0
    batches: list[list[str]] = field(default_factory=list)

    def list_installed(self) -> Sequence[LocalPackage]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.installed)

    def add_and_remove_packages(
        self, add: Sequence[str] = (), remove: Sequence[str] = ()
    ) -> None:
        self.batches.append(list(add))
        if self.add_error is not None:
            raise self.add_error


class RecordingNotifier:
    def __init__(self) -> None:
        self.infos: list[tuple[str, str]] = []
        self.errors: list[tuple[str, str]] = []

    def show_info(self, title: str, message: str) -> None:
        self.infos.append((title, message))

    def show_error(self, title: str, message: str) -> None:
        self.errors.append((title, message))


class RecordingFetcher(ArchiveFetcher):
    """Stage placeholder files instead of downloading."""

    def __init__(self, staging_dir: Path, *, gate: threading.Event | None = None) -> None:
        super().__init__(staging_dir, max_parallel=1)
        self.fetched: list[tuple[str, str]] = []
        self._gate = gate

    def fetch(self, url: str, package_id: str = ""):  # type: ignore[override]
        if self._gate is not None:
            self._gate.wait(timeout=5)
        self.fetched.append((package_id, url))
        staged_path = self._allocate_path()
        staged_path.write_bytes(b"archive")
        return StagedArchive(package_id=package_id, path=staged_path)


def build_orchestrator(
    tmp_path: Path,
    source: StaticManifestSource,
    host: RecordingHost,
    notifier: RecordingNotifier,
    *,
    fetcher: ArchiveFetcher | None = None,
    guard: RunGuard | None = None,
) -> UpdateOrchestrator:
    config = load_updater_config()
    markers = ContinuationMarkers.for_project(tmp_path, config.markers)
    return UpdateOrchestrator(
        source,
        InventoryReader(host),
        fetcher or RecordingFetcher(tmp_path / "staging"),
        InstallApplicator(host, markers, notifier),
        notifier,
        self_package_id=SELF_ID,
        guard=guard or RunGuard(),
    )


__all__ = [
    "FakeResponse",
    "RecordingFetcher",
    "RecordingHost",
    "RecordingNotifier",
    "SELF_ID",
    "StaticManifestSource",
    "build_orchestrator",
    "build_package_tarball",
    "fake_urlopen_factory",
    "install_local_package",
    "installed_version",
    "registry_entry",
    "registry_payload",
]
