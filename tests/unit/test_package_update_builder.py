from __future__ import annotations

import json
from pathlib import Path

import pytest

from app.config import reset_updater_config_cache
from services.package_update import (
    CycleOutcome,
    LOCAL_REGISTRY_ENV,
    PROJECT_DIR_ENV,
    REGISTRY_URL_ENV,
    LocalFolderManifestClient,
    ManifestClient,
    UpdateOrchestrator,
    build_update_orchestrator,
    get_process_run_guard,
    schedule_startup_update_check,
)
from services.package_update.builder import resolve_project_dir
from tests.unit.package_update_test_utils import RecordingHost, RecordingNotifier, registry_entry


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (LOCAL_REGISTRY_ENV, PROJECT_DIR_ENV, REGISTRY_URL_ENV):
        monkeypatch.delenv(name, raising=False)
    reset_updater_config_cache()


def test_build_uses_configured_registry(tmp_path: Path) -> None:
    orchestrator = build_update_orchestrator(tmp_path)

    assert isinstance(orchestrator, UpdateOrchestrator)
    source = orchestrator._manifest_source  # type: ignore[attr-defined]
    assert isinstance(source, ManifestClient)
    assert source.registry_url == "https://updates.vrcfury.com/updates.json"
    assert orchestrator.guard is get_process_run_guard()


def test_registry_url_environment_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv(REGISTRY_URL_ENV, "https://mirror.invalid/updates.json")

    orchestrator = build_update_orchestrator(tmp_path)

    source = orchestrator._manifest_source  # type: ignore[attr-defined]
    assert source.registry_url == "https://mirror.invalid/updates.json"


def test_local_registry_environment_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    registry_dir = tmp_path / "registry"
    registry_dir.mkdir()
    monkeypatch.setenv(LOCAL_REGISTRY_ENV, str(registry_dir))

    orchestrator = build_update_orchestrator(tmp_path)

    assert isinstance(orchestrator._manifest_source, LocalFolderManifestClient)  # type: ignore[attr-defined]


def test_missing_local_registry_falls_back_to_http(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv(LOCAL_REGISTRY_ENV, str(tmp_path / "missing"))

    orchestrator = build_update_orchestrator(tmp_path)

    assert isinstance(orchestrator._manifest_source, ManifestClient)  # type: ignore[attr-defined]


def test_resolve_project_dir_prefers_argument_then_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv(PROJECT_DIR_ENV, str(tmp_path / "from-env"))

    assert resolve_project_dir(tmp_path / "explicit") == tmp_path / "explicit"
    assert resolve_project_dir() == tmp_path / "from-env"


def test_schedule_startup_update_check_skips_when_disabled(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    built: list[object] = []
    monkeypatch.setattr(
        "services.package_update.builder.build_update_orchestrator",
        lambda *args, **kwargs: built.append(args),
    )

    assert schedule_startup_update_check(tmp_path, enabled=False) is None
    assert built == []


def test_schedule_startup_update_check_runs_automated_cycle(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    registry_dir = tmp_path / "registry"
    registry_dir.mkdir()
    (registry_dir / "updates.json").write_text(
        json.dumps({"packages": [registry_entry("core", "1.0", None)]}), encoding="utf-8"
    )
    monkeypatch.setenv(LOCAL_REGISTRY_ENV, str(registry_dir))
    host = RecordingHost()
    notifier = RecordingNotifier()

    thread = schedule_startup_update_check(tmp_path, host=host, notifier=notifier)

    assert thread is not None
    assert thread.name == "package-update-auto"
    thread.join(timeout=5)
    assert host.list_calls == 1
    assert notifier.errors == []
    assert not get_process_run_guard().running
