from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    """Guarantee the repository root is discoverable for absolute imports."""

    root = Path(__file__).resolve().parent.parent
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_ensure_project_root_on_path()


@pytest.fixture(autouse=True)
def _updater_environment(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Keep logs and project lookups away from real user data."""

    log_dir = tmp_path_factory.mktemp("logs")
    monkeypatch.setenv("PACKAGE_UPDATER_LOG_DIR", str(log_dir))
    monkeypatch.delenv("PACKAGE_UPDATER_LOG_FILE", raising=False)
    monkeypatch.delenv("PACKAGE_UPDATER_PROJECT_DIR", raising=False)
    monkeypatch.delenv("PACKAGE_UPDATER_VERSION", raising=False)
    yield
