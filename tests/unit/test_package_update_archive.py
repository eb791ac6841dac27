from __future__ import annotations

import threading
from pathlib import Path
from urllib.error import URLError

import pytest

from services.package_update import ArchiveFetcher, DownloadError, UpdateAction
from tests.unit.package_update_test_utils import FakeResponse, fake_urlopen_factory

ARCHIVE_URL = "https://example.invalid/core-2.0.tgz"


def test_fetch_stages_archive_bytes(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(
        "services.package_update.archive.urlopen",
        fake_urlopen_factory({ARCHIVE_URL: b"tarball-bytes"}),
    )
    staging_dir = tmp_path / "Temp" / "package_updates"

    staged = ArchiveFetcher(staging_dir).fetch(ARCHIVE_URL, "core")

    assert staged.package_id == "core"
    assert staged.path.parent == staging_dir
    assert staged.path.suffix == ".tgz"
    assert "core" not in staged.path.name
    assert staged.path.read_bytes() == b"tarball-bytes"
    assert staged.reference == f"file:{staged.path}"


def test_repeated_fetches_never_share_a_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(
        "services.package_update.archive.urlopen",
        fake_urlopen_factory({ARCHIVE_URL: b"same"}),
    )
    fetcher = ArchiveFetcher(tmp_path)

    paths = {fetcher.fetch(ARCHIVE_URL, "core").path for _ in range(5)}

    assert len(paths) == 5
    assert all(path.exists() for path in paths)


def test_fetch_wraps_network_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    error = URLError("no route to host")
    monkeypatch.setattr(
        "services.package_update.archive.urlopen",
        fake_urlopen_factory({ARCHIVE_URL: error}),
    )

    with pytest.raises(DownloadError) as excinfo:
        ArchiveFetcher(tmp_path).fetch(ARCHIVE_URL, "core")

    assert excinfo.value.__cause__ is error


def test_fetch_rejects_error_status(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(
        "services.package_update.archive.urlopen",
        lambda request, **kwargs: FakeResponse(b"missing", status=404),
    )

    with pytest.raises(DownloadError, match="HTTP 404"):
        ArchiveFetcher(tmp_path).fetch(ARCHIVE_URL)


def test_fetch_reports_unwritable_staging_area(tmp_path: Path) -> None:
    blocker = tmp_path / "staging"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(DownloadError, match="staging"):
        ArchiveFetcher(blocker).fetch(ARCHIVE_URL)


def test_fetch_all_downloads_concurrently_in_plan_order(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    urls = {f"https://example.invalid/pkg-{index}.tgz": f"payload-{index}".encode() for index in range(4)}
    barrier = threading.Barrier(2, timeout=5)
    lock = threading.Lock()
    active_threads: set[str] = set()

    def fake_urlopen(request, **kwargs):  # type: ignore[no-untyped-def]
        url = request.full_url
        with lock:
            active_threads.add(threading.current_thread().name)
        if url.endswith(("0.tgz", "1.tgz")):
            # Both of the first two downloads must be in flight at once.
            barrier.wait()
        return FakeResponse(urls[url])

    monkeypatch.setattr("services.package_update.archive.urlopen", fake_urlopen)
    actions = [
        UpdateAction(package_id=f"pkg-{index}", archive_url=url)
        for index, url in enumerate(urls)
    ]

    staged = ArchiveFetcher(tmp_path, max_parallel=2).fetch_all(actions)

    assert [archive.package_id for archive in staged] == ["pkg-0", "pkg-1", "pkg-2", "pkg-3"]
    assert [archive.path.read_bytes() for archive in staged] == list(urls.values())
    assert len({archive.path for archive in staged}) == 4
    assert len(active_threads) >= 2


def test_fetch_all_propagates_first_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(
        "services.package_update.archive.urlopen",
        fake_urlopen_factory(
            {
                "https://example.invalid/ok.tgz": b"ok",
                "https://example.invalid/bad.tgz": URLError("reset"),
            }
        ),
    )
    actions = [
        UpdateAction(package_id="ok", archive_url="https://example.invalid/ok.tgz"),
        UpdateAction(package_id="bad", archive_url="https://example.invalid/bad.tgz"),
    ]

    with pytest.raises(DownloadError, match="bad.tgz"):
        ArchiveFetcher(tmp_path, max_parallel=2).fetch_all(actions)


def test_fetch_all_with_no_actions_is_empty(tmp_path: Path) -> None:
    assert ArchiveFetcher(tmp_path).fetch_all([]) == []
