"""Registry manifest clients."""

from __future__ import annotations

import json
import logging
from http.client import HTTPException
from pathlib import Path
from typing import Any, Mapping, Protocol
from urllib.error import URLError
from urllib.request import Request, urlopen

from app.version import get_user_agent
from services.package_update.constants import LOCAL_REGISTRY_FILENAME
from services.package_update.models import ManifestFetchError, RemoteManifest, RemotePackage


_LOGGER = logging.getLogger(__name__)


class ManifestSource(Protocol):
    """Protocol describing registry manifest providers."""

    def fetch_manifest(self) -> RemoteManifest:
        """Return the decoded registry document or raise :class:`ManifestFetchError`."""


class ManifestClient:
    """Fetch the registry document with a single HTTP GET.

    No retries are attempted; a failed fetch fails the cycle and the next
    manual or automated trigger tries again.
    """

    def __init__(self, registry_url: str, *, timeout: float | None = None) -> None:
        self._registry_url = registry_url
        self._timeout = timeout

    @property
    def registry_url(self) -> str:
        return self._registry_url

    def fetch_manifest(self) -> RemoteManifest:
        _LOGGER.debug("Fetching package registry from %s", self._registry_url)
        kwargs: dict[str, Any] = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout
        try:
            request = Request(self._registry_url, headers={"User-Agent": get_user_agent()})
            with urlopen(request, **kwargs) as response:  # nosec - registry over HTTPS
                status = getattr(response, "status", 200)
                if status is not None and not 200 <= int(status) < 300:
                    raise ManifestFetchError(
                        f"Update server responded with HTTP {status}"
                    )
                raw = response.read()
        except ManifestFetchError:
            raise
        except (HTTPException, OSError, URLError, ValueError) as exc:
            raise ManifestFetchError(f"Failed to fetch packages from update server: {exc}") from exc

        try:
            text = raw.decode("utf-8-sig") if isinstance(raw, bytes) else str(raw)
        except UnicodeDecodeError as exc:
            raise ManifestFetchError("Update server returned a non UTF-8 document") from exc
        manifest = decode_manifest(text)
        _LOGGER.info(
            "Registry lists %s package(s): %s",
            len(manifest.packages),
            ", ".join(package.id for package in manifest.packages),
        )
        return manifest


class LocalFolderManifestClient:
    """Serve the registry document from a local directory for testing."""

    def __init__(self, folder: Path) -> None:
        self._folder = Path(folder)

    def fetch_manifest(self) -> RemoteManifest:
        manifest_path = self._folder / LOCAL_REGISTRY_FILENAME
        _LOGGER.debug("Reading local package registry %s", manifest_path)
        try:
            text = manifest_path.read_text(encoding="utf-8-sig")
        except OSError as exc:
            raise ManifestFetchError(f"Failed to read local registry {manifest_path}: {exc}") from exc
        return decode_manifest(text)


def decode_manifest(text: str) -> RemoteManifest:
    """Decode the registry JSON document.

    The document must be an object whose ``packages`` list is present and
    non-empty.  Entries without a string ``id`` are skipped; the remaining ids
    must be unique and at least one must be left.  Anything else is reported
    as :class:`ManifestFetchError`.
    """

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestFetchError(f"Failed to fetch packages from update server: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise ManifestFetchError("Failed to fetch packages from update server")
    entries = payload.get("packages")
    if not isinstance(entries, list) or not entries:
        raise ManifestFetchError("Failed to fetch packages from update server")

    packages: list[RemotePackage] = []
    seen: set[str] = set()
    for index, entry in enumerate(entries):
        package = _decode_package(entry, index)
        if package is None:
            continue
        if package.id in seen:
            raise ManifestFetchError(f"Update server listed package {package.id} more than once")
        seen.add(package.id)
        packages.append(package)
    if not packages:
        raise ManifestFetchError("Failed to fetch packages from update server")
    return RemoteManifest(tuple(packages))


def _decode_package(entry: object, index: int) -> RemotePackage | None:
    if not isinstance(entry, Mapping):
        _LOGGER.warning("Ignoring registry package #%s: not an object", index)
        return None
    package_id = entry.get("id")
    if not isinstance(package_id, str) or not package_id.strip():
        _LOGGER.warning("Ignoring registry package #%s: missing an id", index)
        return None
    package_id = package_id.strip()
    return RemotePackage(
        id=package_id,
        display_name=_clean_text(entry.get("displayName")) or package_id,
        latest_version=_raw_version(entry.get("latestVersion")),
        latest_archive_url=_clean_text(entry.get("latestUpmTargz")),
    )


def _raw_version(raw: object) -> str:
    # Compared verbatim against installed versions, so only blank is normalised.
    if not isinstance(raw, str) or not raw.strip():
        return ""
    return raw


def _clean_text(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None
    cleaned = raw.strip()
    return cleaned or None


__all__ = [
    "LocalFolderManifestClient",
    "ManifestClient",
    "ManifestSource",
    "decode_manifest",
]
