"""Updater configuration loaded from JSON resources."""

from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from math import isfinite
from pathlib import Path
from typing import Any, Mapping

_CONFIG_RESOURCE = "updater.json"
_UPDATER_CONFIG_CACHE: UpdaterConfig | None = None

_DEFAULT_REGISTRY_URL = "https://updates.vrcfury.com/updates.json"
_DEFAULT_SELF_PACKAGE_ID = "com.vrcfury.updater"
_DEFAULT_SELF_UPDATED_MARKER = "Temp/vrcfUpdateAll"
_DEFAULT_UPDATED_MARKER = "Temp/vrcfUpdated"
_DEFAULT_STAGING_DIR = "Temp/package_updates"
_DEFAULT_MAX_PARALLEL = 4


@dataclass(frozen=True)
class MarkerConfig:
    """Relative locations of the continuation markers under the project."""

    self_updated: str
    updated: str


@dataclass(frozen=True)
class DownloadConfig:
    """Settings applied to registry and archive downloads."""

    max_parallel: int
    timeout_seconds: float | None


@dataclass(frozen=True)
class UpdaterConfig:
    """Structured configuration values for the package updater."""

    registry_url: str
    self_package_id: str
    markers: MarkerConfig
    staging_dir: str
    downloads: DownloadConfig


def get_updater_config() -> UpdaterConfig:
    """Return the cached updater configuration."""

    global _UPDATER_CONFIG_CACHE
    if _UPDATER_CONFIG_CACHE is None:
        _UPDATER_CONFIG_CACHE = load_updater_config()
    return _UPDATER_CONFIG_CACHE


def reset_updater_config_cache() -> None:
    """Reset the cached configuration for subsequent reloads."""

    global _UPDATER_CONFIG_CACHE
    _UPDATER_CONFIG_CACHE = None


def load_updater_config(path: str | Path | None = None) -> UpdaterConfig:
    """Load configuration from ``path`` or the bundled JSON resource."""

    data = _read_config_data(path)
    markers = _parse_markers_section(data.get("markers"))
    downloads = _parse_downloads_section(data.get("downloads"))
    return UpdaterConfig(
        registry_url=_coerce_text(data.get("registry_url"), default=_DEFAULT_REGISTRY_URL),
        self_package_id=_coerce_text(
            data.get("self_package_id"), default=_DEFAULT_SELF_PACKAGE_ID
        ),
        markers=markers,
        staging_dir=_coerce_relative_path(data.get("staging_dir"), default=_DEFAULT_STAGING_DIR),
        downloads=downloads,
    )


def _read_config_data(path: str | Path | None) -> Mapping[str, Any]:
    if path is not None:
        return _load_json_from_path(Path(path).expanduser())
    return _load_default_config_data()


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    return _parse_json(raw)


def _load_default_config_data() -> Mapping[str, Any]:
    try:
        resource = resources.files(__package__).joinpath(_CONFIG_RESOURCE)
        raw = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    return _parse_json(raw)


def _parse_json(raw: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _parse_markers_section(section: Mapping[str, Any] | None) -> MarkerConfig:
    if not isinstance(section, Mapping):
        return MarkerConfig(
            self_updated=_DEFAULT_SELF_UPDATED_MARKER, updated=_DEFAULT_UPDATED_MARKER
        )
    self_updated = _coerce_relative_path(
        section.get("self_updated"), default=_DEFAULT_SELF_UPDATED_MARKER
    )
    updated = _coerce_relative_path(section.get("updated"), default=_DEFAULT_UPDATED_MARKER)
    if self_updated == updated:
        # The two marker kinds must stay independent signals.
        return MarkerConfig(
            self_updated=_DEFAULT_SELF_UPDATED_MARKER, updated=_DEFAULT_UPDATED_MARKER
        )
    return MarkerConfig(self_updated=self_updated, updated=updated)


def _parse_downloads_section(section: Mapping[str, Any] | None) -> DownloadConfig:
    if not isinstance(section, Mapping):
        return DownloadConfig(max_parallel=_DEFAULT_MAX_PARALLEL, timeout_seconds=None)
    max_parallel = _coerce_positive_int(section.get("max_parallel"), default=_DEFAULT_MAX_PARALLEL)
    timeout = _coerce_timeout(section.get("timeout_seconds"))
    return DownloadConfig(max_parallel=max_parallel, timeout_seconds=timeout)


def _coerce_text(value: Any, *, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _coerce_relative_path(value: Any, *, default: str) -> str:
    text = _coerce_text(value, default=default).replace("\\", "/")
    if text.startswith("/") or ".." in text.split("/"):
        return default
    return text


def _coerce_positive_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        candidate = int(value)
    elif isinstance(value, str):
        try:
            candidate = int(float(value))
        except ValueError:
            return default
    else:
        return default
    if candidate <= 0:
        return default
    return candidate


def _coerce_timeout(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        candidate = float(value)
    elif isinstance(value, str):
        try:
            candidate = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not isfinite(candidate) or candidate <= 0:
        return None
    return candidate


__all__ = [
    "DownloadConfig",
    "MarkerConfig",
    "UpdaterConfig",
    "get_updater_config",
    "load_updater_config",
    "reset_updater_config_cache",
]
