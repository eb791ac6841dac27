from __future__ import annotations

"""Updater version helpers."""

from functools import lru_cache
import os
from importlib import resources

_FALLBACK_VERSION = "0.0.0-dev"
_VERSION_ENV = "PACKAGE_UPDATER_VERSION"


def _read_version_file() -> str | None:
    try:
        text = resources.files(__package__).joinpath("VERSION").read_text(encoding="utf-8")
    except (OSError, ModuleNotFoundError):
        return None
    version = text.strip()
    return version or None


def _version_from_env() -> str | None:
    env_version = os.environ.get(_VERSION_ENV)
    if not env_version:
        return None
    return _normalize(env_version)


def _normalize(raw_version: str) -> str:
    version = raw_version.strip()
    if version.startswith("v"):
        version = version[1:]
    return version


@lru_cache(maxsize=1)
def get_app_version() -> str:
    """Return the updater version.

    The order of precedence is:
    1. The ``PACKAGE_UPDATER_VERSION`` environment variable.
    2. Embedded ``VERSION`` file packaged with the updater.
    3. A fallback development version string.
    """

    for resolver in (_version_from_env, _read_version_file):
        version = resolver()
        if version:
            return version
    return _FALLBACK_VERSION


def get_user_agent() -> str:
    """Return the User-Agent header sent with registry and archive requests."""

    return f"package-updater/{get_app_version()}"


__all__ = ["get_app_version", "get_user_agent"]
