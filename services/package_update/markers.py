"""Continuation markers read by the host after it restarts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from app.config import MarkerConfig


_LOGGER = logging.getLogger(__name__)


class MarkerKind(str, Enum):
    """The two independent continuation signals."""

    SELF_UPDATED = "self_updated"
    UPDATED = "updated"


@dataclass(frozen=True)
class ContinuationMarkers:
    """Absolute marker locations for one host project.

    Only the existence of a marker is meaningful.  Markers are created as
    directories so startup logic can test them without reading anything.
    """

    self_updated: Path
    updated: Path

    @classmethod
    def for_project(cls, project_dir: Path, config: MarkerConfig) -> "ContinuationMarkers":
        root = Path(project_dir)
        return cls(
            self_updated=root.joinpath(*config.self_updated.split("/")),
            updated=root.joinpath(*config.updated.split("/")),
        )

    def path_for(self, kind: MarkerKind) -> Path:
        if kind is MarkerKind.SELF_UPDATED:
            return self.self_updated
        return self.updated


def write_marker(markers: ContinuationMarkers, kind: MarkerKind) -> Path:
    """Create the ``kind`` marker; writing an existing marker is a no-op."""

    path = markers.path_for(kind)
    path.mkdir(parents=True, exist_ok=True)
    _LOGGER.info("Wrote %s continuation marker at %s", kind.value, path)
    return path


def marker_exists(markers: ContinuationMarkers, kind: MarkerKind) -> bool:
    return markers.path_for(kind).exists()


__all__ = [
    "ContinuationMarkers",
    "MarkerKind",
    "marker_exists",
    "write_marker",
]
