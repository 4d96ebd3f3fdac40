from __future__ import annotations
"""Collaborators supplied by the hosting platform."""
from dataclasses import dataclass
import logging
from pathlib import Path
import sys
from typing import Protocol

LOGGER = logging.getLogger(__name__)

PLATFORM_NAMES = {
    "darwin": "macOS",
    "linux": "Linux",
    "win32": "Windows",
    "emscripten": "Web (Pyodide)",
}


@dataclass(frozen=True)
class Platform:
    name: str


def detect_platform(platform_id: str | None = None) -> Platform:
    platform_id = platform_id or sys.platform
    return Platform(name=PLATFORM_NAMES.get(platform_id, platform_id))


class FileSaver(Protocol):
    """Persists downloaded bytes; returns ``False`` when the user cancels."""

    def save(self, suggested_name: str, data: bytes) -> bool:
        ...


class DirectoryFileSaver:
    """Writes downloads into a fixed directory without prompting."""

    def __init__(self, directory: str | Path):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def save(self, suggested_name: str, data: bytes) -> bool:
        root = self._directory.resolve()
        destination = (root / suggested_name).resolve()
        if destination == root or root not in destination.parents:
            raise ValueError(f"Refusing to write outside {root}: {suggested_name!r}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)
        LOGGER.debug("Saved %d byte(s) to %s", len(data), destination)
        return True
