from __future__ import annotations
"""Mapping of bucket listings onto a directory model."""
from typing import Iterable

from .models import DirectoryEntry, ListingResult

SEPARATOR = "/"


def active_prefix(segments: Iterable[str]) -> str:
    return "".join(f"{segment}{SEPARATOR}" for segment in segments)


def normalize_segment(name: str) -> str:
    return name.strip(SEPARATOR)


def strip_prefix(value: str, prefix: str) -> str:
    """Remove ``prefix`` once from the front of ``value``.

    Keys that do not live under ``prefix`` are returned unchanged.
    """

    if prefix and value.startswith(prefix):
        return value[len(prefix):]
    return value


def map_entries(result: ListingResult, prefix: str) -> list[DirectoryEntry]:
    """Build the ordered entries for ``result``: directories first, then files."""

    entries = [
        DirectoryEntry.directory(strip_prefix(common_prefix, prefix))
        for common_prefix in result.common_prefixes
    ]
    entries.extend(DirectoryEntry.file(strip_prefix(obj.key, prefix)) for obj in result.objects)
    return entries
