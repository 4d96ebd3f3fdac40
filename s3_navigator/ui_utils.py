from __future__ import annotations
"""UI-agnostic helpers for titles and labels."""
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from typing import Iterable

from .models import DirectoryEntry

DIST_NAME = "s3nav"
DIR_SUFFIX = "/"


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(name="S3 Navigator", version="")
    return PackageInfo(name=dist_name, version=package_version)


def format_location(bucket: str, prefix: str) -> str:
    return f"{bucket}/{prefix}"


def format_entry(entry: DirectoryEntry) -> str:
    if entry.is_dir and not entry.name.endswith(DIR_SUFFIX):
        return entry.name + DIR_SUFFIX
    return entry.name


def visible_entries(entries: Iterable[DirectoryEntry]) -> list[DirectoryEntry]:
    """Drop the nameless folder-marker object listed under its own prefix."""

    return [entry for entry in entries if entry.name]


def format_title(info: PackageInfo, platform_name: str | None = None) -> str:
    title = info.name
    if info.version:
        title = f"{title} {info.version}"
    if platform_name:
        title = f"{title} ({platform_name})"
    return title
