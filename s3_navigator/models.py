from __future__ import annotations
"""Data models representing S3 listings and navigation state."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class EntryKind(Enum):
    FILE = "file"
    DIR = "dir"


@dataclass(frozen=True)
class DirectoryEntry:
    """A single row of a directory view: either a file or a directory.

    ``name`` is the display name, i.e. the key or common prefix with the
    active prefix removed.
    """

    kind: EntryKind
    name: str

    @classmethod
    def file(cls, name: str) -> DirectoryEntry:
        return cls(EntryKind.FILE, name)

    @classmethod
    def directory(cls, name: str) -> DirectoryEntry:
        return cls(EntryKind.DIR, name)

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIR


@dataclass(frozen=True)
class ObjectEntry:
    """One ``Contents`` element of a bucket listing."""

    key: str
    last_modified: str = ""
    etag: str = ""
    size: int = 0
    storage_class: str = ""
    checksum_algorithm: Optional[str] = None
    checksum_type: Optional[str] = None


@dataclass
class ListingResult:
    """Parsed ``ListBucketResult`` document, possibly merged from several pages."""

    bucket_name: str
    prefix: str = ""
    marker: Optional[str] = None
    max_keys: int = 1000
    delimiter: Optional[str] = None
    is_truncated: bool = False
    objects: list[ObjectEntry] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    next_marker: Optional[str] = None

    def continuation_marker(self) -> Optional[str]:
        """Return the marker to request the page following this one."""

        if not self.is_truncated:
            return None
        if self.next_marker:
            return self.next_marker
        # Without NextMarker S3 expects the last key returned; with a delimiter
        # that may be a common prefix sorting after the last object.
        candidates = []
        if self.objects:
            candidates.append(self.objects[-1].key)
        if self.common_prefixes:
            candidates.append(self.common_prefixes[-1])
        return max(candidates) if candidates else None


@dataclass(frozen=True)
class NavigationState:
    """Immutable snapshot of everything a view needs to draw the browser."""

    bucket: str
    path_segments: tuple[str, ...] = ()
    loading: bool = True
    entries: tuple[DirectoryEntry, ...] = ()
    error: Optional[str] = None

    @property
    def prefix(self) -> str:
        return "".join(f"{segment}/" for segment in self.path_segments)

    @property
    def at_root(self) -> bool:
        return not self.path_segments
