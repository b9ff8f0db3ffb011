"""Core type definitions.

``ServeTarget`` is the closed set of outcomes a request path can resolve
to. The dispatcher matches on it exhaustively.
"""

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import NewType

# Percent-escaped URL path used as a link target in listings
# (e.g., "/archive.zip/sub%20dir/")
URLPath = NewType("URLPath", str)


class EntryKind(enum.Enum):
    DIRECTORY = "directory"
    REGULAR_FILE = "file"
    OTHER = "other"


@dataclass(frozen=True)
class ListingEntry:
    """One row of a directory listing."""

    name: str
    kind: EntryKind
    href: URLPath
    size: int | None = None


@dataclass(frozen=True)
class FilesystemDirectory:
    path: Path
    entries: list[ListingEntry]


@dataclass(frozen=True)
class FilesystemFile:
    path: Path
    content_type: str


@dataclass(frozen=True)
class FilesystemSymlink:
    path: Path


@dataclass(frozen=True)
class FilesystemOther:
    path: Path


@dataclass(frozen=True)
class ArchiveRoot:
    archive_path: Path
    entries: list[ListingEntry]


@dataclass(frozen=True)
class ArchiveInternalDirectory:
    archive_path: Path
    inner_path: str
    entries: list[ListingEntry]


@dataclass(frozen=True)
class ArchiveInternalFile:
    archive_path: Path
    inner_path: str
    size: int
    content_type: str


@dataclass(frozen=True)
class ArchiveDownload:
    archive_path: Path


ServeTarget = (
    FilesystemDirectory
    | FilesystemFile
    | FilesystemSymlink
    | FilesystemOther
    | ArchiveRoot
    | ArchiveInternalDirectory
    | ArchiveInternalFile
    | ArchiveDownload
)
