"""Zip archives as read-only virtual directories.

The archive's flat entry list is turned into a namespace by splitting
entry names on ``/``. Directories are inferred from name prefixes, so
archives without explicit directory entries browse the same way as
archives with them.
"""

import logging
import stat
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from srv.core.content_type import SNIFF_LEN, content_type_for
from srv.core.errors import ArchiveOpenFailure, Forbidden, NotFound, OpenFailure
from srv.core.segmenter import PathPartition, href_for
from srv.core.types import (
    ArchiveDownload,
    ArchiveInternalDirectory,
    ArchiveInternalFile,
    ArchiveRoot,
    EntryKind,
    ListingEntry,
    ServeTarget,
    URLPath,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveNode:
    """A file or directory in the archive namespace."""

    path: str
    kind: EntryKind
    size: int = 0
    info: zipfile.ZipInfo | None = None

    @property
    def name(self) -> str:
        return self.path.rpartition("/")[2]


class ArchiveTree:
    """Read-only hierarchical view over an open zip archive.

    The whole central directory is read when the archive is opened. The
    tree owns the ``ZipFile`` and closes it on ``close()``.
    """

    __slots__ = ("_children", "_nodes", "_zip", "path")

    def __init__(self, zf: zipfile.ZipFile, path: Path) -> None:
        self._zip = zf
        self.path = path
        self._nodes: dict[str, ArchiveNode] = {"": ArchiveNode("", EntryKind.DIRECTORY)}
        self._children: dict[str, list[str]] = {"": []}

        for info in zf.infolist():
            name = info.filename.strip("/")
            if not name:
                continue
            self._add_parents(name)
            if info.is_dir():
                self._add(ArchiveNode(name, EntryKind.DIRECTORY, info=info))
            else:
                self._add(
                    ArchiveNode(
                        name,
                        _kind_for(info),
                        size=info.file_size,
                        info=info,
                    ),
                )

    def __enter__(self) -> "ArchiveTree":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def stat(self, inner_path: str) -> ArchiveNode | None:
        """Look up a node by its path inside the archive ("" for the root)."""
        return self._nodes.get(inner_path.strip("/"))

    def children(self, inner_path: str) -> list[ArchiveNode]:
        """Direct children of a directory, in archive order."""
        key = inner_path.strip("/")
        return [self._nodes[child] for child in self._children.get(key, [])]

    def open(self, node: ArchiveNode) -> IO[bytes]:
        """Open a file node for reading its decompressed bytes."""
        if node.info is None or node.kind is not EntryKind.REGULAR_FILE:
            raise ValueError(f"not a regular file: {node.path}")
        return self._zip.open(node.info)

    def _add(self, node: ArchiveNode) -> None:
        existing = self._nodes.get(node.path)
        if existing is not None:
            # Explicit directory entry for a directory first seen as a prefix
            if existing.kind is EntryKind.DIRECTORY and existing.info is None:
                self._nodes[node.path] = node
            return
        self._nodes[node.path] = node
        parent = node.path.rpartition("/")[0]
        self._children.setdefault(parent, []).append(node.path)
        if node.kind is EntryKind.DIRECTORY:
            self._children.setdefault(node.path, [])

    def _add_parents(self, name: str) -> None:
        parts = name.split("/")
        for i in range(1, len(parts)):
            self._add(ArchiveNode("/".join(parts[:i]), EntryKind.DIRECTORY))


def _kind_for(info: zipfile.ZipInfo) -> EntryKind:
    file_type = stat.S_IFMT(info.external_attr >> 16)
    if file_type and file_type != stat.S_IFREG:
        return EntryKind.OTHER
    return EntryKind.REGULAR_FILE


def open_archive(root: Path, partition: PathPartition) -> ArchiveTree:
    """Open the archive a request path points at.

    Raises:
        NotFound: If the archive file does not exist
        Forbidden: If the archive file is a symlink
        ArchiveOpenFailure: If the file cannot be read as a zip archive
    """
    path = root / partition.archive_relpath
    try:
        if stat.S_ISLNK(path.lstat().st_mode):
            raise Forbidden("file is a symlink")
        zf = zipfile.ZipFile(path)
    except (FileNotFoundError, NotADirectoryError) as e:
        raise NotFound("file not found") from e
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveOpenFailure(f"failed to open zip archive: {e}") from e
    logger.debug(f"Opened archive {path} ({len(zf.infolist())} entries)")
    return ArchiveTree(zf, path)


def resolve_archive(
    archive: ArchiveTree,
    partition: PathPartition,
    *,
    wants_download: bool = False,
) -> ServeTarget:
    """Resolve a request against an open archive.

    Priority: explicit download, then the inner path, then the archive root.

    Args:
        archive: Archive opened with ``open_archive``
        partition: Segmented request path
        wants_download: Whether the request carried the download flag

    Returns:
        One of the Archive* targets

    Raises:
        NotFound: If the inner path does not exist in the archive
        Forbidden: If the inner path names a non-regular entry
        OpenFailure: If an internal file cannot be decompressed
    """
    if wants_download:
        return ArchiveDownload(archive_path=archive.path)

    inner_path = partition.inner_path
    base = partition.archive_relpath

    if not inner_path:
        return ArchiveRoot(
            archive_path=archive.path,
            entries=list_archive_directory(archive, "", base),
        )

    node = archive.stat(inner_path)
    if node is None:
        raise NotFound("file not found")

    match node.kind:
        case EntryKind.DIRECTORY:
            return ArchiveInternalDirectory(
                archive_path=archive.path,
                inner_path=inner_path,
                entries=list_archive_directory(archive, inner_path, base),
            )
        case EntryKind.REGULAR_FILE:
            return ArchiveInternalFile(
                archive_path=archive.path,
                inner_path=inner_path,
                size=node.size,
                content_type=content_type_for(node.name, _read_head(archive, node)),
            )
        case _:
            raise Forbidden("file isn't a regular file or directory")


def list_archive_directory(
    archive: ArchiveTree,
    inner_path: str,
    base: str,
) -> list[ListingEntry]:
    """Build listing entries for one directory level inside an archive.

    Args:
        archive: Open archive
        inner_path: Directory inside the archive ("" for the root)
        base: Archive location relative to the server root, used for links

    Returns:
        Unsorted listing entries with absolute links
    """
    entries: list[ListingEntry] = []
    for node in archive.children(inner_path):
        is_dir = node.kind is EntryKind.DIRECTORY
        href = href_for(f"{base}/{node.path}", directory=is_dir)
        entries.append(
            ListingEntry(
                name=node.name,
                kind=node.kind,
                href=URLPath(href),
                size=node.size if node.kind is EntryKind.REGULAR_FILE else None,
            ),
        )
    return entries


def _read_head(archive: ArchiveTree, node: ArchiveNode) -> bytes:
    try:
        with archive.open(node) as f:
            return f.read(SNIFF_LEN)
    except (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError) as e:
        raise OpenFailure(f"failed to open archive entry: {e}") from e
