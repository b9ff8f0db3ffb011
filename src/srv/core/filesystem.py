"""Filesystem resolver.

Classifies a path under the server root without following symlinks and
decides how it should be served.
"""

import logging
import os
import stat
from pathlib import Path

from srv.core.content_type import SNIFF_LEN, content_type_for
from srv.core.errors import NotFound, OpenFailure, StatFailure
from srv.core.segmenter import href_for
from srv.core.types import (
    EntryKind,
    FilesystemDirectory,
    FilesystemFile,
    FilesystemOther,
    FilesystemSymlink,
    ListingEntry,
    ServeTarget,
    URLPath,
)

INDEX_FILENAME = "index.html"

logger = logging.getLogger(__name__)


def resolve_fs(root: Path, fs_path: str) -> ServeTarget:
    """Resolve a root-relative path to a serve target.

    Args:
        root: Server root directory
        fs_path: Cleaned path relative to the root ("" for the root itself)

    Returns:
        One of the Filesystem* targets

    Raises:
        NotFound: If the entry does not exist
        StatFailure: If the entry cannot be stat'ed for another reason
        OpenFailure: If the entry cannot be opened or read
    """
    path = root / fs_path if fs_path else root

    try:
        st = path.lstat()
    except FileNotFoundError as e:
        raise NotFound("file not found") from e
    except NotADirectoryError as e:
        raise NotFound("file not found") from e
    except OSError as e:
        raise StatFailure(f"failed to stat file: {e}") from e

    mode = st.st_mode
    if stat.S_ISDIR(mode):
        index = path / INDEX_FILENAME
        if _is_regular_file(index):
            return _file_target(index)
        return FilesystemDirectory(path=path, entries=list_directory(path, fs_path))
    if stat.S_ISREG(mode):
        return _file_target(path)
    if stat.S_ISLNK(mode):
        return FilesystemSymlink(path=path)
    return FilesystemOther(path=path)


def list_directory(path: Path, base: str = "") -> list[ListingEntry]:
    """Collect listing entries for a directory (one level, unsorted).

    Links are absolute, so listings work whether or not the request path
    ended in a slash.

    Args:
        path: Directory to read
        base: Directory location relative to the server root, used for links

    Raises:
        OpenFailure: If the directory cannot be read
    """
    entries: list[ListingEntry] = []
    try:
        with os.scandir(path) as it:
            for dirent in it:
                entries.append(_entry_for(dirent, base))
    except OSError as e:
        raise OpenFailure(f"failed to render directory listing: {e}") from e
    return entries


def _entry_for(dirent: os.DirEntry[str], base: str) -> ListingEntry:
    entry_path = f"{base}/{dirent.name}" if base else dirent.name
    href = href_for(entry_path)
    if dirent.is_dir(follow_symlinks=False):
        return ListingEntry(
            name=dirent.name,
            kind=EntryKind.DIRECTORY,
            href=URLPath(href_for(entry_path, directory=True)),
        )
    if dirent.is_file(follow_symlinks=False):
        try:
            size = dirent.stat(follow_symlinks=False).st_size
        except OSError:
            logger.warning(f"Could not get size for {dirent.path}")
            size = 0
        return ListingEntry(
            name=dirent.name,
            kind=EntryKind.REGULAR_FILE,
            href=URLPath(href),
            size=size,
        )
    return ListingEntry(name=dirent.name, kind=EntryKind.OTHER, href=URLPath(href))


def _is_regular_file(path: Path) -> bool:
    try:
        return stat.S_ISREG(path.lstat().st_mode)
    except OSError:
        return False


def _file_target(path: Path) -> FilesystemFile:
    try:
        with path.open("rb") as f:
            head = f.read(SNIFF_LEN)
    except OSError as e:
        raise OpenFailure(f"failed to open file: {e}") from e
    return FilesystemFile(path=path, content_type=content_type_for(path.name, head))
