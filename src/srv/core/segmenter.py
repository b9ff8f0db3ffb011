"""Request path segmentation.

Splits a request path into the part that lives on the filesystem, the zip
archive it names (if any), and the path inside that archive.
"""

import mimetypes
import posixpath
import re
from dataclasses import dataclass
from urllib.parse import quote, unquote

from srv.core.errors import DecodeError

_INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_ZIP_TYPE = mimetypes.guess_type("archive.zip")[0]


@dataclass(frozen=True)
class PathPartition:
    """Request path split at the first archive boundary."""

    fs_segments: tuple[str, ...]
    archive_segment: str | None = None
    inner_segments: tuple[str, ...] = ()

    @property
    def has_archive(self) -> bool:
        return self.archive_segment is not None

    @property
    def fs_path(self) -> str:
        """Filesystem part, cleaned so it cannot climb above the root."""
        return clean_path(self.fs_segments)

    @property
    def archive_relpath(self) -> str:
        """Archive location relative to the server root."""
        if self.archive_segment is None:
            raise ValueError("path does not address an archive")
        return clean_path((*self.fs_segments, self.archive_segment))

    @property
    def inner_path(self) -> str:
        """Path inside the archive, without leading or trailing slashes."""
        return clean_path(self.inner_segments)


def clean_path(segments: tuple[str, ...] | list[str]) -> str:
    """Join segments and resolve ``.``/``..`` lexically against a virtual root.

    Returns:
        Relative path with no leading slash; ``""`` for the root itself
    """
    joined = posixpath.normpath("/" + "/".join(segments))
    return joined.lstrip("/")


def href_for(path: str, *, directory: bool = False) -> str:
    """Build an absolute, percent-escaped link for a root-relative path.

    Undecodable bytes carried as surrogate escapes are escaped as the
    original bytes, so the link decodes back to the same name.
    """
    escaped = "/".join(
        quote(part.encode("utf-8", "surrogateescape"), safe="")
        for part in path.split("/")
        if part
    )
    href = f"/{escaped}"
    if directory and escaped:
        href += "/"
    return href


def is_zip(segment: str) -> bool:
    """Return True if the segment's extension maps to the zip content type.

    Only the extension is consulted, never the file contents.
    """
    dot = segment.rfind(".")
    if dot < 0:
        return False
    return mimetypes.guess_type(f"file{segment[dot:]}")[0] == _ZIP_TYPE


def decode_path(raw_path: str) -> str:
    """Percent-decode a raw request path exactly once.

    Args:
        raw_path: Request target as received, without the query string

    Returns:
        Decoded path

    Raises:
        DecodeError: If an escape is malformed
    """
    bad = _INVALID_ESCAPE.search(raw_path)
    if bad is not None:
        escape = raw_path[bad.start() : bad.start() + 3]
        raise DecodeError(f"failed to path unescape: invalid URL escape {escape!r}")
    # Bytes that are not UTF-8 survive as surrogate escapes, the same way
    # os.scandir reports such names
    return unquote(raw_path, errors="surrogateescape")


def segment(raw_path: str) -> PathPartition:
    """Decode a request path and split it at the first archive segment.

    Segments after the first archive are kept as literal names inside that
    archive, even if they also look like archives.

    Args:
        raw_path: Request target as received, without the query string

    Returns:
        PathPartition for the request

    Raises:
        DecodeError: If the path contains invalid percent-encoding
    """
    decoded = decode_path(raw_path)
    parts = [part for part in decoded.split("/") if part]

    for i, part in enumerate(parts):
        if is_zip(part):
            return PathPartition(
                fs_segments=tuple(parts[:i]),
                archive_segment=part,
                inner_segments=tuple(parts[i + 1 :]),
            )

    return PathPartition(fs_segments=tuple(parts))
