"""Content type detection for served files."""

import mimetypes

SNIFF_LEN = 512

# Compression suffixes describe the bytes on disk, not the inner type
_ENCODING_TYPES = {
    "gzip": "application/gzip",
    "bzip2": "application/x-bzip2",
    "xz": "application/x-xz",
    "br": "application/x-brotli",
    "compress": "application/x-compress",
}

_HTML_MARKERS = (
    b"<!doctype html",
    b"<html",
    b"<head",
    b"<body",
    b"<script",
    b"<table",
    b"<title",
    b"<div",
    b"<p",
    b"<br",
    b"<!--",
)


def content_type_for(name: str, head: bytes) -> str:
    """Pick a content type for a file.

    The extension decides first. A compression suffix such as ``.gz``
    names the compressed format rather than the type of the content
    inside it. Files with no recognized extension fall back to sniffing
    ``head`` (at most the first ``SNIFF_LEN`` bytes).

    Args:
        name: File name, used for the extension lookup
        head: Leading bytes of the file content

    Returns:
        MIME type suitable for a Content-Type header
    """
    guessed, encoding = mimetypes.guess_type(name)
    if encoding is not None:
        return _ENCODING_TYPES.get(encoding, "application/octet-stream")
    if guessed is not None:
        if guessed.startswith("text/"):
            return f"{guessed}; charset=utf-8"
        return guessed
    return sniff(head)


def sniff(head: bytes) -> str:
    """Guess a content type from leading bytes."""
    head = head[:SNIFF_LEN]
    lowered = head.lstrip(b"\t\n\x0c\r ").lower()
    if any(lowered.startswith(marker) for marker in _HTML_MARKERS):
        return "text/html; charset=utf-8"
    if b"\x00" in head:
        return "application/octet-stream"
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte sequence cut at the sniff boundary is still text
        if e.start < len(head) - 3:
            return "application/octet-stream"
    return "text/plain; charset=utf-8"
