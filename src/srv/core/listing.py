"""HTML directory listings.

The same renderer serves filesystem directories, archive roots and
directories inside archives. Entries are sorted in natural order before
anything is written.
"""

from collections.abc import Iterable

from srv.core.natsort import natural_key
from srv.core.sizes import file_size
from srv.core.types import EntryKind, ListingEntry

# The empty data: favicon stops browsers from requesting /favicon.ico
LISTING_PRELUDE = (
    "<head><link rel=icon href=data:,><style>* { font-family: monospace; } "
    "table { border: none; margin: 1rem; } td { padding-right: 2rem; }</style></head>\n"
    "<table>"
)
LISTING_END = "</table>"
DOWNLOAD_ROW = "<tr><td><a href=?download>download zip</a></td></tr>"


def sort_entries(entries: Iterable[ListingEntry]) -> list[ListingEntry]:
    """Sort entries case-insensitively in natural order (stable)."""
    return sorted(entries, key=lambda entry: natural_key(entry.name))


def render_row(entry: ListingEntry) -> str:
    # Display names are written as-is, only link targets are escaped
    match entry.kind:
        case EntryKind.DIRECTORY:
            return f'<tr><td><a href="{entry.href}">{entry.name}/</a></td></tr>'
        case EntryKind.REGULAR_FILE:
            size = file_size(entry.size or 0)
            return (
                f'<tr><td><a href="{entry.href}">{entry.name}</a></td>'
                f"<td>{size}</td></tr>"
            )
        case _:
            return f'<tr><td><p style="color: #777">{entry.name}</p></td></tr>'


def render_listing(
    entries: Iterable[ListingEntry],
    *,
    download_link: bool = False,
) -> str:
    """Render a listing page.

    Args:
        entries: Entries to list, in any order
        download_link: Prepend a "download zip" row (archive roots only)

    Returns:
        HTML fragment
    """
    parts = [LISTING_PRELUDE]
    if download_link:
        parts.append(DOWNLOAD_ROW)
    parts.extend(render_row(entry) for entry in sort_entries(entries))
    parts.append(LISTING_END)
    return "".join(parts)
