"""File serving endpoint.

A single catch-all route resolves request paths against the server root
and the zip archives found under it. Every response, errors included,
carries ``Cache-Control: no-store``.
"""

import asyncio
import logging
import os
import zipfile
from pathlib import Path
from typing import assert_never
from urllib.parse import quote

from aiohttp import hdrs, web

from srv.app_keys import request_logger_key, root_key
from srv.core.archive import ArchiveTree, open_archive, resolve_archive
from srv.core.errors import Forbidden, MethodNotAllowed, OpenFailure, ServeError
from srv.core.filesystem import resolve_fs
from srv.core.listing import render_listing
from srv.core.segmenter import segment
from srv.core.types import (
    ArchiveDownload,
    ArchiveInternalDirectory,
    ArchiveInternalFile,
    ArchiveRoot,
    FilesystemDirectory,
    FilesystemFile,
    FilesystemOther,
    FilesystemSymlink,
    ListingEntry,
    ServeTarget,
)

CHUNK_SIZE = 64 * 1024
DOWNLOAD_FLAG = "download"
NO_STORE = {hdrs.CACHE_CONTROL: "no-store"}

logger = logging.getLogger(__name__)


def create_file_routes() -> list[web.RouteDef]:
    return [web.route(hdrs.METH_ANY, "/{path:.*}", serve)]


async def serve(request: web.Request) -> web.StreamResponse:
    request.app[request_logger_key].log_request(request)

    try:
        if request.method != hdrs.METH_GET:
            raise MethodNotAllowed("method not allowed")
        return await _serve_get(request)
    except ServeError as e:
        return web.Response(status=e.status, text=e.message, headers=NO_STORE)
    except ConnectionResetError:
        raise
    except (OSError, UnicodeError) as e:
        logger.exception(f"Failed to serve {request.raw_path}")
        return web.Response(status=500, text=str(e), headers=NO_STORE)


async def _serve_get(request: web.Request) -> web.StreamResponse:
    root = request.app[root_key]
    partition = segment(_raw_request_path(request))

    if not partition.has_archive:
        target = await asyncio.to_thread(resolve_fs, root, partition.fs_path)
        return await _respond(request, target)

    archive = await asyncio.to_thread(open_archive, root, partition)
    try:
        target = await asyncio.to_thread(
            resolve_archive,
            archive,
            partition,
            wants_download=DOWNLOAD_FLAG in request.query,
        )
        return await _respond(request, target, archive)
    finally:
        archive.close()


async def _respond(
    request: web.Request,
    target: ServeTarget,
    archive: ArchiveTree | None = None,
) -> web.StreamResponse:
    match target:
        case FilesystemDirectory(entries=entries):
            return _listing_response(entries)
        case ArchiveInternalDirectory(entries=entries):
            return _listing_response(entries)
        case ArchiveRoot(entries=entries):
            return _listing_response(entries, download_link=True)
        case FilesystemFile(path=path, content_type=content_type):
            return await _stream_file(
                request,
                path,
                {**NO_STORE, hdrs.CONTENT_TYPE: content_type},
            )
        case FilesystemSymlink():
            raise Forbidden("file is a symlink")
        case FilesystemOther():
            raise Forbidden("file isn't a regular file or directory")
        case ArchiveInternalFile():
            if archive is None:
                raise RuntimeError("archive entry resolved without an open archive")
            return await _stream_archive_entry(request, target, archive)
        case ArchiveDownload(archive_path=archive_path):
            return await _stream_file(
                request,
                archive_path,
                {
                    **NO_STORE,
                    hdrs.CONTENT_TYPE: "application/octet-stream",
                    hdrs.CONTENT_DISPOSITION: _attachment(archive_path.name),
                },
            )
        case _:
            assert_never(target)


def _listing_response(
    entries: list[ListingEntry],
    *,
    download_link: bool = False,
) -> web.Response:
    html = render_listing(entries, download_link=download_link)
    # Names that are not UTF-8 on disk are written back as their raw bytes
    return web.Response(
        body=html.encode("utf-8", "surrogateescape"),
        content_type="text/html",
        charset="utf-8",
        headers=NO_STORE,
    )


async def _stream_file(
    request: web.Request,
    path: Path,
    headers: dict[str, str],
) -> web.StreamResponse:
    """Send a file byte for byte.

    The file is always sent as it is on disk, without content negotiation
    or precompressed siblings.
    """
    try:
        f = await asyncio.to_thread(path.open, "rb")
    except OSError as e:
        raise OpenFailure(f"failed to open file: {e}") from e

    try:
        size = (await asyncio.to_thread(os.fstat, f.fileno())).st_size
        response = web.StreamResponse(headers=headers)
        response.content_length = size
        await response.prepare(request)
        while chunk := await asyncio.to_thread(f.read, CHUNK_SIZE):
            await response.write(chunk)
    finally:
        f.close()
    await response.write_eof()
    return response


async def _stream_archive_entry(
    request: web.Request,
    target: ArchiveInternalFile,
    archive: ArchiveTree,
) -> web.StreamResponse:
    node = archive.stat(target.inner_path)
    if node is None:
        raise OpenFailure(f"archive entry disappeared: {target.inner_path}")
    try:
        entry = await asyncio.to_thread(archive.open, node)
    except (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError) as e:
        raise OpenFailure(f"failed to open archive entry: {e}") from e

    response = web.StreamResponse(
        headers={**NO_STORE, hdrs.CONTENT_TYPE: target.content_type},
    )
    response.content_length = target.size
    try:
        await response.prepare(request)
        while chunk := await asyncio.to_thread(entry.read, CHUNK_SIZE):
            await response.write(chunk)
    finally:
        entry.close()
    await response.write_eof()
    return response


def _raw_request_path(request: web.Request) -> str:
    # raw_path is the target as sent, still percent-encoded
    path, _, _ = request.raw_path.partition("?")
    return path


def _attachment(filename: str) -> str:
    escaped = quote(filename.encode("utf-8", "surrogateescape"), safe="")
    return f"attachment; filename*=UTF-8''{escaped}"
