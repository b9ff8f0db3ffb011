"""Tests for the file serving endpoint."""

import logging
import os
import zipfile
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from aiohttp.test_utils import TestClient
from srv.config import Config
from srv.logs import RequestLogger
from srv.server import create_app

ZipFactory = Callable[..., Path]


@pytest.fixture
def client(test_config: Config, aiohttp_client) -> TestClient:
    """Create test client serving root_dir."""
    app = create_app(test_config)
    return aiohttp_client(app)


@pytest.fixture
def archive(root_dir: Path, make_zip: ZipFactory) -> Path:
    """Place a zip archive with nested content in the root."""
    return make_zip(
        root_dir / "archive.zip",
        {
            "top.txt": "top level file",
            "sub/": b"",
            "sub/file.txt": "inside the archive",
            "sub/nested/deep.txt": "deeper",
            "other/readme": "implicit directory",
        },
    )


class TestFilesystem:
    """Tests for plain filesystem paths."""

    @pytest.mark.asyncio
    async def test__regular_file__returns_bytes(self, root_dir: Path, client) -> None:
        (root_dir / "hello.txt").write_text("hello world")

        test_client = await client
        response = await test_client.get("/hello.txt")

        assert response.status == 200
        assert await response.text() == "hello world"
        assert response.headers["Content-Type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test__css_file__content_type_from_extension(
        self, root_dir: Path, client
    ) -> None:
        (root_dir / "site.css").write_text("body { color: red; }")

        test_client = await client
        response = await test_client.get("/site.css")

        assert response.status == 200
        assert response.headers["Content-Type"].startswith("text/css")

    @pytest.mark.asyncio
    async def test__unknown_extension__content_sniffed(
        self, root_dir: Path, client
    ) -> None:
        (root_dir / "page").write_text("<!DOCTYPE html><html></html>")

        test_client = await client
        response = await test_client.get("/page")

        assert response.status == 200
        assert response.headers["Content-Type"].startswith("text/html")

    @pytest.mark.asyncio
    async def test__directory__returns_listing(self, root_dir: Path, client) -> None:
        (root_dir / "file10.txt").write_text("10")
        (root_dir / "file2.txt").write_text("2")
        (root_dir / "docs").mkdir()

        test_client = await client
        response = await test_client.get("/")

        assert response.status == 200
        assert response.headers["Content-Type"].startswith("text/html")
        body = await response.text()
        assert '<a href="/docs/">docs/</a>' in body
        assert '<a href="/file2.txt">file2.txt</a></td><td>1</td>' in body
        assert body.index("file2.txt") < body.index("file10.txt")

    @pytest.mark.asyncio
    async def test__nested_directory__listing_uses_absolute_links(
        self, root_dir: Path, client
    ) -> None:
        nested = root_dir / "my dir"
        nested.mkdir()
        (nested / "a&b.txt").write_text("x")

        test_client = await client
        response = await test_client.get("/my%20dir/")

        assert response.status == 200
        body = await response.text()
        assert '<a href="/my%20dir/a%26b.txt">a&b.txt</a>' in body

    @pytest.mark.asyncio
    async def test__directory_without_trailing_slash__links_resolve(
        self, root_dir: Path, client
    ) -> None:
        (root_dir / "sub").mkdir()
        (root_dir / "sub" / "file.txt").write_text("x")

        test_client = await client
        response = await test_client.get("/sub")

        assert response.status == 200
        assert '<a href="/sub/file.txt">file.txt</a>' in await response.text()

    @pytest.mark.asyncio
    async def test__name_not_utf8__listed_and_served(
        self, root_dir: Path, client
    ) -> None:
        folder = root_dir / "d"
        folder.mkdir()
        (folder / "ok.txt").write_text("ok")
        (folder / os.fsdecode(b"caf\xe9.txt")).write_text("latin-1 name")

        test_client = await client
        response = await test_client.get("/d/")

        assert response.status == 200
        assert response.headers["Cache-Control"] == "no-store"
        body = await response.read()
        assert b'<a href="/d/caf%E9.txt">caf\xe9.txt</a>' in body
        assert b'<a href="/d/ok.txt">ok.txt</a>' in body

        response = await test_client.get("/d/caf%E9.txt")

        assert response.status == 200
        assert await response.text() == "latin-1 name"

    @pytest.mark.asyncio
    async def test__compressed_sibling__not_substituted(
        self, root_dir: Path, client
    ) -> None:
        (root_dir / "notes.txt").write_text("current notes")
        (root_dir / "notes.txt.gz").write_bytes(b"stale compressed copy")

        test_client = await client
        response = await test_client.get(
            "/notes.txt", headers={"Accept-Encoding": "gzip"}
        )

        assert response.status == 200
        assert "Content-Encoding" not in response.headers
        assert response.headers["Content-Type"].startswith("text/plain")
        assert response.headers["Cache-Control"] == "no-store"
        assert await response.read() == b"current notes"

    @pytest.mark.asyncio
    async def test__gzip_file__served_as_stored(self, root_dir: Path, client) -> None:
        (root_dir / "release.tar.gz").write_bytes(b"\x1f\x8b\x08\x00 raw")

        test_client = await client
        response = await test_client.get(
            "/release.tar.gz", headers={"Accept-Encoding": "gzip"}
        )

        assert response.status == 200
        assert "Content-Encoding" not in response.headers
        assert response.headers["Content-Type"] == "application/gzip"
        assert await response.read() == b"\x1f\x8b\x08\x00 raw"

    @pytest.mark.asyncio
    async def test__directory_with_index__returns_index_verbatim(
        self, root_dir: Path, client
    ) -> None:
        site = root_dir / "site"
        site.mkdir()
        content = "<html><body>custom index</body></html>"
        (site / "index.html").write_text(content)
        (site / "other.txt").write_text("x")

        test_client = await client
        response = await test_client.get("/site/")

        assert response.status == 200
        assert await response.text() == content

    @pytest.mark.asyncio
    async def test__symlink_to_valid_file__returns_403(
        self, root_dir: Path, client
    ) -> None:
        (root_dir / "real.txt").write_text("real")
        (root_dir / "link.txt").symlink_to(root_dir / "real.txt")

        test_client = await client
        response = await test_client.get("/link.txt")

        assert response.status == 403
        assert "symlink" in await response.text()

    @pytest.mark.asyncio
    async def test__symlink_to_directory__returns_403(
        self, root_dir: Path, tmp_path: Path, client
    ) -> None:
        (root_dir / "elsewhere").symlink_to(tmp_path)

        test_client = await client
        response = await test_client.get("/elsewhere")

        assert response.status == 403

    @pytest.mark.asyncio
    async def test__fifo__returns_403(self, root_dir: Path, client) -> None:
        os.mkfifo(root_dir / "pipe")

        test_client = await client
        response = await test_client.get("/pipe")

        assert response.status == 403

    @pytest.mark.asyncio
    async def test__missing_path__returns_404(self, client) -> None:
        test_client = await client
        response = await test_client.get("/nope.txt")

        assert response.status == 404
        assert await response.text() == "file not found"

    @pytest.mark.asyncio
    async def test__listing__marks_symlinks_inert(self, root_dir: Path, client) -> None:
        (root_dir / "real.txt").write_text("real")
        (root_dir / "link.txt").symlink_to(root_dir / "real.txt")

        test_client = await client
        response = await test_client.get("/")

        body = await response.text()
        assert '<p style="color: #777">link.txt</p>' in body


class TestArchive:
    """Tests for paths that address zip archives."""

    @pytest.mark.asyncio
    async def test__archive_root__lists_top_level_entries(
        self, archive: Path, client
    ) -> None:
        test_client = await client
        response = await test_client.get("/archive.zip")

        assert response.status == 200
        body = await response.text()
        assert '<a href="/archive.zip/top.txt">top.txt</a>' in body
        assert '<a href="/archive.zip/sub/">sub/</a>' in body
        assert '<a href="/archive.zip/other/">other/</a>' in body
        assert "file.txt" not in body
        assert "deep.txt" not in body
        assert "<a href=?download>download zip</a>" in body

    @pytest.mark.asyncio
    async def test__download_flag__returns_raw_archive(
        self, archive: Path, client
    ) -> None:
        test_client = await client
        response = await test_client.get("/archive.zip?download")

        assert response.status == 200
        assert await response.read() == archive.read_bytes()
        assert response.headers["Content-Type"] == "application/octet-stream"
        assert "archive.zip" in response.headers["Content-Disposition"]

    @pytest.mark.asyncio
    async def test__download_flag__compressed_sibling_not_substituted(
        self, root_dir: Path, archive: Path, client
    ) -> None:
        (root_dir / "archive.zip.gz").write_bytes(b"not the archive")

        test_client = await client
        response = await test_client.get(
            "/archive.zip?download", headers={"Accept-Encoding": "gzip"}
        )

        assert response.status == 200
        assert "Content-Encoding" not in response.headers
        assert await response.read() == archive.read_bytes()

    @pytest.mark.asyncio
    async def test__download_flag__ignores_inner_path(
        self, archive: Path, client
    ) -> None:
        test_client = await client
        response = await test_client.get("/archive.zip/sub/file.txt?download")

        assert response.status == 200
        assert await response.read() == archive.read_bytes()

    @pytest.mark.asyncio
    async def test__internal_file__returns_decompressed_bytes(
        self, archive: Path, client
    ) -> None:
        test_client = await client
        response = await test_client.get("/archive.zip/sub/file.txt")

        assert response.status == 200
        assert await response.text() == "inside the archive"
        assert response.headers["Content-Type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test__internal_directory__lists_one_level(
        self, archive: Path, client
    ) -> None:
        test_client = await client
        response = await test_client.get("/archive.zip/sub")

        assert response.status == 200
        body = await response.text()
        assert '<a href="/archive.zip/sub/file.txt">file.txt</a>' in body
        assert '<a href="/archive.zip/sub/nested/">nested/</a>' in body
        assert "deep.txt" not in body
        assert "download zip" not in body

    @pytest.mark.asyncio
    async def test__implicit_directory__browsable(self, archive: Path, client) -> None:
        test_client = await client
        response = await test_client.get("/archive.zip/other/")

        assert response.status == 200
        assert "readme" in await response.text()

    @pytest.mark.asyncio
    async def test__missing_internal_path__returns_404(
        self, archive: Path, client
    ) -> None:
        test_client = await client
        response = await test_client.get("/archive.zip/missing")

        assert response.status == 404

    @pytest.mark.asyncio
    async def test__nested_archive_name__not_browsed(
        self, root_dir: Path, make_zip: ZipFactory, client
    ) -> None:
        """A zip stored inside a zip is served as an ordinary entry."""
        inner = make_zip(root_dir / "inner-src.zip", {"x.txt": "x"})
        inner_bytes = inner.read_bytes()
        inner.unlink()
        with zipfile.ZipFile(root_dir / "outer.zip", "w") as zf:
            zf.writestr("inner.zip", inner_bytes)

        test_client = await client
        response = await test_client.get("/outer.zip/inner.zip")
        nested = await test_client.get("/outer.zip/inner.zip/x.txt")

        assert response.status == 200
        assert await response.read() == inner_bytes
        assert nested.status == 404

    @pytest.mark.asyncio
    async def test__archive_in_subdirectory__links_include_prefix(
        self, root_dir: Path, make_zip: ZipFactory, client
    ) -> None:
        (root_dir / "pub").mkdir()
        make_zip(root_dir / "pub" / "data.zip", {"a.txt": "a"})

        test_client = await client
        response = await test_client.get("/pub/data.zip")

        assert response.status == 200
        assert '<a href="/pub/data.zip/a.txt">a.txt</a>' in await response.text()

    @pytest.mark.asyncio
    async def test__corrupt_archive__returns_500_and_keeps_serving(
        self, root_dir: Path, client
    ) -> None:
        """An unreadable archive fails the request, not the server."""
        (root_dir / "broken.zip").write_text("definitely not a zip")
        (root_dir / "ok.txt").write_text("still here")

        test_client = await client
        broken = await test_client.get("/broken.zip")
        ok = await test_client.get("/ok.txt")

        assert broken.status == 500
        assert "failed to open zip archive" in await broken.text()
        assert ok.status == 200
        assert await ok.text() == "still here"

    @pytest.mark.asyncio
    async def test__missing_archive__returns_404(self, client) -> None:
        test_client = await client
        response = await test_client.get("/absent.zip")

        assert response.status == 404


class TestDispatch:
    """Tests for method handling, headers and error mapping."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "PATCH", "HEAD"])
    async def test__non_get__returns_405(
        self, root_dir: Path, client, method: str
    ) -> None:
        (root_dir / "file.txt").write_text("unchanged")

        test_client = await client
        response = await test_client.request(method, "/file.txt")

        assert response.status == 405
        assert (root_dir / "file.txt").read_text() == "unchanged"

    @pytest.mark.asyncio
    async def test__every_response__no_store(
        self, root_dir: Path, archive: Path, client
    ) -> None:
        (root_dir / "a.txt").write_text("a")

        test_client = await client
        for path in [
            "/",
            "/a.txt",
            "/missing",
            "/archive.zip",
            "/archive.zip/top.txt",
            "/archive.zip?download",
        ]:
            response = await test_client.get(path)
            assert response.headers["Cache-Control"] == "no-store", path

        response = await test_client.post("/a.txt")
        assert response.headers["Cache-Control"] == "no-store"

    @pytest.mark.asyncio
    async def test__parent_segments__stay_inside_root(
        self, tmp_path: Path, root_dir: Path, client
    ) -> None:
        (tmp_path / "secret.txt").write_text("outside the root")

        test_client = await client
        response = await test_client.get("/%2E%2E/secret.txt")

        assert response.status == 404

    @pytest.mark.asyncio
    async def test__unexpected_os_error__returns_500_no_store(
        self, root_dir: Path, client
    ) -> None:
        test_client = await client
        with patch(
            "srv.api.files.resolve_fs", side_effect=PermissionError("denied")
        ):
            response = await test_client.get("/anything")

        assert response.status == 500
        assert response.headers["Cache-Control"] == "no-store"

    @pytest.mark.asyncio
    async def test__request__logged_through_injected_logger(
        self, test_config: Config, aiohttp_client
    ) -> None:
        log = MagicMock(spec=logging.Logger)
        app = create_app(test_config, request_logger=RequestLogger(log))

        test_client = await aiohttp_client(app)
        await test_client.get("/")
        await test_client.delete("/")

        messages = [call.args[0] for call in log.info.call_args_list]
        assert len(messages) == 2
        assert "GET HTTP/1.1" in messages[0]
        assert "DELETE HTTP/1.1" in messages[1]
