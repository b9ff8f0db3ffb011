"""Shared test fixtures."""

import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest
from srv.config import Config, LoggingConfig, ServerConfig, TlsConfig

ZipFactory = Callable[..., Path]


@pytest.fixture
def root_dir(tmp_path: Path) -> Path:
    """Create an empty server root directory."""
    root = tmp_path / "root"
    root.mkdir(exist_ok=True)
    return root


@pytest.fixture
def test_config(root_dir: Path) -> Config:
    """Create a test configuration serving root_dir."""
    return Config(
        server=ServerConfig(),
        tls=TlsConfig(),
        logging=LoggingConfig(quiet=True),
        root=root_dir,
    )


@pytest.fixture
def make_zip() -> ZipFactory:
    """Return a factory that writes a zip archive from a name -> content map.

    Names ending in "/" become explicit directory entries.
    """

    def factory(path: Path, members: dict[str, bytes | str]) -> Path:
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, content in members.items():
                zf.writestr(name, content)
        return path

    return factory
