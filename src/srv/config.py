"""Configuration management for srv.

Supports TOML configuration format with auto-discovery. Command-line
options are applied on top with ``Config.with_overrides``.
"""

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_FILENAME = "srv.toml"


@dataclass
class ServerConfig:
    """Listener configuration."""

    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def address(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass
class TlsConfig:
    """TLS configuration. Both files must be given to enable HTTPS."""

    cert_file: Path | None = None
    key_file: Path | None = None

    @property
    def enabled(self) -> bool:
        return self.cert_file is not None and self.key_file is not None


@dataclass
class LoggingConfig:
    """Request logging configuration."""

    quiet: bool = False


@dataclass
class Config:
    """Application configuration."""

    server: ServerConfig
    tls: TlsConfig
    logging: LoggingConfig
    root: Path = field(default_factory=lambda: Path("."))
    config_path: Path | None = None

    @classmethod
    def load(cls, config_path: Path | None = None) -> "Config":
        """Build the configuration the server starts from.

        An explicit ``config_path`` must exist. Without one, the nearest
        ``srv.toml`` at or above the working directory is used, and when
        none is found every section keeps its defaults.

        Raises:
            FileNotFoundError: If ``config_path`` was given but is missing
            ValueError: If the file is not valid TOML or a value is wrong
        """
        path = config_path or cls._discover_config()
        if path is None:
            return cls._default()
        if config_path is not None and not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return cls._load_from_file(path)

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Return the closest srv.toml walking up from the working directory."""
        cwd = Path.cwd()
        for directory in (cwd, *cwd.parents):
            if (directory / CONFIG_FILENAME).is_file():
                return directory / CONFIG_FILENAME
        return None

    @classmethod
    def _default(cls) -> "Config":
        return cls(
            server=ServerConfig(),
            tls=TlsConfig(),
            logging=LoggingConfig(),
        )

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load configuration from a specific file.

        Args:
            path: Path to TOML configuration file

        Returns:
            Config instance

        Raises:
            ValueError: If configuration is invalid
        """
        with path.open("rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Invalid TOML in {path}: {e}") from e

        config_dir = path.parent

        root = data.get("root", ".")
        if not isinstance(root, str):
            raise ValueError("root must be a string")

        return cls(
            server=cls._parse_server(data.get("server")),
            tls=cls._parse_tls(data.get("tls"), config_dir),
            logging=cls._parse_logging(data.get("logging")),
            root=config_dir / root,
            config_path=path,
        )

    @classmethod
    def _parse_server(cls, data: object) -> ServerConfig:
        """Parse server configuration section.

        Args:
            data: Raw server section data

        Returns:
            ServerConfig instance
        """
        if data is None:
            return ServerConfig()

        if not isinstance(data, dict):
            raise ValueError("server section must be a dictionary")

        host = data.get("host", "127.0.0.1")
        if not isinstance(host, str):
            raise ValueError("server.host must be a string")

        port = data.get("port", 8000)
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValueError("server.port must be an integer")

        return ServerConfig(host=host, port=port)

    @classmethod
    def _parse_tls(cls, data: object, config_dir: Path) -> TlsConfig:
        """Parse tls configuration section.

        Args:
            data: Raw tls section data
            config_dir: Directory containing config file (for relative paths)

        Returns:
            TlsConfig instance
        """
        if data is None:
            return TlsConfig()

        if not isinstance(data, dict):
            raise ValueError("tls section must be a dictionary")

        cert_file = data.get("cert_file")
        if cert_file is not None and not isinstance(cert_file, str):
            raise ValueError("tls.cert_file must be a string")

        key_file = data.get("key_file")
        if key_file is not None and not isinstance(key_file, str):
            raise ValueError("tls.key_file must be a string")

        return TlsConfig(
            cert_file=config_dir / cert_file if cert_file is not None else None,
            key_file=config_dir / key_file if key_file is not None else None,
        )

    @classmethod
    def _parse_logging(cls, data: object) -> LoggingConfig:
        if data is None:
            return LoggingConfig()

        if not isinstance(data, dict):
            raise ValueError("logging section must be a dictionary")

        quiet = data.get("quiet", False)
        if not isinstance(quiet, bool):
            raise ValueError("logging.quiet must be a boolean")

        return LoggingConfig(quiet=quiet)

    def with_overrides(
        self,
        *,
        root: Path | None = None,
        host: str | None = None,
        port: int | None = None,
        cert_file: Path | None = None,
        key_file: Path | None = None,
        quiet: bool | None = None,
    ) -> "Config":
        """Create a new Config with CLI overrides applied.

        Only non-None values override the existing config. The original
        Config is not modified.

        Args:
            root: Override root
            host: Override server.host
            port: Override server.port
            cert_file: Override tls.cert_file
            key_file: Override tls.key_file
            quiet: Override logging.quiet

        Returns:
            New Config instance with overrides applied
        """
        server = self.server
        if host is not None or port is not None:
            server = replace(
                self.server,
                host=host if host is not None else self.server.host,
                port=port if port is not None else self.server.port,
            )

        tls = self.tls
        if cert_file is not None or key_file is not None:
            tls = replace(
                self.tls,
                cert_file=cert_file if cert_file is not None else self.tls.cert_file,
                key_file=key_file if key_file is not None else self.tls.key_file,
            )

        logging_config = self.logging
        if quiet is not None:
            logging_config = replace(self.logging, quiet=quiet)

        return replace(
            self,
            server=server,
            tls=tls,
            logging=logging_config,
            root=root if root is not None else self.root,
        )

    def validate(self) -> None:
        """Check the configuration can be served.

        Raises:
            ValueError: If the root is not a directory or TLS is half-configured
        """
        if not self.root.is_dir():
            raise ValueError(f"{self.root} isn't a directory.")

        if (self.tls.cert_file is None) != (self.tls.key_file is None):
            raise ValueError("You must specify both -c certfile -k keyfile.")

        for tls_file in (self.tls.cert_file, self.tls.key_file):
            if tls_file is not None and not tls_file.is_file():
                raise ValueError(f"TLS file not found: {tls_file}")

        if not 0 <= self.server.port <= 65535:
            raise ValueError(f"Invalid port: {self.server.port}")
