"""CLI interface for srv.

Serves a directory, and the zip archives inside it, over HTTP or HTTPS.
"""

import sys
from pathlib import Path

import click

from srv import __version__


@click.command()
@click.argument(
    "directory",
    type=click.Path(path_type=Path),
    required=False,
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Disable all request logging",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to listen on (default: 8000)",
)
@click.option(
    "--bind",
    "-b",
    "host",
    default=None,
    help="Listener socket's bind address (default: 127.0.0.1)",
)
@click.option(
    "--cert",
    "-c",
    "cert_file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to a PEM-format X.509 certificate",
)
@click.option(
    "--key",
    "-k",
    "key_file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to a PEM-format X.509 key",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path, dir_okay=False),
    default=None,
    help="Path to configuration file (default: auto-discover srv.toml)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable debug logging",
)
@click.version_option(__version__, prog_name="srv")
def cli(
    directory: Path | None,
    quiet: bool,
    port: int | None,
    host: str | None,
    cert_file: Path | None,
    key_file: Path | None,
    config_path: Path | None,
    verbose: bool,
) -> None:
    """Serve DIRECTORY (default: .) over HTTP, browsing into zip archives."""
    from srv.config import Config
    from srv.logs import configure_logging
    from srv.server import run_server

    try:
        config = Config.load(config_path).with_overrides(
            root=directory,
            host=host,
            port=port,
            cert_file=cert_file,
            key_file=key_file,
            quiet=True if quiet else None,
        )
        config.validate()
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    configure_logging(verbose=verbose)

    try:
        run_server(config)
    except (OSError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
