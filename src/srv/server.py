"""aiohttp server for srv.

Application factory, TLS setup and the blocking server entry point.
"""

import logging
import ssl

from aiohttp import web

from srv.api.files import create_file_routes
from srv.app_keys import request_logger_key, root_key
from srv.config import Config, TlsConfig
from srv.logs import RequestLogger

logger = logging.getLogger(__name__)


def create_app(
    config: Config,
    *,
    request_logger: RequestLogger | None = None,
) -> web.Application:
    """Create aiohttp application.

    Args:
        config: Application configuration (root already validated)
        request_logger: Access logger; built from config.logging when omitted

    Returns:
        Configured aiohttp application
    """
    app = web.Application()

    app[root_key] = config.root
    app[request_logger_key] = request_logger or RequestLogger(
        quiet=config.logging.quiet,
    )

    app.router.add_routes(create_file_routes())

    return app


def create_ssl_context(tls: TlsConfig) -> ssl.SSLContext | None:
    """Build a server-side TLS context.

    Args:
        tls: TLS configuration

    Returns:
        SSLContext loaded with the PEM certificate and key, or None when TLS
        is not configured
    """
    if not tls.enabled:
        return None
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(certfile=str(tls.cert_file), keyfile=str(tls.key_file))
    return context


def run_server(config: Config) -> None:
    """Run the server until interrupted.

    Args:
        config: Validated application configuration
    """
    app = create_app(config)
    ssl_context = create_ssl_context(config.tls)
    scheme = "HTTPS" if ssl_context is not None else "HTTP"

    if not config.logging.quiet:
        logger.info(f"Serving {config.root} over {scheme} on {config.server.address}")

    web.run_app(
        app,
        host=config.server.host,
        port=config.server.port,
        ssl_context=ssl_context,
        access_log=None,
        print=None,
    )
