"""Logging setup and the per-request access record."""

import logging
import sys

from aiohttp import web

ACCESS_LOGGER_NAME = "srv.access"

logger = logging.getLogger(__name__)


class RequestLogger:
    """Writes one line per request to the access logger.

    Quiet mode is a property of the instance, so handlers never consult
    global logging state to decide whether to log.
    """

    def __init__(
        self,
        log: logging.Logger | None = None,
        *,
        quiet: bool = False,
    ) -> None:
        """Initialize the request logger.

        Args:
            log: Logger receiving records (default: the "srv.access" logger)
            quiet: Drop all records
        """
        self._log = log if log is not None else logging.getLogger(ACCESS_LOGGER_NAME)
        self._quiet = quiet

    @property
    def quiet(self) -> bool:
        return self._quiet

    def log_request(self, request: web.Request) -> None:
        """Record a request. Never raises."""
        if self._quiet:
            return
        try:
            self._log.info(format_request(request))
        except Exception:
            logger.exception("Failed to write access log record")


def format_request(request: web.Request) -> str:
    """Format the access record for a request.

    Format: ``<remote> [<user agent>]: <METHOD> HTTP/<x.y> <host><target>``
    """
    version = request.version
    user_agent = request.headers.get("User-Agent", "")
    return (
        f"{request.remote} [{user_agent}]: {request.method} "
        f"HTTP/{version.major}.{version.minor} {request.host}{request.raw_path}"
    )


def configure_logging(*, verbose: bool = False) -> None:
    """Send srv log records to stderr.

    Args:
        verbose: Include debug records
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s\t%(message)s"))
    root = logging.getLogger("srv")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
