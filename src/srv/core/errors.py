"""Errors raised while resolving a request.

Each error maps to a single HTTP status. Resolvers raise them, the
dispatcher turns them into responses.
"""


class ServeError(Exception):
    """Base class for request-scoped failures."""

    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DecodeError(ServeError):
    """Request path contains invalid percent-encoding."""

    status = 500


class NotFound(ServeError):
    """Filesystem entry or archive-internal path does not exist."""

    status = 404


class Forbidden(ServeError):
    """Entry exists but its kind is never served (symlink, device, ...)."""

    status = 403


class MethodNotAllowed(ServeError):
    status = 405


class StatFailure(ServeError):
    status = 500


class OpenFailure(ServeError):
    status = 500


class ArchiveOpenFailure(ServeError):
    """Archive could not be parsed as a zip file."""

    status = 500
