"""Exception hierarchy for clientcache.

All exceptions inherit from :class:`ClientCacheError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`clientcache.exit_codes`.  The top-level error handler in
:func:`clientcache.app.main` catches ``ClientCacheError`` and exits with
the appropriate code, while unexpected exceptions produce a crash log and
exit with :data:`EXIT_GENERIC_FAILURE`.

The :class:`~clientcache.cache.ClientCache` never wraps or translates
these: whatever a loader, version check, negotiator, or client
constructor raises reaches the caller unchanged.

Subclass hierarchy::

    ClientCacheError (exit 1)
    +-- InvalidUsageError       (exit 2)
    |   +-- InvalidVersionError (exit 2)
    +-- AuthError               (exit 3)
    +-- NotFoundError           (exit 4)
    +-- ServerError             (exit 5)
    +-- ConnectionError_        (exit 6)
    +-- VersionMismatchError    (exit 7)
    +-- NegotiationError        (exit 8)
    +-- ConfigError             (exit 1)
"""

from clientcache.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NEGOTIATION_FAILURE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_VERSION_MISMATCH,
)


class ClientCacheError(Exception):
    """Base exception for all clientcache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`clientcache.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ClientCacheError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class InvalidVersionError(InvalidUsageError):
    """Raised when a group-version string is malformed (e.g. ``"???"`` or ``"a/b/c"``)."""


class AuthError(ClientCacheError):
    """Raised when the server rejects the credentials (HTTP 401 / 403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(ClientCacheError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(ClientCacheError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(ClientCacheError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class VersionMismatchError(ClientCacheError):
    """Raised when the server's reported version differs from the client's own version."""

    exit_code = EXIT_VERSION_MISMATCH


class NegotiationError(ClientCacheError):
    """Raised when no API group-version is acceptable to both client and server."""

    exit_code = EXIT_NEGOTIATION_FAILURE


class ConfigError(ClientCacheError):
    """Raised for configuration problems (missing profiles, invalid files, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
