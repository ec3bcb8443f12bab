"""Exception hierarchy for wunderbox.

All exceptions inherit from :class:`WunderboxError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`wunderbox.exit_codes`.
Every failure of :meth:`~wunderbox.provider.Provider.get` is terminal for the
call: the host (or :func:`wunderbox.app.main`) is expected to catch
``WunderboxError`` and show a fallback.

Subclass hierarchy::

    WunderboxError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- AuthFailure         (exit 3)
    +-- LoginFailure        (exit 3)
    +-- NoToken             (exit 3)
    +-- InvalidResponse     (exit 5)
    +-- EmptyData           (exit 5)
    +-- ConnectionError_    (exit 6)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from typing import Optional

from wunderbox.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_BAD_RESPONSE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)


class WunderboxError(Exception):
    """Base exception for all wunderbox errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(WunderboxError):
    """Raised for an empty action or a query parameter that is not a scalar."""

    exit_code = EXIT_INVALID_USAGE


class InvalidResponse(WunderboxError):
    """Raised when the API answers with a status outside ``[200, 399]``.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status the API returned.
    """

    exit_code = EXIT_BAD_RESPONSE

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthFailure(WunderboxError):
    """Raised when the API still answers 401 after the single token refresh."""

    exit_code = EXIT_AUTH_FAILURE


class LoginFailure(WunderboxError):
    """Raised when the ``login`` exchange does not yield a token.

    The :attr:`reason` attribute is one of ``"status"`` (bad HTTP status),
    ``"empty"`` (no data in the body) or ``"missing_token"`` (body without a
    ``token`` field).
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, message: str, reason: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class EmptyData(WunderboxError):
    """Raised when a successful response parses to empty or undecodable data."""

    exit_code = EXIT_BAD_RESPONSE


class NoToken(WunderboxError):
    """Raised when no credential source (config, token file, login) yields a token."""

    exit_code = EXIT_AUTH_FAILURE


class ConnectionError_(WunderboxError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(WunderboxError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
