"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a failure category and is referenced by the
corresponding :class:`~wunderbox.exceptions.WunderboxError` subclass.
Shell wrappers around ``wunderbox`` can inspect the exit code to tell a
credential problem from an API outage without parsing stderr.

Example::

    $ wunderbox get lists
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- no usable token
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with an invalid action or parameter."""

EXIT_AUTH_FAILURE = 3
"""No token could be obtained, login failed, or the API rejected the token twice."""

EXIT_BAD_RESPONSE = 5
"""The API answered with an error status or with no usable data."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
