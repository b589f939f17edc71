"""Exception hierarchy for rpcli.

All exceptions inherit from :class:`RpcliError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`rpcli.exit_codes`.
The top-level error handler in :func:`rpcli.app.main` catches
``RpcliError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Build-time errors (:class:`SchemaError` and its subclasses) abort the whole
command-tree construction. Run-time errors (:class:`RemoteError`,
:class:`SerializationError`, :class:`OutputError`) abort a single
invocation.

Subclass hierarchy::

    RpcliError (exit 1)
    +-- SchemaError              (exit 3)
    |   +-- NotFoundError
    |   +-- UnknownMethodError
    |   +-- BindingError
    |   +-- DescriptorError
    +-- RemoteError              (exit 5)
    |   +-- ConnectionError_     (exit 6)
    +-- SerializationError       (exit 7)
    +-- OutputError              (exit 8)
    +-- ConfigError              (exit 1)
"""

from typing import Optional

from rpcli.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_OUTPUT_ERROR,
    EXIT_REMOTE_ERROR,
    EXIT_SCHEMA_ERROR,
    EXIT_SERIALIZATION_ERROR,
)


class RpcliError(Exception):
    """Base exception for all rpcli errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`rpcli.exit_codes`. The entry point catches
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


class SchemaError(RpcliError):
    """Base class for errors raised while building the command tree."""

    exit_code = EXIT_SCHEMA_ERROR


class NotFoundError(SchemaError):
    """Raised when a service, message, or enum name is not in the schema registry."""


class UnknownMethodError(SchemaError):
    """Raised when a per-method option record names a method the service does not declare."""


class BindingError(SchemaError):
    """Raised when an input message cannot be mapped to CLI flags and arguments."""


class DescriptorError(SchemaError):
    """Raised when a schema or app options document cannot be loaded or validated."""


class RemoteError(RpcliError):
    """Raised when the remote call fails (HTTP error status or error payload).

    Args:
        message: Human-readable error description.
        status_code: HTTP status code of the failed call, when there was one.
    """

    exit_code = EXIT_REMOTE_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConnectionError_(RemoteError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class SerializationError(RpcliError):
    """Raised when a message cannot be rendered to, or parsed from, canonical JSON."""

    exit_code = EXIT_SERIALIZATION_ERROR


class OutputError(RpcliError):
    """Raised when writing a result to the output stream fails."""

    exit_code = EXIT_OUTPUT_ERROR


class ConfigError(RpcliError):
    """Raised for configuration problems (invalid JSON, unknown keys, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
