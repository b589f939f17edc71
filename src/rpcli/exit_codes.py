"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~rpcli.exceptions.RpcliError` subclass.
External tooling (CI scripts, shell wrappers) can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ rpcli query bank balance cosmos1...
    $ echo $?
    6   # EXIT_CONNECTION_ERROR -- the node could not be reached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SCHEMA_ERROR = 3
"""The command tree could not be built (unknown service, unknown method, unbindable input)."""

EXIT_REMOTE_ERROR = 5
"""The remote call failed (application-level or HTTP error status)."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_SERIALIZATION_ERROR = 7
"""A message could not be encoded to or decoded from canonical JSON."""

EXIT_OUTPUT_ERROR = 8
"""The result could not be written to the output stream."""
