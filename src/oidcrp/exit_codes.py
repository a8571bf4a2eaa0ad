"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific failure category and is referenced by the
corresponding :class:`~oidcrp.exceptions.OidcrpError` subclass.
Shell wrappers can inspect the exit code to tell a rejected ID Token apart
from an unreachable provider without parsing stderr.

Example::

    $ oidcrp token inspect "$ID_TOKEN" --validate
    $ echo $?
    3   # EXIT_VALIDATION_FAILURE -- a claim check rejected the token
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred, or the configuration is invalid."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_VALIDATION_FAILURE = 3
"""An ID Token claim (or the callback ``state``) failed validation."""

EXIT_PROTOCOL_ERROR = 5
"""The provider answered with an error object or a response missing required fields."""

EXIT_NETWORK_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, non-2xx status)."""

EXIT_PARSE_ERROR = 7
"""A token segment or JSON document could not be decoded."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C (128 + SIGINT)."""
