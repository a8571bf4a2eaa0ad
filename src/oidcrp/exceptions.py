"""Exception hierarchy for oidcrp.

All exceptions inherit from :class:`OidcrpError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oidcrp.exit_codes`.
Protocol components raise these where a failure is detected and never catch
them again; the caller one level up decides what the failure means for the
login attempt. The top-level handler in :func:`oidcrp.app.main` catches
``OidcrpError`` and exits with the appropriate code.

Subclass hierarchy::

    OidcrpError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ParseError          (exit 7)
    +-- ValidationError     (exit 3)
    +-- ProtocolError       (exit 5)
    |   +-- ProviderError   (exit 5)
    +-- NetworkError        (exit 6)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from typing import Optional

from oidcrp.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NETWORK_ERROR,
    EXIT_PARSE_ERROR,
    EXIT_PROTOCOL_ERROR,
    EXIT_VALIDATION_FAILURE,
)


class OidcrpError(Exception):
    """Base exception for all oidcrp errors.

    Args:
        message: Human-readable diagnostic reason.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(OidcrpError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ParseError(OidcrpError):
    """Raised for malformed token segments, malformed JSON, or a non-object JSON document."""

    exit_code = EXIT_PARSE_ERROR


class ValidationError(OidcrpError):
    """Raised when an ID Token claim check (iss, exp, azp, aud, sub) or the callback state fails."""

    exit_code = EXIT_VALIDATION_FAILURE


class ProtocolError(OidcrpError):
    """Raised for well-formed JSON that lacks a required field or carries it with the wrong type."""

    exit_code = EXIT_PROTOCOL_ERROR


class ProviderError(ProtocolError):
    """Raised when the provider answers with an explicit OAuth 2.0 error object.

    Args:
        error: The ``error`` code returned by the provider.
        description: The optional ``error_description``.
    """

    def __init__(self, error: str, description: Optional[str] = None):
        message = f"Provider returned error '{error}'"
        if description:
            message += f": {description}"
        super().__init__(message)
        self.error = error
        self.description = description


class NetworkError(OidcrpError):
    """Raised on transport failures, timeouts, and non-2xx HTTP responses.

    ``status_code`` is ``None`` when no HTTP response was received at all.
    """

    exit_code = EXIT_NETWORK_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigError(OidcrpError):
    """Raised for configuration problems (bad account name, missing endpoint, invalid config file)."""

    exit_code = EXIT_GENERIC_FAILURE
