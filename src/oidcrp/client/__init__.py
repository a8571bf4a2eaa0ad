"""HTTP client layer for oidcrp.

Provides :class:`HttpClient` for calls to OpenID Providers and
:func:`decode_json_and_check_error` for decoding their JSON responses.

See Also:
    :mod:`oidcrp.client.http` for the implementation.
"""

from oidcrp.client.http import HttpClient, decode_json_and_check_error

__all__ = ["HttpClient", "decode_json_and_check_error"]
