"""OpenID Connect protocol components.

The authorization code flow, leaf-first:

- :mod:`~oidcrp.proto.idtoken` -- :class:`IDTokenValidator`, ID Token
  parsing and claim validation.
- :mod:`~oidcrp.proto.token` -- :class:`CodeExchangeClient`, the
  ``authorization_code`` grant.
- :mod:`~oidcrp.proto.authorization` -- building the authorization request
  and recognising the callback.
- :mod:`~oidcrp.proto.userinfo` -- :class:`UserInfoClient`.
- :mod:`~oidcrp.proto.discovery` -- :class:`IssuerDiscovery` via WebFinger
  and provider metadata.
"""

from oidcrp.proto.authorization import (
    AuthorizationRedirect,
    authorization_redirect,
    build_authorization_request,
    is_authorization_response,
    raise_for_authorization_error,
)
from oidcrp.proto.discovery import IssuerDiscovery, provider_from_metadata
from oidcrp.proto.idtoken import IDTokenValidator, parse_id_token, validate_claims
from oidcrp.proto.token import CodeExchangeClient
from oidcrp.proto.userinfo import UserInfoClient

__all__ = [
    "AuthorizationRedirect",
    "CodeExchangeClient",
    "IDTokenValidator",
    "IssuerDiscovery",
    "UserInfoClient",
    "authorization_redirect",
    "build_authorization_request",
    "is_authorization_response",
    "parse_id_token",
    "provider_from_metadata",
    "raise_for_authorization_error",
    "validate_claims",
]
