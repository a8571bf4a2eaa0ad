"""Authorization code exchange against the provider's token endpoint.

This module provides :class:`CodeExchangeClient`, which performs the
``authorization_code`` grant (OpenID Connect Core section 3.1.3):

1. POSTs ``grant_type``, ``code`` and ``redirect_uri`` to the token endpoint,
   authenticating the client with ``client_secret_basic`` or
   ``client_secret_post``.
2. Decodes the JSON response and rejects OAuth 2.0 error objects.
3. Extracts ``access_token``, ``token_type`` and ``id_token``.
4. Hands the ``id_token`` to :class:`~oidcrp.proto.idtoken.IDTokenValidator`.

See Also:
    :class:`oidcrp.flow.AuthenticationAttempt` for the caller.
"""

from __future__ import annotations

import logging
from typing import Optional

from oidcrp.client.http import HttpClient, decode_json_and_check_error
from oidcrp.encoding import get_string
from oidcrp.exceptions import ProtocolError
from oidcrp.models import IDTokenClaims, Provider, TokenEndpointAuthMethod, TokenResponse
from oidcrp.proto.idtoken import IDTokenValidator

logger = logging.getLogger(__name__)

_RESPONSE = "token endpoint response"


def _redact(token: str) -> str:
    return f"{token[:6]}..." if len(token) > 6 else "..."


class CodeExchangeClient:
    """Exchange authorization codes for tokens.

    Args:
        http: The HTTP collaborator used for the back-channel call.
        timeout: The "long" timeout budget in seconds.
        validator: ID Token validator; a default instance when ``None``.
    """

    def __init__(
        self,
        http: HttpClient,
        timeout: float = 60.0,
        validator: Optional[IDTokenValidator] = None,
    ) -> None:
        self._http = http
        self._timeout = timeout
        self._validator = validator or IDTokenValidator()

    def request_tokens(
        self,
        provider: Provider,
        code: str,
        redirect_uri: str,
    ) -> TokenResponse:
        """POST the authorization code to the token endpoint.

        Args:
            provider: Supplies the token endpoint and client credentials.
            code: The authorization code from the callback.
            redirect_uri: The redirect URI used in the authorization request.

        Returns:
            The extracted :class:`~oidcrp.models.TokenResponse`.

        Raises:
            NetworkError: On transport failure, timeout, or non-2xx status.
            ParseError: If the body is not a JSON object.
            ProviderError: If the provider answered with an error object.
            ProtocolError: If a required field is missing or mistyped, or
                ``token_type`` is not Bearer while a UserInfo endpoint is
                configured.
        """
        logger.debug("resolving code against %s", provider.token_endpoint)

        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }

        basic_auth: Optional[tuple[str, str]] = None
        if provider.token_endpoint_auth == TokenEndpointAuthMethod.CLIENT_SECRET_BASIC:
            basic_auth = (provider.client_id, provider.client_secret)
        else:
            data["client_id"] = provider.client_id
            data["client_secret"] = provider.client_secret

        text = self._http.post_form(
            provider.token_endpoint,
            data=data,
            basic_auth=basic_auth,
            verify=provider.ssl_validate_server,
            timeout=self._timeout,
        )
        result = decode_json_and_check_error(text, _RESPONSE)

        access_token = self._require_string(result, "access_token")
        logger.debug("returned access_token: %s", _redact(access_token))

        token_type = self._require_string(result, "token_type")
        if provider.has_userinfo_endpoint and token_type.lower() != "bearer":
            message = (
                f'token_type is "{token_type}" and UserInfo endpoint is set: can only '
                "deal with Bearer authentication against the UserInfo endpoint"
            )
            logger.error(message)
            raise ProtocolError(message)

        id_token = self._require_string(result, "id_token")
        logger.debug("returned id_token: %s", id_token)

        return TokenResponse(
            access_token=access_token,
            token_type=token_type,
            id_token=id_token,
        )

    def resolve_code(
        self,
        provider: Provider,
        code: str,
        redirect_uri: str,
    ) -> tuple[TokenResponse, IDTokenClaims]:
        """Exchange *code* and validate the returned ID Token.

        Returns:
            The token response and the validated ID Token claims.

        Raises:
            Everything :meth:`request_tokens` and
            :meth:`IDTokenValidator.validate` raise.
        """
        tokens = self.request_tokens(provider, code, redirect_uri)
        claims = self._validator.validate(provider, tokens.id_token)
        return tokens, claims

    @staticmethod
    def _require_string(result: dict, key: str) -> str:
        try:
            return get_string(result, key, _RESPONSE)
        except ProtocolError as exc:
            logger.error("%s", exc)
            raise
