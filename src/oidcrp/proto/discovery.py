"""Issuer and provider metadata discovery.

This module provides :class:`IssuerDiscovery`, which covers the two
discovery steps of OpenID Connect Discovery 1.0:

1. **Issuer discovery** (section 2) -- resolve an account identifier such as
   ``alice@example.com`` to an issuer URL with a WebFinger lookup on the
   account's domain.
2. **Provider configuration** (section 4) -- fetch
   ``<issuer>/.well-known/openid-configuration`` and extract the endpoints a
   relying party needs.

:func:`provider_from_metadata` turns the second step's result into a
:class:`~oidcrp.models.ProviderProfile` ready to be saved.

Only the first entry of the WebFinger ``links`` array is consulted; entries
are not filtered by ``rel``.
"""

from __future__ import annotations

import logging
from typing import Any, NoReturn, Optional

from oidcrp.client.http import HttpClient, decode_json_and_check_error
from oidcrp.encoding import get_array, get_optional_string, get_string
from oidcrp.exceptions import ConfigError, ProtocolError, ValidationError
from oidcrp.models import ProviderProfile, TokenEndpointAuthMethod
from oidcrp.proto.idtoken import issuer_matches

logger = logging.getLogger(__name__)

ISSUER_REL = "http://openid.net/specs/connect/1.0/issuer"
WELL_KNOWN_CONFIGURATION = "/.well-known/openid-configuration"

_WEBFINGER = "WebFinger response"
_METADATA = "provider metadata"


class IssuerDiscovery:
    """Discover issuers and their metadata.

    Args:
        http: The HTTP collaborator.
        timeout: The "short" timeout budget in seconds.
        verify: Verify TLS certificates. No provider is known yet at this
            point, so this comes from the global configuration.
    """

    def __init__(self, http: HttpClient, timeout: float = 5.0, verify: bool = True) -> None:
        self._http = http
        self._timeout = timeout
        self._verify = verify

    def discover_issuer(self, account: str) -> str:
        """Resolve *account* to an issuer URL via WebFinger.

        Args:
            account: An account identifier, ``user@domain``. The domain is
                taken from after the last ``@``.

        Returns:
            The ``href`` of the first link in the WebFinger response.

        Raises:
            ConfigError: If *account* has no ``@`` or nothing after it.
            NetworkError: On transport failure, timeout, or non-2xx status.
            ParseError: If the body is not a JSON object.
            ProviderError: If the response is an error object.
            ProtocolError: If ``links``, ``links[0]`` or its ``href`` is
                missing or has the wrong type.
        """
        logger.debug("account based discovery for %s", account)

        at = account.rfind("@")
        domain = account[at + 1:] if at >= 0 else ""
        if not domain:
            logger.error("invalid account name: %s", account)
            raise ConfigError(f"Invalid account name: {account!r}")

        url = f"https://{domain}/.well-known/webfinger"
        text = self._http.get(
            url,
            params={"resource": f"acct:{account}", "rel": ISSUER_REL},
            verify=self._verify,
            timeout=self._timeout,
        )
        response = decode_json_and_check_error(text, _WEBFINGER)

        links = self._protocol(get_array, response, "links", _WEBFINGER)
        if not links:
            self._fail(f'{_WEBFINGER} contained an empty "links" array')
        link = links[0]
        if not isinstance(link, dict):
            self._fail(
                f'{_WEBFINGER} did not contain a JSON object as the first '
                'element in the "links" array'
            )

        rel = link.get("rel")
        if rel is not None and rel != ISSUER_REL:
            logger.warning(
                'first WebFinger link has rel "%s", not "%s"; using its href anyway',
                rel, ISSUER_REL,
            )

        issuer = self._protocol(get_string, link, "href", 'first "links" array object')
        logger.debug(
            'returning issuer "%s" for account "%s" after webfinger-based discovery',
            issuer, account,
        )
        return issuer

    def fetch_provider_metadata(self, issuer: str) -> dict[str, Any]:
        """Fetch and check the provider configuration document for *issuer*.

        Returns:
            The decoded metadata document.

        Raises:
            NetworkError: On transport failure, timeout, or non-2xx status.
            ParseError: If the body is not a JSON object.
            ProviderError: If the response is an error object.
            ProtocolError: If ``issuer``, ``authorization_endpoint`` or
                ``token_endpoint`` is missing, or ``userinfo_endpoint`` is
                not a string.
            ValidationError: If the document's ``issuer`` is not *issuer*.
        """
        url = issuer.rstrip("/") + WELL_KNOWN_CONFIGURATION
        logger.debug("fetching provider metadata from %s", url)
        text = self._http.get(url, verify=self._verify, timeout=self._timeout)
        metadata = decode_json_and_check_error(text, _METADATA)

        declared = self._protocol(get_string, metadata, "issuer", _METADATA)
        if not issuer_matches(issuer, declared):
            message = (
                f'{_METADATA} declares issuer "{declared}", '
                f'but it was fetched for "{issuer}"'
            )
            logger.error(message)
            raise ValidationError(message)

        self._protocol(get_string, metadata, "authorization_endpoint", _METADATA)
        self._protocol(get_string, metadata, "token_endpoint", _METADATA)
        self._protocol(get_optional_string, metadata, "userinfo_endpoint", _METADATA)
        return metadata

    @staticmethod
    def _protocol(getter: Any, obj: dict[str, Any], key: str, obj_name: str) -> Any:
        try:
            return getter(obj, key, obj_name, ProtocolError)
        except ProtocolError as exc:
            logger.error("%s", exc)
            raise

    @staticmethod
    def _fail(message: str) -> NoReturn:
        logger.error(message)
        raise ProtocolError(message)


def provider_from_metadata(
    name: str,
    metadata: dict[str, Any],
    client_id: str,
    client_secret_source: str = "prompt",
    scope: str = "openid",
    ssl_validate_server: bool = True,
    token_endpoint_auth: Optional[TokenEndpointAuthMethod] = None,
) -> ProviderProfile:
    """Build a storable provider profile from a metadata document.

    When *token_endpoint_auth* is not given, ``client_secret_basic`` is used
    unless the provider advertises ``client_secret_post`` but not
    ``client_secret_basic`` in ``token_endpoint_auth_methods_supported``.
    """
    if token_endpoint_auth is None:
        token_endpoint_auth = TokenEndpointAuthMethod.CLIENT_SECRET_BASIC
        supported = metadata.get("token_endpoint_auth_methods_supported")
        if (
            isinstance(supported, list)
            and TokenEndpointAuthMethod.CLIENT_SECRET_BASIC.value not in supported
            and TokenEndpointAuthMethod.CLIENT_SECRET_POST.value in supported
        ):
            token_endpoint_auth = TokenEndpointAuthMethod.CLIENT_SECRET_POST

    return ProviderProfile(
        name=name,
        issuer=metadata["issuer"],
        client_id=client_id,
        client_secret_source=client_secret_source,
        authorization_endpoint=metadata["authorization_endpoint"],
        token_endpoint=metadata["token_endpoint"],
        userinfo_endpoint=metadata.get("userinfo_endpoint"),
        token_endpoint_auth=token_endpoint_auth,
        scope=scope,
        ssl_validate_server=ssl_validate_server,
    )
