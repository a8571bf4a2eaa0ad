"""UserInfo endpoint client (OpenID Connect Core section 5.3)."""

from __future__ import annotations

import logging
from typing import Any

from oidcrp.client.http import HttpClient, decode_json_and_check_error
from oidcrp.exceptions import ConfigError
from oidcrp.models import Provider

logger = logging.getLogger(__name__)


class UserInfoClient:
    """Fetch supplementary claims with a bearer access token.

    The returned claims are not validated: they never decide who the user
    is, the ID Token's ``sub`` does.

    Args:
        http: The HTTP collaborator.
        timeout: The "long" timeout budget in seconds.
    """

    def __init__(self, http: HttpClient, timeout: float = 60.0) -> None:
        self._http = http
        self._timeout = timeout

    def fetch(self, provider: Provider, access_token: str) -> dict[str, Any]:
        """GET the provider's UserInfo endpoint.

        Raises:
            ConfigError: If the provider has no UserInfo endpoint (no call is made).
            NetworkError: On transport failure, timeout, or non-2xx status.
            ParseError: If the body is not a JSON object.
            ProviderError: If the provider answered with an error object.
        """
        if not provider.has_userinfo_endpoint:
            raise ConfigError(
                f"Provider '{provider.name}' has no UserInfo endpoint configured"
            )
        assert provider.userinfo_endpoint is not None

        logger.debug("fetching claims from %s", provider.userinfo_endpoint)
        text = self._http.get(
            provider.userinfo_endpoint,
            bearer_token=access_token,
            verify=provider.ssl_validate_server,
            timeout=self._timeout,
        )
        return decode_json_and_check_error(text, "UserInfo response")
