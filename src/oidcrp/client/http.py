"""Blocking HTTP collaborator for provider calls.

This module provides :class:`HttpClient`, the one place where oidcrp touches
the network. It wraps :class:`httpx.Client` and gives the protocol
components a single call shape:

- **Method** -- ``GET`` with query parameters, or ``POST`` with a
  form-encoded body.
- **Client authentication** -- optional HTTP Basic credentials or a bearer
  access token.
- **TLS validation** -- per call, from the provider's configuration.
- **Timeout** -- per call, one of the two configured budgets.

Every transport failure, timeout and non-2xx status is mapped to
:class:`~oidcrp.exceptions.NetworkError`. Nothing is retried. Response
bodies are decoded with :func:`decode_json_and_check_error`, which also turns
an OAuth 2.0 error object into :class:`~oidcrp.exceptions.ProviderError`.

A fresh ``httpx.Client`` is opened for each call so that one
:class:`HttpClient` can be shared between concurrent attempts.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from oidcrp import __version__
from oidcrp.encoding import decode_json_object
from oidcrp.exceptions import NetworkError, ProviderError

logger = logging.getLogger(__name__)

USER_AGENT = f"oidcrp/{__version__}"


class HttpClient:
    """Synchronous HTTP client for calls to OpenID Providers.

    Args:
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests. When ``None`` httpx uses its default network transport.
        user_agent: Value of the ``User-Agent`` header.

    Example::

        http = HttpClient()
        body = http.get("https://op.example.com/userinfo",
                        bearer_token=token, timeout=60.0)
    """

    def __init__(
        self,
        transport: Optional[httpx.BaseTransport] = None,
        user_agent: str = USER_AGENT,
    ) -> None:
        self._transport = transport
        self._user_agent = user_agent

    def get(
        self,
        url: str,
        params: Optional[dict[str, str]] = None,
        bearer_token: Optional[str] = None,
        verify: bool = True,
        timeout: float = 5.0,
    ) -> str:
        """Send a GET request and return the response body text.

        Args:
            url: Absolute URL to call.
            params: Query parameters appended to the URL.
            bearer_token: If set, sent as ``Authorization: Bearer <token>``.
            verify: Verify the server's TLS certificate.
            timeout: Timeout budget in seconds.

        Raises:
            NetworkError: On transport failure, timeout, or non-2xx status.
        """
        return self.request(
            "GET", url, params=params, bearer_token=bearer_token,
            verify=verify, timeout=timeout,
        )

    def post_form(
        self,
        url: str,
        data: dict[str, str],
        basic_auth: Optional[tuple[str, str]] = None,
        verify: bool = True,
        timeout: float = 60.0,
    ) -> str:
        """Send a form-encoded POST request and return the response body text.

        Args:
            url: Absolute URL to call.
            data: Form fields (``application/x-www-form-urlencoded``).
            basic_auth: Optional ``(username, password)`` for HTTP Basic.
            verify: Verify the server's TLS certificate.
            timeout: Timeout budget in seconds.

        Raises:
            NetworkError: On transport failure, timeout, or non-2xx status.
        """
        return self.request(
            "POST", url, data=data, basic_auth=basic_auth,
            verify=verify, timeout=timeout,
        )

    def request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, str]] = None,
        data: Optional[dict[str, str]] = None,
        basic_auth: Optional[tuple[str, str]] = None,
        bearer_token: Optional[str] = None,
        verify: bool = True,
        timeout: float = 5.0,
    ) -> str:
        """Execute one HTTP call and map every failure to :class:`NetworkError`."""
        headers = {"Accept": "application/json", "User-Agent": self._user_agent}
        if bearer_token is not None:
            headers["Authorization"] = f"Bearer {bearer_token}"

        kwargs: dict[str, Any] = {"headers": headers}
        if params is not None:
            kwargs["params"] = params
        if data is not None:
            kwargs["data"] = data
        if basic_auth is not None:
            kwargs["auth"] = httpx.BasicAuth(*basic_auth)

        logger.debug("%s %s (timeout=%ss, verify=%s)", method, url, timeout, verify)

        try:
            with httpx.Client(
                transport=self._transport,
                verify=verify,
                timeout=timeout,
                follow_redirects=False,
            ) as client:
                response = client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("%s %s timed out after %ss", method, url, timeout)
            raise NetworkError(f"{method} {url} timed out after {timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise NetworkError(f"{method} {url} failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "%s %s returned HTTP %d: %s",
                method, url, response.status_code, response.text,
            )
            raise NetworkError(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug("response from %s: %s", url, response.text)
        return response.text


def decode_json_and_check_error(text: str, what: str = "response") -> dict[str, Any]:
    """Decode a provider response and reject OAuth 2.0 error objects.

    Args:
        text: The raw response body.
        what: Short description used in error messages.

    Returns:
        The decoded top-level JSON object.

    Raises:
        ParseError: If the body is not a JSON object.
        ProviderError: If the object carries a top-level ``error`` member.
    """
    obj = decode_json_object(text, what)
    if "error" in obj:
        error = str(obj["error"])
        description = obj.get("error_description")
        if description is not None:
            description = str(description)
        logger.error(
            "%s contained an error: %s (%s)", what, error, description or "no description"
        )
        raise ProviderError(error, description)
    return obj
