"""Front-channel half of the authorization code flow.

- :func:`build_authorization_request` -- the URL the browser is sent to.
- :func:`authorization_redirect` -- the same URL packaged as a 302 redirect.
- :func:`is_authorization_response` -- whether an inbound request is,
  syntax-wise, the provider's callback.
- :func:`raise_for_authorization_error` -- surfaces an ``error`` the
  provider put on the callback instead of a code.

None of these look at the *value* of ``state``: binding it to the stored
:class:`~oidcrp.models.AuthenticationContext` is the caller's job (see
:meth:`oidcrp.flow.AuthenticationAttempt.complete`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import parse_qs, quote, urlsplit

from oidcrp.exceptions import ProviderError
from oidcrp.models import Provider

logger = logging.getLogger(__name__)


def _escape(value: str) -> str:
    # Only RFC 3986 unreserved characters stay literal.
    return quote(value, safe="")


def build_authorization_request(
    provider: Provider,
    redirect_uri: str,
    state: str,
    original_url: str,
) -> str:
    """Assemble the authorization request URL for *provider*.

    Args:
        provider: The provider to authenticate against.
        redirect_uri: Where the provider should send the browser back to.
        state: Opaque value bound to this attempt.
        original_url: The URL the user originally asked for. Only logged
            here; it travels in the :class:`~oidcrp.models.AuthenticationContext`.

    Returns:
        ``<authorization_endpoint>?response_type=code&scope=...&client_id=...
        &state=...&redirect_uri=...`` (``&`` instead of ``?`` when the
        endpoint already has a query string).
    """
    logger.debug(
        "building authorization request (issuer=%s, original_url=%s)",
        provider.issuer, original_url,
    )
    endpoint = provider.authorization_endpoint
    separator = "&" if "?" in endpoint else "?"
    destination = (
        f"{endpoint}{separator}response_type=code"
        f"&scope={_escape(provider.scope)}"
        f"&client_id={_escape(provider.client_id)}"
        f"&state={_escape(state)}"
        f"&redirect_uri={_escape(redirect_uri)}"
    )
    logger.debug("authorization request location: %s", destination)
    return destination


@dataclass(frozen=True)
class AuthorizationRedirect:
    """An HTTP redirect for the hosting server to emit."""

    location: str
    status_code: int = 302

    @property
    def headers(self) -> dict[str, str]:
        return {"Location": self.location}


def authorization_redirect(
    provider: Provider,
    redirect_uri: str,
    state: str,
    original_url: str,
) -> AuthorizationRedirect:
    """Return the authorization request as a ``302 Found`` redirect."""
    return AuthorizationRedirect(
        location=build_authorization_request(provider, redirect_uri, state, original_url)
    )


def _request_parameters(
    request_url: str, form: Optional[Mapping[str, str]]
) -> dict[str, list[str]]:
    params = parse_qs(urlsplit(request_url).query, keep_blank_values=True)
    if form:
        for key, value in form.items():
            params.setdefault(key, []).append(value)
    return params


def request_matches_url(request_url: str, url: str) -> bool:
    """Whether *request_url* addresses the same endpoint as *url*.

    Paths must be equal. When *request_url* is absolute its scheme and host
    must match as well; a bare ``/path?query`` only compares the path.
    """
    request = urlsplit(request_url)
    target = urlsplit(url)
    if (request.path or "/") != (target.path or "/"):
        return False
    if request.netloc:
        return (
            request.scheme.lower() == target.scheme.lower()
            and request.netloc.lower() == target.netloc.lower()
        )
    return True


def is_authorization_response(
    request_url: str,
    redirect_uri: str,
    form: Optional[Mapping[str, str]] = None,
) -> bool:
    """Whether an inbound request is an authorization response, syntax-wise.

    Args:
        request_url: The request's URL (absolute, or path plus query).
        redirect_uri: The configured redirect URI.
        form: Decoded POST form fields, for ``response_mode=form_post``.

    Returns:
        ``True`` iff the request targets *redirect_uri* and carries both a
        ``code`` and a ``state`` parameter. Their values are not inspected.
    """
    if not request_matches_url(request_url, redirect_uri):
        return False
    params = _request_parameters(request_url, form)
    return "code" in params and "state" in params


def raise_for_authorization_error(
    request_url: str, form: Optional[Mapping[str, str]] = None
) -> None:
    """Raise :class:`ProviderError` if the callback carries an ``error`` parameter."""
    params = _request_parameters(request_url, form)
    if "error" not in params:
        return
    error = params["error"][0]
    description = params.get("error_description", [None])[0]
    logger.error(
        "authorization response contained an error: %s (%s)",
        error, description or "no description",
    )
    raise ProviderError(error, description)
