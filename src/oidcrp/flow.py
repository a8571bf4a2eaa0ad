"""Authentication attempt orchestration.

:class:`RelyingParty` wires the protocol components together with the
configured timeouts; :class:`AuthenticationAttempt` walks one login through
its states, strictly in order::

    unauthenticated -> authorization_requested -> callback_pending
        -> code_received -> exchanging
        -> exchange_failed | id_token_invalid | authenticated

Failure states are terminal. Nothing is retried; the caller starts a new
attempt if it wants to try again.

Example::

    rp = RelyingParty(load_global_config())
    attempt = rp.begin(provider, original_url="/reports")
    # store attempt.context, redirect to attempt.authorization_url
    ...
    result = rp.resume(provider, context).complete(callback_url)
"""

from __future__ import annotations

import enum
import hmac
import logging
import secrets
from typing import Any, Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from oidcrp.client.http import HttpClient
from oidcrp.exceptions import OidcrpError, ProtocolError, ValidationError
from oidcrp.models import (
    AuthenticationContext,
    AuthenticationResult,
    GlobalConfig,
    IDTokenClaims,
    Provider,
    TokenResponse,
)
from oidcrp.proto.authorization import (
    build_authorization_request,
    is_authorization_response,
    raise_for_authorization_error,
    request_matches_url,
)
from oidcrp.proto.discovery import IssuerDiscovery
from oidcrp.proto.idtoken import IDTokenValidator
from oidcrp.proto.token import CodeExchangeClient
from oidcrp.proto.userinfo import UserInfoClient

logger = logging.getLogger(__name__)


class FlowState(str, enum.Enum):
    """Where one authentication attempt currently stands."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHORIZATION_REQUESTED = "authorization_requested"
    CALLBACK_PENDING = "callback_pending"
    CODE_RECEIVED = "code_received"
    EXCHANGING = "exchanging"
    EXCHANGE_FAILED = "exchange_failed"
    ID_TOKEN_INVALID = "id_token_invalid"
    AUTHENTICATED = "authenticated"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset(
    {FlowState.EXCHANGE_FAILED, FlowState.ID_TOKEN_INVALID, FlowState.AUTHENTICATED}
)


def new_state_value() -> str:
    """Return a fresh, unguessable ``state`` parameter value."""
    return secrets.token_urlsafe(32)


class RelyingParty:
    """Entry point for hosting applications.

    Args:
        config: Supplies the redirect URI, timeout budgets and the TLS flag
            used for discovery.
        http: HTTP collaborator; a default :class:`HttpClient` when ``None``.
    """

    def __init__(self, config: GlobalConfig, http: Optional[HttpClient] = None) -> None:
        self.config = config
        self.http = http or HttpClient()
        self.validator = IDTokenValidator()
        self.token_client = CodeExchangeClient(
            self.http, timeout=config.http_timeout_long, validator=self.validator
        )
        self.userinfo_client = UserInfoClient(self.http, timeout=config.http_timeout_long)
        self.discovery = IssuerDiscovery(
            self.http,
            timeout=config.http_timeout_short,
            verify=config.ssl_validate_server,
        )

    def begin(
        self,
        provider: Provider,
        original_url: str,
        state: Optional[str] = None,
    ) -> AuthenticationAttempt:
        """Start an attempt and build its authorization request.

        Args:
            provider: The provider to authenticate against.
            original_url: Where to send the user once authenticated.
            state: Explicit ``state`` value; a random one when ``None``.
        """
        attempt = AuthenticationAttempt(self, provider)
        attempt.request_authorization(original_url, state or new_state_value())
        return attempt

    def resume(
        self, provider: Provider, context: AuthenticationContext
    ) -> AuthenticationAttempt:
        """Rebuild an attempt awaiting its callback from a stored context."""
        if context.provider_name != provider.name:
            raise ProtocolError(
                f"Stored context belongs to provider '{context.provider_name}', "
                f"not '{provider.name}'"
            )
        attempt = AuthenticationAttempt(self, provider)
        attempt._context = context
        attempt._authorization_url = build_authorization_request(
            provider, context.redirect_uri, context.state, context.original_url
        )
        attempt._state = FlowState.CALLBACK_PENDING
        return attempt

    def discover_issuer(self, account: str) -> str:
        """Resolve an account identifier to an issuer. See :class:`IssuerDiscovery`."""
        return self.discovery.discover_issuer(account)


class AuthenticationAttempt:
    """One login, from authorization request to authenticated identity."""

    def __init__(self, rp: RelyingParty, provider: Provider) -> None:
        self._rp = rp
        self._provider = provider
        self._state = FlowState.UNAUTHENTICATED
        self._context: Optional[AuthenticationContext] = None
        self._authorization_url: Optional[str] = None

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def provider(self) -> Provider:
        return self._provider

    @property
    def context(self) -> AuthenticationContext:
        if self._context is None:
            raise ProtocolError("Authorization has not been requested yet")
        return self._context

    @property
    def authorization_url(self) -> str:
        if self._authorization_url is None:
            raise ProtocolError("Authorization has not been requested yet")
        return self._authorization_url

    def _transition(self, expected: FlowState, new: FlowState) -> None:
        if self._state != expected:
            raise ProtocolError(
                f"Cannot move to '{new.value}' from '{self._state.value}'"
            )
        logger.debug("attempt %s -> %s", self._state.value, new.value)
        self._state = new

    def _fail(self, new: FlowState) -> None:
        logger.debug("attempt %s -> %s", self._state.value, new.value)
        self._state = new

    def request_authorization(self, original_url: str, state: str) -> str:
        """Build the authorization request and move to ``callback_pending``."""
        self._transition(FlowState.UNAUTHENTICATED, FlowState.AUTHORIZATION_REQUESTED)
        redirect_uri = self._rp.config.redirect_uri
        self._context = AuthenticationContext(
            state=state,
            original_url=original_url,
            redirect_uri=redirect_uri,
            provider_name=self._provider.name,
        )
        self._authorization_url = build_authorization_request(
            self._provider, redirect_uri, state, original_url
        )
        self._transition(FlowState.AUTHORIZATION_REQUESTED, FlowState.CALLBACK_PENDING)
        return self._authorization_url

    def complete(
        self,
        request_url: str,
        form: Optional[Mapping[str, str]] = None,
        fetch_userinfo: bool = True,
        now: Optional[int | float] = None,
    ) -> AuthenticationResult:
        """Process the provider's callback and finish the attempt.

        Args:
            request_url: The callback request's URL.
            form: Decoded POST form fields, if the callback was a POST.
            fetch_userinfo: Fetch UserInfo claims when the provider has an
                endpoint configured.
            now: Override for the current time in epoch seconds.

        Returns:
            The :class:`~oidcrp.models.AuthenticationResult`.

        Raises:
            OidcrpError: Any failure; the attempt is left in a terminal
                failure state and never yields partial results.
        """
        if self._state != FlowState.CALLBACK_PENDING:
            raise ProtocolError(
                f"Attempt is '{self._state.value}', not awaiting a callback"
            )
        context = self.context

        not_a_response = f"Request is not an authorization response for {context.redirect_uri}"
        try:
            if not request_matches_url(request_url, context.redirect_uri):
                raise ProtocolError(not_a_response)
            raise_for_authorization_error(request_url, form)
            if not is_authorization_response(request_url, context.redirect_uri, form):
                raise ProtocolError(not_a_response)
            params = _collect_parameters(request_url, form)
            self._check_state(params["state"])
        except OidcrpError:
            self._fail(FlowState.EXCHANGE_FAILED)
            raise

        self._transition(FlowState.CALLBACK_PENDING, FlowState.CODE_RECEIVED)
        self._transition(FlowState.CODE_RECEIVED, FlowState.EXCHANGING)

        tokens = self._exchange(params["code"], context.redirect_uri)
        claims = self._validate(tokens, now)

        userinfo: Optional[dict[str, Any]] = None
        if fetch_userinfo and self._provider.has_userinfo_endpoint:
            try:
                userinfo = self._rp.userinfo_client.fetch(self._provider, tokens.access_token)
            except OidcrpError:
                self._fail(FlowState.EXCHANGE_FAILED)
                raise

        self._transition(FlowState.EXCHANGING, FlowState.AUTHENTICATED)
        logger.info(
            "authenticated user %s at %s", claims.subject, self._provider.issuer
        )
        return AuthenticationResult(
            provider_name=self._provider.name,
            username=claims.subject,
            claims=claims,
            tokens=tokens,
            userinfo=userinfo,
            original_url=context.original_url,
        )

    def _check_state(self, received: str) -> None:
        if not hmac.compare_digest(received.encode(), self.context.state.encode()):
            logger.error("state parameter does not match the stored context")
            raise ValidationError("state parameter does not match the stored context")

    def _exchange(self, code: str, redirect_uri: str) -> TokenResponse:
        try:
            return self._rp.token_client.request_tokens(self._provider, code, redirect_uri)
        except OidcrpError:
            self._fail(FlowState.EXCHANGE_FAILED)
            raise

    def _validate(self, tokens: TokenResponse, now: Optional[int | float]) -> IDTokenClaims:
        try:
            return self._rp.validator.validate(self._provider, tokens.id_token, now)
        except OidcrpError:
            self._fail(FlowState.ID_TOKEN_INVALID)
            raise


def _collect_parameters(
    request_url: str, form: Optional[Mapping[str, str]]
) -> dict[str, str]:
    params = {
        key: values[0]
        for key, values in parse_qs(urlsplit(request_url).query, keep_blank_values=True).items()
    }
    if form:
        for key, value in form.items():
            params.setdefault(key, value)
    return params
