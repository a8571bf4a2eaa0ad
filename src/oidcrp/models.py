"""Canonical Pydantic models shared across all oidcrp modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`OutputConfig`, :class:`GlobalConfig`, and :class:`ProviderProfile`.
    A profile is resolved into a runtime :class:`Provider` once its client
    secret has been read from its credential source.

**Protocol models** -- produced and consumed by :mod:`oidcrp.proto` during
one authentication attempt:
    :class:`Provider`, :class:`AuthenticationContext`, :class:`TokenResponse`,
    :class:`SingleAudience` / :class:`MultipleAudience`, :class:`IDTokenClaims`,
    :class:`ParsedIDToken`, and :class:`AuthenticationResult`.

Protocol models are frozen: a provider's trust parameters are read-only for
the whole attempt and may be shared between concurrent attempts.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Provider ---


class TokenEndpointAuthMethod(str, enum.Enum):
    """How the client authenticates itself at the token endpoint."""

    CLIENT_SECRET_BASIC = "client_secret_basic"
    CLIENT_SECRET_POST = "client_secret_post"


class _ProviderFields(BaseModel):
    name: str
    issuer: str
    client_id: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: Optional[str] = None
    token_endpoint_auth: TokenEndpointAuthMethod = Field(
        default=TokenEndpointAuthMethod.CLIENT_SECRET_BASIC,
        description="client_secret_basic or client_secret_post",
    )
    scope: str = Field(default="openid", description="Space-separated scope value")
    ssl_validate_server: bool = Field(
        default=True, description="Verify the provider's TLS certificates"
    )

    @property
    def has_userinfo_endpoint(self) -> bool:
        """Whether a non-empty UserInfo endpoint is configured."""
        return bool(self.userinfo_endpoint)


class ProviderProfile(_ProviderFields):
    """Persisted provider configuration stored under ``providers/<name>.json``.

    The client secret itself is never written to disk; ``client_secret_source``
    names where to read it from (see :func:`oidcrp.config.resolve_credential`).

    Example::

        ProviderProfile(
            name="example",
            issuer="https://op.example.com",
            client_id="client123",
            client_secret_source="env:EXAMPLE_CLIENT_SECRET",
            authorization_endpoint="https://op.example.com/authorize",
            token_endpoint="https://op.example.com/token",
        )
    """

    model_config = ConfigDict(extra="allow")

    client_secret_source: str = Field(
        default="prompt",
        description="Credential source: env:VAR, file:/path, prompt, literal:VALUE",
    )


class Provider(_ProviderFields):
    """An OpenID Provider's trust parameters as seen by one authentication attempt."""

    model_config = ConfigDict(frozen=True)

    client_secret: str = Field(repr=False)


# --- Global config ---


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Used when neither --json nor --plain is given"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/oidcrp/config.json``.

    Loaded and saved by :func:`~oidcrp.config.load_global_config` and
    :func:`~oidcrp.config.save_global_config`. See
    :func:`~oidcrp.config.resolve_config` for how CLI flags and environment
    variables override it.
    """

    redirect_uri: str = Field(
        default="http://127.0.0.1:8765/callback",
        description="Redirect URI registered with every provider",
    )
    http_timeout_short: float = Field(
        default=5.0, description="Timeout in seconds for discovery calls"
    )
    http_timeout_long: float = Field(
        default=60.0, description="Timeout in seconds for token and UserInfo calls"
    )
    ssl_validate_server: bool = Field(
        default=True,
        description="Verify TLS certificates for WebFinger and metadata discovery",
    )
    default_provider: Optional[str] = None
    auto_select_single_provider: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Per-attempt protocol models ---


class AuthenticationContext(BaseModel):
    """State carried from the authorization request to the callback.

    Where this lives between the two requests (cookie, server-side session)
    is up to the hosting application.
    """

    model_config = ConfigDict(frozen=True)

    state: str
    original_url: str
    redirect_uri: str
    provider_name: str


class TokenResponse(BaseModel):
    """The three token endpoint fields the relying party consumes."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)
    token_type: str
    id_token: str = Field(repr=False)


class SingleAudience(BaseModel):
    """An ``aud`` claim encoded as a single JSON string."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    value: str

    def contains(self, client_id: str) -> bool:
        return self.value == client_id


class MultipleAudience(BaseModel):
    """An ``aud`` claim encoded as a JSON array (string members only)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["multiple"] = "multiple"
    values: list[str] = Field(default_factory=list)

    def contains(self, client_id: str) -> bool:
        return client_id in self.values


Audience = Annotated[Union[SingleAudience, MultipleAudience], Field(discriminator="kind")]


class ParsedIDToken(BaseModel):
    """A compact-serialised ID Token split and decoded, but not yet validated.

    ``signature`` is the raw third segment. It is never verified.
    """

    model_config = ConfigDict(frozen=True)

    header: dict[str, Any]
    payload: dict[str, Any]
    signature: str
    raw: str = Field(repr=False)


class IDTokenClaims(BaseModel):
    """Validated identity claims extracted from an ID Token payload.

    Once produced by :class:`~oidcrp.proto.idtoken.IDTokenValidator`,
    ``expires_at`` was not in the past at validation time and ``audience``
    contains the provider's client_id.
    """

    model_config = ConfigDict(frozen=True)

    issuer: str
    subject: str
    audience: Audience
    authorized_party: Optional[str] = None
    expires_at: datetime
    payload: dict[str, Any] = Field(default_factory=dict)


class AuthenticationResult(BaseModel):
    """Outcome of a successful authentication attempt."""

    model_config = ConfigDict(frozen=True)

    provider_name: str
    username: str
    claims: IDTokenClaims
    tokens: TokenResponse
    userinfo: Optional[dict[str, Any]] = None
    original_url: str
