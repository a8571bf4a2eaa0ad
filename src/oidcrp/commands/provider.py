"""Provider commands -- manage the OpenID Providers oidcrp can log in with.

Each provider is a :class:`~oidcrp.models.ProviderProfile` stored as one JSON
file in the providers directory. The client secret is never stored; the
profile records a credential source instead (``env:VAR``, ``file:/path``,
``prompt``).

Typical workflow::

    oidcrp provider add example --issuer https://op.example.com \\
        --client-id rp123 --client-secret-source env:EXAMPLE_SECRET --discover
    oidcrp provider list
    oidcrp provider show example
"""

from __future__ import annotations

from typing import Optional

import typer

from oidcrp.exceptions import ConfigError, InvalidUsageError, OidcrpError
from oidcrp.models import TokenEndpointAuthMethod
from oidcrp.output import format_response, info, print_table, success, suggest


provider_app = typer.Typer(no_args_is_help=True)


@provider_app.command("add")
def provider_add(
    ctx: typer.Context,
    name: str = typer.Argument(help="Name to store the provider under."),
    issuer: str = typer.Option(..., "--issuer", help="Issuer identifier URL."),
    client_id: str = typer.Option(..., "--client-id", help="Client identifier."),
    discover: bool = typer.Option(
        False, "--discover", help="Fill endpoints from the provider configuration."
    ),
    authorization_endpoint: Optional[str] = typer.Option(
        None, "--authorization-endpoint", help="Authorization endpoint URL."
    ),
    token_endpoint: Optional[str] = typer.Option(
        None, "--token-endpoint", help="Token endpoint URL."
    ),
    userinfo_endpoint: Optional[str] = typer.Option(
        None, "--userinfo-endpoint", help="UserInfo endpoint URL."
    ),
    client_secret_source: str = typer.Option(
        "prompt",
        "--client-secret-source",
        help="Where to read the client secret: env:VAR, file:/path, or prompt.",
    ),
    auth_method: Optional[TokenEndpointAuthMethod] = typer.Option(
        None, "--auth-method", help="Token endpoint client authentication."
    ),
    scope: str = typer.Option("openid", "--scope", help="Requested scope."),
    insecure: bool = typer.Option(
        False, "--insecure", help="Do not verify the provider's TLS certificates."
    ),
) -> None:
    """Register an OpenID Provider.

    Endpoints given on the command line take precedence over discovered
    ones. Without ``--discover`` the authorization and token endpoints are
    required.

    Raises:
        typer.Exit: With code 2 on missing endpoints or an existing provider
            (unless ``--force``), or the failing error's exit code.

    Example::

        oidcrp provider add example --issuer https://op.example.com \\
            --client-id rp123 --discover
    """
    from oidcrp.commands._common import fail, make_relying_party
    from oidcrp.config import provider_exists, resolve_config, save_provider_profile
    from oidcrp.models import ProviderProfile
    from oidcrp.proto.discovery import provider_from_metadata

    force = ctx.obj.get("force", False) if ctx.obj else False

    try:
        if provider_exists(name) and not force:
            raise InvalidUsageError(
                f"Provider '{name}' already exists. Use --force to overwrite."
            )

        if discover:
            config, _ = resolve_config()
            metadata = make_relying_party(config).discovery.fetch_provider_metadata(issuer)
            profile = provider_from_metadata(
                name,
                metadata,
                client_id,
                client_secret_source=client_secret_source,
                scope=scope,
                ssl_validate_server=not insecure,
                token_endpoint_auth=auth_method,
            )
            overrides = {
                "authorization_endpoint": authorization_endpoint,
                "token_endpoint": token_endpoint,
                "userinfo_endpoint": userinfo_endpoint,
            }
            profile = profile.model_copy(
                update={k: v for k, v in overrides.items() if v is not None}
            )
        else:
            if not authorization_endpoint or not token_endpoint:
                raise InvalidUsageError(
                    "--authorization-endpoint and --token-endpoint are required "
                    "without --discover"
                )
            profile = ProviderProfile(
                name=name,
                issuer=issuer,
                client_id=client_id,
                client_secret_source=client_secret_source,
                authorization_endpoint=authorization_endpoint,
                token_endpoint=token_endpoint,
                userinfo_endpoint=userinfo_endpoint,
                token_endpoint_auth=auth_method or TokenEndpointAuthMethod.CLIENT_SECRET_BASIC,
                scope=scope,
                ssl_validate_server=not insecure,
            )

        save_provider_profile(profile)
    except OidcrpError as exc:
        fail(exc)

    success(f'Provider "{name}" saved.')
    suggest(f"Log in: oidcrp -p {name} login")


@provider_app.command("list")
def provider_list() -> None:
    """List configured providers.

    The default provider (from the global config) is marked with ``*``.
    """
    from oidcrp.commands._common import fail
    from oidcrp.config import list_providers, load_global_config, load_provider_profile

    try:
        names = list_providers()
        default = load_global_config().default_provider
        rows = []
        for name in names:
            profile = load_provider_profile(name)
            marker = "*" if name == default else ""
            rows.append([marker, name, profile.issuer, profile.client_id])
    except OidcrpError as exc:
        fail(exc)

    if not rows:
        info("No providers configured.")
        suggest("Add one: oidcrp provider add NAME --issuer URL --client-id ID --discover")
        return

    print_table(["default", "name", "issuer", "client_id"], rows, title="Providers")


@provider_app.command("show")
def provider_show(
    name: str = typer.Argument(help="Provider name."),
) -> None:
    """Show a provider's stored configuration."""
    from oidcrp.commands._common import fail
    from oidcrp.config import load_provider_profile

    try:
        profile = load_provider_profile(name)
    except OidcrpError as exc:
        fail(exc)

    format_response(profile.model_dump(mode="json"))


@provider_app.command("remove")
def provider_remove(
    ctx: typer.Context,
    name: str = typer.Argument(help="Provider name."),
) -> None:
    """Remove a provider. Asks for confirmation unless ``--force`` is active."""
    from oidcrp.commands._common import fail
    from oidcrp.config import delete_provider, provider_exists

    force = ctx.obj.get("force", False) if ctx.obj else False

    try:
        if not provider_exists(name):
            raise ConfigError(f"Provider '{name}' not found")
    except OidcrpError as exc:
        fail(exc)

    if not force:
        confirmed = typer.confirm(f'Remove provider "{name}"?')
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    try:
        delete_provider(name)
    except OidcrpError as exc:
        fail(exc)

    success(f'Provider "{name}" removed.')
