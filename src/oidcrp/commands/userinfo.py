"""UserInfo command -- fetch claims for an access token from the active provider."""

from __future__ import annotations

import typer

from oidcrp.exceptions import OidcrpError
from oidcrp.output import format_response


def userinfo_command(
    ctx: typer.Context,
    access_token: str = typer.Argument(help="Bearer access token."),
) -> None:
    """Call the active provider's UserInfo endpoint with ACCESS_TOKEN.

    Raises:
        typer.Exit: With the failing error's exit code.
    """
    from oidcrp.commands._common import active_provider, fail, make_relying_party

    try:
        config, provider = active_provider(ctx, with_secret=False)
        claims = make_relying_party(config).userinfo_client.fetch(provider, access_token)
    except OidcrpError as exc:
        fail(exc)

    format_response(claims)
