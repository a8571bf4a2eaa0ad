"""Authorize-url command -- print the authorization request for the active provider.

Useful when the browser leg of the flow is driven by hand, or to check what
a provider will be sent::

    oidcrp authorize-url
    oidcrp -p example authorize-url --state abc --original-url /reports
"""

from __future__ import annotations

from typing import Optional

import typer

from oidcrp.exceptions import OidcrpError
from oidcrp.output import OutputFormat, format_response, get_output, info, print_data


def authorize_url_command(
    ctx: typer.Context,
    state: Optional[str] = typer.Option(
        None, "--state", help="Explicit state value (random when omitted)."
    ),
    original_url: str = typer.Option(
        "/", "--original-url", help="URL to return to after login."
    ),
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", help="Override the configured redirect URI."
    ),
) -> None:
    """Print the authorization request URL for the active provider."""
    from oidcrp.commands._common import active_provider, fail, make_relying_party

    try:
        config, provider = active_provider(ctx, with_secret=False)
        if redirect_uri is not None:
            config = config.model_copy(update={"redirect_uri": redirect_uri})
        attempt = make_relying_party(config).begin(provider, original_url, state)
    except OidcrpError as exc:
        fail(exc)

    context = attempt.context
    if get_output().format == OutputFormat.JSON:
        format_response(
            {
                "authorization_url": attempt.authorization_url,
                "state": context.state,
                "redirect_uri": context.redirect_uri,
                "provider": context.provider_name,
            }
        )
        return

    print_data(attempt.authorization_url)
    info(f"state: {context.state}")
