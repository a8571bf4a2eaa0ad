"""Discover command -- resolve an account identifier to its OpenID Provider.

Runs OpenID Connect Discovery against the account's domain::

    oidcrp discover alice@example.com
    oidcrp discover alice@example.com --metadata --json

With ``--metadata`` the provider configuration document is fetched from the
discovered issuer as well.
"""

from __future__ import annotations

import typer

from oidcrp.exceptions import OidcrpError
from oidcrp.output import format_response, info, suggest


def discover_command(
    account: str = typer.Argument(help="Account identifier, e.g. alice@example.com."),
    metadata: bool = typer.Option(
        False, "--metadata", "-m", help="Also fetch the provider configuration."
    ),
) -> None:
    """Discover the issuer for ACCOUNT via WebFinger.

    Raises:
        typer.Exit: With the failing error's exit code.
    """
    from oidcrp.commands._common import fail, make_relying_party
    from oidcrp.config import resolve_config

    try:
        config, _ = resolve_config()
        rp = make_relying_party(config)
        issuer = rp.discover_issuer(account)
        info(f"Issuer for {account}: {issuer}")
        result: dict = {"account": account, "issuer": issuer}
        if metadata:
            result["metadata"] = rp.discovery.fetch_provider_metadata(issuer)
    except OidcrpError as exc:
        fail(exc)

    format_response(result)
    suggest(f"Register it: oidcrp provider add NAME --issuer {issuer} --client-id ID --discover")
