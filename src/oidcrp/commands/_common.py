"""Helpers shared by the command modules."""

from __future__ import annotations

from typing import NoReturn, Optional

import typer

from oidcrp.client.http import HttpClient
from oidcrp.exceptions import InvalidUsageError, OidcrpError
from oidcrp.flow import RelyingParty
from oidcrp.models import GlobalConfig, Provider
from oidcrp.output import error, suggest


def make_http_client() -> HttpClient:
    """Return the HTTP client used by commands. Tests patch this."""
    return HttpClient()


def make_relying_party(config: GlobalConfig) -> RelyingParty:
    return RelyingParty(config, http=make_http_client())


def cli_provider(ctx: typer.Context) -> Optional[str]:
    return ctx.obj.get("provider") if ctx.obj else None


def active_provider(
    ctx: typer.Context, with_secret: bool = True
) -> tuple[GlobalConfig, Provider]:
    """Resolve the global config and the provider selected for this invocation.

    Raises:
        InvalidUsageError: If no provider is selected and none can be
            auto-selected.
        ConfigError: If the provider cannot be loaded.
    """
    from oidcrp.config import load_provider, resolve_config

    config, name = resolve_config(cli_provider=cli_provider(ctx))
    if name is None:
        raise InvalidUsageError(
            "No provider selected. Use --provider, OIDCRP_PROVIDER, "
            "or 'oidcrp config set default_provider NAME'."
        )
    return config, load_provider(name, with_secret=with_secret)


def fail(exc: OidcrpError) -> NoReturn:
    """Report *exc* on stderr and exit with its exit code."""
    error(str(exc))
    if isinstance(exc, InvalidUsageError):
        suggest("List configured providers: oidcrp provider list")
    raise typer.Exit(code=exc.exit_code)
