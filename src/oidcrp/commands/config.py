"""Config commands -- inspect and edit ``config.json``.

Keys use dot notation for nested sections (``output.format``). Values are
passed as strings and converted by :class:`~oidcrp.models.GlobalConfig`'s
own validation, so ``true``/``false``, numbers and the literal choices are
accepted wherever the field type allows them::

    oidcrp config set redirect_uri http://localhost:9000/cb
    oidcrp config set http_timeout_long 30
    oidcrp config set default_provider none
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError as PydanticValidationError

from oidcrp.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_NULL_WORDS = ("", "none", "null")


@config_app.command("show")
def config_show() -> None:
    """Print the effective global configuration."""
    from oidcrp.commands._common import fail
    from oidcrp.config import get_config_dir, load_global_config
    from oidcrp.exceptions import OidcrpError

    try:
        config = load_global_config()
    except OidcrpError as exc:
        fail(exc)

    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


def _parent_section(data: dict[str, Any], key: str) -> tuple[dict[str, Any], str]:
    *sections, leaf = key.split(".")
    node = data
    for section in sections:
        node = node.get(section)
        if not isinstance(node, dict):
            raise KeyError(key)
    if leaf not in node or isinstance(node[leaf], dict):
        raise KeyError(key)
    return node, leaf


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting to change, e.g. 'redirect_uri' or 'output.format'."),
    value: str = typer.Argument(help="New value; 'none' clears an optional setting."),
) -> None:
    """Change one setting and save the file.

    Raises:
        typer.Exit: With code 2 for an unknown key or a value the setting
            does not accept.
    """
    from oidcrp.commands._common import fail
    from oidcrp.config import load_global_config, save_global_config
    from oidcrp.exceptions import OidcrpError
    from oidcrp.models import GlobalConfig

    try:
        data = load_global_config().model_dump(mode="json")
    except OidcrpError as exc:
        fail(exc)

    try:
        section, leaf = _parent_section(data, key)
    except KeyError:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2) from None

    section[leaf] = None if value.lower() in _NULL_WORDS else value
    try:
        updated = GlobalConfig.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        error(f"Invalid value for {key}: {first['msg']}")
        raise typer.Exit(code=2) from None

    save_global_config(updated)
    success(f"Set {key} = {value}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Restore the default settings. Stored providers are kept."""
    from oidcrp.config import save_global_config
    from oidcrp.models import GlobalConfig

    if not (ctx.obj or {}).get("force") and not typer.confirm(
        "Reset all settings to their defaults?"
    ):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
