"""The ``oidcrp`` command: root options, sub-command wiring and entry point.

:func:`main` is the console script. Protocol failures surface as
:class:`~oidcrp.exceptions.OidcrpError` and exit with that error's code
(see :mod:`oidcrp.exit_codes`); any other exception is a bug, so its
traceback is saved to ``<data dir>/logs`` and the process exits with 1.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer
from rich.logging import RichHandler

from oidcrp import __version__
from oidcrp.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED

app = typer.Typer(
    name="oidcrp",
    help="OpenID Connect relying party: discover providers and log in with the code flow.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"oidcrp {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, console: Any) -> None:
    """Send ``oidcrp.*`` log records to stderr through Rich.

    Any handler from an earlier invocation in the same process is replaced.
    """
    handler = RichHandler(console=console, show_time=False, show_path=verbose, markup=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger = logging.getLogger("oidcrp")
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _configured_format() -> Any:
    from oidcrp.config import load_global_config
    from oidcrp.exceptions import ConfigError
    from oidcrp.output import OutputFormat

    try:
        return OutputFormat(load_global_config().output.format)
    except ConfigError:
        # the command that loads the config reports the broken file
        return OutputFormat.AUTO


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True,
        help="Show version and exit.",
    ),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help="Provider to use (default: config or the only one)."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Print results as plain text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print results and errors."),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log protocol steps (requests, state changes)."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation."),
) -> None:
    """Set up output and logging, and share root options through ``ctx.obj``."""
    from oidcrp.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = _configured_format()

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet)
    set_output(output)
    _configure_logging(verbose, output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj.update(provider=provider, force=force)


def register_commands() -> None:
    """Attach the sub-commands to :data:`app`. Calling it again is a no-op."""
    if getattr(app, "_oidcrp_registered", False):
        return

    from oidcrp.commands.authorize import authorize_url_command
    from oidcrp.commands.config import config_app
    from oidcrp.commands.discover import discover_command
    from oidcrp.commands.login import login_command
    from oidcrp.commands.provider import provider_app
    from oidcrp.commands.token import token_app
    from oidcrp.commands.userinfo import userinfo_command

    for name, command in (
        ("discover", discover_command),
        ("authorize-url", authorize_url_command),
        ("login", login_command),
        ("userinfo", userinfo_command),
    ):
        app.command(name)(command)
    app.add_typer(provider_app, name="provider", help="Manage OpenID Providers.")
    app.add_typer(token_app, name="token", help="Inspect tokens.")
    app.add_typer(config_app, name="config", help="Configuration management.")
    app._oidcrp_registered = True  # type: ignore[attr-defined]


# --- Entry point ---


def _on_sigint(signum: int, frame: Any) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def _write_crash_log() -> Path:
    from oidcrp.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    path.write_text(traceback.format_exc(), encoding="utf-8")
    return path


def main() -> None:
    """Run the CLI. Always ends in :class:`SystemExit`."""
    from oidcrp.exceptions import OidcrpError
    from oidcrp.output import error

    signal.signal(signal.SIGINT, _on_sigint)
    try:
        register_commands()
        app()
    except KeyboardInterrupt:
        _on_sigint(signal.SIGINT, None)
    except OidcrpError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception:
        error(f"Unexpected error. Debug log: {_write_crash_log()}")
        sys.exit(EXIT_GENERIC_FAILURE)
