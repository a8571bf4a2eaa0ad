"""Terminal output for the oidcrp CLI.

Data a caller may want to capture (issuers, authorization URLs, claim sets)
goes to **stdout**; everything addressed to the human at the keyboard
(progress, warnings, errors, next-step hints) goes to **stderr**. Colour is
dropped when ``NO_COLOR`` is set, ``TERM=dumb``, or ``--no-color`` is given.

:func:`~oidcrp.app.main_callback` builds one :class:`OutputManager` per
invocation and installs it with :func:`set_output`; command modules call the
module-level shortcuts. Protocol code under :mod:`oidcrp.proto` logs through
:mod:`logging` and never writes here.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormat(str, Enum):
    """How claim sets and tables are rendered on stdout.

    ``AUTO`` becomes ``RICH`` on a colour-capable terminal and ``PLAIN``
    everywhere else.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# Diagnostic kinds: (plain prefix, rich template, silenced by --quiet)
_DIAGNOSTICS: dict[str, tuple[str, str, bool]] = {
    "info": ("", "{message}", True),
    "success": ("", "[green]{message}[/green]", True),
    "suggest": ("→ ", "[dim]→ {message}[/dim]", True),
    "warning": ("Warning: ", "[yellow]Warning:[/yellow] {message}", False),
    "error": ("Error: ", "[bold red]Error:[/bold red] {message}", False),
}


class OutputManager:
    """Renders command results and diagnostics for one CLI invocation.

    Args:
        format: Rendering for stdout data. ``AUTO`` is resolved here.
        no_color: Never emit colour or Rich markup.
        quiet: Drop info, success and suggestion messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet

        if format != OutputFormat.AUTO:
            self._format = format
        elif _is_tty() and not self._no_color:
            self._format = OutputFormat.RICH
        else:
            self._format = OutputFormat.PLAIN

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=self._format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def stderr_console(self) -> Console:
        """Console on stderr; the CLI's log handler writes through it."""
        return self._stderr

    # --- stdout ---

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Write a result object to stdout.

        JSON mode dumps *data* as-is. Plain mode prints one ``key<TAB>value``
        line per top-level member, nested values as compact JSON. Rich mode
        shows a two-column field/value table.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_dumps(data, indent=2))
            return

        if not isinstance(data, dict):
            self.print_data(data if isinstance(data, str) else _dumps(data))
            return

        if self._format == OutputFormat.PLAIN:
            for key, value in data.items():
                self.print_data(f"{key}\t{_scalar(value)}")
            return

        table = Table(show_header=False, box=None, pad_edge=False)
        table.add_column(style="bold cyan", no_wrap=True)
        table.add_column(overflow="fold")
        for key, value in data.items():
            table.add_row(str(key), _scalar(value, indent=2))
        self._stdout.print(table)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows to stdout: JSON records, TSV lines, or a Rich table."""
        if self._format == OutputFormat.JSON:
            self.print_data(_dumps([dict(zip(headers, row)) for row in rows], indent=2))
        elif self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
        else:
            table = Table(*headers, title=title, header_style="bold cyan")
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    # --- stderr ---

    def _diagnostic(self, kind: str, message: str) -> None:
        prefix, template, quietable = _DIAGNOSTICS[kind]
        if quietable and self._quiet:
            return
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(template.format(message=message))

    def info(self, message: str) -> None:
        self._diagnostic("info", message)

    def success(self, message: str) -> None:
        self._diagnostic("success", message)

    def suggest(self, message: str) -> None:
        """Print a next-step hint, e.g. the command to run after this one."""
        self._diagnostic("suggest", message)

    def warning(self, message: str) -> None:
        """Print a warning. Shown even with ``--quiet``."""
        self._diagnostic("warning", message)

    def error(self, message: str) -> None:
        """Print an error. Shown even with ``--quiet``."""
        self._diagnostic("error", message)


def _dumps(data: Any, indent: Optional[int] = None) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False, default=str)


def _scalar(value: Any, indent: Optional[int] = None) -> str:
    if isinstance(value, (dict, list)):
        return _dumps(value, indent=indent)
    if value is None:
        return "-" if indent else ""
    return str(value)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (to anything) or ``TERM`` is ``dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# --- global instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager so the next call builds a fresh one."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)
