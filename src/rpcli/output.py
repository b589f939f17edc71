"""Terminal output for rpcli.

Two streams, two jobs:

* **stdout** carries data only: the canonical JSON of an RPC response
  (written by :mod:`rpcli.generator.invoker`) and the results of the
  built-in ``config`` and ``inspect`` commands.
* **stderr** carries every diagnostic: status lines, deprecation notices,
  errors and, under ``--verbose``, a trace of how the command tree was
  built and which calls were sent.

Rich rendering is used when stdout is a terminal. ``NO_COLOR``,
``TERM=dumb`` and ``--no-color`` turn colour off, in which case
diagnostics are printed as bare lines to the current ``sys.stderr``.

The root callback installs one :class:`OutputManager` with
:func:`set_output`; library code reaches it through :func:`get_output`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text


class OutputFormat(str, Enum):
    """How the built-in commands render their results.

    ``AUTO`` becomes ``RICH`` on a colour-capable terminal and ``PLAIN``
    everywhere else.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes rpcli's data to stdout and its diagnostics to stderr.

    Args:
        format: Rendering of built-in command results.
        no_color: Print diagnostics as bare text.
        quiet: Drop status lines (``info`` and ``success``). Warnings,
            deprecation notices and errors are always shown.
        verbose: Show ``debug`` and ``trace`` lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        """Write *text* and a newline to stdout."""
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Render a dict, list or JSON string in the active format.

        JSON mode re-indents JSON text and passes anything else through.
        Plain mode prints ``key<TAB>value`` lines for a dict and one line
        per item for a list. Rich mode highlights the JSON.
        """
        if self._format == OutputFormat.JSON:
            if isinstance(data, str):
                try:
                    data = json.loads(data)
                except ValueError:
                    self.print_data(data)
                    return
            self.print_data(_dump(data))
            return

        if self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
            return

        if isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_dump(data), "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data), markup=False)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows under *headers*.

        JSON mode prints a list of objects keyed by header. Plain mode
        prints tab-separated lines with the header first and ignores
        *title*.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_dump([dict(zip(headers, row)) for row in rows]))
        elif self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
        else:
            table = Table(title=title, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._emit("", message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._emit("", message, style="green", whole=True)

    def warning(self, message: str) -> None:
        self._emit("Warning: ", message, style="yellow")

    def error(self, message: str) -> None:
        self._emit("Error: ", message, style="bold red")

    def deprecated(self, command_path: str, notice: str) -> None:
        """Warn that the command at *command_path* is deprecated.

        *notice* is the free-form deprecation text of the command, usually
        naming its replacement.
        """
        self.warning(f"Command {command_path!r} is deprecated, {notice}")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._emit("[debug] ", message, style="dim", whole=True)

    def trace(self, action: str, name: str, detail: str = "") -> None:
        """Log one step of the command tree build at debug level.

        Example: ``trace("generated", "balance", "/pkg.Bank/Balance")``
        prints ``[debug] generated balance (/pkg.Bank/Balance)``.
        """
        self.debug(f"{action} {name} ({detail})" if detail else f"{action} {name}")

    def _emit(self, label: str, message: str, style: str = "", whole: bool = False) -> None:
        if self._no_color:
            print(f"{label}{message}", file=sys.stderr, flush=True)
            return
        # Text, not markup: messages carry user input such as "[DEPRECATED]".
        self._stderr.print(Text.assemble((label, style), (message, style if whole else "")))


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> list[str]:
    if isinstance(data, dict):
        return [f"{key}\t{value}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
            for item in data
        ]
    return [str(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (to anything) or ``TERM`` is ``dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating an ``AUTO`` one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager; the next :func:`get_output` makes a new one."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
