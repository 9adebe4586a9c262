"""Terminal output: payloads on stdout, diagnostics on stderr.

Everything a command prints falls in one of two streams.  Server payloads
(``get`` responses, version tables, the ``version`` report) go to stdout
in the selected :class:`OutputFormat`, so they can be piped.  Diagnostics
go to stderr at one of four levels:

=========  =====================================================
``info``   progress notes; hidden by ``--quiet``
``success`` confirmations from ``config`` commands; hidden by ``--quiet``
``error``  failures; always shown
``debug``  cache hits, negotiation, retries; shown by ``--verbose``
=========  =====================================================

:class:`~clientcache.cache.ClientCache` and the HTTP client report through
the module-level :func:`debug`, which writes to the :class:`OutputManager`
installed by :func:`~clientcache.app.main_callback`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Iterator, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text


class OutputFormat(str, Enum):
    """How stdout payloads are rendered.

    ``AUTO`` becomes ``RICH`` on a colour-capable terminal, else ``PLAIN``.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# level -> (prefix, prefix style, message style, shown when)
_LEVELS: dict[str, tuple[str, str, str, str]] = {
    "info": ("", "", "", "unless-quiet"),
    "success": ("", "", "green", "unless-quiet"),
    "error": ("Error: ", "bold red", "", "always"),
    "debug": ("[debug] ", "dim", "dim", "verbose"),
}


class OutputManager:
    """Routes payloads and diagnostics for one CLI invocation.

    Args:
        format: Payload format; ``AUTO`` is resolved here, once.
        no_color: Disable styling.  ``NO_COLOR`` and ``TERM=dumb`` do the
            same.
        quiet: Hide ``info`` and ``success`` diagnostics.
        verbose: Show ``debug`` diagnostics.
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

    # --- stdout ---

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Write a response payload to stdout.

        In JSON mode a string holding JSON is re-indented; any other string
        passes through untouched.  Plain mode prints ``key<TAB>value`` lines
        for mappings and one line per item for lists.
        """
        if self._format == OutputFormat.JSON:
            if isinstance(data, str):
                try:
                    data = json.loads(data)
                except ValueError:
                    self.print_data(data)
                    return
            self.print_data(_dumps(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_dumps(data), "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows to stdout.

        JSON mode emits one object per row keyed by header; plain mode emits
        tab-separated lines with the header first.  ``title`` only shows in
        rich mode, and the table is never narrower than it.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_dumps([dict(zip(headers, row)) for row in rows]))
            return
        if self._format == OutputFormat.PLAIN:
            for line in (headers, *rows):
                self.print_data("\t".join(line))
            return

        table = Table(
            title=title,
            header_style="bold cyan",
            min_width=len(title) + 4 if title else None,
        )
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # --- stderr ---

    def info(self, message: str) -> None:
        self._diagnose("info", message)

    def success(self, message: str) -> None:
        self._diagnose("success", message)

    def error(self, message: str) -> None:
        self._diagnose("error", message)

    def debug(self, message: str) -> None:
        self._diagnose("debug", message)

    def _diagnose(self, level: str, message: str) -> None:
        prefix, prefix_style, message_style, shown = _LEVELS[level]
        if shown == "verbose" and not self._verbose:
            return
        if shown == "unless-quiet" and self._quiet:
            return

        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            # Text, not markup: messages carry server data and "[debug]".
            self._stderr.print(Text.assemble((prefix, prefix_style), (message, message_style)))


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> Iterator[str]:
    if isinstance(data, dict):
        for key, value in data.items():
            yield f"{key}\t{value}"
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, dict):
                yield "\t".join(str(v) for v in item.values())
            else:
                yield str(item)
    else:
        yield str(data)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value, see no-color.org) or ``TERM=dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# --- Process-wide manager ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, or a default one when none is."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager; the next :func:`get_output` builds a fresh one."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
