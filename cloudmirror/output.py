"""Console output helpers for the command line."""

import json
from typing import Any, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Formats user-facing output as rich text or JSON.

    Informational messages go to stdout and are suppressed by ``quiet`` and
    in JSON mode; warnings and errors go to stderr.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    @property
    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def info(self, message: str) -> None:
        if not self._silent:
            self.console.print(escape(message))

    def success(self, message: str) -> None:
        if not self._silent:
            self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def print(self, message: str = "") -> None:
        if not self._silent:
            self.console.print(escape(message))

    def progress_message(self, message: str) -> None:
        if not self._silent:
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)

    def output_json(self, data: Any) -> None:
        """Write data as indented JSON to stdout (never suppressed)."""
        click.echo(json.dumps(data, indent=2, default=str))

    def output_table(
        self,
        data: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
        title: Optional[str] = None,
    ) -> None:
        """Render rows as a table, or as JSON in JSON mode.

        Args:
            data: Rows keyed by column name
            columns: Column keys in display order
            headers: Optional column key to header text mapping
            title: Optional table title
        """
        if self.json_output:
            self.output_json(data)
            return
        if self.quiet:
            return

        headers = headers or {}
        table = Table(title=title)
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in data:
            table.add_row(*(escape(str(row.get(c, ""))) for c in columns))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, Any]]) -> None:
        """Render a titled list of key/value pairs."""
        if self.json_output:
            self.output_json({key: value for key, value in items})
            return
        if self.quiet:
            return

        table = Table(title=title, show_header=False, box=None)
        table.add_column("Key", style="bold")
        table.add_column("Value")
        for key, value in items:
            table.add_row(escape(key), escape(str(value)))
        self.console.print(table)
