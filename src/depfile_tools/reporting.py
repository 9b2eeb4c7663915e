"""
Reporting and output formatting for parsed depfiles.

Provides console output using the Rich library and a JSON-ready form.
"""

from typing import Any, Dict, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .depfile import Depfile


def depfile_to_dict(
    depfile: Depfile, source: Optional[str] = None, dialect: Optional[str] = None
) -> Dict[str, Any]:
    """Render a record as a JSON-serializable dictionary."""
    return {
        "source": source,
        "dialect": dialect,
        "outputs": list(depfile.outputs),
        "inputs": list(depfile.inputs),
    }


class DepfileReporter:
    """Formats and displays dependency records."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_depfile(
        self, depfile: Depfile, source: str, dialect: Optional[str] = None
    ) -> None:
        """
        Print a record in a user-friendly format.

        Args:
            depfile: The record to display
            source: Path of the file it was read from
            dialect: Dialect the file was parsed as
        """
        self.console.print()
        self._print_header(source, dialect)

        if depfile.is_empty:
            self.console.print(
                "ℹ️  No dependencies found (empty or malformed depfile).",
                style="yellow",
            )
            return

        self._print_paths("📤 Outputs", depfile.outputs, "green")
        self._print_paths("📥 Inputs", depfile.inputs, "cyan")
        self._print_footer(depfile)

    def _print_header(self, source: str, dialect: Optional[str]) -> None:
        header_text = f"📄 Depfile: {escape(source)}"
        if dialect:
            header_text += f"\nDialect: {dialect}"
        self.console.print(
            Panel(
                header_text,
                title="[bold blue]depfile-tools[/bold blue]",
                border_style="blue",
            )
        )

    def _print_paths(self, title: str, paths: Sequence[str], style: str) -> None:
        table = Table(title=title, box=box.ROUNDED, title_style="bold cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Path", style=style, overflow="fold")

        if not paths:
            table.add_row("-", "[dim](none)[/dim]")
        for index, path in enumerate(paths, 1):
            table.add_row(str(index), Text(path))

        self.console.print(table)

    def _print_footer(self, depfile: Depfile) -> None:
        self.console.print(
            f"{len(depfile.outputs)} output(s), {len(depfile.inputs)} input(s)",
            style="dim",
        )

    def print_written(self, destination: str, depfile: Depfile) -> None:
        """Confirm a depfile was written."""
        self.console.print(
            f"✅ Wrote depfile to {escape(destination)} "
            f"({len(depfile.outputs)} output(s), {len(depfile.inputs)} input(s))",
            style="green",
        )
