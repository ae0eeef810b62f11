#!/usr/bin/env python3
"""
Console UI Module using Rich

Styled messages, configuration display, scan progress and report tables
for the kenosis command.
"""

from typing import Any, Iterable, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table


class ConsoleUI:
    """Console output handler built on a single Rich console"""

    def __init__(self, force_terminal: Optional[bool] = None, console: Optional[Console] = None):
        """Initialize console with optional terminal forcing or an existing console"""
        self.console = console or Console(force_terminal=force_terminal, highlight=False)

    # Basic styled output methods
    def print_success(self, message: str):
        self.console.print(message, style="green")

    def print_error(self, message: str):
        self.console.print(message, style="red bold")

    def print_warning(self, message: str):
        self.console.print(message, style="yellow")

    def print_info(self, message: str):
        self.console.print(message, style="cyan")

    def print_plain(self, message: str):
        self.console.print(message, style="white")

    def print_header(self, title: str, subtitle: Optional[str] = None):
        """Print a rounded header panel with optional subtitle"""
        header_text = f"[bold]{title}[/bold]"
        if subtitle:
            header_text += f"\n[dim]{subtitle}[/dim]"
        self.console.print(Panel(header_text, box=box.ROUNDED, padding=(0, 1)))

    def show_configuration(self, config: dict[str, Any]):
        """Display settings as a two-column table"""
        table = Table(show_header=False, box=box.SIMPLE)
        table.add_column("Setting", style="cyan dim", min_width=20, justify="right")
        table.add_column("Value", style="cyan", min_width=30)

        for key, value in config.items():
            if isinstance(value, dict):
                value = ", ".join(f"{k}={v}" for k, v in value.items())
            elif isinstance(value, (list, tuple)):
                value = ", ".join(str(v) for v in value)
            table.add_row(key, "-" if value is None else str(value))

        self.console.print(table)

    def create_scan_progress(self) -> Progress:
        """Activity display for a scan of unknown length: spinner, phase, elapsed time"""
        return Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )

    def show_table(
        self,
        title: str,
        columns: Iterable[tuple[str, dict]],
        rows: Iterable[Iterable[str]],
    ):
        """Print a rounded table from (header, column options) pairs and row values"""
        table = Table(title=title, box=box.ROUNDED, show_lines=False)
        for header, options in columns:
            table.add_column(header, **options)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)
