"""Console interface for the layout engine.

Usage:
    from forcelayout.console import console

    with console.spinner("Building partitions..."):
        session = LayoutSession(graph, config)

    console.success("Done", detail="200 ticks")
    console.warn("Degraded ticks", detail="5 in a row")
    console.error("Phase failed", detail=str(err))
    console.info("Backend: triton")
    console.debug("Running springs pass")   # only printed when console.verbose
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Optional

from rich.console import Console as RichConsole
from rich.panel import Panel


class Console:
    """Minimal logging interface with rich output."""

    __slots__ = ("_console", "verbose")

    def __init__(self, *, verbose: bool = False) -> None:
        self._console = RichConsole(stderr=True)
        self.verbose = verbose

    @contextmanager
    def spinner(self, message: str):
        """Show a spinner while work is in progress."""
        with self._console.status(f"[bold cyan]{message}", spinner="dots"):
            yield

    def success(self, message: str, *, detail: Optional[str] = None) -> None:
        """Green success message."""
        self._console.print(f"[bold green]✓[/bold green] {message}" + (f" [dim]{detail}[/dim]" if detail else ""))

    def warn(self, message: str, *, detail: Optional[str] = None) -> None:
        """Yellow warning message."""
        self._console.print(f"[yellow]⚠[/yellow] {message}" + (f" [dim]{detail}[/dim]" if detail else ""))

    def error(self, message: str, *, detail: Optional[str] = None) -> None:
        """Red error message."""
        self._console.print(f"[bold red]✗[/bold red] {message}" + (f" [dim]{detail}[/dim]" if detail else ""))

    def info(self, message: str, *, detail: Optional[str] = None) -> None:
        """Blue info message."""
        self._console.print(f"[blue]•[/blue] {message}" + (f" [dim]{detail}[/dim]" if detail else ""))

    def debug(self, message: str, *, detail: Optional[str] = None) -> None:
        """Dim trace message, printed only in verbose mode."""
        if not self.verbose:
            return
        self._console.print(f"[dim]· {message}" + (f" {detail}" if detail else "") + "[/dim]")

    def header(self, title: str, **fields: str) -> None:
        """Show a panel with key-value fields."""
        lines = [f"[bold]{k}:[/bold] {v}" for k, v in fields.items()]
        self._console.print(Panel("\n".join(lines), title=f"[cyan]{title}[/cyan]", border_style="blue"))


console = Console()
