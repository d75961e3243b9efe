"""Consolidated display utilities for CLI commands."""
from typing import Any, Dict

from rich.console import Console
from rich.table import Table

console = Console()


def success(message: str) -> None:
    """Print success message."""
    console.print(f"[green]✓ {message}[/green]")


def warning(message: str) -> None:
    """Print warning message."""
    console.print(f"[yellow]⚠️  {message}[/yellow]")


def error(message: str) -> None:
    """Print error message."""
    console.print(f"[red]❌ {message}[/red]")


def info(message: str) -> None:
    """Print info message."""
    console.print(message)


def section(title: str) -> None:
    """Print section header."""
    console.print(f"\n[bold]{title}[/bold]")


def info_dict(data: Dict[str, Any], indent: str = "  ") -> None:
    """Print a dictionary as indented key-value pairs."""
    for key, value in data.items():
        console.print(f"{indent}{key}: {value}")


def record_table(key: str, payload: Dict[str, Any]) -> Table:
    """Render a record as a two-column table."""
    table = Table(title=f"Record {key}", show_header=True)
    table.add_column("Attribute", style="cyan")
    table.add_column("Value")
    for name, value in sorted(payload.items()):
        table.add_row(name, str(value))
    return table
