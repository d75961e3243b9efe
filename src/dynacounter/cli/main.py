"""dynacounter CLI entry point."""

import logging

import typer

from . import config as config_cli, counter, emulator, table
from .display import info, warning

# Create main CLI app
app = typer.Typer(
    name="dcount",
    help="Unique key allocation from a shared counter on a conditional-write store",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich"
)

app.add_typer(counter.app, name="counter", help="Initialize, inspect and allocate from the counter")
app.add_typer(table.app, name="table", help="[dim]Create or delete the DynamoDB table[/dim]")
app.add_typer(emulator.app, name="emulator", help="[dim]Run DynamoDB Local in docker[/dim]")
app.add_typer(config_cli.app, name="config", help="⚙️ Configure dynacounter settings")


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def version():
    """Show dynacounter version."""
    from .._version import get_version
    info(f"dynacounter version: {get_version()}")


def main():
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        warning("\nInterrupted by user")
        raise typer.Exit(1)


if __name__ == "__main__":
    main()
