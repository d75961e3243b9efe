"""Configuration management CLI commands."""

import typer
from rich.syntax import Syntax

from ..core.config import DynaCounterConfig
from ..core.paths import CONFIG_FILE
from ..services.allocation import AllocationMode
from .common_options import yes_option
from .display import console, info, section, success, warning

app = typer.Typer(help="Manage dynacounter configuration")


@app.command()
def init(
    interactive: bool = typer.Option(
        False, "--interactive/--no-interactive", help="Interactive mode with prompts"
    ),
    force: bool = yes_option("Overwrite an existing configuration file"),
):
    """Initialize configuration file.

    Creates ~/.dynacounter/config.yaml with defaults pointing at a
    local DynamoDB emulator.
    """
    config = DynaCounterConfig()
    config.store.backend = "dynamodb"
    config.store.endpoint_url = config.emulator.endpoint_url
    config.store.region = "us-east-1"
    # DynamoDB Local accepts any credentials
    config.store.aws_access_key_id = "local"
    config.store.aws_secret_access_key = "local"

    if interactive:
        section("Store")
        config.store.endpoint_url = typer.prompt(
            "  Endpoint URL (blank for AWS)", default=config.store.endpoint_url
        ) or None
        config.store.table = typer.prompt("  Table name", default=config.store.table)

        section("Counter")
        config.counter.key = typer.prompt("  Counter key", default=config.counter.key)
        config.counter.mode = AllocationMode(
            typer.prompt(
                "  Allocation mode",
                default=config.counter.mode.value,
                type=typer.Choice([m.value for m in AllocationMode]),
            )
        )

    if CONFIG_FILE.exists() and not force:
        warning(f"Configuration already exists at {CONFIG_FILE}")
        typer.confirm("Overwrite?", abort=True)

    config.save()
    DynaCounterConfig.reset()
    success(f"Configuration saved to {CONFIG_FILE}")


@app.command()
def show():
    """Show the effective configuration (file plus environment overrides)."""
    config = DynaCounterConfig.get_instance()
    if not CONFIG_FILE.exists():
        info("[dim]No configuration file, showing defaults[/dim]")
    console.print(Syntax(config.to_yaml_string(), "yaml", theme="monokai"))
