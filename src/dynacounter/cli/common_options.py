"""Common Typer options shared across CLI commands."""

import typer


def config_option(help_text: str = "Configuration file (default: ~/.dynacounter/config.yaml)") -> typer.Option:
    """Create a standard configuration file option."""
    return typer.Option(
        None,
        "--config",
        "-c",
        help=help_text,
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    )


def backend_option() -> typer.Option:
    """Override the configured store backend."""
    return typer.Option(None, "--backend", "-b", help="Store backend: auto, dynamodb or memory")


def endpoint_option() -> typer.Option:
    """Override the configured DynamoDB endpoint."""
    return typer.Option(None, "--endpoint-url", help="DynamoDB endpoint, e.g. http://localhost:8000")


def yes_option(help_text: str = "Skip confirmation prompt") -> typer.Option:
    """Create a standard yes/skip confirmation option."""
    return typer.Option(False, "--yes", "-y", help=help_text)
