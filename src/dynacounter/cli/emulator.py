"""DynamoDB Local emulator CLI commands."""

from pathlib import Path
from typing import Optional

import typer

from ..core.emulator import DynamoDBLocal, docker_available, port_open
from ..errors import EmulatorError
from .common_options import config_option
from .display import error, info, info_dict, success, warning
from .utils import resolve_config

app = typer.Typer(help="Run DynamoDB Local in docker for development")


def _emulator(config: Optional[Path], port: Optional[int]) -> DynamoDBLocal:
    cfg = resolve_config(config).emulator
    if port is not None:
        cfg = cfg.model_copy(update={"port": port})
    return DynamoDBLocal(cfg)


@app.command()
def up(
    config: Optional[Path] = config_option(),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Host port (default: 8000)"),
):
    """Start a fresh in-memory DynamoDB Local container."""
    if not docker_available():
        error("Docker is not available")
        raise typer.Exit(1)

    emulator = _emulator(config, port)
    try:
        emulator.start()
    except EmulatorError as e:
        error(str(e))
        raise typer.Exit(1)

    success(f"DynamoDB Local running at {emulator.endpoint_url}")
    info(f"  export DYNACOUNTER_ENDPOINT_URL={emulator.endpoint_url}")


@app.command()
def down(
    config: Optional[Path] = config_option(),
):
    """Stop and remove the emulator container."""
    emulator = _emulator(config, None)
    try:
        emulator.stop(force=True)
    except EmulatorError as e:
        error(str(e))
        raise typer.Exit(1)
    success(f"Removed {emulator.config.container_name}")


@app.command()
def status(
    config: Optional[Path] = config_option(),
):
    """Show whether the emulator is running and reachable."""
    emulator = _emulator(config, None)
    running = docker_available() and emulator.is_running()
    reachable = port_open("localhost", emulator.config.port)
    info_dict({
        "Container": emulator.config.container_name,
        "Running": running,
        "Endpoint": emulator.endpoint_url,
        "Reachable": reachable,
    })
    if not running:
        warning("Emulator not running; start it with 'dcount emulator up'")
