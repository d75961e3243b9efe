"""Counter CLI commands: initialize, inspect and allocate."""

from pathlib import Path
from typing import List, Optional

import typer

from ..errors import AllocationError, CounterNotFoundError, DynaCounterError
from ..services.allocation import AllocationMode
from .common_options import backend_option, config_option, endpoint_option
from .display import console, error, info, info_dict, record_table, success, warning
from .utils import build_service, parse_attributes, resolve_config

app = typer.Typer(help="Allocate unique keys from a shared counter")


@app.command()
def init(
    start: Optional[int] = typer.Option(
        None, "--start", help="Initial value (default: 0 for atomic, 1 for optimistic modes)"
    ),
    config: Optional[Path] = config_option(),
    backend: Optional[str] = backend_option(),
    endpoint_url: Optional[str] = endpoint_option(),
):
    """Create the counter item if it doesn't exist yet."""
    cfg = resolve_config(config, backend, endpoint_url)
    service = build_service(cfg)
    if start is None:
        start = cfg.counter.initial_value

    try:
        created = service.initialize_counter(start)
    except DynaCounterError as e:
        error(f"Failed to initialize counter: {e}")
        raise typer.Exit(1)

    if created:
        success(f"Counter '{cfg.counter.key}' initialized at {service.current_value()}")
    else:
        warning(f"Counter '{cfg.counter.key}' already exists (value {service.current_value()})")


@app.command()
def show(
    config: Optional[Path] = config_option(),
    backend: Optional[str] = backend_option(),
    endpoint_url: Optional[str] = endpoint_option(),
):
    """Show the current counter value."""
    cfg = resolve_config(config, backend, endpoint_url)
    service = build_service(cfg)
    try:
        value = service.current_value()
    except CounterNotFoundError as e:
        error(str(e))
        raise typer.Exit(1)
    except DynaCounterError as e:
        error(f"Failed to read counter: {e}")
        raise typer.Exit(1)

    info_dict({
        "Counter": cfg.counter.key,
        "Field": cfg.counter.field,
        "Value": value,
        "Mode": cfg.counter.mode.value,
    })


@app.command()
def allocate(
    attr: List[str] = typer.Option(
        [], "--attr", "-a", help="Record attribute as KEY=VALUE (repeatable)"
    ),
    mode: Optional[AllocationMode] = typer.Option(
        None, "--mode", "-m", help="Allocation flow (default: from config)"
    ),
    init_counter: bool = typer.Option(
        False, "--init", help="Initialize the counter first if it is missing"
    ),
    config: Optional[Path] = config_option(),
    backend: Optional[str] = backend_option(),
    endpoint_url: Optional[str] = endpoint_option(),
):
    """Allocate a unique key and insert a record under it.

    Example:
        dcount counter allocate --attr name=first --attr size=3
        dcount counter allocate --mode transactional --attr name=second
    """
    cfg = resolve_config(config, backend, endpoint_url)
    if mode is not None:
        cfg = cfg.model_copy(update={"counter": cfg.counter.model_copy(update={"mode": mode})})
    payload = parse_attributes(attr)
    service = build_service(cfg)

    try:
        if init_counter:
            service.initialize_counter(cfg.counter.initial_value)
        result = service.allocate_and_insert(payload)
    except CounterNotFoundError as e:
        error(str(e))
        info("Run 'dcount counter init' or pass --init")
        raise typer.Exit(1)
    except AllocationError as e:
        error(f"Allocation gave up: {e}")
        raise typer.Exit(2)
    except DynaCounterError as e:
        error(f"Allocation failed: {e}")
        raise typer.Exit(1)

    success(f"Allocated key {result.token.key}")
    info_dict({
        "Mode": cfg.counter.mode.value,
        "Attempts": result.attempts,
    })


@app.command()
def get(
    key: str = typer.Argument(..., help="Record key"),
    config: Optional[Path] = config_option(),
    backend: Optional[str] = backend_option(),
    endpoint_url: Optional[str] = endpoint_option(),
):
    """Show a record by key."""
    cfg = resolve_config(config, backend, endpoint_url)
    service = build_service(cfg)
    try:
        record = service.get_record(key)
    except DynaCounterError as e:
        error(f"Failed to read record {key}: {e}")
        raise typer.Exit(1)

    if record is None:
        error(f"Record {key} not found")
        raise typer.Exit(1)
    console.print(record_table(record.key, record.payload))
