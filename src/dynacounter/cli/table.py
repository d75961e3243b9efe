"""Table provisioning CLI commands (DynamoDB only)."""

from pathlib import Path
from typing import Optional

import typer

from ..errors import DynaCounterError
from ..services.storage import DynamoDBConditionalStore, get_store
from .common_options import config_option, endpoint_option, yes_option
from .display import error, info, success, warning
from .utils import resolve_config

app = typer.Typer(help="Create or delete the DynamoDB table")


def _dynamodb_store(config: Optional[Path], endpoint_url: Optional[str]) -> DynamoDBConditionalStore:
    cfg = resolve_config(config, "dynamodb", endpoint_url)
    return get_store("dynamodb", **cfg.store.store_kwargs())


@app.command()
def create(
    config: Optional[Path] = config_option(),
    endpoint_url: Optional[str] = endpoint_option(),
):
    """Create the table (single string hash key, pay per request)."""
    store = _dynamodb_store(config, endpoint_url)
    try:
        created = store.ensure_table()
    except DynaCounterError as e:
        error(f"Failed to create table {store.table}: {e}")
        raise typer.Exit(1)

    if created:
        success(f"Created table {store.table}")
    else:
        info(f"Table {store.table} already exists")


@app.command()
def delete(
    config: Optional[Path] = config_option(),
    endpoint_url: Optional[str] = endpoint_option(),
    yes: bool = yes_option(),
):
    """Delete the table and every counter and record in it."""
    store = _dynamodb_store(config, endpoint_url)
    if not yes:
        typer.confirm(f"Delete table {store.table} and all its items?", abort=True)
    try:
        deleted = store.delete_table()
    except DynaCounterError as e:
        error(f"Failed to delete table {store.table}: {e}")
        raise typer.Exit(1)

    if deleted:
        success(f"Deleted table {store.table}")
    else:
        warning(f"Table {store.table} not found")
