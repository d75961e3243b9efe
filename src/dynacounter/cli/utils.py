"""Shared helpers for CLI commands."""

from pathlib import Path
from typing import Optional

import typer

from ..core.config import DynaCounterConfig, StoreConfig
from ..services.allocation import RecordAllocationService
from .display import error


def resolve_config(
    config_path: Optional[Path] = None,
    backend: Optional[str] = None,
    endpoint_url: Optional[str] = None,
) -> DynaCounterConfig:
    """Load configuration and apply command-line overrides.

    An explicit file wins over ~/.dynacounter/config.yaml; flags win
    over both.
    """
    if config_path is not None:
        config = DynaCounterConfig.from_yaml(config_path).with_env_overrides()
    else:
        config = DynaCounterConfig.get_instance()

    updates = {}
    if backend:
        updates["backend"] = backend
    if endpoint_url:
        updates["endpoint_url"] = endpoint_url
    if updates:
        try:
            store = StoreConfig(**{**config.store.model_dump(), **updates})
        except ValueError as e:
            error(f"Invalid store override: {e}")
            raise typer.Exit(1)
        config = config.model_copy(update={"store": store})
    return config


def build_service(config: DynaCounterConfig) -> RecordAllocationService:
    return RecordAllocationService.from_config(config)


def parse_attributes(pairs: list[str]) -> dict[str, object]:
    """Parse KEY=VALUE pairs; integer-looking values become ints."""
    payload: dict[str, object] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{pair}'")
        payload[name] = int(value) if value.lstrip("-").isdigit() else value
    return payload
