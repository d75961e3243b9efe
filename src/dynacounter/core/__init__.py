"""Configuration, paths and emulator lifecycle."""

from .config import (
    ConfigNotFoundError,
    CounterConfig,
    DynaCounterConfig,
    EmulatorConfig,
    StoreConfig,
)
from .emulator import DynamoDBLocal

__all__ = [
    "ConfigNotFoundError",
    "CounterConfig",
    "DynaCounterConfig",
    "DynamoDBLocal",
    "EmulatorConfig",
    "StoreConfig",
]
