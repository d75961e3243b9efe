"""dynacounter configuration management.

Configuration lives in ~/.dynacounter/config.yaml (created with
'dcount config init'). Without a file, defaults are used. A few
environment variables override the store settings so the same file
works against DynamoDB Local and AWS.
"""

import os
import re
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from ..errors import ConfigError
from ..services.allocation import AllocationMode
from ..services.retry import RetryPolicy
from .config_base import ConfigModel

_TABLE_NAME = re.compile(r"^[A-Za-z0-9_.-]{3,255}$")


class ConfigNotFoundError(ConfigError):
    """Raised when configuration file is not found."""

    pass


class StoreConfig(BaseModel):
    """Backing store settings."""

    backend: Literal["auto", "dynamodb", "memory"] = "auto"
    """Store implementation; auto picks DynamoDB when an endpoint or region is set."""

    endpoint_url: str | None = None
    """Custom endpoint, e.g. http://localhost:8000 for DynamoDB Local."""

    region: str | None = None
    """AWS region name."""

    table: str = "dynacounter"
    """Table holding the counter and the records."""

    key_attribute: str = "pk"
    """String hash key of the table."""

    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        if not _TABLE_NAME.match(v):
            raise ValueError(
                "table name must be 3-255 characters of letters, digits, '_', '-' or '.'"
            )
        return v

    def store_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for get_store()."""
        kwargs: dict[str, Any] = {"key_attribute": self.key_attribute}
        if self.backend == "memory":
            return kwargs
        kwargs.update(
            table=self.table,
            endpoint_url=self.endpoint_url,
            region=self.region,
        )
        if self.aws_access_key_id:
            kwargs["aws_access_key_id"] = self.aws_access_key_id
            kwargs["aws_secret_access_key"] = self.aws_secret_access_key
        return kwargs


class CounterConfig(BaseModel):
    """Counter and allocation flow settings."""

    key: str = "counter"
    """Key of the counter item."""

    field: str = "count_value"
    """Numeric field holding the counter value."""

    mode: AllocationMode = AllocationMode.ATOMIC
    """Allocation flow; keep it fixed for the life of a counter."""

    initial_value: int | None = None
    """Start value on init (default: 0 for atomic, 1 for optimistic flows)."""

    guard_overwrite: bool = False
    """Condition record inserts on the key being unused."""


class EmulatorConfig(BaseModel):
    """DynamoDB Local container settings."""

    image: str = "amazon/dynamodb-local:1.22.0"
    container_name: str = "dynacounter-dynamodb"
    port: int = Field(default=8000, ge=1, le=65535)
    startup_timeout: float = Field(default=30.0, gt=0)
    keep_container: bool = False
    """Leave the container running after stop() for inspection."""

    @property
    def endpoint_url(self) -> str:
        return f"http://localhost:{self.port}"


class DynaCounterConfig(ConfigModel):
    """Main configuration model for dynacounter."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    counter: CounterConfig = Field(default_factory=CounterConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    emulator: EmulatorConfig = Field(default_factory=EmulatorConfig)

    @classmethod
    def get_instance(cls) -> "DynaCounterConfig":
        """Get cached instance, loading the config file if there is one.

        Environment overrides are applied on every fresh load.
        """
        if getattr(cls, "_cached_instance", None) is None:
            config_path = cls.get_config_path()
            config = cls.from_yaml(config_path) if config_path.exists() else cls()
            cls._cached_instance = config.with_env_overrides()
        return cls._cached_instance

    @classmethod
    def reset(cls):
        """Reset cached instance (useful for testing or forcing reload)."""
        cls._cached_instance = None

    @classmethod
    def load(cls) -> "DynaCounterConfig":
        """Load configuration from file.

        Raises:
            ConfigNotFoundError: If configuration file doesn't exist
        """
        config_path = cls.get_config_path()
        if not config_path.exists():
            raise ConfigNotFoundError(
                f"Configuration not found at {config_path}\n"
                "Run 'dcount config init' to create configuration"
            )
        return cls.from_yaml(config_path)

    @staticmethod
    def get_config_path():
        from .paths import CONFIG_FILE

        return CONFIG_FILE

    def save(self) -> None:
        """Save configuration, creating the parent directory if needed."""
        config_path = self.get_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)
        self.to_yaml(config_path)

    def with_env_overrides(self) -> "DynaCounterConfig":
        """Copy with DYNACOUNTER_ENDPOINT_URL, DYNACOUNTER_TABLE and AWS_DEFAULT_REGION applied."""
        updates = {}
        if endpoint := os.environ.get("DYNACOUNTER_ENDPOINT_URL"):
            updates["endpoint_url"] = endpoint
        if table := os.environ.get("DYNACOUNTER_TABLE"):
            updates["table"] = table
        if not self.store.region and (region := os.environ.get("AWS_DEFAULT_REGION")):
            updates["region"] = region
        if not updates:
            return self
        # Rebuilt rather than model_copy'd so overrides are validated too
        store = StoreConfig(**{**self.store.model_dump(), **updates})
        return self.model_copy(update={"store": store})
