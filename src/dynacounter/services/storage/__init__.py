"""Conditional-write storage backends for dynacounter."""

import logging
import os

from .conditional import (
    CONDITIONAL_CHECK_FAILED,
    ConditionalStore,
    Conflict,
    Ok,
    Precondition,
    PutOp,
    UpdateAddOp,
    WriteOutcome,
)
from .dynamodb import DynamoDBConditionalStore
from .memory import InMemoryConditionalStore

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "dynacounter"


def get_store(backend_type: str = "auto", **kwargs) -> ConditionalStore:
    """Factory function to get a conditional store.

    Args:
        backend_type: One of "auto", "dynamodb", "memory"
        **kwargs: Backend-specific configuration

    Returns:
        ConditionalStore instance

    Raises:
        ValueError: If backend_type is unknown

    Examples:
        >>> # DynamoDB Local
        >>> store = get_store("dynamodb", table="ids", endpoint_url="http://localhost:8000")

        >>> # Auto-detect from DYNACOUNTER_ENDPOINT_URL / AWS_DEFAULT_REGION
        >>> store = get_store("auto", table="ids")
    """
    if backend_type == "auto":
        endpoint_url = kwargs.pop("endpoint_url", None) or os.environ.get("DYNACOUNTER_ENDPOINT_URL")
        region = kwargs.pop("region", None) or os.environ.get("AWS_DEFAULT_REGION")
        if endpoint_url or region:
            logger.info(f"Using DynamoDB store (endpoint: {endpoint_url or 'aws'})")
            kwargs.setdefault("table", DEFAULT_TABLE)
            return DynamoDBConditionalStore(endpoint_url=endpoint_url, region=region, **kwargs)
        logger.info("No DynamoDB endpoint or region configured, using in-memory store")
        return InMemoryConditionalStore(key_attribute=kwargs.get("key_attribute", "pk"))
    elif backend_type == "dynamodb":
        kwargs.setdefault("table", DEFAULT_TABLE)
        return DynamoDBConditionalStore(**kwargs)
    elif backend_type == "memory":
        return InMemoryConditionalStore(key_attribute=kwargs.get("key_attribute", "pk"))
    else:
        raise ValueError(f"Unknown backend type: {backend_type}")


__all__ = [
    "CONDITIONAL_CHECK_FAILED",
    "ConditionalStore",
    "Conflict",
    "DynamoDBConditionalStore",
    "InMemoryConditionalStore",
    "Ok",
    "Precondition",
    "PutOp",
    "UpdateAddOp",
    "WriteOutcome",
    "get_store",
]
