"""dynacounter - unique key allocation on conditional-write key/value stores."""

from ._version import __version__

# Make key components available at package level
from .services import (
    AllocationMode,
    AllocationStrategy,
    AllocationToken,
    CounterAllocator,
    RecordAllocationService,
    RecordInserter,
    RetryCoordinator,
    RetryPolicy,
)
from .services.storage import DynamoDBConditionalStore, InMemoryConditionalStore, get_store

__all__ = [
    "AllocationMode",
    "AllocationStrategy",
    "AllocationToken",
    "CounterAllocator",
    "DynamoDBConditionalStore",
    "InMemoryConditionalStore",
    "RecordAllocationService",
    "RecordInserter",
    "RetryCoordinator",
    "RetryPolicy",
    "__version__",
    "get_store",
]
