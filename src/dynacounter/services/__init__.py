"""Counter allocation services."""

from .allocation import AllocationMode, AllocationResult, RecordAllocationService
from .allocator import AllocationStrategy, AllocationToken, CasWriteMode, CounterAllocator
from .inserter import Record, RecordInserter
from .retry import AttemptState, RetryCoordinator, RetryPolicy, RetryResult

__all__ = [
    "AllocationMode",
    "AllocationResult",
    "AllocationStrategy",
    "AllocationToken",
    "AttemptState",
    "CasWriteMode",
    "CounterAllocator",
    "Record",
    "RecordAllocationService",
    "RecordInserter",
    "RetryCoordinator",
    "RetryPolicy",
    "RetryResult",
]
