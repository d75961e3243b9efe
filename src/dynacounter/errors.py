"""Error types for dynacounter."""


class DynaCounterError(Exception):
    """Base exception for dynacounter errors."""
    pass


class ConfigError(DynaCounterError):
    """Configuration error."""
    pass


class StoreFault(DynaCounterError):
    """Transport, authentication or request error from the backing store.

    Never retried by the allocator. Conflicts are reported as values,
    so anything raised as a StoreFault is fatal to the current attempt.
    """

    def __init__(self, message: str, operation: str | None = None, code: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.code = code


class CounterNotFoundError(DynaCounterError, KeyError):
    """Raised when a counter is read before it was initialized."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class AllocationError(DynaCounterError):
    """Base for failures of the optimistic retry loop."""
    pass


class TooManyRetriesError(AllocationError):
    """Raised when CAS retries are exhausted."""
    pass


class RetryDeadlineExceeded(AllocationError):
    """Raised when the retry loop runs past its wall-clock deadline."""
    pass


class AllocationCancelled(AllocationError):
    """Raised when the caller cancels an allocation in flight."""
    pass


class ForeignConflictError(AllocationError):
    """A transaction failed on a condition the allocator does not own."""

    def __init__(self, message: str, index: int | None = None, reason: str | None = None):
        super().__init__(message)
        self.index = index
        self.reason = reason


class RecordCollisionError(DynaCounterError):
    """A guarded insert found a record already stored under the key."""
    pass


class EmulatorError(DynaCounterError):
    """DynamoDB Local container could not be started or stopped."""
    pass
