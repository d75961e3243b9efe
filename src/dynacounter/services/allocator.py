"""Unique token allocation from a shared counter.

Two strategies are supported:

- ATOMIC_ADD: the store increments the counter and returns the new
  value. Never conflicts; the token is the post-increment value.
- OPTIMISTIC: read the counter, then Compare-And-Swap it from
  ``observed`` to ``observed + 1``. The winning writer owns
  ``observed``, so the token is the pre-increment value.

A counter must be driven by a single strategy for its whole life.
Mixing them hands out the same value twice (post-value of one
increment equals the pre-value of the next CAS).
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from ..errors import CounterNotFoundError
from .retry import RetryCoordinator, RetryPolicy, RetryResult
from .storage.conditional import (
    ConditionalStore,
    Conflict,
    Precondition,
    UpdateAddOp,
    WriteOutcome,
)

logger = logging.getLogger(__name__)


class AllocationStrategy(str, Enum):
    """How a counter value is claimed."""

    ATOMIC_ADD = "atomic_add"
    OPTIMISTIC = "optimistic"


class CasWriteMode(str, Enum):
    """How the optimistic strategy writes its Compare-And-Swap."""

    UPDATE = "update"  # conditional ADD on the counter field
    PUT = "put"  # conditional put of the whole counter item


@dataclass(frozen=True)
class AllocationToken:
    """A counter value exclusively claimed by one allocation."""

    value: int
    strategy: AllocationStrategy
    attempts: int = 1

    @property
    def key(self) -> str:
        """Record key derived from the token."""
        return str(self.value)

    def __str__(self) -> str:
        return self.key


class CounterAllocator:
    """Claims unique values from one counter item.

    Holds no state of its own beyond configuration; the store is the
    only authority on the counter value.
    """

    def __init__(
        self,
        store: ConditionalStore,
        counter_key: str = "counter",
        field: str = "count_value",
        strategy: AllocationStrategy = AllocationStrategy.ATOMIC_ADD,
        write_mode: CasWriteMode = CasWriteMode.UPDATE,
        retry: RetryPolicy | RetryCoordinator | None = None,
    ):
        """Initialize allocator.

        Args:
            store: ConditionalStore holding the counter
            counter_key: Key of the counter item
            field: Numeric field holding the counter value
            strategy: ATOMIC_ADD or OPTIMISTIC
            write_mode: CAS flavour used by the optimistic strategy
            retry: Retry policy (or a ready coordinator) for optimistic claims
        """
        self.store = store
        self.counter_key = counter_key
        self.field = field
        self.strategy = AllocationStrategy(strategy)
        self.write_mode = CasWriteMode(write_mode)
        if isinstance(retry, RetryCoordinator):
            self.coordinator = retry
        else:
            self.coordinator = RetryCoordinator(retry)

    def initialize(self, start: int = 0) -> bool:
        """Create the counter item if it doesn't exist.

        Args:
            start: Initial counter value

        Returns:
            True if created, False if the counter already existed.
        """
        outcome = self.store.put(
            self.counter_key,
            {self.field: start},
            precondition=Precondition.absent(self.field),
        )
        if isinstance(outcome, Conflict):
            logger.debug(f"Counter {self.counter_key} already exists")
            return False
        logger.info(f"Initialized counter {self.counter_key} at {start}")
        return True

    def read(self) -> int:
        """Strongly consistent read of the current counter value.

        Raises:
            CounterNotFoundError: If the counter was never initialized
        """
        item = self.store.get(self.counter_key, fields=[self.field], consistent=True)
        if item is None or self.field not in item:
            raise self._not_found()
        return item[self.field]

    def increment(self) -> AllocationToken:
        """Atomic add: claim the post-increment value.

        Raises:
            CounterNotFoundError: If the counter was never initialized
        """
        outcome = self.store.update_add(
            self.counter_key, self.field, 1, precondition=Precondition.exists(self.field)
        )
        if isinstance(outcome, Conflict):
            raise self._not_found()
        logger.debug(f"Atomic add on {self.counter_key} returned {outcome.value}")
        return AllocationToken(value=outcome.value, strategy=AllocationStrategy.ATOMIC_ADD)

    def claim(self, observed: int) -> WriteOutcome:
        """One Compare-And-Swap of the counter from ``observed`` to ``observed + 1``."""
        precondition = Precondition.equals(self.field, observed)
        if self.write_mode == CasWriteMode.PUT:
            return self.store.put(self.counter_key, {self.field: observed + 1}, precondition)
        return self.store.update_add(self.counter_key, self.field, 1, precondition)

    def claim_op(self, observed: int) -> UpdateAddOp:
        """The Compare-And-Swap as a transaction operation."""
        return UpdateAddOp(
            key=self.counter_key,
            field=self.field,
            delta=1,
            precondition=Precondition.equals(self.field, observed),
        )

    def claim_with_retry(
        self,
        attempt=None,
        *,
        owned_index: int | None = None,
        cancel: threading.Event | None = None,
    ) -> RetryResult[int]:
        """Run the optimistic loop: read, claim, and on conflict start over.

        Args:
            attempt: Conditional write given the observed value; defaults
                to :meth:`claim`
            owned_index: Position of the counter claim inside a transaction
            cancel: Event that aborts the loop when set
        """
        return self.coordinator.run(
            self.read,
            attempt or self.claim,
            owned_index=owned_index,
            cancel=cancel,
            label=self.counter_key,
        )

    def _not_found(self) -> CounterNotFoundError:
        return CounterNotFoundError(
            f"Counter {self.counter_key} not found; initialize it before allocating"
        )

    def allocate(self, cancel: threading.Event | None = None) -> AllocationToken:
        """Claim a unique token using the configured strategy."""
        if self.strategy == AllocationStrategy.ATOMIC_ADD:
            return self.increment()

        result = self.claim_with_retry(cancel=cancel)
        logger.debug(
            f"Claimed {result.observed} from {self.counter_key} in {result.attempts} attempt(s)"
        )
        return AllocationToken(
            value=result.observed,
            strategy=AllocationStrategy.OPTIMISTIC,
            attempts=result.attempts,
        )
