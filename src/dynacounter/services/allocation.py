"""Allocate a unique key and insert a record under it.

Wires CounterAllocator, RecordInserter and RetryCoordinator into the
four flows supported against a conditional store:

- ATOMIC: atomic add, then a separate insert
- OPTIMISTIC_UPDATE: CAS via conditional add, then a separate insert
- OPTIMISTIC_PUT: CAS via conditional put, then a separate insert
- TRANSACTIONAL: CAS and insert in one all-or-nothing transaction
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .allocator import AllocationStrategy, AllocationToken, CasWriteMode, CounterAllocator
from .inserter import Record, RecordInserter
from .retry import RetryPolicy
from .storage import get_store
from .storage.conditional import ConditionalStore

if TYPE_CHECKING:
    from ..core.config import DynaCounterConfig

logger = logging.getLogger(__name__)

# Index of the counter claim inside the allocate+insert transaction
CLAIM_INDEX = 0


class AllocationMode(str, Enum):
    """End-to-end allocation flow."""

    ATOMIC = "atomic"
    OPTIMISTIC_UPDATE = "optimistic_update"
    OPTIMISTIC_PUT = "optimistic_put"
    TRANSACTIONAL = "transactional"

    @property
    def strategy(self) -> AllocationStrategy:
        if self == AllocationMode.ATOMIC:
            return AllocationStrategy.ATOMIC_ADD
        return AllocationStrategy.OPTIMISTIC

    @property
    def default_start(self) -> int:
        """Initial counter value used by each flow."""
        return 0 if self == AllocationMode.ATOMIC else 1


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of allocate_and_insert."""

    token: AllocationToken
    record: Record

    @property
    def attempts(self) -> int:
        return self.token.attempts


class RecordAllocationService:
    """Allocation + insertion against a single counter.

    The counter is bound to one mode for the service's lifetime, so
    atomic and optimistic tokens are never mixed on it.
    """

    def __init__(
        self,
        store: ConditionalStore,
        mode: AllocationMode = AllocationMode.ATOMIC,
        counter_key: str = "counter",
        field: str = "count_value",
        key_field: str = "pk",
        retry: RetryPolicy | None = None,
        guard_overwrite: bool = False,
    ):
        self.store = store
        self.mode = AllocationMode(mode)
        write_mode = CasWriteMode.PUT if self.mode == AllocationMode.OPTIMISTIC_PUT else CasWriteMode.UPDATE
        self.allocator = CounterAllocator(
            store,
            counter_key=counter_key,
            field=field,
            strategy=self.mode.strategy,
            write_mode=write_mode,
            retry=retry,
        )
        self.inserter = RecordInserter(store, key_field=key_field, guard_overwrite=guard_overwrite)

    @classmethod
    def from_config(
        cls, config: "DynaCounterConfig", store: ConditionalStore | None = None
    ) -> "RecordAllocationService":
        """Build a service (and its store, unless given) from configuration."""
        if store is None:
            store = get_store(config.store.backend, **config.store.store_kwargs())
        return cls(
            store,
            mode=config.counter.mode,
            counter_key=config.counter.key,
            field=config.counter.field,
            key_field=config.store.key_attribute,
            retry=config.retry,
            guard_overwrite=config.counter.guard_overwrite,
        )

    def initialize_counter(self, start: int | None = None) -> bool:
        """Create the counter if missing. Returns True if created."""
        return self.allocator.initialize(self.mode.default_start if start is None else start)

    def allocate_and_insert(
        self, payload: dict[str, Any], cancel: threading.Event | None = None
    ) -> AllocationResult:
        """Claim a unique key and store ``payload`` under it.

        Raises:
            CounterNotFoundError: Counter not initialized
            AllocationError: Retry loop gave up (see RetryPolicy)
            RecordCollisionError: Guarded insert hit an existing record
            StoreFault: Transport or request failure
        """
        if self.mode == AllocationMode.TRANSACTIONAL:
            return self._allocate_transactionally(payload, cancel)

        token = self.allocator.allocate(cancel=cancel)
        record = self.inserter.insert(token, payload)
        logger.info(f"Allocated {token.key} ({self.mode.value}, {token.attempts} attempt(s))")
        return AllocationResult(token=token, record=record)

    def _allocate_transactionally(
        self, payload: dict[str, Any], cancel: threading.Event | None
    ) -> AllocationResult:
        def attempt(observed: int):
            token = AllocationToken(value=observed, strategy=AllocationStrategy.OPTIMISTIC)
            return self.store.transact(
                [self.allocator.claim_op(observed), self.inserter.put_op(token, payload)]
            )

        result = self.allocator.claim_with_retry(attempt, owned_index=CLAIM_INDEX, cancel=cancel)
        token = AllocationToken(
            value=result.observed,
            strategy=AllocationStrategy.OPTIMISTIC,
            attempts=result.attempts,
        )
        logger.info(f"Allocated {token.key} transactionally in {token.attempts} attempt(s)")
        return AllocationResult(token=token, record=Record(key=token.key, payload=dict(payload)))

    def get_record(self, key: str) -> Record | None:
        return self.inserter.get(key)

    def current_value(self) -> int:
        return self.allocator.read()
