"""End-to-end allocation flows against the in-memory store.

Covers the uniqueness, monotonicity and transactional atomicity
properties, plus the scenarios each flow was built around.
"""

import threading

import pytest

from dynacounter.errors import (
    AllocationCancelled,
    CounterNotFoundError,
    ForeignConflictError,
    RecordCollisionError,
)
from dynacounter.core.config import DynaCounterConfig
from dynacounter.services.allocation import AllocationMode, RecordAllocationService
from dynacounter.services.allocator import AllocationStrategy, AllocationToken
from dynacounter.services.retry import RetryPolicy
from dynacounter.services.storage.conditional import Conflict
from dynacounter.services.storage.memory import InMemoryConditionalStore


@pytest.fixture(params=list(AllocationMode))
def service(request, store, fast_retry):
    service = RecordAllocationService(store, mode=request.param, retry=fast_retry)
    service.initialize_counter()
    return service


class TestEveryMode:
    """Behaviour shared by all four flows."""

    def test_single_allocation(self, service, store):
        result = service.allocate_and_insert({"some_attribute": "unique PK"})

        assert result.token.key == "1"
        assert result.attempts == 1
        assert service.get_record("1").payload == {"some_attribute": "unique PK"}
        expected_counter = 1 if service.mode == AllocationMode.ATOMIC else 2
        assert store.get("counter")["count_value"] == expected_counter

    def test_sequential_tokens_increase(self, service):
        keys = [int(service.allocate_and_insert({"n": n}).token.key) for n in range(5)]
        assert keys == [1, 2, 3, 4, 5]

    def test_concurrent_allocations_unique(self, service):
        results = []
        results_lock = threading.Lock()

        def worker(worker_id):
            for n in range(10):
                result = service.allocate_and_insert({"worker": worker_id, "n": n})
                with results_lock:
                    results.append(result)

        # Unbounded retries for the contended case
        service.allocator.coordinator.policy = RetryPolicy(
            max_attempts=None, initial_delay=0.0005, max_delay=0.01, jitter=0.0005
        )
        threads = [threading.Thread(target=worker, args=(i,)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        keys = [r.token.value for r in results]
        assert len(set(keys)) == 50
        assert sorted(keys) == list(range(1, 51))
        for result in results:
            assert service.get_record(result.token.key).payload == result.record.payload

    def test_uninitialized_counter(self, store):
        service = RecordAllocationService(store, counter_key="never-created")
        with pytest.raises(CounterNotFoundError):
            service.allocate_and_insert({})
        assert store.get("never-created") is None


class TestAtomicMode:
    """Atomic add then insert."""

    def test_counter_starts_at_zero(self, store):
        service = RecordAllocationService(store, mode=AllocationMode.ATOMIC)
        service.initialize_counter()
        assert service.current_value() == 0
        assert service.allocator.strategy == AllocationStrategy.ATOMIC_ADD

    def test_atomic_add_never_creates_the_counter(self, store):
        service = RecordAllocationService(store, mode=AllocationMode.ATOMIC, counter_key="never-created")

        with pytest.raises(CounterNotFoundError, match="never-created"):
            service.allocate_and_insert({"some_attribute": "x"})

        assert store.get("never-created") is None
        assert store.get("1") is None

    def test_interleaved_operations(self, store):
        """Two operations increment before either inserts; both keys stay unique."""
        service = RecordAllocationService(store, mode=AllocationMode.ATOMIC)
        service.initialize_counter()

        op1 = service.allocator.allocate()
        op2 = service.allocator.allocate()
        service.inserter.insert(op2, {"some_attribute": "inserted by the second operation"})
        service.inserter.insert(op1, {"some_attribute": "inserted by the first operation"})

        assert (op1.value, op2.value) == (1, 2)
        assert service.get_record("1").payload["some_attribute"].endswith("first operation")
        assert service.get_record("2").payload["some_attribute"].endswith("second operation")


class TestTransactionalMode:
    """CAS and insert in one transaction."""

    @pytest.fixture
    def service(self, store, fast_retry):
        service = RecordAllocationService(store, mode=AllocationMode.TRANSACTIONAL, retry=fast_retry)
        service.initialize_counter()
        return service

    def test_concurrent_race(self, store, service):
        """Operation 2 commits between operation 1's read and write."""
        other = RecordAllocationService(store, mode=AllocationMode.TRANSACTIONAL)
        raced = []

        original_transact = store.transact

        def transact(ops):
            if not raced:
                raced.append(True)
                other.allocate_and_insert({"some_attribute": "inserted by the second operation"})
            return original_transact(ops)

        store.transact = transact

        result = service.allocate_and_insert({"some_attribute": "inserted by the first operation"})

        assert result.token.value == 2
        assert result.attempts == 2
        assert service.get_record("1").payload["some_attribute"].endswith("second operation")
        assert service.get_record("2").payload["some_attribute"].endswith("first operation")
        assert service.current_value() == 3

    def test_counter_and_record_advance_together(self, store, service):
        for n in range(10):
            service.allocate_and_insert({"n": n})
            counter = service.current_value()
            # Every value below the counter has its record, none at or above it
            assert all(store.get(str(v)) is not None for v in range(1, counter))
            assert store.get(str(counter)) is None

    def test_failed_transaction_leaves_no_trace(self, store, service):
        allocator = service.allocator
        token_value = allocator.read()
        # Another writer moves the counter; the stale transaction must do nothing
        allocator.claim(token_value)

        outcome = store.transact([
            allocator.claim_op(token_value),
            service.inserter.put_op(
                AllocationToken(99, AllocationStrategy.OPTIMISTIC), {"some_attribute": "never written"}
            ),
        ])

        assert isinstance(outcome, Conflict)
        assert outcome.index == 0
        assert store.get("99") is None
        assert service.current_value() == token_value + 1

    def test_conflict_reported_on_counter_claim(self, store, service):
        allocator = service.allocator
        stale = allocator.read()
        allocator.claim(stale)

        outcome = store.transact([
            allocator.claim_op(stale),
            service.inserter.put_op(
                AllocationToken(stale, AllocationStrategy.OPTIMISTIC), {"some_attribute": "x"}
            ),
        ])

        assert outcome.index == 0

    def test_collision_on_insert_is_not_retried(self, store, fast_retry):
        service = RecordAllocationService(
            store, mode=AllocationMode.TRANSACTIONAL, retry=fast_retry, guard_overwrite=True
        )
        service.initialize_counter()
        store.put("1", {"some_attribute": "already here"})

        with pytest.raises(ForeignConflictError) as excinfo:
            service.allocate_and_insert({"some_attribute": "new"})

        assert excinfo.value.index == 1
        assert service.current_value() == 1
        assert service.get_record("1").payload == {"some_attribute": "already here"}

    def test_cancelled(self, service):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(AllocationCancelled):
            service.allocate_and_insert({}, cancel=cancel)
        assert service.current_value() == 1


class TestGuardedSeparateInsert:
    """Overwrite guard on the two-round-trip flows."""

    def test_collision_raises(self, store, fast_retry):
        service = RecordAllocationService(
            store, mode=AllocationMode.OPTIMISTIC_UPDATE, retry=fast_retry, guard_overwrite=True
        )
        service.initialize_counter()
        store.put("1", {"some_attribute": "already here"})

        with pytest.raises(RecordCollisionError):
            service.allocate_and_insert({"some_attribute": "new"})


class TestFromConfig:
    """Building the service from configuration."""

    def test_memory_backend(self):
        config = DynaCounterConfig(
            store={"backend": "memory"},
            counter={"key": "ids", "mode": "optimistic_put", "guard_overwrite": True},
            retry={"max_attempts": 2},
        )

        service = RecordAllocationService.from_config(config)

        assert isinstance(service.store, InMemoryConditionalStore)
        assert service.mode == AllocationMode.OPTIMISTIC_PUT
        assert service.allocator.counter_key == "ids"
        assert service.allocator.coordinator.policy.max_attempts == 2
        assert service.inserter.guard_overwrite

    def test_default_start_per_mode(self):
        assert AllocationMode.ATOMIC.default_start == 0
        assert AllocationMode.TRANSACTIONAL.default_start == 1
