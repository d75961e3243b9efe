"""Allocation flows against DynamoDB Local."""

import threading

import pytest

from dynacounter.errors import ForeignConflictError
from dynacounter.services import AllocationMode, RecordAllocationService
from dynacounter.services.allocator import AllocationStrategy, CounterAllocator
from dynacounter.services.retry import RetryPolicy
from dynacounter.services.storage.conditional import (
    CONDITIONAL_CHECK_FAILED,
    Conflict,
    Ok,
    Precondition,
    PutOp,
    UpdateAddOp,
)

pytestmark = pytest.mark.integration

FAST = RetryPolicy(max_attempts=None, initial_delay=0.01, max_delay=0.2, jitter=0.02, deadline=60)


def test_atomic_allocation(dynamodb_store):
    service = RecordAllocationService(dynamodb_store, mode=AllocationMode.ATOMIC)
    service.initialize_counter()

    first = service.allocate_and_insert({"some_attribute": "a"})
    second = service.allocate_and_insert({"some_attribute": "b"})

    assert (first.token.value, second.token.value) == (1, 2)
    assert service.get_record("2").payload == {"some_attribute": "b"}
    assert service.current_value() == 2


@pytest.mark.parametrize("mode", [AllocationMode.OPTIMISTIC_UPDATE, AllocationMode.OPTIMISTIC_PUT])
def test_optimistic_cas_race(dynamodb_store, mode):
    service = RecordAllocationService(dynamodb_store, mode=mode, retry=FAST)
    service.initialize_counter()
    allocator = service.allocator

    observed = allocator.read()
    assert isinstance(allocator.claim(observed), Ok)
    assert isinstance(allocator.claim(observed), Conflict)

    result = service.allocate_and_insert({"some_attribute": "x"})
    assert result.token.value == 2
    assert service.current_value() == 3


def test_transactional_allocation(dynamodb_store):
    service = RecordAllocationService(dynamodb_store, mode=AllocationMode.TRANSACTIONAL, retry=FAST)
    service.initialize_counter()

    result = service.allocate_and_insert({"some_attribute": "x"})

    assert result.token.value == 1
    assert service.get_record("1").payload == {"some_attribute": "x"}
    assert service.current_value() == 2


def test_transaction_reports_failing_index(dynamodb_store):
    dynamodb_store.put("counter", {"count_value": 5})

    outcome = dynamodb_store.transact([
        UpdateAddOp("counter", "count_value", 1, Precondition.equals("count_value", 1)),
        PutOp("1", {"some_attribute": "x"}),
    ])

    assert isinstance(outcome, Conflict)
    assert outcome.index == 0
    assert outcome.reason == CONDITIONAL_CHECK_FAILED
    assert dynamodb_store.get("1") is None


def test_transactional_collision_not_retried(dynamodb_store):
    service = RecordAllocationService(
        dynamodb_store, mode=AllocationMode.TRANSACTIONAL, retry=FAST, guard_overwrite=True
    )
    service.initialize_counter()
    dynamodb_store.put("1", {"some_attribute": "taken"})

    with pytest.raises(ForeignConflictError):
        service.allocate_and_insert({"some_attribute": "x"})
    assert service.current_value() == 1


def test_concurrent_optimistic_allocations_unique(dynamodb_store):
    allocator = CounterAllocator(dynamodb_store, strategy=AllocationStrategy.OPTIMISTIC, retry=FAST)
    allocator.initialize(1)
    values = []
    lock = threading.Lock()

    def worker():
        for _ in range(5):
            token = allocator.allocate()
            with lock:
                values.append(token.value)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(values) == list(range(1, 21))
