"""In-memory implementation of ConditionalStore for testing.

This provides a thread-safe, in-memory implementation that mimics
the conditional-write and transaction semantics of DynamoDB.
"""

import copy
import threading

from ...errors import StoreFault
from .conditional import (
    CONDITIONAL_CHECK_FAILED,
    NO_FAILURE,
    Conflict,
    Ok,
    Precondition,
    PutOp,
    TransactOp,
    UpdateAddOp,
    WriteOutcome,
)


class InMemoryConditionalStore:
    """In-memory conditional store for testing.

    A single lock serializes every write, so conditional writes against
    the same key are linearized the way the real service does it.
    """

    def __init__(self, key_attribute: str = "pk"):
        """Initialize empty store with thread safety."""
        self.key_attribute = key_attribute
        self._items: dict[str, dict] = {}
        self._lock = threading.Lock()

    def get(
        self, key: str, fields: list[str] | None = None, consistent: bool = False
    ) -> dict | None:
        """Get a copy of the current item."""
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            if fields:
                return {f: copy.deepcopy(item[f]) for f in fields if f in item}
            return copy.deepcopy(item)

    def put(self, key: str, item: dict, precondition: Precondition | None = None) -> WriteOutcome:
        """Replace the item if the precondition holds."""
        with self._lock:
            if precondition is not None and not precondition.holds(self._items.get(key)):
                return Conflict()
            self._items[key] = self._stamp(key, item)
            return Ok()

    def update_add(
        self, key: str, field: str, delta: int, precondition: Precondition | None = None
    ) -> WriteOutcome:
        """Add to a numeric field if the precondition holds."""
        with self._lock:
            current = self._items.get(key)
            if precondition is not None and not precondition.holds(current):
                return Conflict()
            new_value = self._added(current, key, field, delta)
            updated = dict(current) if current else {self.key_attribute: key}
            updated[field] = new_value
            self._items[key] = updated
            return Ok(value=new_value)

    def transact(self, ops: list[TransactOp]) -> WriteOutcome:
        """Check every precondition, then apply all operations."""
        if not ops:
            raise StoreFault("Transaction must contain at least one operation", operation="transact")

        keys = [op.key for op in ops]
        if len(set(keys)) != len(keys):
            raise StoreFault(
                "Transaction cannot include multiple operations on one item",
                operation="transact",
                code="ValidationException",
            )

        with self._lock:
            reasons = [
                NO_FAILURE
                if op.precondition is None or op.precondition.holds(self._items.get(op.key))
                else CONDITIONAL_CHECK_FAILED
                for op in ops
            ]
            if CONDITIONAL_CHECK_FAILED in reasons:
                index = reasons.index(CONDITIONAL_CHECK_FAILED)
                return Conflict(index=index, reason=CONDITIONAL_CHECK_FAILED, reasons=tuple(reasons))

            # Compute every effect before mutating so a bad op leaves no trace
            staged: dict[str, dict] = {}
            for op in ops:
                if isinstance(op, PutOp):
                    staged[op.key] = self._stamp(op.key, op.item)
                elif isinstance(op, UpdateAddOp):
                    current = self._items.get(op.key)
                    updated = dict(current) if current else {self.key_attribute: op.key}
                    updated[op.field] = self._added(current, op.key, op.field, op.delta)
                    staged[op.key] = updated
                else:
                    raise StoreFault(f"Unsupported transaction operation: {op!r}", operation="transact")
            self._items.update(staged)
            return Ok()

    def _stamp(self, key: str, item: dict) -> dict:
        stored = copy.deepcopy(item)
        stored[self.key_attribute] = key
        return stored

    @staticmethod
    def _added(current: dict | None, key: str, field: str, delta: int) -> int:
        base = (current or {}).get(field, 0)
        if isinstance(base, bool) or not isinstance(base, int):
            raise StoreFault(
                f"Field {field} of {key} is not numeric: {base!r}",
                operation="update_add",
                code="ValidationException",
            )
        return base + delta
