"""Conditional-write storage protocol for optimistic concurrency control.

This module provides a provider-agnostic interface for key/value storage
with conditional writes (Compare-And-Swap), atomic numeric add and
all-or-nothing multi-item transactions. Conflicts are returned as
values; everything else is raised as StoreFault.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union

# Reason codes use the DynamoDB spelling so both stores report alike
CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailed"
NO_FAILURE = "None"


class PreconditionKind(str, Enum):
    """Predicate evaluated by the store atomically with the write."""

    EQUALS = "equals"
    ABSENT = "absent"
    EXISTS = "exists"


@dataclass(frozen=True)
class Precondition:
    """Condition on one field of the current item.

    EQUALS holds when the field exists and equals ``expected``.
    ABSENT holds when the field (or the whole item) does not exist.
    EXISTS holds when the item has the field, whatever its value.
    """

    field: str
    kind: PreconditionKind = PreconditionKind.EQUALS
    expected: Any = None

    @classmethod
    def equals(cls, field: str, expected: Any) -> "Precondition":
        return cls(field=field, kind=PreconditionKind.EQUALS, expected=expected)

    @classmethod
    def absent(cls, field: str) -> "Precondition":
        return cls(field=field, kind=PreconditionKind.ABSENT)

    @classmethod
    def exists(cls, field: str) -> "Precondition":
        return cls(field=field, kind=PreconditionKind.EXISTS)

    def holds(self, item: dict | None) -> bool:
        """Evaluate against an item snapshot (None means no item)."""
        if self.kind == PreconditionKind.ABSENT:
            return item is None or self.field not in item
        if self.kind == PreconditionKind.EXISTS:
            return item is not None and self.field in item
        return item is not None and self.field in item and item[self.field] == self.expected


@dataclass(frozen=True)
class UpdateAddOp:
    """Atomic numeric add on one field, as part of a transaction."""

    key: str
    field: str
    delta: int
    precondition: Precondition | None = None


@dataclass(frozen=True)
class PutOp:
    """Full-item put, as part of a transaction."""

    key: str
    item: dict
    precondition: Precondition | None = None


TransactOp = Union[UpdateAddOp, PutOp]


@dataclass(frozen=True)
class Ok:
    """Write accepted. ``value`` is the new field value for update_add."""

    value: Any = None


@dataclass(frozen=True)
class Conflict:
    """Write rejected because a precondition did not hold.

    For transactions, ``index`` is the position of the failing operation
    and ``reasons`` holds one reason code per operation.
    """

    index: int | None = None
    reason: str = CONDITIONAL_CHECK_FAILED
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_condition_failure(self) -> bool:
        return self.reason == CONDITIONAL_CHECK_FAILED


WriteOutcome = Union[Ok, Conflict]


class ConditionalStore(Protocol):
    """Key/value store with conditional writes.

    Implementations must be linearizable per key and must evaluate
    preconditions atomically with the write they guard.
    """

    def get(
        self, key: str, fields: list[str] | None = None, consistent: bool = False
    ) -> dict | None:
        """Get the current item.

        Args:
            key: Item key
            fields: Optional projection; only these fields are returned
            consistent: Request a strongly consistent read

        Returns:
            Item dict (including the key attribute unless projected away),
            or None if the item doesn't exist.
        """
        ...

    def put(self, key: str, item: dict, precondition: Precondition | None = None) -> WriteOutcome:
        """Replace the whole item, optionally conditioned.

        Returns:
            Ok() on success, Conflict() if the precondition failed.
        """
        ...

    def update_add(
        self, key: str, field: str, delta: int, precondition: Precondition | None = None
    ) -> WriteOutcome:
        """Atomically add ``delta`` to a numeric field.

        A missing item or field is treated as zero.

        Returns:
            Ok(value=new_value) on success, Conflict() if the precondition failed.
        """
        ...

    def transact(self, ops: list[TransactOp]) -> WriteOutcome:
        """Apply all operations atomically, or none of them.

        Returns:
            Ok() if every precondition held, otherwise Conflict with the
            index of the failing operation.
        """
        ...
