"""Record insertion under allocated tokens."""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..errors import RecordCollisionError
from .allocator import AllocationToken
from .storage.conditional import ConditionalStore, Conflict, Precondition, PutOp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Record:
    """A write-once item keyed by the token that was claimed for it."""

    key: str
    payload: dict[str, Any] = field(default_factory=dict)


class RecordInserter:
    """Writes records keyed by allocation tokens.

    With ``guard_overwrite`` every insert is conditioned on the key being
    absent, so a record can never silently replace another one.
    """

    def __init__(self, store: ConditionalStore, key_field: str = "pk", guard_overwrite: bool = False):
        self.store = store
        self.key_field = key_field
        self.guard_overwrite = guard_overwrite

    def build_item(self, token: AllocationToken, payload: dict[str, Any]) -> dict[str, Any]:
        if self.key_field in payload:
            raise ValueError(f"Payload may not set the key attribute '{self.key_field}'")
        return {**payload, self.key_field: token.key}

    def _precondition(self) -> Precondition | None:
        return Precondition.absent(self.key_field) if self.guard_overwrite else None

    def insert(self, token: AllocationToken, payload: dict[str, Any]) -> Record:
        """Put the record in its own round trip.

        Raises:
            RecordCollisionError: Guarded insert found an existing record
        """
        item = self.build_item(token, payload)
        outcome = self.store.put(token.key, item, self._precondition())
        if isinstance(outcome, Conflict):
            raise RecordCollisionError(f"Record {token.key} already exists")
        logger.debug(f"Inserted record {token.key}")
        return Record(key=token.key, payload=dict(payload))

    def put_op(self, token: AllocationToken, payload: dict[str, Any]) -> PutOp:
        """The insert as a transaction operation."""
        return PutOp(key=token.key, item=self.build_item(token, payload), precondition=self._precondition())

    def get(self, key: str) -> Record | None:
        """Strongly consistent lookup of a record."""
        item = self.store.get(key, consistent=True)
        if item is None:
            return None
        payload = {name: value for name, value in item.items() if name != self.key_field}
        return Record(key=key, payload=payload)
