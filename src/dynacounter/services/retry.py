"""Optimistic-lock retry loop with exponential backoff.

Drives the read -> conditional write cycle until the write wins,
re-reading fresh state after every conflict.
"""

import logging
import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, model_validator

from ..errors import (
    AllocationCancelled,
    ForeignConflictError,
    RetryDeadlineExceeded,
    TooManyRetriesError,
)
from .storage.conditional import Conflict, Ok, WriteOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptState(str, Enum):
    """States of a single optimistic attempt."""

    READ = "read"
    ATTEMPT_WRITE = "attempt_write"
    SUCCESS = "success"
    CONFLICT = "conflict"


class RetryPolicy(BaseModel):
    """Bounds and pacing for the optimistic retry loop."""

    max_attempts: int | None = Field(default=5, ge=1)
    """Maximum write attempts; None retries until success or deadline."""

    initial_delay: float = Field(default=0.05, ge=0)
    """Backoff before the second attempt, in seconds (doubles each time)."""

    max_delay: float = Field(default=2.0, ge=0)
    """Upper bound for a single backoff, before jitter."""

    jitter: float = Field(default=0.05, ge=0)
    """Uniform random jitter added to each backoff, in seconds."""

    deadline: float | None = Field(default=None, gt=0)
    """Total wall-clock budget for the whole loop, in seconds."""

    @model_validator(mode="after")
    def _check_delays(self) -> "RetryPolicy":
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        return self

    def backoff(self, retry: int) -> float:
        """Delay before retry number ``retry`` (0-based)."""
        delay = min(self.max_delay, self.initial_delay * (2**retry))
        return delay + random.uniform(0, self.jitter)


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    """Winning attempt: the value read and the accepted write outcome."""

    observed: T
    outcome: Ok
    attempts: int


class RetryCoordinator:
    """Runs read/attempt pairs until a conditional write succeeds.

    Only conflicts on the caller's own precondition are retried. A
    conflict reported for another operation of a transaction, or with
    a reason other than a failed condition check, is raised as
    ForeignConflictError. Store faults propagate untouched.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.clock = clock

    def run(
        self,
        read: Callable[[], T],
        attempt: Callable[[T], WriteOutcome],
        *,
        owned_index: int | None = None,
        cancel: threading.Event | None = None,
        label: str = "",
        observer: Callable[[AttemptState, int], None] | None = None,
    ) -> RetryResult[T]:
        """Loop until ``attempt(read())`` returns Ok.

        Args:
            read: Fetches fresh state; called once per attempt
            attempt: Conditional write based on the value just read
            owned_index: For transactions, the operation whose precondition
                this loop owns; conflicts elsewhere are not retried
            cancel: Event that aborts the loop when set
            label: Name used in log messages
            observer: Called with every state transition and attempt number

        Returns:
            RetryResult of the winning attempt

        Raises:
            ForeignConflictError: Conflict not caused by the owned precondition
            TooManyRetriesError: max_attempts conflicts in a row
            RetryDeadlineExceeded: Next backoff would pass the deadline
            AllocationCancelled: ``cancel`` was set
        """
        policy = self.policy
        notify = observer or (lambda state, n: None)
        started = self.clock()
        attempts = 0

        while True:
            self._check_cancelled(cancel, label)
            attempts += 1
            notify(AttemptState.READ, attempts)
            observed = read()

            notify(AttemptState.ATTEMPT_WRITE, attempts)
            outcome = attempt(observed)

            if isinstance(outcome, Ok):
                notify(AttemptState.SUCCESS, attempts)
                logger.debug(f"Conditional write on {label} succeeded on attempt {attempts}")
                return RetryResult(observed=observed, outcome=outcome, attempts=attempts)

            self._check_owned(outcome, owned_index, label)
            notify(AttemptState.CONFLICT, attempts)

            if policy.max_attempts is not None and attempts >= policy.max_attempts:
                logger.warning(f"CAS conflict on {label}, no more retries")
                raise TooManyRetriesError(
                    f"Failed to claim {label} after {attempts} attempts"
                )

            delay = policy.backoff(attempts - 1)
            if policy.deadline is not None and self.clock() - started + delay > policy.deadline:
                logger.warning(f"CAS conflict on {label}, retry deadline of {policy.deadline}s reached")
                raise RetryDeadlineExceeded(
                    f"Gave up on {label} after {attempts} attempts "
                    f"({policy.deadline}s deadline)"
                )

            logger.debug(
                f"CAS conflict on {label} (observed {observed!r}), "
                f"attempt {attempts}, retrying in {delay:.3f}s"
            )
            self._check_cancelled(cancel, label)
            if delay > 0:
                self.sleep(delay)

    @staticmethod
    def _check_owned(conflict: Conflict, owned_index: int | None, label: str) -> None:
        if not conflict.is_condition_failure:
            raise ForeignConflictError(
                f"Write on {label} cancelled for a non-retriable reason: {conflict.reason}",
                index=conflict.index,
                reason=conflict.reason,
            )
        if owned_index is not None and conflict.index != owned_index:
            raise ForeignConflictError(
                f"Transaction on {label} failed at operation {conflict.index}, "
                f"not the counter claim at {owned_index}",
                index=conflict.index,
                reason=conflict.reason,
            )

    @staticmethod
    def _check_cancelled(cancel: threading.Event | None, label: str) -> None:
        if cancel is not None and cancel.is_set():
            raise AllocationCancelled(f"Allocation on {label} cancelled")
