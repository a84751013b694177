"""
Bounded retry for optimistic transactions.

An attempt reads, computes and commits, returning the store's transaction
result. Only a ``Conflict`` result is retried; any exception (missing key,
malformed record, store outage, cancellation) propagates on the first
occurrence. Backoff is randomized exponential so contending writers
spread out instead of colliding in lockstep.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    stop_never,
    wait_none,
    wait_random_exponential,
)

from ..errors import RetryExhaustedError
from ..store.base import Committed, Conflict, TransactionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How often, and how patiently, to retry a conflicting transaction.

    ``max_attempts=None`` retries forever. ``backoff_base=0`` retries
    immediately.
    """

    max_attempts: int | None = 64
    backoff_base: float = 0.005
    backoff_max: float = 0.25

    def __post_init__(self):
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1 or None, got {self.max_attempts}")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ValueError("Backoff durations must be non-negative")

    def stop(self):
        return stop_never if self.max_attempts is None else stop_after_attempt(self.max_attempts)

    def wait(self):
        if self.backoff_base == 0:
            return wait_none()
        return wait_random_exponential(multiplier=self.backoff_base, max=self.backoff_max)


def is_conflict(result: TransactionResult) -> bool:
    return isinstance(result, Conflict)


async def run_optimistic(
    operation: str,
    attempt: Callable[[], Awaitable[TransactionResult]],
    policy: RetryPolicy,
    on_conflict: Callable[[Conflict], None] | None = None,
) -> Committed:
    """
    Run ``attempt`` until it commits.

    Args:
        operation: Label used in logs and in RetryExhaustedError
        attempt: Coroutine function doing one READ -> COMPUTE -> COMMIT pass
        policy: Retry budget and backoff
        on_conflict: Called with each Conflict before the next attempt

    Returns:
        The Committed result of the successful attempt

    Raises:
        RetryExhaustedError: if every attempt allowed by ``policy`` conflicted
    """

    def _before_sleep(retry_state: RetryCallState) -> None:
        conflict = retry_state.outcome.result()
        if on_conflict is not None:
            on_conflict(conflict)
        logger.debug(
            f"{operation}: attempt {retry_state.attempt_number} conflicted on {conflict.key} "
            f"(expected v{conflict.expected_version}, found v{conflict.actual_version}), retrying"
        )

    def _exhausted(retry_state: RetryCallState) -> Committed:
        conflict = retry_state.outcome.result()
        if on_conflict is not None:
            on_conflict(conflict)
        logger.warning(f"{operation}: giving up after {retry_state.attempt_number} conflicting attempts")
        raise RetryExhaustedError(operation, retry_state.attempt_number, conflict.key)

    retrying = AsyncRetrying(
        retry=retry_if_result(is_conflict),
        stop=policy.stop(),
        wait=policy.wait(),
        before_sleep=_before_sleep,
        retry_error_callback=_exhausted,
    )
    return await retrying(attempt)
