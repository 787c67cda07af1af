"""Retry and pacing policy shared by every call site that waits."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(step: float) -> Callable[[int], float]:
    """Return a backoff function waiting ``step * attempt`` seconds."""

    def backoff(attempt: int) -> float:
        return step * attempt

    return backoff


def constant_backoff(delay: float) -> Callable[[int], float]:
    def backoff(attempt: int) -> float:
        return delay

    return backoff


def _always(exc: BaseException) -> bool:
    return True


@dataclass
class RetryPolicy:
    """Bounded retries with a pluggable backoff and retryable-error predicate.

    ``backoff`` receives the 1-based number of the attempt that just failed.
    ``sleep`` is injectable so tests can record delays instead of waiting.
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=lambda: linear_backoff(1.0))
    retryable: Callable[[BaseException], bool] = _always
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def _wait(self, state: RetryCallState) -> float:
        return self.backoff(state.attempt_number)

    def _log_retry(self, state: RetryCallState) -> None:
        outcome = state.outcome
        exc = outcome.exception() if outcome else None
        logger.warning(
            "Attempt %d/%d failed (%s); retrying in %.2f seconds",
            state.attempt_number,
            self.max_attempts,
            exc,
            state.next_action.sleep if state.next_action else 0.0,
        )

    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Run ``func`` until it succeeds or the attempts run out.

        The last exception is re-raised unchanged once the budget is spent
        or when ``retryable`` rejects it.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(self.retryable),
            sleep=self.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retrying(func, *args, **kwargs)

    def pause(self, attempt: int = 1) -> None:
        """Sleep for the backoff of ``attempt`` without calling anything."""
        delay = self.backoff(attempt)
        if delay > 0:
            logger.debug("Pausing %.2f seconds", delay)
            self.sleep(delay)
