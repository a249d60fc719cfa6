"""Bounded exponential backoff with jitter for store I/O and lease acquisition."""

import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

from .log import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry schedule: ``min(max_delay, initial_delay * base**attempt)`` plus jitter.

    Attributes:
        attempts: Total number of calls, including the first one
        initial_delay: Wait before the first retry, in seconds
        max_delay: Upper bound for a single wait, before jitter
        exponential_base: Growth factor between consecutive waits
        jitter_fraction: Fraction of the wait added as random jitter
    """

    attempts: int = 3
    initial_delay: float = 0.5
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter_fraction: float = 0.25

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")

    def calculate_delay(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based failed attempt."""
        wait = min(self.max_delay, self.initial_delay * (self.exponential_base**attempt))
        if self.jitter_fraction <= 0:
            return wait
        return wait + random.uniform(0, wait * self.jitter_fraction)

    def should_retry(self, attempts_made: int) -> bool:
        """True while fewer than ``attempts`` calls have been made."""
        return attempts_made < self.attempts


def call_with_retry(
    func: Callable[[], T],
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...],
    no_retry: Tuple[Type[BaseException], ...] = (),
    sleep: Callable[[float], None] = time.sleep,
    description: Optional[str] = None,
) -> T:
    """Call ``func`` until it succeeds or the policy is exhausted.

    Exceptions in ``no_retry`` propagate immediately even when they are also
    instances of a ``retry_on`` type. The last retryable error is re-raised
    once every attempt has failed.
    """
    label = description or getattr(func, "__name__", "operation")
    attempt = 0
    while True:
        try:
            return func()
        except no_retry:
            raise
        except retry_on as e:
            attempt += 1
            if not policy.should_retry(attempt):
                logger.warning(
                    "%s failed after %s attempts: %s", label, attempt, e
                )
                raise
            delay = policy.calculate_delay(attempt - 1)
            logger.debug(
                "%s failed (attempt %s/%s), retrying in %.2fs: %s",
                label,
                attempt,
                policy.attempts,
                delay,
                e,
            )
            sleep(delay)
