"""Bounded retry with linear backoff.

RetryPolicy.run returns a RetryOutcome instead of raising, so callers decide
how a final failure surfaces.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of RetryPolicy.run. value is set iff ok; error holds the last failure otherwise."""

    ok: bool
    attempts: int
    value: T | None = None
    error: Exception | None = None


@dataclass
class RetryPolicy:
    """Up to max_attempts calls; sleeps attempt * delay seconds between attempts."""

    max_attempts: int = 3
    delay: float = 1.0
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def backoff(self, attempt: int) -> float:
        return attempt * self.delay

    def run(self, fn: Callable[[], T], *, label: str = "call") -> RetryOutcome[T]:
        last_exc: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return RetryOutcome(ok=True, attempts=attempt, value=fn())
            except Exception as e:
                last_exc = e
                logger.warning(
                    "retry: %s failed attempt=%d/%d err=%s", label, attempt, self.max_attempts, e
                )
                if attempt < self.max_attempts:
                    self.sleep(self.backoff(attempt))
        return RetryOutcome(ok=False, attempts=self.max_attempts, error=last_exc)
