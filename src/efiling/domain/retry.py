"""Retry backoff policy and scheduling decisions."""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from efiling.domain.failures import ClassifiedFailure


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Exponential backoff settings, immutable for the lifetime of the process."""

    base_delay: timedelta = timedelta(seconds=5)
    multiplier: float = 2.0
    max_delay: timedelta = timedelta(seconds=300)
    jitter_ratio: float = 0.1
    max_retries: int = 3

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if not 0 <= self.jitter_ratio <= 1:
            raise ValueError("jitter_ratio must be within [0, 1]")

    def base_delay_for(self, attempt: int) -> timedelta:
        """Delay before jitter for a 0-indexed attempt."""

        if attempt < 0:
            raise ValueError("attempt must be non-negative")
        seconds = self.base_delay.total_seconds() * self.multiplier**attempt
        return timedelta(seconds=min(seconds, self.max_delay.total_seconds()))


@dataclass(slots=True, frozen=True)
class RetryDecision:
    retry: bool
    retry_count: int
    reason: str
    delay: timedelta | None = None
    next_retry_at: datetime | None = None


class RetryScheduler:
    """Decide whether a classified failure earns another attempt, and when."""

    def __init__(self, policy: RetryPolicy | None = None, *, rng: random.Random | None = None):
        self.policy = policy or RetryPolicy()
        self._rng = rng or random.Random()  # noqa: S311

    def delay_for(self, attempt: int, *, retry_after: float | None = None) -> timedelta:
        if retry_after is not None and retry_after >= 0:
            return timedelta(seconds=retry_after)
        base = self.policy.base_delay_for(attempt)
        jitter = base * self._rng.uniform(0.0, self.policy.jitter_ratio)
        return base + jitter

    def decide(
        self,
        failure: ClassifiedFailure,
        *,
        retry_count: int,
        now: datetime,
    ) -> RetryDecision:
        """Return the decision for a failure given the retries already consumed.

        ``retry_count`` counts earlier retryable failures. The failure that brings
        the count to ``max_retries`` is final.
        """

        if not failure.retryable:
            return RetryDecision(
                retry=False,
                retry_count=retry_count,
                reason=f"{failure.category} failures are not retried",
            )

        attempts = retry_count + 1
        if attempts >= self.policy.max_retries:
            return RetryDecision(
                retry=False,
                retry_count=attempts,
                reason=f"retry limit of {self.policy.max_retries} reached",
            )

        delay = self.delay_for(retry_count, retry_after=failure.retry_after)
        return RetryDecision(
            retry=True,
            retry_count=attempts,
            reason=f"retry {attempts} of {self.policy.max_retries - 1} scheduled",
            delay=delay,
            next_retry_at=now + delay,
        )
