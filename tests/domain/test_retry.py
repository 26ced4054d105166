from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

import pytest

from efiling.domain.errors import (
    AuthenticationFault,
    RateLimitedError,
    ServiceUnavailableError,
    TransportTimeoutError,
)
from efiling.domain.failures import classify
from efiling.domain.retry import RetryPolicy, RetryScheduler

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


def _scheduler(**policy: object) -> RetryScheduler:
    return RetryScheduler(RetryPolicy(**policy), rng=random.Random(7))  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("attempt", "seconds"),
    [(0, 5), (1, 10), (2, 20), (5, 160), (6, 300), (12, 300)],
)
def test_base_delay_doubles_and_caps(attempt: int, seconds: int) -> None:
    assert RetryPolicy().base_delay_for(attempt) == timedelta(seconds=seconds)


def test_jitter_stays_within_ten_percent() -> None:
    scheduler = _scheduler()

    for attempt in range(4):
        base = RetryPolicy().base_delay_for(attempt)
        delay = scheduler.delay_for(attempt)
        assert base <= delay <= base * 1.1


def test_retry_after_overrides_backoff() -> None:
    scheduler = _scheduler()

    assert scheduler.delay_for(3, retry_after=42.0) == timedelta(seconds=42)


def test_third_retryable_failure_is_final() -> None:
    scheduler = _scheduler(jitter_ratio=0.0)
    failure = classify(TransportTimeoutError("slow"))

    first = scheduler.decide(failure, retry_count=0, now=NOW)
    second = scheduler.decide(failure, retry_count=first.retry_count, now=NOW)
    third = scheduler.decide(failure, retry_count=second.retry_count, now=NOW)

    assert first.retry
    assert first.retry_count == 1
    assert first.next_retry_at == NOW + timedelta(seconds=5)
    assert second.retry
    assert second.next_retry_at == NOW + timedelta(seconds=10)
    assert not third.retry
    assert third.retry_count == 3
    assert third.next_retry_at is None
    assert "retry limit" in third.reason


def test_non_retryable_failure_is_never_retried() -> None:
    decision = _scheduler().decide(
        classify(AuthenticationFault("bad certificate")), retry_count=0, now=NOW
    )

    assert not decision.retry
    assert decision.retry_count == 0


def test_rate_limit_uses_server_delay() -> None:
    failure = classify(RateLimitedError("slow down", retry_after=90))

    decision = _scheduler().decide(failure, retry_count=0, now=NOW)

    assert decision.retry
    assert decision.delay == timedelta(seconds=90)


def test_custom_policy_limits() -> None:
    scheduler = _scheduler(max_retries=1)

    decision = scheduler.decide(
        classify(ServiceUnavailableError("down")), retry_count=0, now=NOW
    )

    assert not decision.retry


@pytest.mark.parametrize(
    "kwargs",
    [{"max_retries": 0}, {"multiplier": 0.5}, {"jitter_ratio": 1.5}],
)
def test_policy_rejects_invalid_settings(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)  # type: ignore[arg-type]
