"""Status tracking and retry settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Final

from .env import env_float, env_int

DEFAULT_STATUS_CHECK_INTERVAL_MINUTES: Final[int] = 15
DEFAULT_SWEEP_BATCH_SIZE: Final[int] = 10
DEFAULT_TRACKING_WINDOW_DAYS: Final[int] = 30
DEFAULT_LOCK_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_BASE_DELAY_SECONDS: Final[float] = 5.0


@dataclass(frozen=True, slots=True)
class TrackingConfig:
    """How often and how much the status sweep works, and how failures are retried."""

    status_check_interval: timedelta = timedelta(minutes=DEFAULT_STATUS_CHECK_INTERVAL_MINUTES)
    batch_size: int = DEFAULT_SWEEP_BATCH_SIZE
    tracking_window: timedelta = timedelta(days=DEFAULT_TRACKING_WINDOW_DAYS)
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_base_delay: timedelta = timedelta(seconds=DEFAULT_RETRY_BASE_DELAY_SECONDS)


def get_tracking_config() -> TrackingConfig:
    return TrackingConfig(
        status_check_interval=timedelta(
            minutes=env_int(
                "EFILING_STATUS_CHECK_INTERVAL",
                default=DEFAULT_STATUS_CHECK_INTERVAL_MINUTES,
                minimum=1,
            )
        ),
        batch_size=env_int("EFILING_SWEEP_BATCH_SIZE", default=DEFAULT_SWEEP_BATCH_SIZE, minimum=1),
        tracking_window=timedelta(
            days=env_int(
                "EFILING_TRACKING_WINDOW_DAYS", default=DEFAULT_TRACKING_WINDOW_DAYS, minimum=1
            )
        ),
        lock_timeout_seconds=env_float(
            "EFILING_LOCK_TIMEOUT_SECONDS", default=DEFAULT_LOCK_TIMEOUT_SECONDS, minimum=0.0
        ),
        max_retries=env_int("EFILING_MAX_RETRIES", default=DEFAULT_MAX_RETRIES, minimum=1),
        retry_base_delay=timedelta(
            seconds=env_float(
                "EFILING_RETRY_BASE_DELAY",
                default=DEFAULT_RETRY_BASE_DELAY_SECONDS,
                minimum=0.0,
            )
        ),
    )
