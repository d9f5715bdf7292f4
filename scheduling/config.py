"""
Scheduling - Configuration.

============================================================
PURPOSE
============================================================
Budget and retry settings for one RateLimitedScheduler.

A scheduler instance guards exactly one upstream host, so each
host gets its own SchedulerConfig.

============================================================
"""

from dataclasses import dataclass, field
import random
from typing import Optional

from core.config import RateLimitSettings


# ============================================================
# RETRY POLICY
# ============================================================

JITTER_LOW = 0.75
JITTER_HIGH = 1.25


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration for upstream calls.

    Delay before retry k (k >= 1) is
    ``min(base_delay * multiplier ** (k - 1), max_delay)`` scaled by
    a jitter factor drawn from [0.75, 1.25].
    """

    max_attempts: int = 3
    """Total attempts, first attempt included."""

    base_delay_seconds: float = 2.0
    """Delay before the first retry."""

    multiplier: float = 2.0
    """Exponential backoff multiplier."""

    max_delay_seconds: float = 120.0
    """Maximum delay between retries (before jitter)."""

    def backoff_delay(self, retry_number: int) -> float:
        """Un-jittered delay before the given retry (1-based)."""
        if retry_number < 1:
            return 0.0
        delay = self.base_delay_seconds * (self.multiplier ** (retry_number - 1))
        return min(delay, self.max_delay_seconds)

    def jittered_delay(self, retry_number: int, rng: Optional[random.Random] = None) -> float:
        """Backoff delay with multiplicative jitter applied."""
        rng = rng or random
        return self.backoff_delay(retry_number) * rng.uniform(JITTER_LOW, JITTER_HIGH)


# ============================================================
# SCHEDULER CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class SchedulerConfig:
    """
    Admission and spacing configuration for one upstream host.
    """

    name: str = "default"
    """Host label used in logs."""

    max_per_minute: int = 20
    """Dispatches admitted within any sliding window."""

    window_seconds: float = 60.0

    min_spacing_seconds: float = 0.3
    """Fixed delay after every dispatch."""

    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if self.max_per_minute <= 0:
            raise ValueError("max_per_minute must be positive")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if self.min_spacing_seconds < 0:
            raise ValueError("min_spacing_seconds must not be negative")
        if self.retry.max_attempts < 1:
            raise ValueError("retry.max_attempts must be >= 1")

    @classmethod
    def from_settings(cls, name: str, settings: RateLimitSettings) -> "SchedulerConfig":
        """Build from the per-host rate limit section of AppConfig."""
        return cls(
            name=name,
            max_per_minute=settings.requests_per_minute,
            window_seconds=settings.window_seconds,
            min_spacing_seconds=settings.min_delay_seconds,
            retry=RetryPolicy(
                max_attempts=settings.max_attempts,
                base_delay_seconds=settings.retry_delay_seconds,
                max_delay_seconds=settings.max_retry_delay_seconds,
            ),
        )
