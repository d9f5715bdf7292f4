"""
Scheduling Package.

Rate-limited, retrying dispatch of upstream calls. One
RateLimitedScheduler per upstream host.
"""

from .config import RetryPolicy, SchedulerConfig
from .models import SchedulerStats, TaskFailure, TaskResult
from .scheduler import RateLimitedScheduler, default_transient_classifier


__all__ = [
    "RetryPolicy",
    "SchedulerConfig",
    "SchedulerStats",
    "TaskFailure",
    "TaskResult",
    "RateLimitedScheduler",
    "default_transient_classifier",
]
