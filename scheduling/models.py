"""
Scheduling - Data Models.

Tasks are transient: they live in a scheduler queue until resolved
and are never persisted.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar


T = TypeVar("T")

TaskFn = Callable[[], Awaitable[Any]]
Classifier = Callable[[BaseException], bool]


@dataclass
class ScheduledTask:
    """
    One pending upstream call.

    ``attempt`` counts dispatches so far; ``not_before`` is the
    earliest timestamp a retry may be dispatched.
    """
    fn: TaskFn
    future: "asyncio.Future[TaskResult]"
    classifier: Classifier
    enqueued_at: float
    label: str = ""
    attempt: int = 0
    not_before: float = 0.0
    sequence: int = 0


@dataclass(frozen=True)
class TaskFailure:
    """Structured terminal failure of a scheduled call."""
    error_type: str
    message: str
    attempts: int
    transient: bool
    status_code: Optional[int] = None

    @classmethod
    def from_exception(cls, exc: BaseException, attempts: int, transient: bool) -> "TaskFailure":
        return cls(
            error_type=type(exc).__name__,
            message=str(exc),
            attempts=attempts,
            transient=transient,
            status_code=getattr(exc, "status_code", None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type,
            "message": self.message,
            "attempts": self.attempts,
            "transient": self.transient,
            "status_code": self.status_code,
        }


@dataclass(frozen=True)
class TaskResult(Generic[T]):
    """
    Outcome of a scheduled call.

    Exactly one of ``value`` (when ``ok``) or ``failure`` is meaningful.
    """
    ok: bool
    attempts: int
    label: str = ""
    value: Optional[T] = None
    failure: Optional[TaskFailure] = None

    @classmethod
    def success(cls, value: T, attempts: int, label: str = "") -> "TaskResult[T]":
        return cls(ok=True, attempts=attempts, label=label, value=value)

    @classmethod
    def failed(cls, failure: TaskFailure, label: str = "") -> "TaskResult[T]":
        return cls(ok=False, attempts=failure.attempts, label=label, failure=failure)


@dataclass
class SchedulerStats:
    """Read-only counters exposed by a scheduler."""
    dispatched: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    throttled_waits: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "dispatched": self.dispatched,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "retried": self.retried,
            "throttled_waits": self.throttled_waits,
        }
