"""
Scheduling - Rate Limited Scheduler.

============================================================
RESPONSIBILITY
============================================================
Serializes outbound calls to ONE upstream host so the host's
request budget is never exceeded.

- Sliding-window admission (max N dispatches per window)
- Fixed spacing between dispatches
- Per-task retry with exponential backoff and jitter
- Terminal failures are returned as values, never raised

============================================================
ORDERING
============================================================
- New tasks are dispatched in enqueue order (FIFO)
- A retry whose backoff has elapsed goes ahead of new tasks
- While a retry is backing off, new tasks keep flowing

============================================================
USAGE
============================================================
    scheduler = RateLimitedScheduler(SchedulerConfig(name="metrics-api"))
    result = await scheduler.enqueue(lambda: client.fetch_page(...))
    if result.ok:
        ...

One instance per upstream host, constructed by the caller and
passed to whoever needs it.

============================================================
"""

import asyncio
import bisect
import logging
import random
from collections import deque
from typing import Deque, List, Optional

from core.clock import ClockProtocol, SystemClock
from .config import SchedulerConfig
from .models import (
    Classifier,
    ScheduledTask,
    SchedulerStats,
    TaskFailure,
    TaskFn,
    TaskResult,
)


logger = logging.getLogger(__name__)

# Smallest suspension; keeps microsecond-resolution clocks moving forward.
MIN_WAIT_SECONDS = 0.001


def default_transient_classifier(exc: BaseException) -> bool:
    """
    Decide whether a failure is worth retrying.

    Source errors expose ``is_transient`` (rate limits, 5xx, connection
    problems). Bare timeouts and connection errors are transient too.
    Everything else is fatal.
    """
    transient = getattr(exc, "is_transient", None)
    if transient is not None:
        return bool(transient)
    return isinstance(exc, (asyncio.TimeoutError, ConnectionError))


class RateLimitedScheduler:
    """
    FIFO request scheduler with a sliding-window budget.

    Queue, retry list and dispatch history are private. Callers only
    ``enqueue`` work, ``drain`` it, ``close`` the scheduler and read
    ``stats``.
    """

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        clock: Optional[ClockProtocol] = None,
        rng: Optional[random.Random] = None,
        classifier: Optional[Classifier] = None,
    ):
        self._config = config or SchedulerConfig()
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()
        self._default_classifier = classifier or default_transient_classifier

        self._queue: Deque[ScheduledTask] = deque()
        self._retries: List[tuple] = []
        self._dispatch_times: Deque[float] = deque()
        self._sequence = 0
        self._stats = SchedulerStats()

        self._current: Optional[ScheduledTask] = None
        self._worker: Optional[asyncio.Task] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._closed = False

    # =========================================================
    # PROPERTIES
    # =========================================================

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def stats(self) -> SchedulerStats:
        """Snapshot of the counters."""
        s = self._stats
        return SchedulerStats(
            dispatched=s.dispatched,
            succeeded=s.succeeded,
            failed=s.failed,
            retried=s.retried,
            throttled_waits=s.throttled_waits,
        )

    @property
    def pending_count(self) -> int:
        return len(self._queue) + len(self._retries)

    # =========================================================
    # PUBLIC API
    # =========================================================

    def enqueue(
        self,
        fn: TaskFn,
        classifier: Optional[Classifier] = None,
        label: str = "",
    ) -> "asyncio.Future[TaskResult]":
        """
        Queue one upstream call.

        Must be called from a running event loop. The task's place in
        the FIFO is fixed at call time.

        Args:
            fn: Zero-argument coroutine function performing the call
            classifier: Transient-vs-fatal decision for this task's errors
            label: Short description for logs

        Returns:
            Awaitable resolving to a TaskResult
        """
        if self._closed:
            raise RuntimeError(f"[{self.name}] scheduler is closed")

        loop = asyncio.get_running_loop()
        self._sequence += 1
        task = ScheduledTask(
            fn=fn,
            future=loop.create_future(),
            classifier=classifier or self._default_classifier,
            enqueued_at=self._clock.timestamp(),
            label=label or f"task-{self._sequence}",
            sequence=self._sequence,
        )
        self._queue.append(task)
        self._ensure_worker()
        return task.future

    async def drain(self) -> None:
        """Wait until every queued task has been resolved."""
        while self._worker is not None:
            await asyncio.shield(self._worker)

    async def close(self) -> None:
        """
        Stop the worker and resolve everything still queued as failed.
        """
        self._closed = True
        worker = self._worker
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        leftovers = list(self._queue) + [entry[2] for entry in self._retries]
        if self._current is not None:
            leftovers.insert(0, self._current)
            self._current = None
        self._queue.clear()
        self._retries.clear()
        for task in leftovers:
            failure = TaskFailure(
                error_type="SchedulerClosed",
                message="scheduler closed before dispatch",
                attempts=task.attempt,
                transient=False,
            )
            self._resolve(task, TaskResult.failed(failure, label=task.label))

        if leftovers:
            logger.warning(f"[{self.name}] Closed with {len(leftovers)} unresolved tasks")

    # =========================================================
    # WORKER
    # =========================================================

    def _ensure_worker(self) -> None:
        if self._wakeup is None:
            self._wakeup = asyncio.Event()
        self._wakeup.set()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            while self._queue or self._retries:
                await self._await_admission()

                task = self._pop_ready()
                if task is None:
                    if not self._retries:
                        continue
                    wait = self._retries[0][0] - self._clock.timestamp()
                    await self._idle(max(wait, MIN_WAIT_SECONDS))
                    continue

                await self._dispatch(task)

                if self._config.min_spacing_seconds > 0:
                    await self._clock.sleep(self._config.min_spacing_seconds)
        finally:
            self._worker = None

    async def _await_admission(self) -> None:
        """Suspend until the window has room for one more dispatch."""
        window = self._config.window_seconds
        while True:
            now = self._clock.timestamp()
            while self._dispatch_times and self._dispatch_times[0] <= now - window:
                self._dispatch_times.popleft()

            if len(self._dispatch_times) < self._config.max_per_minute:
                return

            wait = self._dispatch_times[0] + window - now
            self._stats.throttled_waits += 1
            logger.debug(
                f"[{self.name}] Budget of {self._config.max_per_minute} per "
                f"{window:.0f}s reached, waiting {wait:.2f}s"
            )
            await self._clock.sleep(max(wait, MIN_WAIT_SECONDS))

    def _pop_ready(self) -> Optional[ScheduledTask]:
        """Next dispatchable task: due retries first, then FIFO."""
        now = self._clock.timestamp()
        while self._retries and self._retries[0][0] <= now:
            task = self._retries.pop(0)[2]
            if not task.future.done():
                return task

        while self._queue:
            task = self._queue.popleft()
            if not task.future.done():
                return task
        return None

    async def _idle(self, seconds: float) -> None:
        """Sleep until a retry is due or new work arrives."""
        self._wakeup.clear()
        sleeper = asyncio.ensure_future(self._clock.sleep(seconds))
        waker = asyncio.ensure_future(self._wakeup.wait())
        try:
            await asyncio.wait({sleeper, waker}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (sleeper, waker):
                if not pending.done():
                    pending.cancel()

    async def _dispatch(self, task: ScheduledTask) -> None:
        self._dispatch_times.append(self._clock.timestamp())
        self._current = task
        task.attempt += 1
        self._stats.dispatched += 1

        try:
            value = await task.fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._current = None
            self._handle_failure(task, exc)
            return

        self._current = None
        self._stats.succeeded += 1
        self._resolve(task, TaskResult.success(value, attempts=task.attempt, label=task.label))

    def _handle_failure(self, task: ScheduledTask, exc: Exception) -> None:
        try:
            transient = bool(task.classifier(exc))
        except Exception as classifier_error:
            logger.error(
                f"[{self.name}] Classifier failed for {task.label}: {classifier_error}"
            )
            transient = False

        if transient and task.attempt < self._config.retry.max_attempts:
            self._schedule_retry(task, exc)
            return

        failure = TaskFailure.from_exception(exc, attempts=task.attempt, transient=transient)
        self._stats.failed += 1
        if transient:
            logger.error(
                f"[{self.name}] {task.label} failed after {task.attempt} attempts: {exc}"
            )
        else:
            logger.warning(f"[{self.name}] {task.label} failed (not retryable): {exc}")
        self._resolve(task, TaskResult.failed(failure, label=task.label))

    def _schedule_retry(self, task: ScheduledTask, exc: BaseException) -> None:
        delay = self._config.retry.jittered_delay(task.attempt, self._rng)
        retry_after = getattr(exc, "retry_after_seconds", None)
        if retry_after:
            delay = max(delay, float(retry_after))

        task.not_before = self._clock.timestamp() + delay
        bisect.insort(self._retries, (task.not_before, task.sequence, task))
        self._stats.retried += 1

        logger.warning(
            f"[{self.name}] {task.label} attempt {task.attempt}/"
            f"{self._config.retry.max_attempts} failed ({exc}); retrying in {delay:.2f}s"
        )

    @staticmethod
    def _resolve(task: ScheduledTask, result: TaskResult) -> None:
        if not task.future.done():
            task.future.set_result(result)

    def __repr__(self) -> str:
        return (
            f"RateLimitedScheduler(name={self.name!r}, "
            f"max_per_minute={self._config.max_per_minute}, pending={self.pending_count})"
        )
