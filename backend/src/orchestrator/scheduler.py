"""Poll scheduling on a shared, bounded worker pool.

The host facility is a port: the orchestrator only ever talks to a
``HostScheduler``, so tests can substitute a simulated clock.
"""

import heapq
import itertools
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from utils.logger import get_logger


class ScheduledTask:
    """Cancellation token for one scheduled callback.

    Cancelling never interrupts a callback that is already running; it only
    guarantees the callback will not start afterwards.
    """

    def __init__(self, delay_ms: int = 0):
        self.delay_ms = delay_ms
        self._cancelled = threading.Event()
        self._future: Optional[Future] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()
        if self._future is not None:
            self._future.cancel()


class HostScheduler(ABC):
    """Shared periodic-task facility provided by the host."""

    @abstractmethod
    def submit(self, callback: Callable[[], None]) -> ScheduledTask:
        """Run ``callback`` as soon as a worker is free."""

    @abstractmethod
    def schedule_after(self, delay_ms: int, callback: Callable[[], None]) -> ScheduledTask:
        """Run ``callback`` once, after ``delay_ms`` milliseconds."""

    def shutdown(self) -> None:
        """Release the facility's resources."""


_Entry = Tuple[float, int, ScheduledTask, Callable[[], None]]


class ThreadPoolHostScheduler(HostScheduler):
    """Host scheduler backed by a bounded thread pool.

    Deferred callbacks sit in one time-ordered queue watched by a single
    timer thread, which hands each callback to the pool once it falls due.
    Waiting runs hold no thread of their own, pooled or otherwise.
    """

    def __init__(self, max_workers: int = 4, clock: Callable[[], float] = time.monotonic):
        self.max_workers = max_workers
        self.clock = clock
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="updatebot-poll")
        self._cond = threading.Condition()
        self._queue: List[_Entry] = []
        self._seq = itertools.count()
        self._shutdown = False
        self.logger = get_logger("orchestrator.host")
        self._timer = threading.Thread(target=self._timer_loop, name="updatebot-timer", daemon=True)
        self._timer.start()

    def submit(self, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask()
        self._dispatch(task, callback)
        return task

    def schedule_after(self, delay_ms: int, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(delay_ms)
        due = self.clock() + delay_ms / 1000.0
        with self._cond:
            if self._shutdown:
                task.cancel()
                return task
            heapq.heappush(self._queue, (due, next(self._seq), task, callback))
            # Only a new earliest entry changes how long the timer sleeps
            if self._queue[0][2] is task:
                self._cond.notify()
        return task

    @property
    def waiting(self) -> int:
        """Number of deferred callbacks not yet handed to the pool."""
        with self._cond:
            return sum(1 for _, _, task, _ in self._queue if not task.cancelled)

    def _timer_loop(self) -> None:
        with self._cond:
            while not self._shutdown:
                while self._queue and self._queue[0][2].cancelled:
                    heapq.heappop(self._queue)
                if not self._queue:
                    self._cond.wait()
                    continue
                remaining = self._queue[0][0] - self.clock()
                if remaining > 0:
                    self._cond.wait(remaining)
                    continue
                _, _, task, callback = heapq.heappop(self._queue)
                self._dispatch(task, callback)

    def _dispatch(self, task: ScheduledTask, callback: Callable[[], None]) -> None:
        if task.cancelled:
            return

        def run():
            if not task.cancelled:
                callback()

        with self._cond:
            if self._shutdown:
                task.cancel()
                return
            task._future = self._executor.submit(run)

    def shutdown(self) -> None:
        with self._cond:
            self._shutdown = True
            pending, self._queue = self._queue, []
            self._cond.notify_all()
        for _, _, task, _ in pending:
            task.cancel()
        if threading.current_thread() is not self._timer:
            self._timer.join(timeout=1.0)
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.logger.info("Host scheduler stopped")


class PollScheduler:
    """Schedules single deferred ticks on the host facility."""

    def __init__(self, host: HostScheduler):
        self.host = host
        self.logger = get_logger("orchestrator.scheduler")

    def schedule_once(self, delay_ms: int, callback: Callable[[], None]) -> ScheduledTask:
        """Schedule ``callback`` to run once after ``delay_ms`` (0 = immediately)."""
        guarded = self._guard(callback)
        if delay_ms <= 0:
            return self.host.submit(guarded)
        return self.host.schedule_after(delay_ms, guarded)

    def cancel(self, task: Optional[ScheduledTask]) -> None:
        """Best-effort cancellation; a tick already running is left to finish."""
        if task is not None:
            task.cancel()

    def _guard(self, callback: Callable[[], None]) -> Callable[[], None]:
        def run():
            try:
                callback()
            except Exception as e:
                self.logger.exception(f"Scheduled callback failed: {e}")
        return run
