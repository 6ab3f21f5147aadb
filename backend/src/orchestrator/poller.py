"""Orchestrator - drives one push, then polls status until the push settles.

Each tick is a short, non-blocking unit of work on the shared pool: it makes at
most one ``start`` or ``poll`` call, then either finishes the run or asks the
poll scheduler for the next tick. Nothing is parked between polls.
"""

import time
from typing import Any, Callable, Optional, Union

from utils.logger import bind_run, get_logger, unbind_run

from .errors import (
    AlreadyStartedError,
    InternalFailure,
    OperationError,
    PollFailure,
    PollLimitExceeded,
    StartFailure,
)
from .run_state import PollConfig, RunPhase, RunState
from .scheduler import PollScheduler
from .sink import CompletionSink, PollComplete
from .status import Evaluation, StatusSnapshot, evaluate


class Orchestrator:
    """State machine for push-and-wait runs.

    One Orchestrator serves any number of runs; runs share no mutable state.
    """

    def __init__(self, scheduler: PollScheduler, clock: Callable[[], float] = time.monotonic):
        self.scheduler = scheduler
        self.clock = clock
        self.logger = get_logger("orchestrator")

    def create(
        self,
        handle: Any,
        config: PollConfig,
        sink: CompletionSink,
        params: Any = None,
    ) -> RunState:
        """Allocate a new run in NOT_STARTED. Nothing is scheduled yet."""
        return RunState(handle=handle, config=config, sink=sink, params=params)

    def begin(self, run: RunState) -> None:
        """Schedule the first tick immediately.

        Raises:
            AlreadyStartedError: If the run was already begun.
        """
        with run.lock:
            if run.begun:
                raise AlreadyStartedError(f"Run {run.run_id} has already been started")
            run.begun = True
            if run.is_terminal:
                self.logger.info(f"Run {run.run_id} was cancelled before it began")
                return
            run.began_at = self.clock()
            run.task = self.scheduler.schedule_once(0, lambda: self.tick(run))
        self.logger.info(
            f"Run {run.run_id} scheduled (poll period {run.config.period_ms}ms)"
        )

    def tick(self, run: RunState) -> None:
        """Execute one step of the run."""
        bind_run(run.run_id)
        try:
            self._tick(run)
        finally:
            unbind_run()

    def _tick(self, run: RunState) -> None:
        with run.lock:
            if run.is_terminal:
                return
            run.task = None
            if run.cancel_requested:
                outcome = self._terminate(run, PollComplete.cancelled())
            else:
                outcome = None
            phase = run.phase
        if outcome is not None:
            self._deliver(run, outcome)
            return

        try:
            if phase is RunPhase.NOT_STARTED:
                self._push(run)
            else:
                self._poll(run)
        except Exception as e:
            self.logger.exception(f"Run {run.run_id}: unexpected error during tick: {e}")
            self._finish(run, PollComplete.failure(InternalFailure(e)), cancel_task=True)

    def cancel(self, run: RunState, cause: Optional[BaseException] = None) -> None:
        """Cancel the run from any thread and notify the sink right away.

        A no-op if the run has already reached a terminal outcome.
        """
        with run.lock:
            if run.is_terminal:
                return
            run.cancel_requested = True
            task, run.task = run.task, None
            outcome = self._terminate(run, PollComplete.cancelled(cause))
        self.scheduler.cancel(task)
        self._deliver(run, outcome)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _push(self, run: RunState) -> None:
        self.logger.info(f"Run {run.run_id}: invoking UpdateBot push")
        try:
            run.handle.start(run.params)
        except OperationError as e:
            self._finish(run, PollComplete.failure(StartFailure(e)))
            return

        with run.lock:
            if run.is_terminal:
                return
            run.advance(RunPhase.STARTED)
        self._on_phase_change(run, RunPhase.STARTED)
        self._schedule_next(run)

    def _poll(self, run: RunState) -> None:
        result: Union[StatusSnapshot, OperationError]
        try:
            result = run.handle.poll()
        except OperationError as e:
            result = e

        verdict = evaluate(result)
        with run.lock:
            if run.is_terminal:
                return
            run.attempts += 1
            attempt = run.attempts
            moved = run.advance(RunPhase.POLLING) if verdict is not Evaluation.DONE else False
            if verdict is Evaluation.INDETERMINATE:
                run.last_error = PollFailure(attempt, result)
        if moved:
            self._on_phase_change(run, RunPhase.POLLING)
        self._on_poll(run, result)

        if verdict is Evaluation.DONE:
            self._finish(run, PollComplete.success(result.keys))
            return
        if verdict is Evaluation.INDETERMINATE:
            self.logger.warning(
                f"Run {run.run_id}: status poll {attempt} failed, will retry: {result}",
            )
        else:
            self.logger.info(
                f"Run {run.run_id}: poll {attempt} still pending: {', '.join(result.pending_keys)}",
            )

        limit = self._limit_reached(run)
        if limit:
            self._finish(run, PollComplete.failure(PollLimitExceeded(limit)))
            return
        self._schedule_next(run)

    def _limit_reached(self, run: RunState) -> Optional[str]:
        config = run.config
        if config.max_attempts is not None and run.attempts >= config.max_attempts:
            return f"Run {run.run_id} still pending after {run.attempts} polls"
        if config.max_duration_ms is not None and run.elapsed_ms(self.clock()) >= config.max_duration_ms:
            return f"Run {run.run_id} still pending after {config.max_duration_ms}ms"
        return None

    def _schedule_next(self, run: RunState) -> None:
        with run.lock:
            if run.is_terminal or run.cancel_requested:
                self.logger.info(f"Run {run.run_id} is terminating")
                return
            run.task = self.scheduler.schedule_once(run.config.period_ms, lambda: self.tick(run))

    # ------------------------------------------------------------------
    # Terminal transition
    # ------------------------------------------------------------------

    def _terminate(self, run: RunState, outcome: PollComplete) -> Optional[PollComplete]:
        """Move to TERMINAL under the run lock. Returns None if already terminal."""
        if not run.advance(RunPhase.TERMINAL):
            return None
        run.outcome = outcome
        return outcome

    def _finish(self, run: RunState, outcome: PollComplete, cancel_task: bool = False) -> None:
        with run.lock:
            result = self._terminate(run, outcome)
            task = None
            if cancel_task:
                run.cancel_requested = True
                task, run.task = run.task, None
        self.scheduler.cancel(task)
        self._deliver(run, result)

    def _deliver(self, run: RunState, outcome: Optional[PollComplete]) -> None:
        if outcome is None:
            return
        self._on_phase_change(run, RunPhase.TERMINAL)
        outcome.apply(run.sink, run.run_id)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _on_phase_change(self, run: RunState, phase: RunPhase) -> None:
        """Called after the run enters ``phase``."""

    def _on_poll(self, run: RunState, result: Union[StatusSnapshot, OperationError]) -> None:
        """Called after every status poll."""
