"""Run service - creates, tracks and cancels push-and-wait runs.

Owns the shared host scheduler and a single Orchestrator. Credentials and
tools are resolved before a run is created, so configuration problems never
become run failures.
"""

import threading
from collections import OrderedDict
from concurrent.futures import TimeoutError as FuturesTimeoutError
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from operations.base import OperationHandle
from utils.config import Config, OperationConfig
from utils.logger import get_logger
from utils.operation_factory import create_operation
from utils.parameters import resolve_parameters

from .poller import Orchestrator
from .run_state import PollConfig, RunState
from .scheduler import HostScheduler, PollScheduler, ThreadPoolHostScheduler
from .sink import CompletionSink, CompositeCompletionSink, FutureCompletionSink

OperationFactory = Callable[[OperationConfig], OperationHandle]


class _ReleaseSink(CompletionSink):
    """Drops a finished run from the service's active table."""

    def __init__(self, service: "RunService"):
        self.service = service
        self.run_id: Optional[str] = None

    def on_success(self, payload: Any) -> None:
        self.service._release(self.run_id)

    def on_failure(self, cause: BaseException) -> None:
        self.service._release(self.run_id)

    def on_cancelled(self, cause: Optional[BaseException]) -> None:
        self.service._release(self.run_id)


class RunService:
    """Entry point for starting and managing UpdateBot push runs."""

    def __init__(
        self,
        config: Config,
        host: Optional[HostScheduler] = None,
        orchestrator: Optional[Orchestrator] = None,
        operation_factory: Optional[OperationFactory] = None,
        client: Optional[Any] = None,
    ):
        """Initialize the run service.

        Args:
            config: Loaded configuration
            host: Shared scheduling facility (default: a bounded thread pool)
            orchestrator: Orchestrator to drive runs with (default: a plain one)
            operation_factory: Builds one operation handle per run
            client: Embedded UpdateBot client for in-process operation
        """
        self.config = config
        self.host = host or ThreadPoolHostScheduler(max_workers=config.scheduler.max_workers)
        self.orchestrator = orchestrator or Orchestrator(PollScheduler(self.host))
        self.operation_factory = operation_factory or partial(create_operation, client=client)
        self.logger = get_logger("orchestrator.service")

        self._lock = threading.Lock()
        self._active: Dict[str, RunState] = {}
        self._history: "OrderedDict[str, RunState]" = OrderedDict()

    def start_run(
        self,
        source_location: Optional[str] = None,
        poll_period_ms: Optional[int] = None,
        sink: Optional[CompletionSink] = None,
    ) -> RunState:
        """Resolve parameters, create a run and begin it.

        Args:
            source_location: Source to push from (default from config)
            poll_period_ms: Poll period override; 0 or None uses the configured period
            sink: Caller sink notified when the run ends

        Raises:
            ConfigurationError: If credentials, tools or settings are invalid.
                No run is created in that case.
        """
        params = resolve_parameters(self.config, source_location)
        poll = self.config.poll
        poll_config = PollConfig.from_settings(
            period_ms=poll_period_ms or poll.period_ms,
            max_attempts=poll.max_attempts,
            max_duration_ms=poll.max_duration_ms,
        )
        handle = self.operation_factory(self.config.operation)

        release = _ReleaseSink(self)
        run = self.orchestrator.create(handle, poll_config, CompositeCompletionSink(release, sink), params)
        release.run_id = run.run_id

        with self._lock:
            self._active[run.run_id] = run
            self._remember(run)
        self.logger.info(f"Starting UpdateBot push run {run.run_id} for {params.source_location}")
        self.orchestrator.begin(run)
        return run

    def push_and_wait(
        self,
        source_location: Optional[str] = None,
        poll_period_ms: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Start a run and block until it finishes.

        Returns:
            The keys of the tracked pull requests / issues.

        Raises:
            ConfigurationError, StartFailure, InternalFailure, PollLimitExceeded,
            RunCancelled, or concurrent.futures.TimeoutError if ``timeout``
            elapses first (the run is cancelled in that case).
        """
        sink = FutureCompletionSink()
        run = self.start_run(source_location, poll_period_ms, sink)
        try:
            return sink.wait(timeout)
        except FuturesTimeoutError as e:
            self.orchestrator.cancel(run, e)
            raise

    def cancel_run(self, run_id: str, cause: Optional[BaseException] = None) -> bool:
        """Cancel a run. Returns False if no such run is known."""
        run = self.get_run(run_id)
        if run is None:
            return False
        self.orchestrator.cancel(run, cause)
        return True

    def get_run(self, run_id: str) -> Optional[RunState]:
        with self._lock:
            return self._active.get(run_id) or self._history.get(run_id)

    def list_runs(self) -> List[RunState]:
        with self._lock:
            return list(self._history.values())

    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def shutdown(self) -> None:
        """Cancel every active run and stop the shared scheduler."""
        with self._lock:
            active = list(self._active.values())
        for run in active:
            self.orchestrator.cancel(run, RuntimeError("service shutting down"))
        self.host.shutdown()

    def _remember(self, run: RunState) -> None:
        self._history[run.run_id] = run
        self._trim_history()

    def _trim_history(self) -> None:
        """Drop the oldest finished runs beyond history_size. Active runs stay listed."""
        excess = len(self._history) - self.config.scheduler.history_size
        if excess <= 0:
            return
        finished = [run_id for run_id in self._history if run_id not in self._active]
        for run_id in finished[:excess]:
            del self._history[run_id]

    def _release(self, run_id: str) -> None:
        with self._lock:
            self._active.pop(run_id, None)
            self._trim_history()
