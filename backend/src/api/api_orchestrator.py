"""API-aware Orchestrator that emits SSE events while runs progress."""

from typing import Union

from api.event_bus import EventBus
from orchestrator.errors import OperationError
from orchestrator.poller import Orchestrator
from orchestrator.run_state import RunPhase, RunState
from orchestrator.scheduler import PollScheduler
from orchestrator.status import StatusSnapshot


class APIOrchestrator(Orchestrator):
    """Orchestrator subclass that publishes SSE events for every run."""

    def __init__(self, event_bus: EventBus, scheduler: PollScheduler, **kwargs):
        super().__init__(scheduler, **kwargs)
        self.event_bus = event_bus

    def begin(self, run: RunState) -> None:
        if not run.begun:
            self.event_bus.publish("run_started", {
                "run_id": run.run_id,
                "source_location": getattr(run.params, "source_location", None),
                "period_ms": run.config.period_ms,
            })
        super().begin(run)

    def _on_phase_change(self, run: RunState, phase: RunPhase) -> None:
        self.event_bus.publish("phase_change", {
            "run_id": run.run_id,
            "phase": phase.label,
            "attempts": run.attempts,
        })
        if phase is RunPhase.TERMINAL and run.outcome is not None:
            self.event_bus.publish("run_completed", {
                "run_id": run.run_id,
                **run.outcome.to_dict(),
            })

    def _on_poll(self, run: RunState, result: Union[StatusSnapshot, OperationError]) -> None:
        if isinstance(result, OperationError):
            self.event_bus.publish("poll", {
                "run_id": run.run_id,
                "attempt": run.attempts,
                "error": str(result),
                "level": "warning",
            })
            return
        self.event_bus.publish("poll", {
            "run_id": run.run_id,
            "attempt": run.attempts,
            "items": [
                {"key": item.key, "state": item.state.value, "detail": item.detail}
                for item in result.items
            ],
            "pending": result.pending_keys,
        })
