"""Run state - the per-run record owned by the orchestrator."""

import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import ConfigurationError

DEFAULT_POLL_PERIOD_MS = 15000


class RunPhase(Enum):
    """Phases of a push-and-wait run. Only ever moves forward."""
    NOT_STARTED = 0
    STARTED = 1
    POLLING = 2
    TERMINAL = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class PollConfig:
    """Polling settings captured when a run is created.

    Args:
        period_ms: Delay between status polls, in milliseconds (> 0)
        max_attempts: Give up after this many polls (None = unlimited)
        max_duration_ms: Give up after this long since begin (None = unlimited)
    """

    period_ms: int = DEFAULT_POLL_PERIOD_MS
    max_attempts: Optional[int] = None
    max_duration_ms: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.period_ms, bool) or not isinstance(self.period_ms, int) or self.period_ms <= 0:
            raise ConfigurationError(
                f"Poll period must be a positive number of milliseconds, got {self.period_ms!r}"
            )
        if self.max_attempts is not None and self.max_attempts <= 0:
            raise ConfigurationError(f"max_attempts must be positive, got {self.max_attempts!r}")
        if self.max_duration_ms is not None and self.max_duration_ms <= 0:
            raise ConfigurationError(f"max_duration_ms must be positive, got {self.max_duration_ms!r}")

    @classmethod
    def from_settings(
        cls,
        period_ms: Optional[int] = None,
        max_attempts: Optional[int] = None,
        max_duration_ms: Optional[int] = None,
    ) -> "PollConfig":
        """Build a PollConfig from user-facing settings.

        An unset or zero period falls back to DEFAULT_POLL_PERIOD_MS, matching
        the step's documented behaviour. Negative values are rejected.
        """
        if isinstance(period_ms, bool):
            raise ConfigurationError(f"Poll period must be a number of milliseconds, got {period_ms!r}")
        if period_ms is None or period_ms == 0:
            period_ms = DEFAULT_POLL_PERIOD_MS
        return cls(
            period_ms=int(period_ms),
            max_attempts=max_attempts or None,
            max_duration_ms=max_duration_ms or None,
        )


@dataclass
class RunState:
    """State of one logical push-and-wait run.

    Mutated only under ``lock``, by the thread running the current tick or by
    a caller cancelling the run.
    """

    handle: Any
    config: PollConfig
    sink: Any
    params: Any = None
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    phase: RunPhase = RunPhase.NOT_STARTED
    attempts: int = 0
    last_error: Optional[BaseException] = None
    cancel_requested: bool = False
    begun: bool = False
    began_at: Optional[float] = None
    outcome: Any = None
    task: Any = field(default=None, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.phase is RunPhase.TERMINAL

    def advance(self, phase: RunPhase) -> bool:
        """Move forward to ``phase``. Returns False if that would not be forward."""
        if phase.value <= self.phase.value:
            return False
        self.phase = phase
        return True

    def elapsed_ms(self, now: float) -> float:
        if self.began_at is None:
            return 0.0
        return (now - self.began_at) * 1000.0

    def to_dict(self) -> dict:
        """Serializable summary for APIs and logs."""
        outcome = self.outcome.to_dict() if self.outcome is not None else None
        return {
            "run_id": self.run_id,
            "phase": self.phase.label,
            "attempts": self.attempts,
            "last_error": str(self.last_error) if self.last_error else None,
            "cancel_requested": self.cancel_requested,
            "period_ms": self.config.period_ms,
            "outcome": outcome,
        }
