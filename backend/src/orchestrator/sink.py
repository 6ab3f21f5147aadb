"""Completion sinks - where a run reports its single terminal outcome."""

from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, List, Optional

from utils.logger import get_logger

from .errors import RunCancelled

logger = get_logger("orchestrator.sink")


class CompletionSink(ABC):
    """Receives exactly one of on_success / on_failure / on_cancelled per run."""

    @abstractmethod
    def on_success(self, payload: Any) -> None:
        """The run finished; ``payload`` lists the tracked item keys."""

    @abstractmethod
    def on_failure(self, cause: BaseException) -> None:
        """The run failed."""

    @abstractmethod
    def on_cancelled(self, cause: Optional[BaseException]) -> None:
        """The run was cancelled by the caller."""


@dataclass(frozen=True)
class PollComplete:
    """Terminal outcome of a run, applied to a sink once."""

    kind: str
    payload: Any = None
    cause: Optional[BaseException] = None

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"

    @classmethod
    def success(cls, payload: Any) -> "PollComplete":
        return cls(kind=cls.SUCCESS, payload=payload)

    @classmethod
    def failure(cls, cause: BaseException) -> "PollComplete":
        return cls(kind=cls.FAILURE, cause=cause)

    @classmethod
    def cancelled(cls, cause: Optional[BaseException] = None) -> "PollComplete":
        return cls(kind=cls.CANCELLED, cause=cause)

    def apply(self, sink: CompletionSink, run_id: Optional[str] = None) -> None:
        """Deliver this outcome to ``sink``."""
        if self.kind == self.FAILURE:
            logger.error(f"UpdateBot failed: {self.cause}", run_id=run_id)
            sink.on_failure(self.cause)
        elif self.kind == self.CANCELLED:
            logger.info("UpdateBot cancelled", run_id=run_id, cause=str(self.cause) if self.cause else None)
            sink.on_cancelled(self.cause)
        else:
            logger.info(f"UpdateBot success: {self.payload}", run_id=run_id)
            sink.on_success(self.payload)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "payload": self.payload,
            "error": str(self.cause) if self.cause is not None else None,
        }


class FutureCompletionSink(CompletionSink):
    """Sink backed by a Future so a caller can block until the run ends."""

    def __init__(self):
        self.future: Future = Future()

    def on_success(self, payload: Any) -> None:
        self.future.set_result(payload)

    def on_failure(self, cause: BaseException) -> None:
        self.future.set_exception(cause)

    def on_cancelled(self, cause: Optional[BaseException]) -> None:
        self.future.set_exception(RunCancelled(cause))

    def done(self) -> bool:
        return self.future.done()

    def wait(self, timeout: Optional[float] = None) -> Any:
        """Block until the run ends.

        Returns:
            The success payload.

        Raises:
            The failure cause, RunCancelled, or concurrent.futures.TimeoutError.
        """
        return self.future.result(timeout=timeout)


class CompositeCompletionSink(CompletionSink):
    """Fans a single notification out to several sinks, in order."""

    def __init__(self, *sinks: Optional[CompletionSink]):
        self.sinks: List[CompletionSink] = [s for s in sinks if s is not None]

    def on_success(self, payload: Any) -> None:
        for sink in self.sinks:
            sink.on_success(payload)

    def on_failure(self, cause: BaseException) -> None:
        for sink in self.sinks:
            sink.on_failure(cause)

    def on_cancelled(self, cause: Optional[BaseException]) -> None:
        for sink in self.sinks:
            sink.on_cancelled(cause)
