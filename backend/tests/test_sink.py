"""Tests for completion sinks and terminal outcomes."""

from concurrent.futures import TimeoutError as FuturesTimeoutError

import pytest

from conftest import RecordingSink
from orchestrator.errors import OperationError, RunCancelled, StartFailure
from orchestrator.sink import CompositeCompletionSink, FutureCompletionSink, PollComplete


def test_apply_dispatches_by_kind():
    sink = RecordingSink()
    cause = StartFailure(OperationError("nope"))
    PollComplete.success(["a"]).apply(sink)
    PollComplete.failure(cause).apply(sink)
    PollComplete.cancelled().apply(sink)
    assert sink.events == [("success", ["a"]), ("failure", cause), ("cancelled", None)]


def test_outcome_to_dict():
    assert PollComplete.success(["a"]).to_dict() == {"kind": "success", "payload": ["a"], "error": None}
    failed = PollComplete.failure(OperationError("bad")).to_dict()
    assert failed["kind"] == "failure"
    assert failed["error"] == "bad"


def test_future_sink_success():
    sink = FutureCompletionSink()
    assert not sink.done()
    sink.on_success(["org/repo#3"])
    assert sink.wait(0) == ["org/repo#3"]


def test_future_sink_failure_raises_cause():
    sink = FutureCompletionSink()
    sink.on_failure(StartFailure(OperationError("denied")))
    with pytest.raises(StartFailure):
        sink.wait(0)


def test_future_sink_cancelled_raises_run_cancelled():
    sink = FutureCompletionSink()
    cause = RuntimeError("stop")
    sink.on_cancelled(cause)
    with pytest.raises(RunCancelled) as excinfo:
        sink.wait(0)
    assert excinfo.value.cause is cause


def test_future_sink_times_out():
    with pytest.raises(FuturesTimeoutError):
        FutureCompletionSink().wait(0.01)


def test_composite_sink_fans_out_and_skips_none():
    first, second = RecordingSink(), RecordingSink()
    composite = CompositeCompletionSink(first, None, second)
    composite.on_success(["x"])
    assert first.events == second.events == [("success", ["x"])]
