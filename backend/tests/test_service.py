"""Tests for the run service."""

from concurrent.futures import TimeoutError as FuturesTimeoutError

import pytest

from conftest import FakeOperation, RecordingSink, make_snapshot
from orchestrator.errors import ConfigurationError, OperationError, StartFailure
from orchestrator.run_state import RunPhase
from orchestrator.scheduler import ThreadPoolHostScheduler
from orchestrator.service import RunService


def _factory(*ops):
    queue = list(ops)

    def factory(operation_config):
        return queue.pop(0)
    return factory


@pytest.fixture
def pool():
    host = ThreadPoolHostScheduler(max_workers=2)
    yield host
    host.shutdown()


def test_start_run_tracks_and_releases(config, host, credentials_env):
    op = FakeOperation(polls=[make_snapshot(("org/a#1", True)), make_snapshot(("org/a#1", False))])
    service = RunService(config, host=host, operation_factory=_factory(op))
    sink = RecordingSink()

    run = service.start_run("/src", poll_period_ms=100, sink=sink)
    assert service.active_count() == 1
    assert service.get_run(run.run_id) is run
    assert run.config.period_ms == 100

    host.run_due()
    assert op.start_calls[0].source_location == "/src"
    assert op.start_calls[0].github_username == "octocat"

    host.advance(200)
    assert sink.events == [("success", ["org/a#1"])]
    assert service.active_count() == 0
    assert service.list_runs() == [run]


def test_unset_period_uses_configured_default(config, host, credentials_env):
    service = RunService(config, host=host, operation_factory=_factory(FakeOperation()))
    run = service.start_run(poll_period_ms=0)
    assert run.config.period_ms == 15000


def test_configuration_error_creates_no_run(config, host):
    config.credentials_id = None
    service = RunService(config, host=host, operation_factory=_factory(FakeOperation()))

    with pytest.raises(ConfigurationError):
        service.start_run()
    assert service.list_runs() == []
    assert host.pending == 0


def test_negative_period_rejected(config, host, credentials_env):
    service = RunService(config, host=host, operation_factory=_factory(FakeOperation()))
    with pytest.raises(ConfigurationError):
        service.start_run(poll_period_ms=-10)
    assert service.list_runs() == []


def test_cancel_run(config, host, credentials_env):
    sink = RecordingSink()
    service = RunService(config, host=host, operation_factory=_factory(FakeOperation()))
    run = service.start_run(sink=sink)

    assert service.cancel_run(run.run_id)
    assert run.phase is RunPhase.TERMINAL
    assert sink.events == [("cancelled", None)]
    assert service.active_count() == 0
    assert not service.cancel_run("does-not-exist")


def test_history_keeps_active_runs(config, host, credentials_env):
    config.scheduler.history_size = 2
    service = RunService(config, host=host, operation_factory=lambda cfg: FakeOperation())
    runs = [service.start_run() for _ in range(3)]
    assert service.list_runs() == runs

    service.cancel_run(runs[1].run_id)
    assert service.list_runs() == [runs[0], runs[2]]


def test_history_drops_oldest_finished_runs(config, host, credentials_env):
    config.scheduler.history_size = 2
    service = RunService(config, host=host, operation_factory=lambda cfg: FakeOperation())
    runs = [service.start_run() for _ in range(4)]
    for run in runs[:3]:
        service.cancel_run(run.run_id)
    assert service.list_runs() == [runs[2], runs[3]]


class EmbeddedClient:
    def __init__(self):
        self.pushed = []
        self.polls = 0

    def push(self, params):
        self.pushed.append(params.source_location)

    def poll(self):
        self.polls += 1
        return {"org/a#1": "open" if self.polls < 2 else "merged"}


def test_in_process_operation_from_config(config, host, credentials_env):
    client = EmbeddedClient()
    service = RunService(config, host=host, client=client)
    sink = RecordingSink()

    service.start_run("/src", poll_period_ms=100, sink=sink)
    host.run_due()
    host.advance(200)

    assert client.pushed == ["/src"]
    assert sink.events == [("success", ["org/a#1"])]


def test_push_and_wait_returns_keys(config, pool, credentials_env):
    op = FakeOperation(polls=[
        make_snapshot(("org/a#1", True), ("org/b#2", False)),
        make_snapshot(("org/a#1", False), ("org/b#2", False)),
    ])
    service = RunService(config, host=pool, operation_factory=_factory(op))
    assert service.push_and_wait(poll_period_ms=10, timeout=5) == ["org/a#1", "org/b#2"]


def test_push_and_wait_raises_start_failure(config, pool, credentials_env):
    op = FakeOperation(start_error=OperationError("git push rejected"))
    service = RunService(config, host=pool, operation_factory=_factory(op))
    with pytest.raises(StartFailure, match="git push rejected"):
        service.push_and_wait(poll_period_ms=10, timeout=5)


def test_push_and_wait_timeout_cancels_run(config, pool, credentials_env):
    op = FakeOperation(polls=[make_snapshot(("org/a#1", True))])
    service = RunService(config, host=pool, operation_factory=_factory(op))
    with pytest.raises(FuturesTimeoutError):
        service.push_and_wait(poll_period_ms=10, timeout=0.1)

    run = service.list_runs()[0]
    assert run.phase is RunPhase.TERMINAL
    assert run.outcome.kind == "cancelled"
    assert service.active_count() == 0


def test_shutdown_cancels_active_runs(config, host, credentials_env):
    sink = RecordingSink()
    service = RunService(config, host=host, operation_factory=_factory(FakeOperation()))
    service.start_run(sink=sink)
    service.shutdown()
    kind, cause = sink.events[0]
    assert kind == "cancelled"
    assert "shutting down" in str(cause)
