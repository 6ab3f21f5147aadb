"""Shared fixtures for backend tests."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from api.app import create_app
from operations.base import OperationHandle
from orchestrator.errors import OperationError
from orchestrator.poller import Orchestrator
from orchestrator.scheduler import HostScheduler, PollScheduler, ScheduledTask
from orchestrator.sink import CompletionSink
from orchestrator.status import ItemState, Started, StatusItem, StatusSnapshot
from utils.config import Config, CredentialsEntry, LoggingConfig, OperationConfig, OperationType

TEST_USERNAME_ENV = "TEST_UPDATEBOT_USER"
TEST_PASSWORD_ENV = "TEST_UPDATEBOT_PASS"


class ManualHostScheduler(HostScheduler):
    """Host scheduler driven by a simulated clock.

    Nothing runs until the test calls ``run_due`` or ``advance``; callbacks
    always run on the calling thread, after the scheduling call returned.
    """

    def __init__(self):
        self.now_ms = 0
        self._seq = 0
        self._queue = []
        self.delays = []

    def clock(self) -> float:
        return self.now_ms / 1000.0

    def submit(self, callback):
        return self.schedule_after(0, callback)

    def schedule_after(self, delay_ms, callback):
        task = ScheduledTask(delay_ms)
        self._seq += 1
        self._queue.append((self.now_ms + delay_ms, self._seq, task, callback))
        self.delays.append(delay_ms)
        return task

    @property
    def pending(self) -> int:
        return sum(1 for _, _, task, _ in self._queue if not task.cancelled)

    def _pop_due(self, limit_ms):
        live = [entry for entry in self._queue if not entry[2].cancelled]
        self._queue = live
        due = [entry for entry in live if entry[0] <= limit_ms]
        if not due:
            return None
        entry = min(due, key=lambda e: (e[0], e[1]))
        self._queue.remove(entry)
        return entry

    def run_due(self) -> int:
        """Run everything due at the current time. Returns the number run."""
        count = 0
        while True:
            entry = self._pop_due(self.now_ms)
            if entry is None:
                return count
            entry[3]()
            count += 1

    def advance(self, ms: int) -> int:
        """Move the clock forward, running callbacks as they fall due."""
        target = self.now_ms + ms
        count = 0
        while True:
            entry = self._pop_due(target)
            if entry is None:
                break
            self.now_ms = max(self.now_ms, entry[0])
            entry[3]()
            count += 1
        self.now_ms = target
        return count


def make_snapshot(*items) -> StatusSnapshot:
    """Build a snapshot from ``(key, pending)`` pairs."""
    return StatusSnapshot(tuple(
        StatusItem(key=key, state=ItemState.PENDING if pending else ItemState.COMPLETE)
        for key, pending in items
    ))


class FakeOperation(OperationHandle):
    """Scripted operation handle.

    Each poll consumes the next scripted result; the last one repeats.
    Exceptions in the script are raised instead of returned.
    """

    def __init__(self, polls=None, start_error=None):
        self.polls = list(polls or [StatusSnapshot()])
        self.start_error = start_error
        self.start_calls = []
        self.poll_calls = 0

    def start(self, params):
        self.start_calls.append(params)
        if self.start_error is not None:
            raise self.start_error
        return Started()

    def poll(self):
        index = min(self.poll_calls, len(self.polls) - 1)
        self.poll_calls += 1
        result = self.polls[index]
        if isinstance(result, BaseException):
            raise result
        return result


class RecordingSink(CompletionSink):
    """Records every notification it receives."""

    def __init__(self):
        self.events = []

    def on_success(self, payload):
        self.events.append(("success", payload))

    def on_failure(self, cause):
        self.events.append(("failure", cause))

    def on_cancelled(self, cause):
        self.events.append(("cancelled", cause))


def poll_error(message="status unavailable"):
    return OperationError(message)


@pytest.fixture
def host():
    return ManualHostScheduler()


@pytest.fixture
def orchestrator(host):
    return Orchestrator(PollScheduler(host), clock=host.clock)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def credentials_env(monkeypatch):
    monkeypatch.setenv(TEST_USERNAME_ENV, "octocat")
    monkeypatch.setenv(TEST_PASSWORD_ENV, "s3cret")


@pytest.fixture
def config():
    """Configuration with test credentials, in-process operation and no log file."""
    return Config(
        credentials_id="github",
        credentials={"github": CredentialsEntry(TEST_USERNAME_ENV, TEST_PASSWORD_ENV)},
        operation=OperationConfig(type=OperationType.IN_PROCESS),
        logging=LoggingConfig(level="INFO", format="text", file=None),
    )


@pytest.fixture
def operations():
    """Operations handed out by the test operation factory, in order."""
    return []


@pytest.fixture
def operation_factory(operations):
    def factory(operation_config):
        op = FakeOperation(polls=[make_snapshot(("org/repo#1", True)), make_snapshot(("org/repo#1", False))])
        operations.append(op)
        return op
    return factory


@pytest.fixture
def app(config, host, operation_factory, credentials_env):
    """Create a test FastAPI application on the simulated scheduler."""
    return create_app(config=config, host=host, operation_factory=operation_factory)


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client for testing API endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
