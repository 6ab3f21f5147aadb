"""Orchestrator module - Drives UpdateBot push-and-wait runs.

RunService lives in orchestrator.service and is imported from there; it
depends on utils and operations, which themselves build on this package.
"""

from .errors import (
    UpdateBotPushError,
    ConfigurationError,
    AlreadyStartedError,
    OperationError,
    StartFailure,
    PollFailure,
    InternalFailure,
    PollLimitExceeded,
    RunCancelled,
)
from .status import ItemState, Evaluation, StatusItem, StatusSnapshot, Started, evaluate
from .run_state import PollConfig, RunPhase, RunState
from .scheduler import HostScheduler, ThreadPoolHostScheduler, PollScheduler, ScheduledTask
from .sink import CompletionSink, PollComplete, FutureCompletionSink, CompositeCompletionSink
from .poller import Orchestrator

__all__ = [
    'UpdateBotPushError',
    'ConfigurationError',
    'AlreadyStartedError',
    'OperationError',
    'StartFailure',
    'PollFailure',
    'InternalFailure',
    'PollLimitExceeded',
    'RunCancelled',
    'ItemState',
    'Evaluation',
    'StatusItem',
    'StatusSnapshot',
    'Started',
    'evaluate',
    'PollConfig',
    'RunPhase',
    'RunState',
    'HostScheduler',
    'ThreadPoolHostScheduler',
    'PollScheduler',
    'ScheduledTask',
    'CompletionSink',
    'PollComplete',
    'FutureCompletionSink',
    'CompositeCompletionSink',
    'Orchestrator',
]
