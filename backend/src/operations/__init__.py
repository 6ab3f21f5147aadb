"""Operation handles - how the orchestrator reaches the UpdateBot tool."""

from .base import (
    OperationHandle,
    Parameters,
    ToolCommand,
    to_snapshot,
)
from .command import CommandOperation
from .in_process import InProcessOperation

__all__ = [
    'OperationHandle',
    'Parameters',
    'ToolCommand',
    'to_snapshot',
    'CommandOperation',
    'InProcessOperation',
]
