"""In-process operation handle.

Calls an embedded UpdateBot client directly, in the worker thread running the
tick.
"""

from typing import Any, Callable, Optional

from orchestrator.errors import OperationError
from orchestrator.status import Started, StatusSnapshot
from utils.logger import get_logger

from .base import OperationHandle, Parameters, to_snapshot


class InProcessOperation(OperationHandle):
    """Operation handle over two callables supplied by the embedding host.

    Args:
        push: Called once with the resolved Parameters
        status: Returns the current status of every tracked item
    """

    def __init__(self, push: Callable[[Parameters], Any], status: Callable[[], Any]):
        self._push = push
        self._status = status
        self._pushed = False
        self.logger = get_logger("operations.in_process")

    @classmethod
    def from_client(cls, client: Any) -> "InProcessOperation":
        """Wrap a client object exposing ``push(params)`` and ``poll()``."""
        return cls(push=client.push, status=client.poll)

    def start(self, params: Optional[Parameters]) -> Started:
        try:
            self._push(params)
        except OperationError:
            raise
        except Exception as e:
            raise OperationError(f"UpdateBot push failed: {e}", cause=e) from e
        self._pushed = True
        self.logger.debug("UpdateBot push completed in-process")
        return Started()

    def poll(self) -> StatusSnapshot:
        if not self._pushed:
            raise OperationError("UpdateBot status requested before push")
        try:
            raw = self._status()
        except OperationError:
            raise
        except Exception as e:
            raise OperationError(f"UpdateBot status failed: {e}", cause=e) from e
        return to_snapshot(raw)
