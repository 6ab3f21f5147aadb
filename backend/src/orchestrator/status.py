"""Status model for tracked pull requests and issues, plus the completion rule.

A poll returns a snapshot of every sub-unit the push is tracking. The run is
complete only once no tracked item reports itself as pending.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

from .errors import OperationError


class ItemState(str, Enum):
    """State of one tracked sub-unit (e.g. a pull request)."""
    PENDING = "pending"
    COMPLETE = "complete"
    UNKNOWN = "unknown"


class Evaluation(str, Enum):
    """Verdict of the status evaluator for one poll result."""
    DONE = "done"
    PENDING = "pending"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class StatusItem:
    """Status of a single tracked sub-unit.

    The key is stable across polls of the same run.
    """

    key: str
    state: ItemState
    detail: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.state == ItemState.PENDING


@dataclass(frozen=True)
class Started:
    """Result of a successful push; carries no payload."""


@dataclass(frozen=True)
class StatusSnapshot:
    """Ordered statuses returned by one poll."""

    items: Tuple[StatusItem, ...] = field(default_factory=tuple)

    @property
    def keys(self) -> list:
        return [item.key for item in self.items]

    @property
    def pending_keys(self) -> list:
        return [item.key for item in self.items if item.is_pending]

    def __len__(self) -> int:
        return len(self.items)


OperationResult = Union[Started, StatusSnapshot, OperationError]


def evaluate(result: Union[StatusSnapshot, OperationError]) -> Evaluation:
    """Map a poll result onto DONE, PENDING or INDETERMINATE.

    An error in place of a snapshot is INDETERMINATE. A snapshot is PENDING
    if any item is pending and DONE otherwise, so an empty snapshot is DONE.
    Items in UNKNOWN state never hold a run open. Never raises.
    """
    if isinstance(result, OperationError) or not isinstance(result, StatusSnapshot):
        return Evaluation.INDETERMINATE
    for item in result.items:
        if item.is_pending:
            return Evaluation.PENDING
    return Evaluation.DONE
