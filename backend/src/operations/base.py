"""Base operation handle interface for UpdateBot Push.

An operation handle is the orchestrator's only view of the external UpdateBot
tool: one ``start`` call that pushes source changes, then any number of
``poll`` calls that report the status of the pull requests and issues the push
opened.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from orchestrator.errors import OperationError
from orchestrator.status import ItemState, Started, StatusItem, StatusSnapshot


@dataclass
class ToolCommand:
    """A resolved build tool: its executable and the environment it needs."""

    command: str
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class Parameters:
    """Everything the push needs, resolved before a run is created."""

    source_location: str = "."
    github_username: Optional[str] = None
    github_password: Optional[str] = field(default=None, repr=False)
    mvn: Optional[ToolCommand] = None
    npm: Optional[ToolCommand] = None
    jenkinsfile_git_repo: Optional[str] = None
    use_https_transport: bool = True


class OperationHandle(ABC):
    """Abstract handle on the external push/status operation.

    Implementations must be safe to call repeatedly: ``poll`` is called many
    times after a single ``start``. Neither call may call back into the
    orchestrator.
    """

    @abstractmethod
    def start(self, params: Parameters) -> Started:
        """Push source changes to the downstream repositories.

        Raises:
            OperationError: If the push could not be performed.
        """

    @abstractmethod
    def poll(self) -> StatusSnapshot:
        """Report the status of every tracked pull request or issue.

        Raises:
            OperationError: If the status could not be determined.
        """


_PENDING_WORDS = {"pending", "open", "in_progress", "waiting"}
_COMPLETE_WORDS = {"complete", "completed", "merged", "closed", "success", "done"}


def _state_of(info: Any) -> ItemState:
    if isinstance(info, ItemState):
        return info
    if isinstance(info, bool):
        return ItemState.PENDING if info else ItemState.COMPLETE
    if isinstance(info, str):
        word = info.strip().lower()
        if word in _PENDING_WORDS:
            return ItemState.PENDING
        if word in _COMPLETE_WORDS:
            return ItemState.COMPLETE
        return ItemState.UNKNOWN
    if isinstance(info, Mapping):
        if "pending" in info:
            return _state_of(bool(info["pending"]))
        if "state" in info:
            return _state_of(info["state"])
        return ItemState.UNKNOWN
    for attr in ("is_pending", "pending"):
        value = getattr(info, attr, None)
        if callable(value):
            value = value()
        if value is not None:
            return _state_of(bool(value))
    return ItemState.UNKNOWN


def _detail_of(info: Any) -> Optional[str]:
    if isinstance(info, Mapping):
        detail = info.get("detail") or info.get("url")
        return str(detail) if detail is not None else None
    detail = getattr(info, "detail", None)
    return str(detail) if detail is not None else None


def to_snapshot(raw: Any) -> StatusSnapshot:
    """Normalize whatever UpdateBot reported into a StatusSnapshot.

    Accepts a StatusSnapshot, a mapping of key -> status info, or an iterable
    of StatusItem / dicts with ``key`` and ``state`` (or ``pending``) fields.

    Raises:
        OperationError: If the payload has an unrecognized shape.
    """
    if isinstance(raw, StatusSnapshot):
        return raw
    if raw is None:
        return StatusSnapshot()
    items: List[StatusItem] = []
    if isinstance(raw, Mapping):
        for key, info in raw.items():
            items.append(StatusItem(key=str(key), state=_state_of(info), detail=_detail_of(info)))
        return StatusSnapshot(tuple(items))
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raise OperationError(f"Unrecognized status payload: {raw!r}")
    for entry in raw:
        if isinstance(entry, StatusItem):
            items.append(entry)
        elif isinstance(entry, Mapping) and "key" in entry:
            items.append(StatusItem(key=str(entry["key"]), state=_state_of(entry), detail=_detail_of(entry)))
        else:
            raise OperationError(f"Unrecognized status entry: {entry!r}")
    return StatusSnapshot(tuple(items))
