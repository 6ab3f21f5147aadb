"""Error taxonomy for push-and-wait runs."""

from typing import Optional


class UpdateBotPushError(Exception):
    """Base class for all errors raised by the push orchestrator."""


class ConfigurationError(UpdateBotPushError):
    """Missing or invalid configuration, credentials or tool installations.

    Raised before a run is created; no run exists when this is raised.
    """


class AlreadyStartedError(UpdateBotPushError):
    """begin() was called more than once for the same run."""


class OperationError(UpdateBotPushError):
    """A collaborator (push or status operation) reported a failure."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class StartFailure(UpdateBotPushError):
    """The one-shot push operation failed. Fatal for the run."""

    def __init__(self, cause: OperationError):
        super().__init__(f"UpdateBot push failed: {cause}")
        self.cause = cause
        self.__cause__ = cause


class PollFailure(UpdateBotPushError):
    """A single status poll failed. Transient: recorded and retried."""

    def __init__(self, attempt: int, cause: OperationError):
        super().__init__(f"Status poll {attempt} failed: {cause}")
        self.attempt = attempt
        self.cause = cause
        self.__cause__ = cause


class InternalFailure(UpdateBotPushError):
    """An unexpected error escaped a tick. Fatal for the run."""

    def __init__(self, cause: BaseException):
        super().__init__(f"Internal error while polling UpdateBot: {cause!r}")
        self.cause = cause
        self.__cause__ = cause


class PollLimitExceeded(UpdateBotPushError):
    """The run hit its configured attempt or duration limit."""


class RunCancelled(UpdateBotPushError):
    """The caller cancelled the run."""

    def __init__(self, cause: Optional[BaseException] = None):
        message = "UpdateBot run cancelled"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause
