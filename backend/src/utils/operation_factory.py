"""Operation factory - creates operation handles from configuration."""

from typing import Any, Optional

from operations import CommandOperation, InProcessOperation
from operations.base import OperationHandle
from utils.config import OperationConfig, OperationType
from orchestrator.errors import ConfigurationError


def create_operation(operation_config: OperationConfig, client: Optional[Any] = None) -> OperationHandle:
    """Create a fresh operation handle for one run.

    Args:
        operation_config: Operation configuration object
        client: Embedded UpdateBot client, required for in-process operation

    Returns:
        Operation handle instance

    Raises:
        ConfigurationError: If the operation type is unsupported or an
            in-process operation has no client
    """
    if operation_config.type == OperationType.COMMAND:
        return CommandOperation(operation_config)
    elif operation_config.type == OperationType.IN_PROCESS:
        if client is None:
            raise ConfigurationError("In-process operation selected but no UpdateBot client was supplied")
        return InProcessOperation.from_client(client)
    else:
        raise ConfigurationError(f"Unsupported operation type: {operation_config.type}")
