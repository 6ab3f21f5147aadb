"""Configuration loader for UpdateBot Push.

This module loads configuration from config.yaml and environment variables.
Configuration is read when a run is created; a running push keeps the poll
settings it started with.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from enum import Enum
from dotenv import load_dotenv

from orchestrator.run_state import DEFAULT_POLL_PERIOD_MS


class OperationType(str, Enum):
    """Supported ways of invoking UpdateBot."""

    IN_PROCESS = "in_process"
    COMMAND = "command"


@dataclass
class OperationConfig:
    """How UpdateBot is invoked."""

    type: OperationType = OperationType.COMMAND
    executable: str = "updatebot"
    push_args: List[str] = field(default_factory=lambda: ["push", "--dir"])
    status_args: List[str] = field(default_factory=lambda: ["status", "--json"])
    timeout: int = 600  # seconds, per invocation
    extra_env: Dict[str, str] = field(default_factory=dict)


@dataclass
class PollSettings:
    """Status polling configuration."""

    period_ms: int = DEFAULT_POLL_PERIOD_MS
    max_attempts: Optional[int] = None
    max_duration_ms: Optional[int] = None


@dataclass
class SchedulerConfig:
    """Shared worker pool configuration."""

    max_workers: int = 4
    history_size: int = 100


@dataclass
class CredentialsEntry:
    """GitHub credentials, read from the named environment variables."""

    username_env: str = "GITHUB_USERNAME"
    password_env: str = "GITHUB_PASSWORD"


@dataclass
class ToolConfig:
    """A build tool installation (Maven, NodeJS, JDK)."""

    home: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    file: Optional[str] = "logs/updatebot.log"


@dataclass
class Config:
    """Main configuration for UpdateBot Push."""

    credentials_id: Optional[str] = None
    credentials: Dict[str, CredentialsEntry] = field(default_factory=dict)
    tools: Dict[str, ToolConfig] = field(default_factory=dict)
    source_location: str = "."
    jenkinsfile_git_repo: Optional[str] = None
    poll: PollSettings = field(default_factory=PollSettings)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    operation: OperationConfig = field(default_factory=OperationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def parse_config(data: Dict[str, Any]) -> Config:
    """Build a Config from already-parsed YAML data plus environment overrides.

    Args:
        data: Mapping as loaded from config.yaml (may be empty).

    Returns:
        Parsed Config object.
    """
    data = data or {}

    credentials = {}
    for name, cred_data in (data.get('credentials') or {}).items():
        cred_data = cred_data or {}
        credentials[name] = CredentialsEntry(
            username_env=cred_data.get('username_env', 'GITHUB_USERNAME'),
            password_env=cred_data.get('password_env', 'GITHUB_PASSWORD'),
        )

    tools = {}
    for name, tool_data in (data.get('tools') or {}).items():
        tool_data = tool_data or {}
        tools[name.lower()] = ToolConfig(
            home=tool_data.get('home'),
            env={str(k): str(v) for k, v in (tool_data.get('env') or {}).items()},
        )

    # Poll settings (UPDATEBOT_POLL_PERIOD_MS env var overrides yaml)
    poll_data = data.get('poll', {}) or {}
    period = os.getenv('UPDATEBOT_POLL_PERIOD_MS', poll_data.get('period_ms', DEFAULT_POLL_PERIOD_MS))
    poll = PollSettings(
        period_ms=int(period) if period not in (None, "") else DEFAULT_POLL_PERIOD_MS,
        max_attempts=_optional_int(poll_data.get('max_attempts')),
        max_duration_ms=_optional_int(poll_data.get('max_duration_ms')),
    )

    sched_data = data.get('scheduler', {}) or {}
    scheduler = SchedulerConfig(
        max_workers=int(sched_data.get('max_workers', 4)),
        history_size=int(sched_data.get('history_size', 100)),
    )

    op_data = data.get('operation', {}) or {}
    defaults = OperationConfig()
    operation = OperationConfig(
        type=OperationType(op_data.get('type', defaults.type.value)),
        executable=os.getenv('UPDATEBOT_EXECUTABLE', op_data.get('executable', defaults.executable)),
        push_args=list(op_data.get('push_args', defaults.push_args)),
        status_args=list(op_data.get('status_args', defaults.status_args)),
        timeout=int(op_data.get('timeout', defaults.timeout)),
        extra_env={str(k): str(v) for k, v in (op_data.get('env') or {}).items()},
    )

    log_data = data.get('logging', {}) or {}
    logging_config = LoggingConfig(
        level=log_data.get('level', 'INFO'),
        format=log_data.get('format', 'json'),
        file=log_data.get('file', 'logs/updatebot.log'),
    )

    return Config(
        credentials_id=os.getenv('UPDATEBOT_CREDENTIALS_ID', data.get('credentials_id')),
        credentials=credentials,
        tools=tools,
        source_location=data.get('source_location') or '.',
        jenkinsfile_git_repo=data.get('jenkinsfile_git_repo'),
        poll=poll,
        scheduler=scheduler,
        operation=operation,
        logging=logging_config,
    )


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to config.yaml file. If None, looks in default locations.

    Returns:
        Loaded Config object.

    Raises:
        FileNotFoundError: If config file not found.
        yaml.YAMLError: If config file is invalid.
    """
    load_dotenv()

    if config_path is None:
        possible_paths = [
            Path("config.yaml"),
            Path("backend/config.yaml"),
            Path("../config.yaml"),
        ]
        for path in possible_paths:
            if path.exists():
                config_path = path
                break

        if config_path is None:
            raise FileNotFoundError("config.yaml not found in default locations")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f)

    return parse_config(data or {})
