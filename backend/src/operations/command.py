"""Out-of-process operation handle - invokes the UpdateBot command line tool.

``start`` runs ``<executable> <push_args> <source_location>`` once; ``poll``
runs ``<executable> <status_args>`` and parses its JSON stdout. Credentials
and build tool locations are passed through the child's environment.
"""

import json
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from orchestrator.errors import OperationError
from orchestrator.status import Started, StatusSnapshot
from utils.config import OperationConfig
from utils.logger import get_logger

from .base import OperationHandle, Parameters, to_snapshot

_OUTPUT_TAIL = 2000


@dataclass
class CommandResult:
    """Result of one UpdateBot invocation."""
    command: str
    exit_code: int
    stdout: str
    stderr: str
    duration_s: float = 0.0


def build_environment(params: Optional[Parameters], extra_env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Build the child environment for an UpdateBot invocation."""
    env = dict(os.environ)
    if extra_env:
        env.update(extra_env)
    if params is None:
        return env

    if params.github_username:
        env["UPDATEBOT_GITHUB_USERNAME"] = params.github_username
    if params.github_password:
        env["UPDATEBOT_GITHUB_PASSWORD"] = params.github_password
    if params.jenkinsfile_git_repo:
        env["UPDATEBOT_JENKINSFILE_GIT_REPO"] = params.jenkinsfile_git_repo
    env["UPDATEBOT_USE_HTTPS_TRANSPORT"] = "true" if params.use_https_transport else "false"

    for name, tool in (("MVN", params.mvn), ("NPM", params.npm)):
        if tool is None:
            continue
        env[f"UPDATEBOT_{name}_COMMAND"] = tool.command
        env.update(tool.env)
    return env


class CommandOperation(OperationHandle):
    """Runs UpdateBot as a subprocess for each push and status call."""

    def __init__(self, config: OperationConfig):
        self.config = config
        self._env: Optional[Dict[str, str]] = None
        self.logger = get_logger("operations.command")

    def start(self, params: Optional[Parameters]) -> Started:
        self._env = build_environment(params, self.config.extra_env)
        source = params.source_location if params is not None else "."
        result = self._run(self.config.push_args + [source])
        if result.exit_code != 0:
            raise OperationError(
                f"UpdateBot push exited with code {result.exit_code}: {self._tail(result)}"
            )
        self.logger.info(f"UpdateBot push completed in {result.duration_s:.1f}s")
        return Started()

    def poll(self) -> StatusSnapshot:
        if self._env is None:
            raise OperationError("UpdateBot status requested before push")
        result = self._run(list(self.config.status_args))
        if result.exit_code != 0:
            raise OperationError(
                f"UpdateBot status exited with code {result.exit_code}: {self._tail(result)}"
            )
        stdout = result.stdout.strip()
        if not stdout:
            return StatusSnapshot()
        try:
            payload = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise OperationError(f"UpdateBot status output is not valid JSON: {e}", cause=e) from e
        return to_snapshot(payload)

    def _run(self, args: List[str]) -> CommandResult:
        argv = [self.config.executable] + args
        command = " ".join(argv)
        self.logger.debug(f"Running: {command}")
        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                env=self._env,
                capture_output=True,
                text=True,
                timeout=self.config.timeout,
            )
        except FileNotFoundError as e:
            raise OperationError(f"UpdateBot executable not found: {self.config.executable}", cause=e) from e
        except subprocess.TimeoutExpired as e:
            raise OperationError(
                f"UpdateBot command timed out after {self.config.timeout}s: {command}", cause=e
            ) from e
        except OSError as e:
            raise OperationError(f"Could not run UpdateBot: {e}", cause=e) from e

        return CommandResult(
            command=command,
            exit_code=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            duration_s=time.monotonic() - start,
        )

    @staticmethod
    def _tail(result: CommandResult) -> str:
        output = (result.stderr or result.stdout).strip()
        return output[-_OUTPUT_TAIL:]
