"""Resolve the parameters of a push: source location, credentials, build tools.

Runs before any run is created. Missing credentials are a ConfigurationError;
missing build tools only produce warnings, since not every project needs them.
"""

import os
import platform
from pathlib import Path
from typing import Dict, Optional

from operations.base import Parameters, ToolCommand
from orchestrator.errors import ConfigurationError

from .config import Config
from .logger import get_logger

JDK = "jdk"
MAVEN = "maven"
NODE_JS = "nodejs"

logger = get_logger("utils.parameters")


def _is_windows() -> bool:
    return platform.system().lower().startswith("win")


def resolve_credentials(config: Config) -> Dict[str, str]:
    """Look up the GitHub username and password for the configured credentials.

    Raises:
        ConfigurationError: If no credentials are configured, the id is
            unknown, or the username/password are not set.
    """
    credentials_id = config.credentials_id
    if not credentials_id:
        raise ConfigurationError(
            "No credentials configured for UpdateBot! Please set credentials_id in config.yaml"
        )
    entry = config.credentials.get(credentials_id)
    if entry is None:
        raise ConfigurationError(
            f"Could not find the credentials {credentials_id}. Please check the UpdateBot configuration"
        )
    username = os.getenv(entry.username_env)
    password = os.getenv(entry.password_env)
    if not username or not password:
        raise ConfigurationError(
            f"The chosen credential {credentials_id} has no username and password! "
            f"Set {entry.username_env} and {entry.password_env} or choose another credential"
        )
    return {"username": username, "password": password}


def _tool_command(home: str, name: str) -> str:
    suffix = ".cmd" if _is_windows() else ""
    return str(Path(home, "bin", name + suffix).resolve())


def resolve_tools(config: Config) -> Dict[str, Optional[ToolCommand]]:
    """Resolve the mvn and npm executables from the configured installations."""
    maven = config.tools.get(MAVEN)
    node = config.tools.get(NODE_JS)
    java = config.tools.get(JDK)

    mvn = None
    if maven is not None and maven.home:
        env = dict(maven.env)
        if java is not None:
            if java.home:
                env.setdefault("JAVA_HOME", java.home)
            env.update(java.env)
        else:
            logger.warning("No JDK tool found so cannot set the JAVA environment variables required for maven!")
        mvn = ToolCommand(command=_tool_command(maven.home, "mvn"), env=env)
        logger.info(f"Using mvn executable: {mvn.command} with env vars: {sorted(env)}")
    else:
        logger.warning(
            "No Maven installation found! May not be able to update maven projects. "
            "Add a 'maven' entry under tools in config.yaml"
        )

    npm = None
    if node is not None and node.home:
        npm = ToolCommand(command=_tool_command(node.home, "npm"), env=dict(node.env))
        logger.info(f"Using npm executable: {npm.command}")
    else:
        logger.warning(
            "No NodeJS installation found! May not be able to update node projects. "
            "Add a 'nodejs' entry under tools in config.yaml"
        )

    return {"mvn": mvn, "npm": npm}


def resolve_parameters(config: Config, source_location: Optional[str] = None) -> Parameters:
    """Resolve everything a push needs.

    Args:
        config: Loaded configuration
        source_location: Directory or URL of the source to push from.
            Falls back to config.source_location, then ".".

    Raises:
        ConfigurationError: If credentials cannot be resolved.
    """
    credentials = resolve_credentials(config)
    tools = resolve_tools(config)
    location = source_location or config.source_location or "."
    return Parameters(
        source_location=location,
        github_username=credentials["username"],
        github_password=credentials["password"],
        mvn=tools["mvn"],
        npm=tools["npm"],
        jenkinsfile_git_repo=config.jenkinsfile_git_repo,
        use_https_transport=True,
    )
