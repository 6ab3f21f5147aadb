"""Tests for configuration loading."""

import pytest

from utils.config import OperationType, load_config, parse_config

CONFIG_YAML = """
credentials_id: github
credentials:
  github:
    username_env: GH_USER
    password_env: GH_PASS
tools:
  Maven:
    home: /opt/maven
    env:
      MAVEN_OPTS: -Xmx1g
poll:
  period_ms: 2000
  max_attempts: 40
operation:
  type: command
  executable: /usr/local/bin/updatebot
  env:
    UPDATEBOT_DRY_RUN: "true"
logging:
  level: DEBUG
  file: null
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("UPDATEBOT_CREDENTIALS_ID", "UPDATEBOT_POLL_PERIOD_MS", "UPDATEBOT_EXECUTABLE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


def test_load_config(config_file):
    config = load_config(str(config_file))

    assert config.credentials_id == "github"
    assert config.credentials["github"].username_env == "GH_USER"
    assert config.tools["maven"].home == "/opt/maven"
    assert config.tools["maven"].env == {"MAVEN_OPTS": "-Xmx1g"}
    assert config.poll.period_ms == 2000
    assert config.poll.max_attempts == 40
    assert config.poll.max_duration_ms is None
    assert config.operation.type is OperationType.COMMAND
    assert config.operation.executable == "/usr/local/bin/updatebot"
    assert config.operation.extra_env == {"UPDATEBOT_DRY_RUN": "true"}
    assert config.logging.level == "DEBUG"
    assert config.logging.file is None


def test_env_overrides(config_file, monkeypatch):
    monkeypatch.setenv("UPDATEBOT_CREDENTIALS_ID", "other")
    monkeypatch.setenv("UPDATEBOT_POLL_PERIOD_MS", "500")
    monkeypatch.setenv("UPDATEBOT_EXECUTABLE", "ub")
    config = load_config(str(config_file))

    assert config.credentials_id == "other"
    assert config.poll.period_ms == 500
    assert config.operation.executable == "ub"


def test_defaults_for_empty_config():
    config = parse_config({})
    assert config.credentials_id is None
    assert config.poll.period_ms == 15000
    assert config.source_location == "."
    assert config.operation.push_args == ["push", "--dir"]
    assert config.scheduler.max_workers == 4


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


def test_unknown_operation_type_rejected():
    with pytest.raises(ValueError):
        parse_config({"operation": {"type": "carrier_pigeon"}})
