"""Tests for environment-driven service configuration."""

import pytest
from pydantic import ValidationError
from pytest import MonkeyPatch

from fetch_agent.config import ServiceConfig

ENV_KEYS = ("ENVIRONMENT", "HEARTBEAT_INTERVAL", "MAX_QUEUE_SIZE", "LOG_FORMAT_TESTING")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: MonkeyPatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("fetch_agent.config.load_dotenv", lambda: False)


def test__from_env__uses_defaults() -> None:
    config = ServiceConfig.from_env()
    assert config.environment == "development"
    assert config.heartbeat_interval == 30.0
    assert config.max_queue_size == 100
    assert config.log_format_testing is False


def test__from_env__reads_overrides(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("HEARTBEAT_INTERVAL", "5")
    monkeypatch.setenv("MAX_QUEUE_SIZE", "10")
    monkeypatch.setenv("LOG_FORMAT_TESTING", "true")

    config = ServiceConfig.from_env()

    assert config.environment == "production"
    assert config.heartbeat_interval == 5.0
    assert config.max_queue_size == 10
    assert config.log_format_testing is True


def test__empty_variable__keeps_default(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_QUEUE_SIZE", "")
    assert ServiceConfig.from_env().max_queue_size == 100


def test__non_positive_queue_size__raises_validation_error(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_QUEUE_SIZE", "0")
    with pytest.raises(ValidationError):
        ServiceConfig.from_env()
