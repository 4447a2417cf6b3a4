"""Settings from environment and JSON log formatting with request context."""

import json
import logging
import sys

import pytest
from pydantic import ValidationError

from lifecycle_engine.config.logging import JsonFormatter
from lifecycle_engine.config.settings import EngineSettings
from lifecycle_engine.core.context import bound_request, correlation_id_ctx


def test_defaults():
    settings = EngineSettings(_env_file=None)
    assert settings.grace_period_days == 7
    assert settings.audit_retry_attempts == 5
    assert settings.database_url is None
    assert settings.transition_exchange == "lifecycle_transitions"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LIFECYCLE_GRACE_PERIOD_DAYS", "14")
    monkeypatch.setenv("LIFECYCLE_REDIS_URL", "redis://cache:6379/0")
    settings = EngineSettings(_env_file=None)
    assert settings.grace_period_days == 14
    assert settings.redis_url == "redis://cache:6379/0"


def test_invalid_values_rejected(monkeypatch):
    monkeypatch.setenv("LIFECYCLE_AUDIT_RETRY_ATTEMPTS", "0")
    with pytest.raises(ValidationError):
        EngineSettings(_env_file=None)


def _record(msg="transition_committed", **extra):
    record = logging.LogRecord("lifecycle", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_bound_context():
    with bound_request("corr-1", "tenant-a", "user-1"):
        line = JsonFormatter().format(_record(resource_id="eq-1", version=2))
    data = json.loads(line)
    assert data["message"] == "transition_committed"
    assert data["level"] == "INFO"
    assert data["correlation_id"] == "corr-1"
    assert data["tenant_id"] == "tenant-a"
    assert data["actor_id"] == "user-1"
    assert data["resource_id"] == "eq-1"
    assert data["version"] == 2


def test_explicit_extra_fills_unbound_context():
    data = json.loads(JsonFormatter().format(_record(correlation_id="corr-x")))
    assert data["correlation_id"] == "corr-x"


def test_bound_request_resets_on_exit():
    with bound_request("corr-1"):
        assert correlation_id_ctx.get() == "corr-1"
    assert correlation_id_ctx.get() is None


def test_exception_is_formatted():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("lifecycle", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    data = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in data["exc_info"]
