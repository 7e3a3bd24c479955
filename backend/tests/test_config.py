from __future__ import annotations

import logging

import pytest

from training_scheduler.config import get_settings
from training_scheduler.logging_config import configure_logging


@pytest.fixture(autouse=True)
def _reset_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_read_scheduler_environment(monkeypatch) -> None:
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("SCHEDULER_CYCLE_POLICY", "strict")
    monkeypatch.setenv("SCHEDULER_PERSISTENCE_MODE", "memory")
    settings = get_settings()
    assert settings.database_url == "sqlite://"
    assert settings.cycle_policy == "strict"
    assert settings.persistence_mode == "memory"
    assert settings.database_pool_size == 10


def test_invalid_cycle_policy_is_a_configuration_error(monkeypatch) -> None:
    monkeypatch.setenv("SCHEDULER_CYCLE_POLICY", "sometimes")
    with pytest.raises(RuntimeError, match="Invalid scheduler configuration"):
        get_settings()


def test_configure_logging_honours_level_and_sql_flag(monkeypatch) -> None:
    monkeypatch.setenv("SCHEDULER_LOG_LEVEL", "warning")
    monkeypatch.setenv("SCHEDULER_DEBUG_SQL", "1")
    monkeypatch.setenv("SCHEDULER_TELEMETRY_LOG_LEVEL", "error")
    root = logging.getLogger()
    previous_level = root.level
    previous_handlers = list(root.handlers)
    try:
        configure_logging()
        assert root.level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
        assert logging.getLogger("training_scheduler.telemetry").level == logging.ERROR
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.NOTSET)
        logging.getLogger("training_scheduler.telemetry").setLevel(logging.NOTSET)
