from __future__ import annotations

import types
from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect

from scripts import run_migrations as runner


def test_resolve_database_url_prefers_env(monkeypatch) -> None:
    config = runner.get_alembic_config(str(runner.BACKEND_ROOT / "alembic.ini"))
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", "sqlite://")
    assert config.get_main_option("sqlalchemy.url") == runner.URL_PLACEHOLDER
    assert runner.resolve_database_url(config) == "sqlite://"
    assert config.get_main_option("sqlalchemy.url") == "sqlite://"


def test_resolve_database_url_requires_configuration(monkeypatch) -> None:
    monkeypatch.delenv("SCHEDULER_DATABASE_URL", raising=False)
    config = runner.get_alembic_config(str(runner.BACKEND_ROOT / "alembic.ini"))
    with pytest.raises(RuntimeError):
        runner.resolve_database_url(config)


def test_wait_for_database_succeeds_with_sqlite(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'probe.sqlite'}"
    runner.wait_for_database(url, timeout=2, poll_interval=0.1)


def test_wait_for_database_times_out(monkeypatch) -> None:
    class DummyEngine:
        def connect(self) -> types.SimpleNamespace:
            raise runner.OperationalError("SELECT 1", {}, Exception("boom"))

        def dispose(self) -> None:
            pass

    monkeypatch.setattr(runner, "create_engine", lambda *_, **__: DummyEngine())
    with pytest.raises(RuntimeError):
        runner.wait_for_database("postgresql://example", timeout=0, poll_interval=0)


def test_run_migrations_invokes_upgrade(monkeypatch) -> None:
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", "sqlite://")
    config = runner.get_alembic_config(str(runner.BACKEND_ROOT / "alembic.ini"))
    recorded: dict[str, object] = {}

    def fake_wait(url: str, *, timeout: int, poll_interval: float) -> None:
        recorded["wait"] = (url, timeout, poll_interval)

    def fake_upgrade(cfg, revision: str) -> None:
        recorded["revision"] = revision
        recorded["script_location"] = cfg.get_main_option("script_location")

    monkeypatch.setattr(runner, "wait_for_database", fake_wait)
    monkeypatch.setattr(runner.command, "upgrade", fake_upgrade)

    runner.run_migrations("head", timeout=5, poll_interval=0.1, config=config)

    assert recorded["revision"] == "head"
    assert recorded["wait"] == ("sqlite://", 5, 0.1)
    assert str(recorded["script_location"]).endswith("alembic")


def test_upgrade_creates_schedule_tables(tmp_path: Path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.sqlite'}"
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", url)

    assert runner.main(["--timeout", "2", "--poll-interval", "0.1"]) == 0

    engine = create_engine(url, future=True)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {
        "topics",
        "courses",
        "learning_paths",
        "learning_path_enrollments",
        "audit_logs",
        "alembic_version",
    } <= tables


def test_check_reports_pending_then_clean(tmp_path: Path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'check.sqlite'}"
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", url)
    config = runner.get_alembic_config(str(runner.BACKEND_ROOT / "alembic.ini"))

    assert runner.pending_revisions(config, url) == ["20250101_01_schedule_store"]
    assert runner.main(["--check", "--timeout", "1", "--poll-interval", "0.1"]) == 2

    assert runner.main(["--timeout", "1", "--poll-interval", "0.1"]) == 0
    assert runner.main(["--check", "--timeout", "1", "--poll-interval", "0.1"]) == 0


def test_sql_mode_renders_script_without_connecting(monkeypatch, capsys) -> None:
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", "sqlite:///does-not-matter.sqlite")

    def fail_wait(*args, **kwargs) -> None:
        raise AssertionError("offline mode must not probe the database")

    monkeypatch.setattr(runner, "wait_for_database", fail_wait)
    assert runner.main(["--sql"]) == 0
    assert "CREATE TABLE topics" in capsys.readouterr().out
