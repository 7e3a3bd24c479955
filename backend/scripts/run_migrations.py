"""Bring the schedule store schema up to date before scheduling jobs run.

Waits for the database to answer, then upgrades to the requested revision.
``--sql`` renders the upgrade as a script instead of touching the database,
and ``--check`` only reports revisions that have not been applied yet.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

LOGGER = logging.getLogger("training_scheduler.migrations")
BACKEND_ROOT = Path(__file__).resolve().parent.parent
URL_PLACEHOLDER = "%(SCHEDULER_DATABASE_URL)s"


def _env_number(name: str, default: str) -> float:
    return float(os.getenv(name, default))


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upgrade the schedule store schema.")
    parser.add_argument("--revision", default=os.getenv("SCHEDULER_DB_MIGRATION_REVISION", "head"))
    parser.add_argument(
        "--timeout",
        type=float,
        default=_env_number("SCHEDULER_DB_MIGRATION_TIMEOUT", "60"),
        help="Seconds to wait for the database to accept connections.",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=_env_number("SCHEDULER_DB_MIGRATION_POLL_INTERVAL", "3"),
        help="Seconds between readiness probes.",
    )
    parser.add_argument("--config", default=str(BACKEND_ROOT / "alembic.ini"))
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--sql", action="store_true", help="Print the upgrade SQL instead of applying it.")
    mode.add_argument("--check", action="store_true", help="Exit 2 when revisions are pending.")
    return parser.parse_args(argv)


def get_alembic_config(config_path: str) -> Config:
    config = Config(config_path)
    config.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    return config


def resolve_database_url(config: Config) -> str:
    url = config.get_main_option("sqlalchemy.url")
    if url and url != URL_PLACEHOLDER:
        return url
    env_url = os.getenv("SCHEDULER_DATABASE_URL")
    if not env_url:
        raise RuntimeError("SCHEDULER_DATABASE_URL must be set before running migrations.")
    config.set_main_option("sqlalchemy.url", env_url)
    return env_url


def wait_for_database(database_url: str, *, timeout: float, poll_interval: float) -> None:
    """Retry ``SELECT 1`` on connection errors until ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    last_error: Optional[Exception] = None
    try:
        while True:
            try:
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                LOGGER.info("Database is reachable.")
                return
            except OperationalError as exc:
                last_error = exc
                LOGGER.warning("Database not ready yet: %s", exc)
            except SQLAlchemyError as exc:
                LOGGER.error("Database error during readiness probe: %s", exc)
                raise RuntimeError("Database readiness probe failed.") from exc
            if time.monotonic() + poll_interval > deadline:
                break
            time.sleep(poll_interval)
    finally:
        engine.dispose()
    raise RuntimeError("Database did not become ready in time.") from last_error


def pending_revisions(config: Config, database_url: str) -> List[str]:
    """Revision ids not yet applied, newest first. Assumes a linear history."""
    script = ScriptDirectory.from_config(config)
    engine = create_engine(database_url, future=True)
    try:
        with engine.connect() as connection:
            applied = set(MigrationContext.configure(connection).get_current_heads())
    finally:
        engine.dispose()
    pending: List[str] = []
    for revision in script.walk_revisions():
        if revision.revision in applied:
            break
        pending.append(revision.revision)
    return pending


def run_migrations(
    revision: str,
    *,
    timeout: float,
    poll_interval: float,
    config: Optional[Config] = None,
    sql: bool = False,
) -> None:
    config = config or get_alembic_config(str(BACKEND_ROOT / "alembic.ini"))
    database_url = resolve_database_url(config)
    if sql:
        command.upgrade(config, revision, sql=True)
        return
    LOGGER.info("Upgrading schedule store to %s (timeout=%ss poll=%ss)", revision, timeout, poll_interval)
    wait_for_database(database_url, timeout=timeout, poll_interval=poll_interval)
    command.upgrade(config, revision)
    LOGGER.info("Migrations complete.")


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("SCHEDULER_DB_MIGRATION_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv)
    try:
        config = get_alembic_config(args.config)
        if args.check:
            database_url = resolve_database_url(config)
            wait_for_database(database_url, timeout=args.timeout, poll_interval=args.poll_interval)
            pending = pending_revisions(config, database_url)
            if pending:
                LOGGER.warning("Pending migrations: %s", ", ".join(pending))
                return 2
            LOGGER.info("Schema is up to date.")
            return 0
        run_migrations(
            args.revision,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            config=config,
            sql=args.sql,
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Migration run failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
