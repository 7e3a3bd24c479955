"""Print a JSON snapshot of the schedule store's connection pool."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from sqlalchemy import text

from training_scheduler.db.monitoring import get_pool_snapshot
from training_scheduler.db.session import get_engine

LOGGER = logging.getLogger("training_scheduler.db_metrics")


def collect() -> dict:
    engine = get_engine()
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "dialect": engine.dialect.name,
        "pool": get_pool_snapshot(engine),
    }


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    try:
        print(json.dumps(collect()))
        return 0
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to collect database metrics: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
