"""Connection pool telemetry for the schedule store engine."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Dict

from sqlalchemy import event
from sqlalchemy.engine import Engine

from ..telemetry import emit_event

_TELEMETRY_INTERVAL = float(os.getenv("SCHEDULER_DB_TELEMETRY_INTERVAL", "30"))


@dataclass
class PoolCounters:
    connects: int = 0
    checkouts: int = 0
    checkins: int = 0
    last_emit: float = 0.0

    def as_dict(self) -> Dict[str, int]:
        return {"connects": self.connects, "checkouts": self.checkouts, "checkins": self.checkins}


_COUNTERS: Dict[int, PoolCounters] = {}


def _pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()  # type: ignore[no-untyped-call]
    except Exception as exc:  # pragma: no cover - pools without status()
        return f"unavailable: {exc}"


def _record(engine: Engine, counters: PoolCounters, counter: str, pool_event: str) -> None:
    setattr(counters, counter, getattr(counters, counter) + 1)
    now = time.time()
    if _TELEMETRY_INTERVAL > 0 and now - counters.last_emit < _TELEMETRY_INTERVAL:
        return
    counters.last_emit = now
    emit_event("db_pool_status", status=_pool_status(engine), event=pool_event, **counters.as_dict())


def instrument_engine(engine: Engine) -> None:
    """Count pool connects/checkouts/checkins and emit throttled ``db_pool_status`` events."""
    if id(engine) in _COUNTERS:
        return
    counters = _COUNTERS[id(engine)] = PoolCounters()

    for pool_event, counter in (("connect", "connects"), ("checkout", "checkouts"), ("checkin", "checkins")):
        def listener(*_args, _counter: str = counter, _event: str = pool_event) -> None:  # type: ignore[no-untyped-def]
            _record(engine, counters, _counter, f"db_pool_{_event}")

        event.listen(engine, pool_event, listener)


def get_pool_snapshot(engine: Engine) -> Dict[str, object]:
    counters = _COUNTERS.get(id(engine), PoolCounters())
    return {"status": _pool_status(engine), **counters.as_dict()}


__all__ = ["PoolCounters", "get_pool_snapshot", "instrument_engine"]
