"""Structured scheduler events, logged as JSON and fanned out to listeners."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from threading import RLock
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger("training_scheduler.telemetry")

Listener = Callable[["TelemetryEvent"], None]


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_listeners: List[Tuple[Listener, Optional[FrozenSet[str]]]] = []
_lock = RLock()


def register_listener(listener: Listener, *, events: Optional[List[str]] = None) -> None:
    """Subscribe ``listener`` to every event, or only to the names in ``events``."""
    with _lock:
        _listeners.append((listener, frozenset(events) if events else None))


def unregister_listener(listener: Listener) -> None:
    with _lock:
        _listeners[:] = [entry for entry in _listeners if entry[0] is not listener]


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> None:
    event = TelemetryEvent(name=name, payload=_sanitize(fields))

    with _lock:
        targets = [listener for listener, names in _listeners if names is None or name in names]

    for listener in targets:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    logger.info("TELEMETRY %s", json.dumps({"event": name, **event.payload}, default=_json_default))


def _sanitize(fields: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, date):
            sanitized[key] = value.isoformat()
        elif isinstance(value, (set, frozenset)):
            sanitized[key] = sorted(value)
        elif isinstance(value, tuple):
            sanitized[key] = list(value)
        else:
            sanitized[key] = value
    return sanitized


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


__all__ = [
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
    "unregister_listener",
]
