"""Structured sync telemetry fanned out to in-process listeners and the log.

Payload values are flattened before listeners see them: platforms become
their slug, ``SyncError`` instances become their ``kind`` and verification
codes never leave the process.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from .errors import SyncError

logger = logging.getLogger("codeit.telemetry")

REDACTED_FIELDS = frozenset({"verification_code", "code"})


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]

    @property
    def platform(self) -> Optional[str]:
        return self.payload.get("platform")


_listeners: List[Callable[[TelemetryEvent], None]] = []
_lock = RLock()


def register_listener(listener: Callable[[TelemetryEvent], None]) -> None:
    """Register an in-process listener (used in tests)."""
    with _lock:
        _listeners.append(listener)


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> None:
    """Emit a telemetry event for a sync, verification or sweep step."""
    payload = {key: ("***" if key in REDACTED_FIELDS else _flatten(value)) for key, value in fields.items()}
    event = TelemetryEvent(name=name, payload=payload)

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    structured = {"event": name, **payload}
    logger.info("TELEMETRY %s", json.dumps(structured, default=str, sort_keys=True))


def _flatten(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, SyncError):
        return value.kind
    if isinstance(value, dict):
        return {_flatten(key): _flatten(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_flatten(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_flatten(item) for item in value)
    return value


__all__ = [
    "REDACTED_FIELDS",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
]
