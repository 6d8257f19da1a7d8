from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from ..common.datetime_utils import now_local
from ..core.constants import SECURITY_LOG_KEEP, SECURITY_LOG_MAX

logger = logging.getLogger("kintai.security")


@dataclass(frozen=True)
class SecurityEvent:
    timestamp: datetime
    event: str
    user_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event": self.event,
            "user_id": self.user_id,
            "details": self.details,
        }


class SecurityLogger:
    """Keeps recent security events in memory and mirrors them to logging."""

    def __init__(
        self,
        *,
        max_entries: int = SECURITY_LOG_MAX,
        keep_entries: int = SECURITY_LOG_KEEP,
        clock: Callable[[], datetime] = now_local,
    ):
        self._max = max_entries
        self._keep = keep_entries
        self._clock = clock
        self._events: list[SecurityEvent] = []
        self._lock = threading.Lock()

    def log(self, event: str, user_id: Optional[str] = None, **details: Any) -> SecurityEvent:
        entry = SecurityEvent(timestamp=self._clock(), event=event, user_id=user_id, details=details)
        with self._lock:
            self._events.append(entry)
            if len(self._events) > self._max:
                self._events = self._events[-self._keep :]
        logger.info("security event %s user=%s %s", event, user_id, details or "")
        return entry

    def recent(self, limit: int = 100) -> list[SecurityEvent]:
        with self._lock:
            return list(self._events[-limit:])

    def for_user(self, user_id: str, limit: int = 50) -> list[SecurityEvent]:
        with self._lock:
            return [e for e in self._events if e.user_id == user_id][-limit:]

    def __len__(self) -> int:
        return len(self._events)
