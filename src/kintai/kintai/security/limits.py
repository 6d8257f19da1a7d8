from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..core.constants import LOCKOUT_MINUTES, MAX_LOGIN_ATTEMPTS


@dataclass
class _Attempt:
    attempts: int = 0
    last_attempt: Optional[datetime] = None
    locked_until: Optional[datetime] = None


class LoginAttemptManager:
    """Counts failed logins per identifier and locks it out for a while."""

    def __init__(
        self,
        *,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
        lockout: timedelta = timedelta(minutes=LOCKOUT_MINUTES),
        clock: Callable[[], datetime] = now_local,
    ):
        self._max_attempts = int(max_attempts)
        self._lockout = lockout
        self._clock = clock
        self._attempts: dict[str, _Attempt] = {}
        self._lock = threading.Lock()

    def can_attempt(self, identifier: str) -> bool:
        now = self._clock()
        with self._lock:
            attempt = self._attempts.get(identifier)
            if not attempt:
                return True
            if attempt.locked_until:
                if now < attempt.locked_until:
                    return False
                del self._attempts[identifier]
                return True
            return attempt.attempts < self._max_attempts

    def record(self, identifier: str, success: bool) -> None:
        now = self._clock()
        with self._lock:
            if success:
                self._attempts.pop(identifier, None)
                return
            attempt = self._attempts.setdefault(identifier, _Attempt())
            attempt.attempts += 1
            attempt.last_attempt = now
            if attempt.attempts >= self._max_attempts:
                attempt.locked_until = now + self._lockout

    def remaining_lockout(self, identifier: str) -> timedelta:
        with self._lock:
            attempt = self._attempts.get(identifier)
        if not attempt or not attempt.locked_until:
            return timedelta(0)
        return max(timedelta(0), attempt.locked_until - self._clock())

    def remaining_attempts(self, identifier: str) -> int:
        with self._lock:
            attempt = self._attempts.get(identifier)
        return self._max_attempts - (attempt.attempts if attempt else 0)

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._attempts.pop(identifier, None)


class RateLimiter:
    """Fixed window counter keyed by an arbitrary string."""

    def __init__(self, *, clock: Callable[[], datetime] = now_local):
        self._clock = clock
        self._limits: dict[str, tuple[int, datetime]] = {}
        self._lock = threading.Lock()

    def check(self, key: str, max_requests: int, window: timedelta) -> bool:
        now = self._clock()
        with self._lock:
            self._prune(now)
            current = self._limits.get(key)
            if current is None or now > current[1]:
                self._limits[key] = (1, now + window)
                return True
            count, reset_at = current
            if count >= max_requests:
                return False
            self._limits[key] = (count + 1, reset_at)
            return True

    def tracked_keys(self) -> list[str]:
        with self._lock:
            return list(self._limits)

    def _prune(self, now: datetime) -> None:
        # caller holds the lock
        expired = [key for key, (_, reset_at) in self._limits.items() if now > reset_at]
        for key in expired:
            del self._limits[key]
