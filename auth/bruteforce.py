"""
auth/bruteforce.py -- Failed-login tracker for POST /api/auth/login.

Counts failed logins per identifier (lower-cased email, else username, else
client IP) inside a fixed window that starts at the first failure. Reaching
max_attempts blocks the identifier for window_seconds; the block is checked
before any credential verification. A successful login deletes the record.

The state is a plain dict in this process, guarded by a lock because FastAPI
runs sync handlers in a thread pool. It does not survive a restart and is not
shared between processes or hosts: behind several workers each one keeps its
own counters. A shared TTL store (e.g. Redis) is the replacement if the API
is ever scaled horizontally.

This is independent of the slowapi limiter in api/limiter.py, which caps
total request volume per IP rather than failed credentials.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from core.errors import RateLimitedError

logger = logging.getLogger("padron.auth")


@dataclass
class AttemptRecord:
    attempts: int
    first_attempt: float
    blocked_until: Optional[float] = None


class LoginAttemptTracker:
    """In-memory failed-attempt counter with a fixed window.

    Usage:
        tracker = LoginAttemptTracker()
        key = tracker.resolve_identifier(email, None, client_ip)
        tracker.check(key)              # raises RateLimitedError while blocked
        tracker.register_failure(key)   # on bad credentials
        tracker.clear(key)              # on success
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: dict[str, AttemptRecord] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    @staticmethod
    def resolve_identifier(email: Optional[str], username: Optional[str], ip: Optional[str]) -> str:
        """Pick the key for this attempt: email, then username, then IP, lower-cased."""
        return (email or username or ip or "unknown").lower()

    def check(self, identifier: str) -> None:
        """Raise RateLimitedError if identifier is currently blocked.

        A record whose window has elapsed is discarded first, so old failures
        never count against a fresh attempt.
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(identifier)
            if record is None:
                return
            if now - record.first_attempt > self.window_seconds:
                del self._records[identifier]
                return
            blocked = record.blocked_until is not None and now < record.blocked_until
        if blocked:
            raise RateLimitedError("Demasiados intentos fallidos. Intente nuevamente más tarde.")

    def register_failure(self, identifier: str) -> None:
        """Count one failed attempt; the 5th inside the window starts a block.

        At most once per window, records whose window has elapsed are dropped
        so identifiers that never come back do not accumulate.
        """
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            record = self._records.get(identifier)
            if record is None:
                record = AttemptRecord(attempts=0, first_attempt=now)
                self._records[identifier] = record
            record.attempts += 1
            if record.attempts >= self.max_attempts:
                record.blocked_until = now + self.window_seconds
                logger.warning("Blocked %s after %d failed login attempts", identifier, record.attempts)

    def clear(self, identifier: str) -> None:
        """Forget every failure recorded for identifier (full reset)."""
        with self._lock:
            self._records.pop(identifier, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _sweep(self, now: float) -> None:
        """Drop expired records. Caller holds the lock."""
        expired = [key for key, rec in self._records.items() if now - rec.first_attempt > self.window_seconds]
        for key in expired:
            del self._records[key]
        self._last_sweep = now
        if expired:
            logger.debug("Swept %d expired login attempt records", len(expired))

    def attempts(self, identifier: str) -> int:
        """Current failure count for identifier (0 when untracked)."""
        with self._lock:
            record = self._records.get(identifier)
            return record.attempts if record is not None else 0
