"""Message Deduplication — drops WhatsApp webhook retries within a time window.

Invariants:
    - Key = "<phone>:<organization>:<md5(lower(trim(message)))>"
    - check_and_mark returns True only for a repeat seen inside the window
    - Expired entries are purged on every check (memory bounded by traffic in one window)

Design Decisions:
    - In-memory per process: webhook retries hit the same worker within seconds
    - Clock injected: tests advance time without sleeping
"""

import hashlib
import time
from typing import Callable

DEFAULT_WINDOW_SECONDS = 300


def message_hash(message: str) -> str:
    return hashlib.md5(message.strip().lower().encode("utf-8"), usedforsecurity=False).hexdigest()


def message_key(message: str, from_phone_number: str, organization_id: str) -> str:
    return f"{from_phone_number}:{organization_id}:{message_hash(message)}"


class MessageDeduplicator:
    """Remembers recently processed messages."""

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._window = window_seconds
        self._clock = clock
        self._seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._seen)

    def purge_expired(self) -> int:
        cutoff = self._clock() - self._window
        expired = [k for k, ts in self._seen.items() if ts < cutoff]
        for k in expired:
            del self._seen[k]
        return len(expired)

    def is_recent(self, key: str) -> bool:
        self.purge_expired()
        ts = self._seen.get(key)
        return ts is not None and self._clock() - ts < self._window

    def mark(self, key: str) -> None:
        self._seen[key] = self._clock()

    def check_and_mark(
        self, message: str, from_phone_number: str, organization_id: str,
    ) -> bool:
        """True when this message is a retry; otherwise records it and returns False."""
        key = message_key(message, from_phone_number, organization_id)
        if self.is_recent(key):
            return True
        self.mark(key)
        return False
