"""Staging storage for validated uploads awaiting apply."""

import logging
import threading
import time
from collections.abc import Callable

from .models.snapshot import Snapshot

logger = logging.getLogger(__name__)


class InMemoryStagingStore:
    """Process-local staging store with per-entry expiry.

    Example:
        >>> staging = InMemoryStagingStore(ttl_seconds=600)
        >>> staging.put("session-123", snapshot)
        >>> staging.get("session-123") is snapshot
        True
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize staging store.

        Args:
            ttl_seconds: Lifetime of a staged snapshot
            clock: Monotonic time source, injectable for tests
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Snapshot]] = {}
        self._lock = threading.Lock()

    def put(self, token: str, snapshot: Snapshot) -> None:
        """Stage a snapshot, replacing anything staged under the same token."""
        with self._lock:
            self._entries[token] = (self._clock() + self.ttl_seconds, snapshot)

    def get(self, token: str) -> Snapshot | None:
        """Return the staged snapshot, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                return None
            expires_at, snapshot = entry
            if self._clock() >= expires_at:
                del self._entries[token]
                logger.debug(f"Staged import {token} expired")
                return None
            return snapshot

    def clear(self, token: str) -> None:
        """Drop the staged snapshot, if any."""
        with self._lock:
            self._entries.pop(token, None)

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [token for token, (expires_at, _) in self._entries.items() if now >= expires_at]
            for token in expired:
                del self._entries[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
