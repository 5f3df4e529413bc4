"""Thread-safe in-memory TTL cache with a background sweeper."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """Dict-based cache where every entry lives for the same fixed TTL.

    Reads treat expired entries as absent straight away; the sweeper only
    reclaims their memory.
    """

    def __init__(
        self,
        ttl: float = 3600.0,
        *,
        sweep_interval: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._items: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def get(self, key: str) -> Tuple[Any, bool]:
        with self._lock:
            entry = self._items.get(key)
        if entry is None or self._clock() >= entry.expires_at:
            return None, False
        return entry.value, True

    def put(self, key: str, value: Any) -> None:
        expires_at = self._clock() + self.ttl
        with self._lock:
            self._items[key] = CacheEntry(value=value, expires_at=expires_at)

    def sweep(self) -> int:
        """Remove all expired entries. Returns count of evicted keys."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._items.items() if now >= entry.expires_at]
            for key in expired:
                del self._items[key]
        if expired:
            LOGGER.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._run_sweeper, name="cache-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _run_sweeper(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            self.sweep()
