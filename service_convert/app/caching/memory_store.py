"""
In-process TTL cache guarded by a reader/writer lock.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from shared.logging import get_logger
from .store import CacheEntry, Clock, expiry_from_ttl


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Waiting writers block new readers so a steady read load cannot starve
    a mutation.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class MemoryCacheStore:
    """Volatile cache keyed by string with lazy expiry on read.

    An optional background sweep (``sweep_interval`` seconds) removes expired
    entries that are never read again. Without it they stay in memory until
    the next ``get`` for their key.
    """

    def __init__(self, sweep_interval: Optional[float] = None, clock: Clock = time.time_ns):
        self.logger = get_logger("convert.cache.memory")
        self._clock = clock
        self._items: Dict[str, CacheEntry] = {}
        self._lock = ReadWriteLock()

        self.sweep_interval = sweep_interval
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if sweep_interval:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                name="cache-sweeper",
                daemon=True,
            )
            self._sweeper.start()

    def set(self, key: str, value: Any, ttl: float) -> None:
        entry = CacheEntry(value=value, expires_at=expiry_from_ttl(self._clock(), ttl))
        with self._lock.write():
            self._items[key] = entry

    def get(self, key: str) -> Optional[Any]:
        with self._lock.read():
            entry = self._items.get(key)
            if entry is None:
                return None
            if not entry.is_expired(self._clock()):
                return entry.value

        # Expired: drop it on the exclusive path. Another writer may have
        # replaced the entry in between, so check again before deleting.
        with self._lock.write():
            current = self._items.get(key)
            if current is None:
                return None
            if current.is_expired(self._clock()):
                del self._items[key]
                return None
            return current.value

    def delete(self, key: str) -> None:
        with self._lock.write():
            self._items.pop(key, None)

    def purge_expired(self) -> int:
        """Remove every entry expired as of now; returns how many were dropped."""
        now = self._clock()
        with self._lock.write():
            expired = [key for key, entry in self._items.items() if entry.is_expired(now)]
            for key in expired:
                del self._items[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._items)

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            removed = self.purge_expired()
            if removed:
                self.logger.debug("Swept expired cache entries", removed=removed)

    def close(self) -> None:
        """Stop the background sweep, if running."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None
