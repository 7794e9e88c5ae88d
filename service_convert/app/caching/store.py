"""
Cache store interface shared by the in-memory and file-backed variants.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol


NANOS_PER_SECOND = 1_000_000_000

Clock = Callable[[], int]


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the instant (ns since epoch) it stops being valid."""

    value: Any
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at


def expiry_from_ttl(now: int, ttl: float) -> int:
    """Absolute expiration for a TTL given in seconds."""
    return now + int(ttl * NANOS_PER_SECOND)


class CacheStore(Protocol):
    """Key/value store with per-entry time-based expiry.

    Implementations are safe to call from any number of threads.
    """

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or ``None``; expired entries are dropped."""
        ...

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Insert or overwrite ``key`` so that it expires ``ttl`` seconds from now."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``; no-op when absent."""
        ...

    def close(self) -> None:
        """Release background resources."""
        ...
