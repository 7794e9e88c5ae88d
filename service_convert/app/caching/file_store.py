"""
File-backed TTL cache.

The whole mapping lives in a single JSON document::

    {"<key>": {"value": <encoded value>, "expiration": <ns since epoch>}}

Every operation reloads the document under one mutex so that changes made
by another store instance (or process) pointed at the same file are seen.
Mutations rewrite the whole document through a temporary file that is
renamed over the target, so readers never observe a partial write.
"""

import json
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from shared.errors import CacheUnavailableError
from shared.logging import get_logger
from .store import CacheEntry, Clock, expiry_from_ttl


Codec = Callable[[Any], Any]


def _identity(value: Any) -> Any:
    return value


class FileCacheStore:
    """Durable cache persisted to ``path``.

    ``encoder`` turns a value into JSON-compatible data before it is written
    and ``decoder`` reverses it on read; both default to the identity.
    Read, decode and write failures raise :class:`CacheUnavailableError`.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        encoder: Optional[Codec] = None,
        decoder: Optional[Codec] = None,
        clock: Clock = time.time_ns,
    ):
        self.path = Path(path)
        self.logger = get_logger("convert.cache.file")
        self._encode = encoder or _identity
        self._decode = decoder or _identity
        self._clock = clock
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            items = self._load()
            items[key] = CacheEntry(value=self._encode(value), expires_at=expiry_from_ttl(self._clock(), ttl))
            self._save(items)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            items = self._load()
            entry = items.get(key)
            if entry is None:
                return None

            if entry.is_expired(self._clock()):
                del items[key]
                try:
                    self._save(items)
                except CacheUnavailableError as exc:
                    # Expiry is re-checked on every read.
                    self.logger.warning("Failed to drop expired cache entry", key=key, error=exc.message)
                return None

            try:
                return self._decode(entry.value)
            except (KeyError, TypeError, ValueError) as exc:
                raise CacheUnavailableError(
                    "Cached value could not be decoded",
                    details={"path": str(self.path), "key": key, "error": str(exc)},
                ) from exc

    def delete(self, key: str) -> None:
        with self._lock:
            items = self._load()
            if items.pop(key, None) is not None:
                self._save(items)

    def close(self) -> None:
        return None

    def _load(self) -> Dict[str, CacheEntry]:
        """Read the whole mapping; a missing or empty file is an empty cache."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise CacheUnavailableError(
                "Cache file could not be read",
                details={"path": str(self.path), "error": str(exc)},
            ) from exc

        if not raw.strip():
            return {}

        try:
            document = json.loads(raw.decode("utf-8"))
            if not isinstance(document, dict):
                raise ValueError("top-level JSON value is not an object")
            return {
                key: CacheEntry(value=item["value"], expires_at=int(item["expiration"]))
                for key, item in document.items()
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise CacheUnavailableError(
                "Cache file is corrupt",
                details={"path": str(self.path), "error": str(exc)},
            ) from exc

    def _save(self, items: Dict[str, CacheEntry]) -> None:
        """Atomically replace the cache file with ``items``."""
        document = {
            key: {"value": entry.value, "expiration": entry.expires_at}
            for key, entry in items.items()
        }
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                json.dump(document, handle, ensure_ascii=False, separators=(",", ":"))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as exc:
            raise CacheUnavailableError(
                "Cache file could not be written",
                details={"path": str(self.path), "error": str(exc)},
            ) from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
