"""
Unit tests for the in-memory cache store.
"""

import threading
import time

import pytest

from service_convert.app.caching import MemoryCacheStore, ReadWriteLock
from service_convert.app.caching.store import NANOS_PER_SECOND


class FakeClock:
    """Manually advanced nanosecond clock."""

    def __init__(self, start: int = 1_700_000_000 * NANOS_PER_SECOND):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * NANOS_PER_SECOND)


class TestMemoryCacheStore:
    """Test cases for MemoryCacheStore."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self, clock):
        store = MemoryCacheStore(clock=clock)
        yield store
        store.close()

    def test_get_unknown_key_misses(self, store):
        """Test that a key never set is not found."""
        assert store.get("missing") is None

    def test_set_then_get(self, store):
        """Test that a value is returned right after it is set."""
        store.set("key1", "value1", 5)

        assert store.get("key1") == "value1"

    def test_set_overwrites(self, store):
        """Test that a second set replaces the value."""
        store.set("key1", "old", 5)
        store.set("key1", "new", 5)

        assert store.get("key1") == "new"
        assert len(store) == 1

    def test_entry_expires_after_ttl(self, store, clock):
        """Test that an expired entry is not returned and is removed."""
        store.set("key1", "value1", 5)
        store.set("key2", "value2", 10)

        clock.advance(3)
        assert store.get("key1") == "value1"

        clock.advance(3)
        assert store.get("key1") is None
        assert store.get("key2") == "value2"
        assert len(store) == 1

    def test_entry_valid_at_exact_expiry(self, store, clock):
        """Test that an entry is still live at its expiration instant."""
        store.set("key1", "value1", 5)

        clock.advance(5)

        assert store.get("key1") == "value1"

    def test_zero_ttl_expires_once_time_moves(self, store, clock):
        """Test that a zero TTL entry is gone as soon as the clock advances."""
        store.set("key1", "value1", 0)

        clock.advance(0.001)

        assert store.get("key1") is None

    def test_delete_removes_entry(self, store):
        """Test that delete followed by get misses."""
        store.set("key1", "value1", 5)

        store.delete("key1")

        assert store.get("key1") is None

    def test_delete_missing_key_is_noop(self, store):
        """Test that deleting an absent key does not raise."""
        store.delete("missing")

        assert len(store) == 0

    def test_purge_expired(self, store, clock):
        """Test that purge drops only entries past their expiration."""
        store.set("short", 1, 1)
        store.set("long", 2, 100)

        clock.advance(2)
        removed = store.purge_expired()

        assert removed == 1
        assert len(store) == 1
        assert store.get("long") == 2

    def test_get_returns_stored_object(self, store):
        """Test that structured values come back unchanged."""
        value = {"txt": "hhh", "status": 1}
        store.set("key3", value, 10)

        assert store.get("key3") == {"txt": "hhh", "status": 1}

    def test_concurrent_sets_on_disjoint_keys(self, store):
        """Test that concurrent writers never lose an update."""
        workers = 32

        def _writer(index: int):
            for round_ in range(20):
                store.set(f"key-{index}-{round_}", index, 60)
                store.get(f"key-{index}-{round_}")

        threads = [threading.Thread(target=_writer, args=(i,)) for i in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store) == workers * 20
        for index in range(workers):
            assert store.get(f"key-{index}-19") == index

    def test_concurrent_expiry_and_reset(self, clock):
        """Test that lazy expiry never deletes a freshly re-set entry."""
        store = MemoryCacheStore(clock=clock)
        store.set("key", "stale", 1)
        clock.advance(2)

        def _reader():
            for _ in range(200):
                store.get("key")

        readers = [threading.Thread(target=_reader) for _ in range(8)]
        for thread in readers:
            thread.start()
        store.set("key", "fresh", 60)
        for thread in readers:
            thread.join()

        assert store.get("key") == "fresh"


class TestMemoryCacheSweep:
    """Test cases for the background sweep."""

    def test_sweep_removes_expired_entries(self):
        """Test that the sweep thread drops entries nobody reads."""
        clock = FakeClock()
        store = MemoryCacheStore(sweep_interval=0.01, clock=clock)
        try:
            store.set("key1", "value1", 1)
            clock.advance(2)

            deadline = time.monotonic() + 2
            while len(store) and time.monotonic() < deadline:
                time.sleep(0.01)

            assert len(store) == 0
        finally:
            store.close()

    def test_close_stops_sweeper(self):
        """Test that close joins the sweep thread."""
        store = MemoryCacheStore(sweep_interval=0.01)

        store.close()

        assert store._sweeper is None

    def test_no_sweeper_by_default(self):
        """Test that the store does not start a thread unless asked to."""
        store = MemoryCacheStore()

        assert store._sweeper is None


class TestReadWriteLock:
    """Test cases for ReadWriteLock."""

    def test_readers_share_the_lock(self):
        """Test that two readers can hold the lock at once."""
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=2)

        def _reader():
            with lock.read():
                inside.wait()

        threads = [threading.Thread(target=_reader) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=3)

        assert not inside.broken

    def test_writer_excludes_readers(self):
        """Test that a reader waits while a writer holds the lock."""
        lock = ReadWriteLock()
        events = []
        writer_in = threading.Event()
        release = threading.Event()

        def _writer():
            with lock.write():
                writer_in.set()
                release.wait(2)
                events.append("writer-done")

        def _reader():
            writer_in.wait(2)
            with lock.read():
                events.append("reader")

        writer = threading.Thread(target=_writer)
        reader = threading.Thread(target=_reader)
        writer.start()
        reader.start()
        time.sleep(0.05)
        release.set()
        writer.join(timeout=3)
        reader.join(timeout=3)

        assert events == ["writer-done", "reader"]
