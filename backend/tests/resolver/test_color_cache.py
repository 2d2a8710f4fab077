import threading
import time

import pytest

from colorfeed.resolver.errors import ErrorKind
from colorfeed.resolver.models import ColorResult
from colorfeed.resolver.utils.cache import ColorCache
from colorfeed.resolver.utils.rwlock import ReadWriteLock


def ok(url: str, hex_value: str = "#ff0000") -> ColorResult:
    return ColorResult(url=url, hex=hex_value, xterm=9)


def test_cache_miss_returns_not_found():
    """When a URL was never added, get() reports a miss"""
    cache = ColorCache(capacity=2)
    assert cache.get("https://upload.test/missing.png") == (None, False)


def test_cache_hit_returns_identical_result():
    """A hit hands back the very object that was stored"""
    cache = ColorCache(capacity=2)
    stored = ok("a")
    cache.add("a", stored)

    result, found = cache.get("a")
    assert found is True
    assert result is stored


def test_insert_past_capacity_evicts_oldest_inserted():
    """C+1 distinct inserts drop exactly the first URL inserted"""
    cache = ColorCache(capacity=3)
    for url in ["a", "b", "c"]:
        assert cache.add(url, ok(url)) is None

    evicted = cache.add("d", ok("d"))

    assert evicted == "a"
    assert len(cache) == 3
    assert cache.get("a") == (None, False)
    for url in ["b", "c", "d"]:
        assert cache.get(url)[1] is True


def test_reads_do_not_refresh_eviction_order():
    """Eviction is FIFO by insertion, not LRU"""
    cache = ColorCache(capacity=2)
    cache.add("a", ok("a"))
    cache.add("b", ok("b"))

    # Touch "a" repeatedly; it is still the oldest insertion
    for _ in range(5):
        cache.get("a")

    assert cache.add("c", ok("c")) == "a"
    assert "b" in cache
    assert "c" in cache


def test_readding_existing_url_keeps_rank_and_size():
    """Re-adding replaces the value without evicting anything"""
    cache = ColorCache(capacity=2)
    cache.add("a", ok("a", "#000001"))
    cache.add("b", ok("b"))

    assert cache.add("a", ok("a", "#000002")) is None
    assert len(cache) == 2
    assert cache.get("a")[0].hex == "#000002"

    # "a" kept its original (oldest) position
    assert cache.add("c", ok("c")) == "a"


def test_cache_never_exceeds_capacity():
    cache = ColorCache(capacity=5)
    for i in range(50):
        cache.add(f"url{i}", ok(f"url{i}"))
        assert len(cache) <= 5
    assert cache.stats.evictions == 45


def test_failed_results_are_not_cached():
    """Transient failures must be retried, so they are refused"""
    cache = ColorCache(capacity=2)
    failed = ColorResult(url="a", error_kind=ErrorKind.TRANSPORT, error="timeout")

    with pytest.raises(ValueError):
        cache.add("a", failed)
    assert "a" not in cache


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ColorCache(capacity=0)


def test_snapshot_returns_oldest_first_with_limit():
    cache = ColorCache(capacity=10)
    for url in ["a", "b", "c"]:
        cache.add(url, ok(url))

    assert [r.url for r in cache.snapshot()] == ["a", "b", "c"]
    assert [r.url for r in cache.snapshot(limit=2)] == ["a", "b"]


def test_stats_count_hits_and_misses():
    cache = ColorCache(capacity=2)
    cache.add("a", ok("a"))
    cache.get("a")
    cache.get("a")
    cache.get("b")

    stats = cache.stats
    assert stats.hits == 2
    assert stats.misses == 1


def test_clear_empties_cache():
    cache = ColorCache(capacity=2)
    cache.add("a", ok("a"))
    cache.clear()
    assert len(cache) == 0


def test_rwlock_allows_concurrent_readers():
    """Two readers can hold the lock at the same time"""
    lock = ReadWriteLock()
    both_inside = threading.Barrier(2, timeout=2)
    errors = []

    def reader():
        with lock.read_locked():
            try:
                both_inside.wait()
            except threading.BrokenBarrierError as e:
                errors.append(e)

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert errors == []


def test_rwlock_writer_excludes_readers():
    """A reader waits until the writer releases"""
    lock = ReadWriteLock()
    events = []

    lock.acquire_write()

    def reader():
        with lock.read_locked():
            events.append("read")

    t = threading.Thread(target=reader)
    t.start()
    time.sleep(0.05)
    events.append("write-done")
    lock.release_write()
    t.join(timeout=5)

    assert events == ["write-done", "read"]


def test_concurrent_adds_respect_capacity():
    cache = ColorCache(capacity=50)

    def writer(prefix):
        for i in range(200):
            cache.add(f"{prefix}-{i}", ok(f"{prefix}-{i}"))
            cache.get(f"{prefix}-{i}")

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(cache) == 50
    assert cache.stats.evictions == 800 - 50


def test_concurrent_reads_count_every_hit_and_miss():
    cache = ColorCache(capacity=10)
    cache.add("present", ok("present"))

    def reader():
        for _ in range(2000):
            cache.get("present")
            cache.get("absent")

    threads = [threading.Thread(target=reader) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    stats = cache.stats
    assert stats.hits == 16000
    assert stats.misses == 16000
