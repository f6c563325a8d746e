import threading

from cache import ThumbnailCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_miss_then_hit():
    cache = ThumbnailCache(max_entries=4)
    assert cache.get("k") is None
    cache.put("k", b"bytes")
    assert cache.get("k") == b"bytes"
    assert "k" in cache


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = ThumbnailCache(max_entries=4, default_ttl=60, clock=clock)
    cache.put("short", b"s", ttl=10)
    cache.put("default", b"d")

    clock.now += 30
    assert cache.get("short") is None
    assert cache.get("default") == b"d"

    clock.now += 31
    assert cache.get("default") is None
    assert len(cache) == 0


def test_least_recently_used_entry_is_evicted():
    cache = ThumbnailCache(max_entries=2)
    cache.put("a", b"1")
    cache.put("b", b"2")
    cache.get("a")
    cache.put("c", b"3")

    assert cache.get("b") is None
    assert cache.get("a") == b"1"
    assert cache.get("c") == b"3"


def test_overwrite_does_not_grow():
    cache = ThumbnailCache(max_entries=2)
    cache.put("a", b"1")
    cache.put("a", b"2")
    assert len(cache) == 1
    assert cache.get("a") == b"2"


def test_clear():
    cache = ThumbnailCache()
    cache.put("a", b"1")
    cache.clear()
    assert len(cache) == 0


def test_concurrent_puts_respect_capacity():
    cache = ThumbnailCache(max_entries=50)

    def fill(prefix: str):
        for i in range(200):
            cache.put(f"{prefix}-{i}", b"x")
            cache.get(f"{prefix}-{i // 2}")

    threads = [threading.Thread(target=fill, args=(str(n),)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 50
