import pytest

from funnel.cache import RateLimiter, TTLCache


class _Clock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_entries_expire_after_ttl() -> None:
    clock = _Clock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set("recs", [1, 2])

    clock.advance(60)
    assert cache.get("recs") == [1, 2]

    clock.advance(0.5)
    assert cache.get("recs") is None
    assert "recs" not in cache


def test_writing_past_capacity_evicts_oldest_entries() -> None:
    clock = _Clock()
    cache = TTLCache(ttl_seconds=3600, capacity=100, clock=clock)
    for index in range(101):
        cache.set(f"key-{index}", index)
        clock.advance(1)

    assert len(cache) <= 100
    assert cache.get("key-100") == 100
    assert cache.get("key-0") is None
    assert cache.get("key-9") is None
    assert cache.get("key-10") == 10


def test_overwriting_a_key_at_capacity_does_not_evict() -> None:
    clock = _Clock()
    cache = TTLCache(ttl_seconds=3600, capacity=3, eviction_batch=10, clock=clock)
    for key in ("a", "b", "c"):
        cache.set(key, key)
        clock.advance(1)
    cache.set("a", "again")
    assert len(cache) == 3
    assert cache.get("a") == "again"


def test_small_cache_keeps_most_recent_key() -> None:
    clock = _Clock()
    cache = TTLCache(ttl_seconds=3600, capacity=5, eviction_batch=10, clock=clock)
    for index in range(6):
        cache.set(str(index), index)
        clock.advance(1)
    assert len(cache) <= 5
    assert cache.get("5") == 5


def test_clear_empties_the_cache() -> None:
    cache = TTLCache(ttl_seconds=60)
    cache.set("a", 1)
    cache.clear()
    assert len(cache) == 0


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=60, capacity=0)


def test_rate_limiter_allows_100_then_denies_until_window_resets() -> None:
    clock = _Clock()
    limiter = RateLimiter(max_requests=100, window_seconds=3600, clock=clock)

    assert all(limiter.check("10.0.0.1") for _ in range(100))
    assert limiter.check("10.0.0.1") is False

    clock.advance(1800)
    assert limiter.check("10.0.0.1") is False

    clock.advance(1801)
    assert limiter.check("10.0.0.1") is True


def test_rate_limits_are_per_client() -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=3600, clock=_Clock())
    assert limiter.check("a") is True
    assert limiter.check("a") is False
    assert limiter.check("b") is True


def test_sweep_drops_only_expired_buckets() -> None:
    clock = _Clock()
    limiter = RateLimiter(max_requests=5, window_seconds=100, clock=clock)
    limiter.check("old")
    clock.advance(50)
    limiter.check("new")
    clock.advance(51)

    assert limiter.sweep() == 1
    assert len(limiter) == 1
    # sweeping never changes the outcome of a check
    assert limiter.check("old") is True


def test_sweeper_thread_starts_and_stops() -> None:
    limiter = RateLimiter()
    limiter.start_sweeper(interval_seconds=3600)
    limiter.stop_sweeper()
    assert limiter._sweeper is None
