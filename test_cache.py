import pytest

from pharmacy_portal.services.cache import TTLCache


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestTTLCache:
    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLCache("test", max_entries=3, ttl_seconds=60, clock=self.clock)

    def test_hit_and_miss_counted(self):
        assert self.cache.get("a") is None
        self.cache.put("a", 1)

        assert self.cache.get("a") == 1
        assert self.cache.stats.hits == 1
        assert self.cache.stats.misses == 1

    def test_entry_expires_after_ttl(self):
        self.cache.put("a", 1)

        self.clock.advance(59)
        assert self.cache.get("a") == 1

        self.clock.advance(1)
        assert self.cache.get("a") is None
        assert len(self.cache) == 0

    def test_least_recently_used_entry_is_evicted(self):
        self.cache.put("a", 1)
        self.cache.put("b", 2)
        self.cache.put("c", 3)
        self.cache.get("a")

        self.cache.put("d", 4)

        assert self.cache.get("b") is None
        assert self.cache.get("a") == 1
        assert self.cache.get("d") == 4
        assert self.cache.stats.evictions == 1

    def test_invalidate_single_key(self):
        self.cache.put("a", 1)
        self.cache.put("b", 2)

        self.cache.invalidate("a")

        assert self.cache.get("a") is None
        assert self.cache.get("b") == 2

    def test_invalidate_all_clears_and_bumps_generation(self):
        self.cache.put("a", 1)
        generation = self.cache.generation

        self.cache.invalidate_all()

        assert len(self.cache) == 0
        assert self.cache.generation == generation + 1
        assert self.cache.stats.invalidations == 1

    def test_put_with_stale_generation_is_dropped(self):
        generation = self.cache.generation
        self.cache.invalidate_all()

        assert self.cache.put("a", 1, generation=generation) is False
        assert self.cache.get("a") is None

    def test_rejects_empty_capacity(self):
        with pytest.raises(ValueError):
            TTLCache("bad", max_entries=0)

    @pytest.mark.asyncio
    async def test_get_or_load_loads_once(self):
        calls = []

        async def loader():
            calls.append(1)
            return "value"

        assert await self.cache.get_or_load("k", loader) == "value"
        assert await self.cache.get_or_load("k", loader) == "value"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_load_racing_invalidation_is_not_cached(self):
        async def loader():
            # A write lands while the read is in flight
            self.cache.invalidate_all()
            return "stale"

        assert await self.cache.get_or_load("k", loader) == "stale"
        assert self.cache.get("k") is None
