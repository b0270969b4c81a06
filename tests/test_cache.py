import asyncio

import pytest

from ideaboard.core.config import get_settings
from ideaboard.infrastructure.cache.redis_cache import RedisCache


class _MemoryPipeline:
    def __init__(self, client):
        self._client = client
        self._calls = []

    def __getattr__(self, name):
        def _queue(*args, **kwargs):
            self._calls.append((name, args, kwargs))
            return self

        return _queue

    async def execute(self):
        results = []
        for name, args, kwargs in self._calls:
            results.append(await getattr(self._client, name)(*args, **kwargs))
        return results


class _MemoryRedis:
    """Just enough of the redis.asyncio client for the cache."""

    def __init__(self):
        self.values = {}
        self.sets = {}

    async def get(self, key):
        return self.values.get(key)

    async def mget(self, keys):
        return [self.values.get(key) for key in keys]

    async def set(self, key, value, ex=None):
        self.values[key] = value

    async def incr(self, key):
        self.values[key] = str(int(self.values.get(key, 0)) + 1)
        return int(self.values[key])

    async def expire(self, key, seconds):
        return True

    async def sadd(self, key, member):
        self.sets.setdefault(key, set()).add(member)

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    async def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)
            self.sets.pop(key, None)

    def pipeline(self):
        return _MemoryPipeline(self)


@pytest.fixture
def store(monkeypatch):
    monkeypatch.setenv("BACKEND_CACHE_ENABLED", "true")
    get_settings.cache_clear()
    cache = RedisCache()
    cache._redis = _MemoryRedis()
    yield cache
    get_settings.cache_clear()


def test_cached_listing_is_served_until_invalidated(store):
    async def scenario():
        tags = {store.project_tag(1), store.user_tag(7)}
        key = await store.versioned_key("suggestions", {"project_id": 1}, tags=tags)
        await store.set_json(key=key, value=[{"score": 2}], ttl_seconds=30, tags=tags)
        hit = await store.get_json(key)
        await store.invalidate_tags(store.project_tag(1))
        after = await store.get_json(
            await store.versioned_key("suggestions", {"project_id": 1}, tags=tags)
        )
        return hit, after

    hit, after = asyncio.run(scenario())

    assert hit == [{"score": 2}]
    assert after is None


def test_listing_read_before_a_write_is_never_served_after_it(store):
    async def scenario():
        tags = {store.project_tag(1), store.user_tag(7)}
        key_before_write = await store.versioned_key(
            "suggestions", {"project_id": 1}, tags=tags
        )
        # A vote commits and invalidates while the listing is still being read.
        await store.invalidate_tags(store.project_tag(1))
        await store.set_json(
            key=key_before_write, value=[{"score": 0}], ttl_seconds=30, tags=tags
        )
        key_after_write = await store.versioned_key(
            "suggestions", {"project_id": 1}, tags=tags
        )
        return key_before_write, key_after_write, await store.get_json(key_after_write)

    key_before_write, key_after_write, cached = asyncio.run(scenario())

    assert key_before_write != key_after_write
    assert cached is None


def test_invalidating_another_project_keeps_the_listing(store):
    async def scenario():
        tags = {store.project_tag(1)}
        key = await store.versioned_key("backlog", {"project_id": 1}, tags=tags)
        await store.set_json(key=key, value=[], ttl_seconds=30, tags=tags)
        await store.invalidate_tags(store.project_tag(2))
        return await store.get_json(
            await store.versioned_key("backlog", {"project_id": 1}, tags=tags)
        )

    assert asyncio.run(scenario()) == []
