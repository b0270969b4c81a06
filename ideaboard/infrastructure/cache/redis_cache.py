from __future__ import annotations

import json
import logging
from collections.abc import Mapping

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ideaboard.core.config import BackendSettings, get_settings

logger = logging.getLogger(__name__)

GENERATION_TTL_SECONDS = 86_400


class RedisCache:
    """Read-through JSON cache for listings, invalidated by project tags.

    Cache failures never fail a request: a broken Redis degrades to a miss.
    """

    def __init__(self):
        self._redis: Redis | None = None

    @property
    def settings(self) -> BackendSettings:
        return get_settings()

    @property
    def enabled(self) -> bool:
        return bool(self.settings.BACKEND_CACHE_ENABLED)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def get_json(self, key: str):
        if not self.enabled:
            return None
        try:
            client = await self._client()
            raw = await client.get(key)
        except (RedisError, OSError) as exc:
            logger.debug("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    async def set_json(
        self,
        *,
        key: str,
        value,
        ttl_seconds: int,
        tags: set[str] | None = None,
    ) -> None:
        if not self.enabled:
            return
        ttl = max(1, int(ttl_seconds))
        payload = json.dumps(value, separators=(",", ":"), default=str)
        try:
            client = await self._client()
            await client.set(key, payload, ex=ttl)
            if tags:
                pipe = client.pipeline()
                for tag in tags:
                    tag_key = self._tag_key(tag)
                    pipe.sadd(tag_key, key)
                    pipe.expire(tag_key, max(ttl + 300, 300))
                await pipe.execute()
        except (RedisError, OSError) as exc:
            logger.debug("Cache write failed for %s: %s", key, exc)

    async def versioned_key(
        self,
        scope: str,
        params: Mapping[str, object] | None = None,
        *,
        tags: set[str],
    ) -> str:
        """Build a key stamped with the current generation of each tag.

        Invalidation bumps the generations, so a listing read before a write but
        stored after it lands under a key that later reads never ask for.
        """
        stamped = dict(params or {})
        stamped["gen"] = ".".join(str(value) for value in await self._generations(tags))
        return self.build_key(scope, stamped)

    async def invalidate_tags(self, *tags: str) -> None:
        if not self.enabled:
            return
        cleaned = {tag.strip() for tag in tags if tag and tag.strip()}
        if not cleaned:
            return
        try:
            client = await self._client()
            pipe = client.pipeline()
            for tag in cleaned:
                pipe.incr(self._generation_key(tag))
                pipe.expire(self._generation_key(tag), GENERATION_TTL_SECONDS)
            await pipe.execute()
            for tag in cleaned:
                tag_key = self._tag_key(tag)
                keys = await client.smembers(tag_key)
                if keys:
                    await client.delete(*keys)
                await client.delete(tag_key)
        except (RedisError, OSError) as exc:
            logger.warning("Cache invalidation failed for tags %s: %s", sorted(cleaned), exc)

    def build_key(self, scope: str, params: Mapping[str, object] | None = None) -> str:
        prefix = self.settings.BACKEND_CACHE_PREFIX
        if not params:
            return f"{prefix}:{scope}"
        encoded = "&".join(
            f"{key}={self._encode_param(value)}" for key, value in sorted(params.items())
        )
        return f"{prefix}:{scope}:{encoded}"

    @staticmethod
    def project_tag(project_id: int) -> str:
        return f"project:{project_id}"

    @staticmethod
    def user_tag(user_id: int) -> str:
        return f"user:{user_id}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.settings.BACKEND_CACHE_PREFIX}:tag:{tag}"

    def _generation_key(self, tag: str) -> str:
        return f"{self.settings.BACKEND_CACHE_PREFIX}:gen:{tag}"

    async def _generations(self, tags: set[str]) -> list[int]:
        ordered = sorted(tags)
        if not self.enabled or not ordered:
            return [0] * len(ordered)
        try:
            client = await self._client()
            raw = await client.mget([self._generation_key(tag) for tag in ordered])
        except (RedisError, OSError) as exc:
            logger.debug("Cache generation read failed for %s: %s", ordered, exc)
            return [0] * len(ordered)
        return [int(value) if value else 0 for value in raw]

    async def _client(self) -> Redis:
        if self._redis is None:
            self._redis = Redis.from_url(self.settings.REDIS_URL, decode_responses=True)
        return self._redis

    @staticmethod
    def _encode_param(value: object) -> str:
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (list, tuple, set)):
            return ",".join(str(item) for item in value)
        return str(value)


cache = RedisCache()
