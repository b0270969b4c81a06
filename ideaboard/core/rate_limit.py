from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict, deque

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ideaboard.core.config import BackendSettings, get_settings

logger = logging.getLogger(__name__)


class RequestRateLimiter:
    """Fixed-window counters in Redis, falling back to per-process sliding windows."""

    def __init__(self, settings: BackendSettings | None = None) -> None:
        self._settings = settings
        self._redis: Redis | None = None
        self._local_lock = asyncio.Lock()
        self._local_windows: dict[tuple[str, ...], deque[float]] = defaultdict(deque)

    @property
    def settings(self) -> BackendSettings:
        return self._settings or get_settings()

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def check_limit(
        self,
        *,
        scope: str,
        identity: str,
        limit: int,
        window_seconds: int,
    ) -> tuple[bool, int]:
        if limit <= 0:
            return False, 0

        count = await self._incr_redis(
            kind="rl",
            scope=scope,
            identity=identity,
            window_seconds=window_seconds,
        )
        if count is None:
            count = await self._incr_local(
                key=(scope, identity),
                window_seconds=window_seconds,
            )
        return count <= limit, count

    async def record_authz_failure(
        self,
        *,
        scope: str,
        identity: str,
        window_seconds: int,
    ) -> int:
        count = await self._incr_redis(
            kind="authzfail",
            scope=scope,
            identity=identity,
            window_seconds=window_seconds,
        )
        if count is not None:
            return count
        return await self._incr_local(
            key=("authzfail", scope, identity),
            window_seconds=window_seconds,
        )

    async def _client(self) -> Redis:
        if self._redis is None:
            self._redis = Redis.from_url(self.settings.REDIS_URL, decode_responses=True)
        return self._redis

    async def _incr_redis(
        self,
        *,
        kind: str,
        scope: str,
        identity: str,
        window_seconds: int,
    ) -> int | None:
        bucket = int(time.time() // max(1, window_seconds))
        key = (
            f"{self.settings.BACKEND_REDIS_KEY_PREFIX}:{kind}:{scope}:"
            f"{_sanitize_identity(identity)}:{bucket}"
        )
        try:
            redis = await self._client()
            count = int(await redis.incr(key))
            if count == 1:
                await redis.expire(key, max(2, window_seconds + 2))
            return count
        except (RedisError, OSError) as exc:
            logger.debug("Rate limiter falling back to local window: %s", exc)
            return None

    async def _incr_local(
        self,
        *,
        key: tuple[str, ...],
        window_seconds: int,
    ) -> int:
        now = time.time()
        cutoff = now - max(1, window_seconds)
        async with self._local_lock:
            queue = self._local_windows[key]
            while queue and queue[0] < cutoff:
                queue.popleft()
            queue.append(now)
            return len(queue)


def _sanitize_identity(value: str) -> str:
    return value.replace(":", "_").replace("/", "_")


rate_limiter = RequestRateLimiter()
