from ideaboard.infrastructure.cache.redis_cache import RedisCache, cache

__all__ = ["RedisCache", "cache"]
