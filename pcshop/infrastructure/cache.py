"""Response cache for public catalog listings.

Redis when REDIS_URL is configured and reachable, otherwise an in-process
TTL cache. Cache failures never break a request.
"""

import json
from functools import lru_cache
from typing import Any, Optional

import redis
from cachetools import TTLCache

from pcshop.core_settings import get_settings
from pcshop.core.logging_config import get_logger

logger = get_logger(__name__)

class ResponseCache:
    def __init__(self, redis_url: Optional[str] = None, ttl: int = 60):
        self.ttl = ttl
        self.local_cache = TTLCache(maxsize=1024, ttl=ttl)
        self.redis_client: Optional[redis.Redis] = None
        if redis_url:
            try:
                self.redis_client = redis.from_url(redis_url, decode_responses=True)
                self.redis_client.ping()
            except redis.RedisError as e:
                logger.warning(f"Redis unavailable, using local cache: {e}")
                self.redis_client = None

    def get(self, key: str) -> Optional[Any]:
        if self.redis_client:
            try:
                val = self.redis_client.get(key)
                if val is not None:
                    return json.loads(val)
            except redis.RedisError as e:
                logger.warning(f"Cache read failed for {key}: {e}")
        return self.local_cache.get(key)

    def set(self, key: str, value: Any) -> None:
        if self.redis_client:
            try:
                self.redis_client.setex(key, self.ttl, json.dumps(value, default=str))
                return
            except redis.RedisError as e:
                logger.warning(f"Cache write failed for {key}: {e}")
        self.local_cache[key] = value

    def delete_prefix(self, prefix: str) -> None:
        for key in tuple(self.local_cache.keys()):
            if key.startswith(prefix):
                self.local_cache.pop(key, None)
        if self.redis_client:
            try:
                for key in self.redis_client.scan_iter(match=f"{prefix}*"):
                    self.redis_client.delete(key)
            except redis.RedisError as e:
                logger.warning(f"Cache purge failed for {prefix}: {e}")

    def clear(self) -> None:
        self.local_cache.clear()

@lru_cache
def get_cache() -> ResponseCache:
    settings = get_settings()
    return ResponseCache(settings.REDIS_URL, settings.PUBLIC_CACHE_TTL)
