"""
Redis cache for stock snapshots.

The sold-quantities map is read on every cart mutation and changes only when an
order is written, so it is kept in a Redis hash (product id -> units sold) with a
short TTL. Every failure degrades to a database read; Redis is never required.
"""

import logging
from typing import Callable, Dict, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)

# Stored in an otherwise empty snapshot so "nothing sold yet" is still a hit
EMPTY_MARKER = '__empty__'


class CacheService:
    """
    Redis hashes keyed ``{prefix}:{name}``.

    Disabled (every call falls through to the loader) when CACHE_ENABLED is off
    or the server cannot be reached at startup.
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.enabled = False
        self.prefix = 'pos'
        self.ttl = 30

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.enabled = app.config.get('CACHE_ENABLED', True)
        self.prefix = app.config.get('CACHE_KEY_PREFIX', 'pos')
        self.ttl = app.config.get('CACHE_STOCK_TTL', 30)

        if not self.enabled:
            logger.info("[CACHE] Stock cache disabled via config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://localhost:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unavailable ({e}), stock cache disabled")
            self.enabled = False
            self.client = None

    def key(self, name: str) -> str:
        return f"{self.prefix}:{name}"

    def get_counts(self, name: str) -> Optional[Dict[int, int]]:
        """Cached counts, or None on a miss or any Redis error."""
        if not self.enabled:
            return None
        try:
            raw = self.client.hgetall(self.key(name))
        except RedisError as e:
            logger.warning(f"[CACHE] Read failed for {name}: {e}")
            return None
        if not raw:
            return None
        return {int(k): int(v) for k, v in raw.items() if k != EMPTY_MARKER}

    def set_counts(self, name: str, counts: Dict[int, int]) -> None:
        if not self.enabled:
            return
        mapping = {str(k): int(v) for k, v in counts.items()} or {EMPTY_MARKER: 0}
        key = self.key(name)
        try:
            pipe = self.client.pipeline()
            pipe.delete(key)
            pipe.hset(key, mapping=mapping)
            pipe.expire(key, self.ttl)
            pipe.execute()
        except RedisError as e:
            logger.warning(f"[CACHE] Write failed for {name}: {e}")

    def counts(self, name: str, loader: Callable[[], Dict[int, int]]) -> Dict[int, int]:
        """Cache-aside read of a counts map."""
        cached = self.get_counts(name)
        if cached is not None:
            return cached
        counts = loader()
        self.set_counts(name, counts)
        return counts

    def invalidate(self, name: str) -> None:
        if not self.enabled:
            return
        try:
            self.client.delete(self.key(name))
            logger.info(f"[CACHE] Invalidated {self.key(name)}")
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate failed for {name}: {e}")


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['stock_cache'] = _cache_service


def get_cache() -> Optional[CacheService]:
    """The app's cache, or None outside an initialized app."""
    return _cache_service
