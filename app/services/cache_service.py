"""
Redis Cache Service.

Every sales officer prices against the same catalog, so the snapshot is
built once and shared through Redis. Any Redis failure degrades to a
direct DB read; the cache never blocks order capture.
"""

import logging
import json
from typing import Any, Optional, Callable
from decimal import Decimal

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask, current_app

logger = logging.getLogger(__name__)


def _encode(value: Any) -> str:
    def default(obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return {"__decimal__": str(obj)}
        raise TypeError(f"Cannot cache value of type {type(obj).__name__}")
    return json.dumps(value, default=default)


def _decode(raw: str) -> Any:
    def object_hook(dct):
        if "__decimal__" in dct:
            return Decimal(dct["__decimal__"])
        return dct
    return json.loads(raw, object_hook=object_hook)


class CacheService:
    """
    Redis-backed cache for shared read models.

    Keys: {prefix}:{namespace}:v{version}:{key}. Bumping a namespace
    version orphans every key under it, old entries expire by TTL.
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled = False
        self._prefix = "field_orders"

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Connect using REDIS_URL; stay disabled when Redis is unreachable."""
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', self._prefix)

        if not self._enabled:
            logger.info("[CACHE] Disabled via config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[CACHE] Redis unavailable ({e}), catalog reads go to the DB")
            self._enabled = False
            self.client = None

    @property
    def enabled(self) -> bool:
        return self._enabled and self.client is not None

    def _version_key(self, namespace: str) -> str:
        return f"{self._prefix}:{namespace}:version"

    def _namespace_version(self, namespace: str) -> int:
        raw = self.client.get(self._version_key(namespace))
        return int(raw) if raw else 0

    def _build_key(self, namespace: str, key: str) -> str:
        return f"{self._prefix}:{namespace}:v{self._namespace_version(namespace)}:{key}"

    def get(self, namespace: str, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self._build_key(namespace, key))
            return None if raw is None else _decode(raw)
        except (RedisError, json.JSONDecodeError) as e:
            logger.warning(f"[CACHE] Read failed for {namespace}:{key}: {e}")
            return None

    def set(self, namespace: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        if ttl is None:
            ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
        try:
            self.client.setex(self._build_key(namespace, key), ttl, _encode(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write failed for {namespace}:{key}: {e}")
            return False

    def bump_version(self, namespace: str) -> bool:
        """Invalidate everything cached under `namespace`."""
        if not self.enabled:
            return False
        try:
            version = self.client.incr(self._version_key(namespace))
            logger.info(f"[CACHE] {namespace} moved to version {version}")
            return True
        except RedisError as e:
            logger.warning(f"[CACHE] Could not invalidate {namespace}: {e}")
            return False

    def memoize(self, namespace: str, key: str, loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Cache-aside read. Loader errors propagate, cache errors never do."""
        from app.blueprints.metrics import cache_requests_total

        cached = self.get(namespace, key)
        if cached is not None:
            cache_requests_total.labels(namespace=namespace, result='hit').inc()
            return cached

        cache_requests_total.labels(namespace=namespace, result='miss').inc()
        value = loader_fn()
        self.set(namespace, key, value, ttl)
        return value


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service
