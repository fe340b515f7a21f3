"""Read-through cache for whole API responses.

Read endpoints are wrapped with ResponseCache.cached(), which returns a new
response-producing function: on a hit the stored payload is returned, on a
miss the wrapped function runs and its payload is stored if it represents
a success. The cache is strictly optional; a failing cache store only means
every request is a miss.
"""

import functools
import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar
from urllib.parse import urlencode

from chapter_dashboard.config import settings
from chapter_dashboard.exceptions import CacheUnavailableError
from chapter_dashboard.protocols import CacheStore

logger = logging.getLogger(__name__)

Payload = dict[str, Any]
F = TypeVar("F", bound=Callable[..., Payload])


class ResponseCache:
    """Caches serialized responses under a single key namespace.

    Every key starts with "<namespace>:" so one pattern delete invalidates
    all cached responses for the resource.

    Example:
        ```python
        cache = ResponseCache(store=RedisCacheRepository.create())

        get_stats = cache.cached(ttl=1800)(compute_stats)
        key = cache.build_key("/api/v1/chapters/stats")
        payload = get_stats(key)
        ```
    """

    def __init__(
        self,
        store: CacheStore,
        namespace: str | None = None,
        default_ttl: int | None = None,
        expose_keys: bool = False,
    ) -> None:
        """Initialize the response cache.

        Args:
            store: Cache storage backend (required).
            namespace: Key prefix for this resource. Defaults to settings.
            default_ttl: TTL in seconds when cached() gets none. Defaults to settings.
            expose_keys: Add "cacheKey" to cache hits (development aid).
        """
        self._store = store
        self._namespace = namespace or settings.cache_namespace
        self._default_ttl = default_ttl or settings.cache_ttl
        self._expose_keys = expose_keys

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def pattern(self) -> str:
        """Glob pattern matching every key in the namespace."""
        return f"{self._namespace}:*"

    def build_key(self, path: str, params: Iterable[tuple[str, Any]] = ()) -> str:
        """Deterministic cache key for a GET request.

        Parameters are sorted, so their order in the request never matters.
        """
        key = f"{self._namespace}:GET:{path}"
        pairs = sorted((str(name), str(value)) for name, value in params)
        if pairs:
            key = f"{key}?{urlencode(pairs)}"
        return key

    def lookup(self, key: str) -> Payload | None:
        try:
            return self._store.get(key)
        except CacheUnavailableError as e:
            logger.warning("Cache lookup skipped: %s", e)
            return None

    def store(self, key: str, payload: Payload, ttl: int | None = None) -> bool:
        """Store a payload if it represents a success. Returns True if stored."""
        if payload.get("status") != "success":
            return False
        try:
            self._store.set(key, payload, ttl or self._default_ttl)
        except CacheUnavailableError as e:
            logger.warning("Cache store skipped: %s", e)
            return False
        return True

    def cached(self, ttl: int | None = None) -> Callable[[F], Callable[..., Payload]]:
        """Decorator adding read-through caching to a payload-producing function.

        The wrapped function takes the cache key as an extra first argument;
        the remaining arguments are passed through on a miss.
        """

        def decorator(func: F) -> Callable[..., Payload]:
            @functools.wraps(func)
            def wrapper(cache_key: str, *args: Any, **kwargs: Any) -> Payload:
                hit = self.lookup(cache_key)
                if hit is not None:
                    logger.debug("Cache hit for key: %s", cache_key)
                    hit["cached"] = True
                    if self._expose_keys:
                        hit["cacheKey"] = cache_key
                    return hit

                logger.debug("Cache miss for key: %s", cache_key)
                payload = func(*args, **kwargs)
                self.store(cache_key, payload, ttl)
                return payload

            return wrapper

        return decorator

    def invalidate(self) -> int:
        """Delete every cached response in the namespace.

        Returns:
            Number of entries deleted (0 if the cache is unavailable)
        """
        try:
            deleted = self._store.delete_pattern(self.pattern)
        except CacheUnavailableError as e:
            logger.warning("Cache invalidation failed for %s: %s", self.pattern, e)
            return 0
        logger.info("Cleared %d cache entries matching pattern: %s", deleted, self.pattern)
        return deleted
