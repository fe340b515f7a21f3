"""Redis implementation of CacheStore.

Stores whole API responses as JSON strings with a TTL, and fixed-window
rate-limit counters. Every redis failure surfaces as CacheUnavailableError
so callers can degrade to "no cache".
"""

import json
import logging
from typing import Any

import redis

from chapter_dashboard.config import Settings, get_redis_client
from chapter_dashboard.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)

# Keys deleted per DEL call during pattern invalidation
DELETE_BATCH_SIZE = 500


class RedisCacheRepository:
    """Redis implementation of the CacheStore protocol.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance. If None, creates default.
                The client must be created with decode_responses=True.
        """
        self._client = redis_client or get_redis_client()

    @classmethod
    def create(cls, config: Settings | None = None) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository from settings."""
        return cls(redis_client=get_redis_client(config))

    def get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = self._client.get(key)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Cache get failed for {key}: {e}") from e

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Corrupt entry; drop it and treat as a miss
            logger.warning("Discarding undecodable cache entry %s", key)
            self.delete(key)
            return None

    def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        try:
            self._client.set(key, json.dumps(value, default=str), ex=ttl)
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Cache set failed for {key}: {e}") from e

    def delete(self, key: str) -> bool:
        try:
            result: int = self._client.delete(key)  # type: ignore[assignment]
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Cache delete failed for {key}: {e}") from e
        return result > 0

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching pattern.

        Uses SCAN rather than KEYS so large keyspaces do not block the server.
        """
        deleted = 0
        batch: list[str] = []
        try:
            for key in self._client.scan_iter(match=pattern, count=DELETE_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= DELETE_BATCH_SIZE:
                    deleted += self._client.delete(*batch)  # type: ignore[operator]
                    batch = []
            if batch:
                deleted += self._client.delete(*batch)  # type: ignore[operator]
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Cache pattern delete failed for {pattern}: {e}") from e
        return deleted

    def increment_window(self, key: str, window: int) -> tuple[int, int]:
        """Increment a fixed-window counter.

        The expiry is only set by the first hit of a window (EXPIRE NX), so
        later hits never extend it.
        """
        try:
            pipe = self._client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window, nx=True)
            pipe.ttl(key)
            count, _, ttl = pipe.execute()

            # -1 means the key lost its expiry somehow; restart the window
            if ttl is None or ttl < 0:
                self._client.expire(key, window)
                ttl = window
        except redis.RedisError as e:
            raise CacheUnavailableError(f"Rate counter update failed for {key}: {e}") from e
        return int(count), int(ttl)

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        self._client.close()

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
