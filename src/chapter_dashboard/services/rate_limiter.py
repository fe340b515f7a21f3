"""Fixed-window rate limiting backed by the shared cache store.

Counters live in the cache store, not in process memory, so every service
instance sees the same budget for a given client.
"""

import logging
from dataclasses import dataclass

from chapter_dashboard.config import settings
from chapter_dashboard.exceptions import CacheUnavailableError, RateLimitError
from chapter_dashboard.protocols import CacheStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit"


@dataclass(frozen=True)
class RateLimitStatus:
    """Budget state after counting one request."""

    limit: int
    count: int
    reset_after: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }


class RateLimiter:
    """Counts requests per identity within fixed windows.

    Example:
        ```python
        general = RateLimiter(store, limit=30)
        admin = RateLimiter(store, limit=100, identity_prefix="admin_")

        general.hit("10.0.0.1")   # counted under ratelimit:10.0.0.1
        admin.hit("10.0.0.1")     # counted under ratelimit:admin_10.0.0.1
        ```
    """

    def __init__(
        self,
        store: CacheStore,
        limit: int,
        window: int | None = None,
        identity_prefix: str = "",
        message: str = "Too many requests from this IP, please try again after a minute.",
    ) -> None:
        """Initialize the rate limiter.

        Args:
            store: Cache storage backend holding the counters (required).
            limit: Requests allowed per identity per window.
            window: Window length in seconds. Defaults to settings.
            identity_prefix: Prepended to identities, keeping budgets apart.
            message: Message carried by the RateLimitError.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self._store = store
        self._limit = limit
        self._window = window or settings.rate_limit_window
        self._prefix = identity_prefix
        self._message = message

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window(self) -> int:
        return self._window

    def key_for(self, identity: str) -> str:
        return f"{KEY_PREFIX}:{self._prefix}{identity}"

    def hit(self, identity: str) -> RateLimitStatus | None:
        """Count one request for identity.

        Returns:
            The budget state, or None if the cache store is unavailable
            (requests are allowed through in that case)

        Raises:
            RateLimitError: If this request exceeds the budget
        """
        try:
            count, ttl = self._store.increment_window(self.key_for(identity), self._window)
        except CacheUnavailableError as e:
            logger.warning("Rate limiting skipped for %s: %s", identity, e)
            return None

        reset_after = min(max(ttl, 1), self._window)
        if count > self._limit:
            logger.warning("Rate limit exceeded for %s%s", self._prefix, identity)
            raise RateLimitError(self._message, retry_after=reset_after)
        return RateLimitStatus(limit=self._limit, count=count, reset_after=reset_after)
