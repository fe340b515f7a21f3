"""Cache storage protocol.

Defines the interface for the key-value store that holds serialized API
responses and rate-limit counters.

Implementations can include:
- Redis (default)
- Any key-value store with per-key expiry and pattern scans
- In-memory stores for tests
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache storage backends.

    Any type that implements these methods satisfies the protocol, no
    explicit inheritance needed. Every method raises CacheUnavailableError
    when the backend fails; callers decide whether to absorb it.
    """

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the structured value stored under key, or None."""
        ...

    def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        """Store a structured value under key for ttl seconds."""
        ...

    def delete(self, key: str) -> bool:
        """Delete one key. Returns True if it existed."""
        ...

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob-style pattern.

        Returns:
            Number of keys deleted
        """
        ...

    def increment_window(self, key: str, window: int) -> tuple[int, int]:
        """Increment a counter that expires window seconds after its first hit.

        Returns:
            Tuple (count after increment, seconds until the counter expires)
        """
        ...

    def health_check(self) -> bool:
        """Check if the backend is reachable."""
        ...

    def close(self) -> None:
        """Release connections."""
        ...
