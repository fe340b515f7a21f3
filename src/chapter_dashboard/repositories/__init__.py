"""Repository layer for data access.

This layer abstracts external dependencies (Redis, MongoDB) behind
protocol-based interfaces. This enables:
- Easy swapping of implementations
- Unit testing with in-memory implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from chapter_dashboard.protocols import CacheStore, ChapterStore

from .mongo_repository import MongoChapterRepository
from .redis_repository import RedisCacheRepository

__all__ = [
    "CacheStore",
    "ChapterStore",
    "MongoChapterRepository",
    "RedisCacheRepository",
]
