"""Chapter Dashboard - Chapter performance records with cached reads.

This package provides a layered architecture for a chapter performance API:

Layers:
    - protocols: Interface contracts (ChapterStore, CacheStore)
    - repositories: Data access implementations (MongoDB, Redis)
    - services: Business logic (validation, bulk writes, caching, rate limiting)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from chapter_dashboard.repositories import MongoChapterRepository, RedisCacheRepository
    from chapter_dashboard.services import ChapterService, ResponseCache

    cache = ResponseCache(store=RedisCacheRepository.create())
    service = ChapterService.create(store=MongoChapterRepository.create(), response_cache=cache)
    report = service.bulk_create(chapters)
    ```

For HTTP API:
    ```python
    from chapter_dashboard.api.app import app
    ```
"""

from chapter_dashboard.config import get_mongo_client, get_redis_client, settings
from chapter_dashboard.dto import ChapterListQuery, ChapterPatch, ChapterPayload
from chapter_dashboard.entities import BulkWriteReport, ChapterEntity, ChapterStatistics, ChapterStatus
from chapter_dashboard.handlers import ChapterHandler
from chapter_dashboard.protocols import CacheStore, ChapterStore
from chapter_dashboard.repositories import MongoChapterRepository, RedisCacheRepository
from chapter_dashboard.services import ChapterService, ChapterValidator, RateLimiter, ResponseCache

__all__ = [
    # Configuration
    "settings",
    "get_mongo_client",
    "get_redis_client",
    # Protocols (interfaces)
    "CacheStore",
    "ChapterStore",
    # Services (business logic)
    "ChapterService",
    "ChapterValidator",
    "RateLimiter",
    "ResponseCache",
    # Handlers (HTTP)
    "ChapterHandler",
    # Repositories (data access)
    "MongoChapterRepository",
    "RedisCacheRepository",
    # Entities (domain models)
    "BulkWriteReport",
    "ChapterEntity",
    "ChapterStatistics",
    "ChapterStatus",
    # DTOs (API contracts)
    "ChapterListQuery",
    "ChapterPatch",
    "ChapterPayload",
]
