"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)
"""

from .chapter_service import ChapterService
from .rate_limiter import RateLimiter, RateLimitStatus
from .response_cache import ResponseCache
from .validator import ChapterValidator, to_field_errors

__all__ = [
    "ChapterService",
    "ChapterValidator",
    "RateLimiter",
    "RateLimitStatus",
    "ResponseCache",
    "to_field_errors",
]
