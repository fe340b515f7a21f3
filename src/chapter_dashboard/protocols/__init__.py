"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis, MongoDB, in-memory, ...)
- Unit testing with in-memory implementations
- Clear separation of concerns
"""

from .cache_store import CacheStore
from .chapter_store import EXACT_FILTER_FIELDS, TEXT_FILTER_FIELDS, UNIQUE_KEY_FIELDS, ChapterStore

__all__ = [
    "CacheStore",
    "ChapterStore",
    "EXACT_FILTER_FIELDS",
    "TEXT_FILTER_FIELDS",
    "UNIQUE_KEY_FIELDS",
]
