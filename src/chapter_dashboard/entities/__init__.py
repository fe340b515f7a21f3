"""Domain entities for internal representation.

These are pure dataclasses (frozen) used internally by services
and repositories. They are NOT used for API contracts - use DTOs
from the dto package for that.
"""

from .chapter import ChapterEntity, ChapterStatus, completion_rate, round_half_up
from .results import (
    BulkWriteReport,
    ChapterStatistics,
    FieldError,
    InsertFailure,
    InsertManyResult,
    RejectedItem,
    ValidationBatch,
)

__all__ = [
    "ChapterEntity",
    "ChapterStatus",
    "completion_rate",
    "round_half_up",
    "BulkWriteReport",
    "ChapterStatistics",
    "FieldError",
    "InsertFailure",
    "InsertManyResult",
    "RejectedItem",
    "ValidationBatch",
]
