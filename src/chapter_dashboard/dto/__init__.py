"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request validation and response serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import DEFAULT_YEARS, SORTABLE_FIELDS, ChapterListQuery, ChapterPatch, ChapterPayload
from .responses import (
    ApiResponse,
    ErrorItem,
    HealthCheckResponse,
    Pagination,
    error_payload,
    success_payload,
    utc_timestamp,
)

__all__ = [
    "DEFAULT_YEARS",
    "SORTABLE_FIELDS",
    "ChapterListQuery",
    "ChapterPatch",
    "ChapterPayload",
    "ApiResponse",
    "ErrorItem",
    "HealthCheckResponse",
    "Pagination",
    "error_payload",
    "success_payload",
    "utc_timestamp",
]
