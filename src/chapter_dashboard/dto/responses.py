"""Response DTOs: the standard envelope and its building blocks."""

import math
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


def utc_timestamp() -> str:
    """Current UTC time in ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ErrorItem(BaseModel):
    """One field-level error."""

    field: str = Field(..., description="Dotted path of the offending field")
    message: str = Field(..., description="Human-readable description")
    value: Any = Field(None, description="The offending value, when known")
    code: int | None = Field(None, description="Store error code for store-level faults")


class ApiResponse(BaseModel):
    """Envelope shared by every endpoint."""

    status: Literal["success", "error"]
    message: str | None = None
    data: dict[str, Any] | None = None
    errors: list[ErrorItem] | None = None
    retry_after: int | None = Field(None, serialization_alias="retryAfter")
    timestamp: str = Field(default_factory=utc_timestamp)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def success_payload(data: dict[str, Any] | None = None, message: str | None = None) -> dict[str, Any]:
    return ApiResponse(status="success", data=data, message=message).to_payload()


def error_payload(
    message: str,
    errors: list[dict[str, Any]] | None = None,
    retry_after: int | None = None,
    data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return ApiResponse(
        status="error",
        message=message,
        errors=[ErrorItem(**error) for error in errors] if errors else None,
        retry_after=retry_after,
        data=data,
    ).to_payload()


class Pagination(BaseModel):
    """Pagination metadata for list responses."""

    current_page: int = Field(..., serialization_alias="currentPage")
    total_pages: int = Field(..., serialization_alias="totalPages")
    total_count: int = Field(..., serialization_alias="totalCount")
    limit: int
    has_next_page: bool = Field(..., serialization_alias="hasNextPage")
    has_prev_page: bool = Field(..., serialization_alias="hasPrevPage")
    next_page: int | None = Field(None, serialization_alias="nextPage")
    prev_page: int | None = Field(None, serialization_alias="prevPage")

    @classmethod
    def from_counts(cls, page: int, limit: int, total_count: int) -> "Pagination":
        total_pages = math.ceil(total_count / limit) if limit else 0
        has_next = page < total_pages
        has_prev = page > 1
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_count=total_count,
            limit=limit,
            has_next_page=has_next,
            has_prev_page=has_prev,
            next_page=page + 1 if has_next else None,
            prev_page=page - 1 if has_prev else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class HealthCheckResponse(BaseModel):
    """Response DTO for the liveness probe."""

    status: str = Field(..., description="Always 'success' while the process serves requests")
    message: str
    timestamp: str = Field(default_factory=utc_timestamp)
