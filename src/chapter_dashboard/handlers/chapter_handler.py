"""HTTP handlers for chapter operations.

Handlers convert between raw request data and service calls, and build the
response envelope. Read handlers are composed with the response cache here,
so the routes stay unaware of caching.
"""

import json
from collections.abc import Iterable
from typing import Any

from chapter_dashboard.config import settings
from chapter_dashboard.dto import ChapterListQuery, Pagination, success_payload
from chapter_dashboard.entities import BulkWriteReport, round_half_up
from chapter_dashboard.exceptions import PayloadTooLargeError, UploadFormatError
from chapter_dashboard.services import ChapterService, ResponseCache

Payload = dict[str, Any]

JSON_CONTENT_TYPES = ("application/json",)


class ChapterHandler:
    """HTTP handlers for chapter operations.

    This handler delegates business logic to ChapterService
    and handles HTTP-specific concerns like:
    - Converting entities to the response envelope
    - Choosing status codes for batch outcomes
    - Decoding uploaded JSON files

    Example:
        ```python
        handler = ChapterHandler(chapter_service=service, response_cache=cache)

        @router.get("/stats")
        def get_stats(request: Request):
            return handler.get_statistics(request.url.path)
        ```
    """

    def __init__(
        self,
        chapter_service: ChapterService,
        response_cache: ResponseCache,
        cache_ttl: int | None = None,
        stats_cache_ttl: int | None = None,
        max_upload_bytes: int | None = None,
    ) -> None:
        """Initialize the chapter handler.

        Args:
            chapter_service: The chapter service for business logic (required).
            response_cache: Cache wrapped around the read handlers (required).
            cache_ttl: TTL for list and detail responses. Defaults to settings.
            stats_cache_ttl: TTL for statistics responses. Defaults to settings.
            max_upload_bytes: Largest accepted upload. Defaults to settings.
        """
        self._service = chapter_service
        self._cache = response_cache
        self._max_upload_bytes = max_upload_bytes or settings.max_upload_bytes

        list_ttl = cache_ttl or settings.cache_ttl
        self._cached_list = response_cache.cached(list_ttl)(self._list_payload)
        self._cached_detail = response_cache.cached(list_ttl)(self._detail_payload)
        self._cached_stats = response_cache.cached(stats_cache_ttl or settings.stats_cache_ttl)(
            self._stats_payload
        )

    # Reads (cached)

    def list_chapters(self, path: str, params: Iterable[tuple[str, str]]) -> Payload:
        """Handle GET /api/v1/chapters.

        The cache key is built from the validated query, defaults included,
        so equivalent requests share one entry.

        Raises:
            ValidationError: If the query parameters are invalid
        """
        query = self._service.validator.validate_query(dict(params))
        key = self._cache.build_key(path, query.canonical_params())
        return self._cached_list(key, query)

    def get_chapter(self, path: str, chapter_id: str) -> Payload:
        """Handle GET /api/v1/chapters/{id}.

        Raises:
            NotFoundError: If no chapter has this id (never cached)
        """
        return self._cached_detail(self._cache.build_key(path), chapter_id)

    def get_statistics(self, path: str) -> Payload:
        """Handle GET /api/v1/chapters/stats."""
        return self._cached_stats(self._cache.build_key(path))

    def _list_payload(self, query: ChapterListQuery) -> Payload:
        chapters, total, options = self._service.list_chapters(query)
        pagination = Pagination.from_counts(page=query.page, limit=query.limit, total_count=total)
        return success_payload(
            data={
                "chapters": [chapter.to_dict() for chapter in chapters],
                "pagination": pagination.to_dict(),
                "filters": {"applied": query.applied(), "available": options},
                "sort": {"sortBy": query.sort_by, "sortOrder": query.sort_order},
            }
        )

    def _detail_payload(self, chapter_id: str) -> Payload:
        chapter = self._service.get_chapter(chapter_id)
        return success_payload(data={"chapter": chapter.to_dict()})

    def _stats_payload(self) -> Payload:
        stats = self._service.statistics()
        return success_payload(
            data={
                "overview": {
                    "totalChapters": stats.total_records,
                    "totalQuestionsSolved": stats.total_questions_solved,
                    "weakChapters": stats.weak_count,
                    "averageCompletionRate": round_half_up(stats.average_completion_rate),
                },
                "distributions": {
                    "status": stats.status_distribution,
                    "subject": stats.subject_distribution,
                },
            }
        )

    # Writes

    def parse_upload(self, filename: str | None, content_type: str | None, content: bytes) -> Any:
        """Decode an uploaded chapters file.

        Raises:
            UploadFormatError: Wrong file type, bad encoding or invalid JSON
            PayloadTooLargeError: File exceeds the upload ceiling
        """
        is_json_type = (content_type or "").split(";")[0].strip().lower() in JSON_CONTENT_TYPES
        if not is_json_type and not (filename or "").lower().endswith(".json"):
            raise UploadFormatError("Only JSON files are allowed")
        if len(content) > self._max_upload_bytes:
            raise PayloadTooLargeError.for_limit("File", self._max_upload_bytes)
        try:
            return json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise UploadFormatError("Invalid JSON file format", details={"error": str(e)}) from e

    def create_chapters(self, raw_items: Any) -> tuple[int, Payload]:
        """Handle POST /api/v1/chapters.

        Returns:
            Tuple (status code, payload): 201 if anything was saved, else 400
        """
        report = self._service.bulk_create(raw_items)
        return (201 if report.succeeded else 400), self._report_payload(report)

    @staticmethod
    def _report_payload(report: BulkWriteReport) -> Payload:
        message = f"{report.saved_count} chapters saved successfully"
        data: Payload = {
            "savedCount": report.saved_count,
            "failedCount": report.failed_count,
            "savedChapters": [chapter.summary() for chapter in report.saved],
        }
        if report.failed:
            data["failedChapters"] = [item.to_dict() for item in report.failed]
            message += f", {report.failed_count} chapters failed"

        payload = success_payload(data=data, message=message)
        if not report.succeeded:
            payload["status"] = "error"
        return payload

    def replace_chapter(self, chapter_id: str, raw: Any) -> Payload:
        """Handle PUT /api/v1/chapters/{id}."""
        chapter = self._service.replace_chapter(chapter_id, raw)
        return success_payload(data={"chapter": chapter.to_dict()}, message="Chapter updated successfully")

    def patch_chapter(self, chapter_id: str, raw: Any) -> Payload:
        """Handle PATCH /api/v1/chapters/{id}."""
        chapter = self._service.patch_chapter(chapter_id, raw)
        return success_payload(data={"chapter": chapter.to_dict()}, message="Chapter updated successfully")

    def delete_chapter(self, chapter_id: str) -> Payload:
        """Handle DELETE /api/v1/chapters/{id}."""
        chapter = self._service.delete_chapter(chapter_id)
        return success_payload(
            data={"deletedChapter": chapter.summary()},
            message="Chapter deleted successfully",
        )
