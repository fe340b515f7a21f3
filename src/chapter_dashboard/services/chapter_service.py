"""Chapter service for core business logic.

This service orchestrates validation, persistence and cache invalidation
for chapter records, including the bulk-write pipeline.
"""

import logging
from typing import Any

from chapter_dashboard.dto import ChapterListQuery
from chapter_dashboard.entities import (
    BulkWriteReport,
    ChapterEntity,
    ChapterStatistics,
    FieldError,
    RejectedItem,
)
from chapter_dashboard.exceptions import NotFoundError, StoreUnavailableError
from chapter_dashboard.protocols import ChapterStore

from .response_cache import ResponseCache
from .validator import ChapterValidator

logger = logging.getLogger(__name__)


class ChapterService:
    """Core chapter orchestration service.

    This service depends on PROTOCOLS, not concrete implementations:
    - ChapterStore: MongoDB, or an in-memory store in tests
    - ResponseCache wraps any CacheStore

    Every successful write invalidates the whole cache namespace; cached
    entries are whole responses, never partial records, so there is nothing
    to update selectively.

    Example:
        ```python
        service = ChapterService.create(
            store=MongoChapterRepository.create(),
            response_cache=ResponseCache(RedisCacheRepository.create()),
        )
        report = service.bulk_create(raw_items)
        ```
    """

    def __init__(
        self,
        store: ChapterStore,
        response_cache: ResponseCache,
        validator: ChapterValidator | None = None,
    ) -> None:
        """Initialize the chapter service.

        Args:
            store: Chapter persistence backend (required).
            response_cache: Cache to invalidate after writes (required).
            validator: Record validator. Defaults to the standard year range.
        """
        self._store = store
        self._cache = response_cache
        self._validator = validator or ChapterValidator()

    @classmethod
    def create(
        cls,
        store: ChapterStore,
        response_cache: ResponseCache,
        years: tuple[int, ...] | None = None,
    ) -> "ChapterService":
        """Factory method to create ChapterService with a validator for years."""
        return cls(
            store=store,
            response_cache=response_cache,
            validator=ChapterValidator(years=years),
        )

    # Reads

    def list_chapters(self, query: ChapterListQuery) -> tuple[list[ChapterEntity], int, dict[str, list[str]]]:
        """Find one page of chapters.

        Returns:
            Tuple (records on the page, total matching, available filter values)
        """
        records, total = self._store.find_many(
            filters=query.filters(),
            sort_by=query.sort_by,
            sort_order=query.sort_order,
            offset=query.offset,
            limit=query.limit,
        )
        return records, total, self._store.filter_options()

    def get_chapter(self, chapter_id: str) -> ChapterEntity:
        chapter = self._store.find_by_id(chapter_id)
        if chapter is None:
            raise NotFoundError("Chapter not found", details={"id": chapter_id})
        return chapter

    def statistics(self) -> ChapterStatistics:
        return self._store.aggregate_statistics()

    # Writes

    def bulk_create(self, raw_items: Any) -> BulkWriteReport:
        """Validate, insert, invalidate and report on a batch of chapters.

        Business logic:
        1. Reject non-list input outright
        2. Split the batch into accepted and rejected items
        3. Insert the accepted items; per-item store faults join the
           rejections, indexed by position in the accepted subset
        4. Invalidate cached responses if anything was saved

        Args:
            raw_items: Decoded JSON, expected to be a list of chapter objects

        Returns:
            BulkWriteReport with saved chapters and every failed item

        Raises:
            ValidationError: If raw_items is not a list
            StoreUnavailableError: If the store cannot be reached
        """
        batch = self._validator.validate_many(raw_items)
        failed = list(batch.rejected)
        saved: list[ChapterEntity] = []

        if batch.accepted:
            try:
                result = self._store.insert_many(batch.accepted)
            except StoreUnavailableError:
                # Part of an unordered insert may already be written
                self._cache.invalidate()
                raise
            saved = list(result.inserted)
            for failure in result.failed:
                failed.append(
                    RejectedItem(
                        index=failure.index,
                        chapter=batch.accepted[failure.index],
                        errors=[FieldError(field="document", message=failure.message, code=failure.code)],
                    )
                )

        if saved:
            self._cache.invalidate()

        logger.info(
            "Bulk create: %d submitted, %d saved, %d failed validation, %d failed at store",
            len(raw_items),
            len(saved),
            len(batch.rejected),
            len(failed) - len(batch.rejected),
        )
        return BulkWriteReport(saved=saved, failed=failed)

    def replace_chapter(self, chapter_id: str, raw: Any) -> ChapterEntity:
        """Replace every field of a chapter after full validation."""
        document = self._validator.validate_one(raw)
        chapter = self._store.replace_by_id(chapter_id, document)
        return self._after_write(chapter_id, chapter)

    def patch_chapter(self, chapter_id: str, raw: Any) -> ChapterEntity:
        """Update the supplied fields of a chapter; each is still validated."""
        patch = self._validator.validate_patch(raw)
        chapter = self._store.update_by_id(chapter_id, patch)
        return self._after_write(chapter_id, chapter)

    def delete_chapter(self, chapter_id: str) -> ChapterEntity:
        chapter = self._store.delete_by_id(chapter_id)
        return self._after_write(chapter_id, chapter)

    def _after_write(self, chapter_id: str, chapter: ChapterEntity | None) -> ChapterEntity:
        if chapter is None:
            raise NotFoundError("Chapter not found", details={"id": chapter_id})
        self._cache.invalidate()
        return chapter

    def is_healthy(self) -> bool:
        return self._store.health_check()

    @property
    def validator(self) -> ChapterValidator:
        return self._validator

    @property
    def store(self) -> ChapterStore:
        """Get the underlying store (for testing)."""
        return self._store

    @property
    def response_cache(self) -> ResponseCache:
        return self._cache
