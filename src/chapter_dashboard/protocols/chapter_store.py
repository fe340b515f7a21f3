"""Chapter storage protocol.

Defines the interface for the document store holding chapter records.

Filter semantics shared by all implementations:
- TEXT_FILTER_FIELDS match as case-insensitive substrings
- EXACT_FILTER_FIELDS match exactly
"""

from typing import Any, Protocol, runtime_checkable

from chapter_dashboard.entities import ChapterEntity, ChapterStatistics, InsertManyResult

TEXT_FILTER_FIELDS = ("subject", "class", "unit")
EXACT_FILTER_FIELDS = ("status", "isWeakChapter")

# Fields that identify a chapter; duplicates on all four are rejected
UNIQUE_KEY_FIELDS = ("subject", "chapter", "class", "unit")


@runtime_checkable
class ChapterStore(Protocol):
    """Protocol for chapter persistence backends.

    Payloads are JSON-shaped dicts keyed like the public API ("class",
    "chapter", "yearWiseQuestionCount" with string year keys, ...).
    Connectivity failures raise StoreUnavailableError.
    """

    def find_many(
        self,
        filters: dict[str, Any],
        sort_by: str,
        sort_order: str,
        offset: int,
        limit: int,
    ) -> tuple[list[ChapterEntity], int]:
        """Find one page of records.

        Args:
            filters: Field name to filter value (see module docstring)
            sort_by: Field to sort on
            sort_order: "asc" or "desc"
            offset: Number of matching records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple (records on this page, total number of matching records)
        """
        ...

    def filter_options(self) -> dict[str, list[str]]:
        """Distinct values usable as filters.

        Returns:
            Dict with "subjects", "classes", "units" and "statuses" lists
        """
        ...

    def find_by_id(self, chapter_id: str) -> ChapterEntity | None:
        """Find one record. Malformed ids are treated as absent."""
        ...

    def insert_many(self, payloads: list[dict[str, Any]]) -> InsertManyResult:
        """Insert records without stopping at the first failure.

        Per-item failures (such as duplicate keys) are reported in
        InsertManyResult.failed, indexed by position in payloads. Any other
        failure propagates.
        """
        ...

    def replace_by_id(self, chapter_id: str, payload: dict[str, Any]) -> ChapterEntity | None:
        """Replace every field of a record. Returns None if absent."""
        ...

    def update_by_id(self, chapter_id: str, patch: dict[str, Any]) -> ChapterEntity | None:
        """Update only the supplied fields. Returns None if absent.

        A "yearWiseQuestionCount" entry in patch updates only the years it names.
        """
        ...

    def delete_by_id(self, chapter_id: str) -> ChapterEntity | None:
        """Delete a record and return it, or None if absent."""
        ...

    def aggregate_statistics(self) -> ChapterStatistics:
        """Aggregate counts, distributions and average completion rate."""
        ...

    def health_check(self) -> bool:
        """Check if the store is reachable."""
        ...

    def close(self) -> None:
        """Release connections."""
        ...
