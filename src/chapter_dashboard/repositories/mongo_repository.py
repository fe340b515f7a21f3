"""MongoDB implementation of ChapterStore.

Records live in a single collection with documents keyed like the public
API. Bulk inserts are unordered so one bad document never stops the rest.
"""

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import BulkWriteError, ConnectionFailure, DuplicateKeyError

from chapter_dashboard.config import Settings, get_mongo_client, settings
from chapter_dashboard.dto import SORTABLE_FIELDS
from chapter_dashboard.entities import (
    ChapterEntity,
    ChapterStatistics,
    InsertFailure,
    InsertManyResult,
)
from chapter_dashboard.exceptions import ConflictError, StoreUnavailableError
from chapter_dashboard.protocols import EXACT_FILTER_FIELDS, TEXT_FILTER_FIELDS, UNIQUE_KEY_FIELDS

logger = logging.getLogger(__name__)

COLLECTION_NAME = "chapters"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _object_id(chapter_id: str) -> ObjectId | None:
    if not ObjectId.is_valid(chapter_id):
        return None
    return ObjectId(chapter_id)


@contextmanager
def _store_errors() -> Iterator[None]:
    """Translate connectivity failures into StoreUnavailableError."""
    try:
        yield
    except ConnectionFailure as e:
        logger.error("MongoDB unavailable: %s", e)
        raise StoreUnavailableError("Database is unavailable") from e


class MongoChapterRepository:
    """MongoDB implementation of the ChapterStore protocol.

    This class satisfies the ChapterStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(
        self,
        client: MongoClient | None = None,
        database: str | None = None,
        enforce_unique: bool | None = None,
    ) -> None:
        """Initialize the MongoDB chapter repository.

        Args:
            client: MongoClient instance. If None, creates default.
            database: Database name. Defaults to settings.
            enforce_unique: Create the unique (subject, chapter, class, unit)
                index in ensure_indexes(). Defaults to settings.
        """
        self._client = client or get_mongo_client()
        self._collection: Collection = self._client[database or settings.mongodb_database][COLLECTION_NAME]
        self._enforce_unique = settings.enforce_unique_chapters if enforce_unique is None else enforce_unique

    @classmethod
    def create(cls, config: Settings | None = None) -> "MongoChapterRepository":
        """Factory method to create MongoChapterRepository from settings."""
        config = config or settings
        return cls(
            client=get_mongo_client(config),
            database=config.mongodb_database,
            enforce_unique=config.enforce_unique_chapters,
        )

    def ensure_indexes(self) -> None:
        """Create the query indexes, plus the uniqueness index if enabled."""
        indexes = [IndexModel([(name, ASCENDING)]) for name in (*UNIQUE_KEY_FIELDS, "status", "isWeakChapter")]
        indexes += [
            IndexModel([("subject", ASCENDING), ("class", ASCENDING)]),
            IndexModel([("class", ASCENDING), ("unit", ASCENDING)]),
            IndexModel([("status", ASCENDING), ("isWeakChapter", ASCENDING)]),
        ]
        if self._enforce_unique:
            indexes.append(
                IndexModel(
                    [(name, ASCENDING) for name in UNIQUE_KEY_FIELDS],
                    unique=True,
                    name="unique_chapter",
                )
            )
        with _store_errors():
            self._collection.create_indexes(indexes)
        logger.info("Ensured %d indexes on %s", len(indexes), COLLECTION_NAME)

    @staticmethod
    def _build_query(filters: dict[str, Any]) -> dict[str, Any]:
        query: dict[str, Any] = {}
        for name, value in filters.items():
            if name in TEXT_FILTER_FIELDS:
                query[name] = {"$regex": re.escape(str(value)), "$options": "i"}
            elif name in EXACT_FILTER_FIELDS:
                query[name] = value
            else:
                raise ValueError(f"Unsupported filter field: {name}")
        return query

    def find_many(
        self,
        filters: dict[str, Any],
        sort_by: str,
        sort_order: str,
        offset: int,
        limit: int,
    ) -> tuple[list[ChapterEntity], int]:
        if sort_by not in SORTABLE_FIELDS:
            raise ValueError(f"Unsupported sort field: {sort_by}")

        query = self._build_query(filters)
        direction = ASCENDING if sort_order == "asc" else DESCENDING
        with _store_errors():
            cursor = (
                self._collection.find(query)
                .sort([(sort_by, direction), ("_id", direction)])
                .skip(offset)
                .limit(limit)
            )
            records = [ChapterEntity.from_document(doc) for doc in cursor]
            total = self._collection.count_documents(query)
        return records, total

    def filter_options(self) -> dict[str, list[str]]:
        pipeline = [
            {
                "$group": {
                    "_id": None,
                    "subjects": {"$addToSet": "$subject"},
                    "classes": {"$addToSet": "$class"},
                    "units": {"$addToSet": "$unit"},
                    "statuses": {"$addToSet": "$status"},
                }
            }
        ]
        with _store_errors():
            result = next(self._collection.aggregate(pipeline), None) or {}
        return {name: sorted(result.get(name, [])) for name in ("subjects", "classes", "units", "statuses")}

    def find_by_id(self, chapter_id: str) -> ChapterEntity | None:
        oid = _object_id(chapter_id)
        if oid is None:
            return None
        with _store_errors():
            doc = self._collection.find_one({"_id": oid})
        return ChapterEntity.from_document(doc) if doc else None

    def insert_many(self, payloads: list[dict[str, Any]]) -> InsertManyResult:
        """Insert unordered; per-document write errors become InsertFailure.

        pymongo assigns "_id" to every document before sending, so the
        documents that did not fail are exactly the inserted ones.
        """
        if not payloads:
            return InsertManyResult()

        now = _utcnow()
        docs = [{**payload, "createdAt": now, "updatedAt": now} for payload in payloads]

        with _store_errors():
            try:
                self._collection.insert_many(docs, ordered=False)
            except BulkWriteError as e:
                write_errors = e.details.get("writeErrors", [])
                if not write_errors:
                    raise
                failed = [
                    InsertFailure(
                        index=error["index"],
                        message=error.get("errmsg") or "Database insertion failed",
                        code=error.get("code"),
                    )
                    for error in write_errors
                ]
                failed_indexes = {failure.index for failure in failed}
                inserted = [
                    ChapterEntity.from_document(doc) for i, doc in enumerate(docs) if i not in failed_indexes
                ]
                logger.info("Bulk insert: %d inserted, %d write errors", len(inserted), len(failed))
                return InsertManyResult(inserted=inserted, failed=failed)

        return InsertManyResult(inserted=[ChapterEntity.from_document(doc) for doc in docs])

    def _update(self, chapter_id: str, fields: dict[str, Any]) -> ChapterEntity | None:
        oid = _object_id(chapter_id)
        if oid is None:
            return None
        with _store_errors():
            try:
                doc = self._collection.find_one_and_update(
                    {"_id": oid},
                    {"$set": {**fields, "updatedAt": _utcnow()}},
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError as e:
                raise ConflictError(
                    "A chapter with the same subject, chapter, class and unit already exists",
                    details={"id": chapter_id},
                ) from e
        return ChapterEntity.from_document(doc) if doc else None

    def replace_by_id(self, chapter_id: str, payload: dict[str, Any]) -> ChapterEntity | None:
        return self._update(chapter_id, payload)

    def update_by_id(self, chapter_id: str, patch: dict[str, Any]) -> ChapterEntity | None:
        fields = {name: value for name, value in patch.items() if name != "yearWiseQuestionCount"}
        for year, count in (patch.get("yearWiseQuestionCount") or {}).items():
            fields[f"yearWiseQuestionCount.{year}"] = count
        return self._update(chapter_id, fields)

    def delete_by_id(self, chapter_id: str) -> ChapterEntity | None:
        oid = _object_id(chapter_id)
        if oid is None:
            return None
        with _store_errors():
            doc = self._collection.find_one_and_delete({"_id": oid})
        return ChapterEntity.from_document(doc) if doc else None

    def aggregate_statistics(self) -> ChapterStatistics:
        """Compute collection-wide statistics in a single aggregation.

        Completion rate per record is questionSolved over the sum of all its
        year counts (0 when that sum is 0), averaged over every record.
        """
        year_total = {
            "$sum": {
                "$map": {
                    "input": {"$objectToArray": {"$ifNull": ["$yearWiseQuestionCount", {}]}},
                    "as": "year",
                    "in": "$$year.v",
                }
            }
        }
        completion = {
            "$cond": [
                {"$gt": ["$yearTotal", 0]},
                {"$multiply": [{"$divide": ["$questionSolved", "$yearTotal"]}, 100]},
                0,
            ]
        }
        pipeline = [
            {"$addFields": {"yearTotal": year_total}},
            {
                "$facet": {
                    "overview": [
                        {
                            "$group": {
                                "_id": None,
                                "totalRecords": {"$sum": 1},
                                "totalQuestionsSolved": {"$sum": "$questionSolved"},
                                "weakCount": {"$sum": {"$cond": ["$isWeakChapter", 1, 0]}},
                                "averageCompletionRate": {"$avg": completion},
                            }
                        }
                    ],
                    "statuses": [{"$group": {"_id": "$status", "count": {"$sum": 1}}}],
                    "subjects": [{"$group": {"_id": "$subject", "count": {"$sum": 1}}}],
                }
            },
        ]
        with _store_errors():
            result = next(self._collection.aggregate(pipeline), None) or {}

        overview = (result.get("overview") or [{}])[0]
        return ChapterStatistics(
            total_records=overview.get("totalRecords", 0),
            total_questions_solved=overview.get("totalQuestionsSolved", 0),
            weak_count=overview.get("weakCount", 0),
            status_distribution={row["_id"]: row["count"] for row in result.get("statuses", [])},
            subject_distribution={row["_id"]: row["count"] for row in result.get("subjects", [])},
            average_completion_rate=overview.get("averageCompletionRate") or 0.0,
        )

    def health_check(self) -> bool:
        """Check if MongoDB is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            self._client.admin.command("ping")
            return True
        except ConnectionFailure:
            return False

    def close(self) -> None:
        self._client.close()

    @property
    def collection(self) -> Collection:
        """Get the underlying collection (for testing)."""
        return self._collection
