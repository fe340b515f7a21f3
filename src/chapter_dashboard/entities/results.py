"""Result types passed between the validator, the store and the services."""

from dataclasses import dataclass, field
from typing import Any

from .chapter import ChapterEntity


@dataclass(frozen=True)
class FieldError:
    """A single problem with one field of a submitted record.

    Store-level faults use the pseudo-field ``"document"`` and carry the
    store's error ``code``; validation errors never have a code.
    """

    field: str
    message: str
    value: Any = None
    code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.field, "message": self.message}
        if self.value is not None:
            data["value"] = self.value
        if self.code is not None:
            data["code"] = self.code
        return data


@dataclass(frozen=True)
class RejectedItem:
    """A batch item that was not persisted.

    Attributes:
        index: Position in the submitted batch for validation failures, or
            position in the accepted subset sent to the store for store faults
        chapter: The item as submitted (or as accepted, for store faults)
        errors: Everything wrong with the item
    """

    index: int
    chapter: Any
    errors: list[FieldError]

    @property
    def is_store_fault(self) -> bool:
        return any(error.code is not None for error in self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "chapter": self.chapter,
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass(frozen=True)
class ValidationBatch:
    """Outcome of validating a batch: accepted payloads and rejections."""

    accepted: list[dict[str, Any]] = field(default_factory=list)
    rejected: list[RejectedItem] = field(default_factory=list)


@dataclass(frozen=True)
class InsertFailure:
    """A per-item write failure reported by the store."""

    index: int
    message: str
    code: int | None = None


@dataclass(frozen=True)
class InsertManyResult:
    """Outcome of an unordered bulk insert."""

    inserted: list[ChapterEntity] = field(default_factory=list)
    failed: list[InsertFailure] = field(default_factory=list)


@dataclass(frozen=True)
class BulkWriteReport:
    """Outcome of the full validate, insert and invalidate pipeline."""

    saved: list[ChapterEntity] = field(default_factory=list)
    failed: list[RejectedItem] = field(default_factory=list)

    @property
    def saved_count(self) -> int:
        return len(self.saved)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def succeeded(self) -> bool:
        """At least one record persisted; partial success counts."""
        return self.saved_count > 0


@dataclass(frozen=True)
class ChapterStatistics:
    """Aggregate figures over the whole collection."""

    total_records: int = 0
    total_questions_solved: int = 0
    weak_count: int = 0
    status_distribution: dict[str, int] = field(default_factory=dict)
    subject_distribution: dict[str, int] = field(default_factory=dict)
    average_completion_rate: float = 0.0
