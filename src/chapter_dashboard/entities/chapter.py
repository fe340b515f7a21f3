"""Chapter record domain entity."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ChapterStatus(str, Enum):
    """Progress status of a chapter."""

    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    REVISION = "Revision"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def completion_rate(question_solved: int, year_counts: dict[int, int]) -> float:
    """Percentage of questions solved against the sum of all year counts.

    Returns 0.0 when no questions are counted for any year.
    """
    total = sum(year_counts.values())
    if total <= 0:
        return 0.0
    return question_solved / total * 100


@dataclass(frozen=True)
class ChapterEntity:
    """Domain entity for a stored chapter performance record.

    Attributes:
        id: Store-assigned identifier (ObjectId hex string)
        subject: Subject name, e.g. "Physics"
        chapter: Chapter name
        class_name: Class the chapter belongs to, e.g. "Class 11"
        unit: Unit within the class
        year_wise_question_count: Number of questions asked per year
        question_solved: Number of questions solved so far
        status: Progress status
        is_weak_chapter: Whether the chapter is flagged as weak
        created_at: When the record was created
        updated_at: When the record was last modified
    """

    id: str
    subject: str
    chapter: str
    class_name: str
    unit: str
    year_wise_question_count: dict[int, int] = field(default_factory=dict)
    question_solved: int = 0
    status: ChapterStatus = ChapterStatus.NOT_STARTED
    is_weak_chapter: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_questions(self) -> int:
        return sum(self.year_wise_question_count.values())

    @property
    def completion_rate(self) -> float:
        return completion_rate(self.question_solved, self.year_wise_question_count)

    @property
    def completion_percentage(self) -> int:
        return round_half_up(self.completion_rate)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ChapterEntity":
        """Build an entity from a stored document.

        Year keys are stored as strings since document keys must be strings.
        """
        years = {int(year): int(count) for year, count in (doc.get("yearWiseQuestionCount") or {}).items()}
        return cls(
            id=str(doc["_id"]),
            subject=doc["subject"],
            chapter=doc["chapter"],
            class_name=doc["class"],
            unit=doc["unit"],
            year_wise_question_count=years,
            question_solved=int(doc.get("questionSolved", 0)),
            status=ChapterStatus(doc.get("status", ChapterStatus.NOT_STARTED.value)),
            is_weak_chapter=bool(doc.get("isWeakChapter", False)),
            created_at=doc.get("createdAt"),
            updated_at=doc.get("updatedAt"),
        )

    def summary(self) -> dict[str, Any]:
        """Identifying fields only, as reported by bulk writes and deletes."""
        return {
            "id": self.id,
            "subject": self.subject,
            "chapter": self.chapter,
            "class": self.class_name,
            "unit": self.unit,
        }

    def to_dict(self) -> dict[str, Any]:
        """Full JSON-ready representation used in API responses."""
        return {
            **self.summary(),
            "yearWiseQuestionCount": {
                str(year): count for year, count in sorted(self.year_wise_question_count.items())
            },
            "questionSolved": self.question_solved,
            "status": self.status.value,
            "isWeakChapter": self.is_weak_chapter,
            "totalQuestions": self.total_questions,
            "completionPercentage": self.completion_percentage,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
