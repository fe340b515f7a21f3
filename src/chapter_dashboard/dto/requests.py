"""Request DTOs: the record schema and the list query parameters.

Validation is lenient: unknown fields are dropped, numeric strings become
numbers, strings are trimmed. Booleans are never accepted as counts. Every
error in a payload is collected in one pass.
"""

from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    NonNegativeInt,
    ValidationInfo,
    field_validator,
)

from chapter_dashboard.entities import ChapterStatus

DEFAULT_YEARS = tuple(range(2019, 2026))

SORTABLE_FIELDS = (
    "subject",
    "chapter",
    "class",
    "unit",
    "status",
    "questionSolved",
    "createdAt",
    "updatedAt",
)


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("Input should be a valid integer")
    return value


# Lax int mode would otherwise read true/false as 1/0
Count = Annotated[NonNegativeInt, BeforeValidator(_reject_bool)]


def _normalize_year_counts(
    value: dict[int, int],
    info: ValidationInfo,
    fill_missing: bool,
) -> dict[int, int]:
    """Keep only configured years; optionally default the missing ones to 0.

    The configured years travel in the validation context under "years".
    """
    years = (info.context or {}).get("years", DEFAULT_YEARS)
    if fill_missing:
        return {year: value.get(year, 0) for year in years}
    return {year: count for year, count in value.items() if year in years}


class ChapterPayload(BaseModel):
    """A complete chapter record as submitted by an admin."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    subject: str = Field(..., min_length=1, max_length=100)
    chapter: str = Field(..., min_length=1, max_length=200)
    class_name: str = Field(..., alias="class", min_length=1, max_length=50)
    unit: str = Field(..., min_length=1, max_length=100)
    year_wise_question_count: dict[int, Count] = Field(..., alias="yearWiseQuestionCount")
    question_solved: Count = Field(..., alias="questionSolved")
    status: ChapterStatus
    is_weak_chapter: bool = Field(..., alias="isWeakChapter")

    @field_validator("year_wise_question_count")
    @classmethod
    def _fill_years(cls, value: dict[int, int], info: ValidationInfo) -> dict[int, int]:
        return _normalize_year_counts(value, info, fill_missing=True)

    def to_document(self) -> dict[str, Any]:
        """JSON-shaped dict keyed like the public API (year keys as strings)."""
        return self.model_dump(by_alias=True, mode="json")


class ChapterPatch(BaseModel):
    """A partial update: every field optional, supplied fields still checked."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    subject: str | None = Field(None, min_length=1, max_length=100)
    chapter: str | None = Field(None, min_length=1, max_length=200)
    class_name: str | None = Field(None, alias="class", min_length=1, max_length=50)
    unit: str | None = Field(None, min_length=1, max_length=100)
    year_wise_question_count: dict[int, Count] | None = Field(None, alias="yearWiseQuestionCount")
    question_solved: Count | None = Field(None, alias="questionSolved")
    status: ChapterStatus | None = None
    is_weak_chapter: bool | None = Field(None, alias="isWeakChapter")

    @field_validator("*")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        # Defaults are not validated, so this only fires on an explicit null
        if value is None:
            raise ValueError("Value cannot be null")
        return value

    @field_validator("year_wise_question_count")
    @classmethod
    def _keep_known_years(cls, value: dict[int, int] | None, info: ValidationInfo) -> dict[int, int] | None:
        if value is None:
            return value
        return _normalize_year_counts(value, info, fill_missing=False)

    def to_update(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)


class ChapterListQuery(BaseModel):
    """Query parameters for GET /api/v1/chapters."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    class_name: str | None = Field(None, alias="class")
    unit: str | None = None
    status: ChapterStatus | None = None
    weak_chapters: bool | None = Field(None, alias="weakChapters")
    subject: str | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    sort_by: Literal[
        "subject", "chapter", "class", "unit", "status", "questionSolved", "createdAt", "updatedAt"
    ] = Field("createdAt", alias="sortBy")
    sort_order: Literal["asc", "desc"] = Field("desc", alias="sortOrder")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def filters(self) -> dict[str, Any]:
        """Store filters for the supplied parameters, keyed by document field."""
        filters: dict[str, Any] = {}
        if self.class_name:
            filters["class"] = self.class_name
        if self.unit:
            filters["unit"] = self.unit
        if self.subject:
            filters["subject"] = self.subject
        if self.status is not None:
            filters["status"] = self.status.value
        if self.weak_chapters is not None:
            filters["isWeakChapter"] = self.weak_chapters
        return filters

    def applied(self) -> dict[str, Any]:
        return {
            "className": self.class_name,
            "unit": self.unit,
            "status": self.status.value if self.status else None,
            "weakChapters": self.weak_chapters,
            "subject": self.subject,
        }

    def canonical_params(self) -> list[tuple[str, str]]:
        """Validated parameters, defaults included, as string pairs.

        Used for cache keys, so equivalent requests map to the same key.
        """
        params = []
        for name, value in self.model_dump(by_alias=True, mode="json", exclude_none=True).items():
            if isinstance(value, bool):
                value = str(value).lower()
            params.append((name, str(value)))
        return params
