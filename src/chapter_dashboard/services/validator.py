"""Record validation.

Wraps the pydantic schemas so callers get FieldError lists rather than
pydantic exceptions, and so batches are split into accepted and rejected
items instead of failing as a whole.
"""

from collections.abc import Sequence
from typing import Any

import pydantic

from chapter_dashboard.dto import DEFAULT_YEARS, ChapterListQuery, ChapterPatch, ChapterPayload
from chapter_dashboard.entities import FieldError, RejectedItem, ValidationBatch
from chapter_dashboard.exceptions import ValidationError


def _field_path(loc: tuple[int | str, ...]) -> str:
    # Dict-key errors end in "[key]"; report the key itself
    return ".".join(str(part) for part in loc if part != "[key]")


def to_field_errors(error: pydantic.ValidationError) -> list[FieldError]:
    """Flatten a pydantic error into one FieldError per problem."""
    field_errors = []
    for detail in error.errors(include_url=False):
        value = None if detail["type"] == "missing" else detail.get("input")
        field_errors.append(
            FieldError(
                field=_field_path(detail["loc"]) or "document",
                message=detail["msg"],
                value=value,
            )
        )
    return field_errors


class ChapterValidator:
    """Validates chapter payloads against the record schema.

    Example:
        ```python
        validator = ChapterValidator(years=range(2019, 2026))
        batch = validator.validate_many(raw_items)
        batch.accepted   # list of document-shaped dicts
        batch.rejected   # list of RejectedItem
        ```
    """

    def __init__(self, years: Sequence[int] | None = None) -> None:
        """Initialize the validator.

        Args:
            years: Years accepted in yearWiseQuestionCount. Defaults to 2019-2025.
        """
        self._years = tuple(years or DEFAULT_YEARS)

    @property
    def years(self) -> tuple[int, ...]:
        return self._years

    def _context(self) -> dict[str, Any]:
        return {"years": self._years}

    def check_one(self, raw: Any) -> tuple[dict[str, Any] | None, list[FieldError]]:
        """Validate one record without raising.

        Returns:
            Tuple (document-shaped dict or None, errors)
        """
        try:
            payload = ChapterPayload.model_validate(raw, context=self._context())
        except pydantic.ValidationError as e:
            return None, to_field_errors(e)
        return payload.to_document(), []

    def validate_one(self, raw: Any) -> dict[str, Any]:
        """Validate one complete record.

        Raises:
            ValidationError: With every field error found
        """
        document, errors = self.check_one(raw)
        if errors:
            raise ValidationError("Validation failed", errors=errors)
        return document  # type: ignore[return-value]

    def validate_many(self, raw_items: Any) -> ValidationBatch:
        """Split a batch into accepted documents and rejected items.

        Rejected items keep their position in raw_items and the raw value.

        Raises:
            ValidationError: If raw_items is not a list at all
        """
        if not isinstance(raw_items, list):
            raise ValidationError("Expected an array of chapters")

        accepted: list[dict[str, Any]] = []
        rejected: list[RejectedItem] = []
        for index, raw in enumerate(raw_items):
            document, errors = self.check_one(raw)
            if errors:
                rejected.append(RejectedItem(index=index, chapter=raw, errors=errors))
            else:
                accepted.append(document)  # type: ignore[arg-type]
        return ValidationBatch(accepted=accepted, rejected=rejected)

    def validate_patch(self, raw: Any) -> dict[str, Any]:
        """Validate a partial update. Only supplied fields are returned."""
        try:
            patch = ChapterPatch.model_validate(raw, context=self._context())
        except pydantic.ValidationError as e:
            raise ValidationError("Validation failed", errors=to_field_errors(e)) from e
        return patch.to_update()

    def validate_query(self, params: Any) -> ChapterListQuery:
        """Validate list query parameters, applying defaults."""
        try:
            return ChapterListQuery.model_validate(params)
        except pydantic.ValidationError as e:
            raise ValidationError("Invalid query parameters", errors=to_field_errors(e)) from e
