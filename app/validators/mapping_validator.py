"""
app/validators/mapping_validator.py

Validation for spreadsheet column mapping resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

REQUIRED_FIELDS: tuple[str, ...] = ("date", "seller_name")
AMOUNT_FIELDS: tuple[str, ...] = ("amount_sold", "amount_paid")


@dataclass(frozen=True)
class MappingErrorDetail:
    """
    Structured mapping error detail.
    """

    code: str
    message: str
    canonical_field: str | None = None
    source_column: str | None = None
    context: dict[str, Any] | None = None


class MappingIncompleteError(ValueError):
    """
    Raised when the column mapping cannot drive an import.

    Fatal for the batch: processing stays blocked until a human supplies
    or corrects the mapping.
    """

    def __init__(self, *, message: str, errors: Sequence[MappingErrorDetail]) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors)

    @property
    def missing_fields(self) -> list[str]:
        return [
            error.canonical_field
            for error in self.errors
            if error.code == "required_field_unmapped" and error.canonical_field
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errors": [
                {
                    "code": error.code,
                    "message": error.message,
                    "canonical_field": error.canonical_field,
                    "source_column": error.source_column,
                    "context": error.context,
                }
                for error in self.errors
            ],
        }


class ColumnMappingValidator:
    """
    Validates resolved canonical-to-header mappings.
    """

    def __init__(
        self,
        *,
        canonical_fields: Sequence[str],
        required_fields: Sequence[str] = REQUIRED_FIELDS,
        amount_fields: Sequence[str] = AMOUNT_FIELDS,
    ) -> None:
        self._canonical_set = set(canonical_fields)
        self._required_fields = tuple(required_fields)
        self._amount_fields = tuple(amount_fields)

    def validate(
        self,
        *,
        mapping: Mapping[str, str],
        source_headers: Sequence[str],
        pre_errors: Sequence[MappingErrorDetail] | None = None,
    ) -> None:
        """
        Validate mapping and raise MappingIncompleteError if it cannot be used.
        """

        errors: list[MappingErrorDetail] = list(pre_errors or [])
        headers_set = set(source_headers)

        for canonical_field, source_column in mapping.items():
            if canonical_field not in self._canonical_set:
                errors.append(
                    MappingErrorDetail(
                        code="invalid_canonical_field",
                        message="Unknown canonical field in mapping.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )
            if source_column not in headers_set:
                errors.append(
                    MappingErrorDetail(
                        code="unknown_source_column",
                        message="Mapped source column does not exist in the sheet headers.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )

        for required in self._required_fields:
            if not mapping.get(required):
                errors.append(
                    MappingErrorDetail(
                        code="required_field_unmapped",
                        message="Required canonical field is not mapped.",
                        canonical_field=required,
                        context={"source_headers": list(source_headers)},
                    )
                )

        if not any(mapping.get(amount_field) for amount_field in self._amount_fields):
            for amount_field in self._amount_fields:
                errors.append(
                    MappingErrorDetail(
                        code="required_field_unmapped",
                        message="At least one amount column must be mapped.",
                        canonical_field=amount_field,
                        context={"source_headers": list(source_headers)},
                    )
                )

        if errors:
            missing = sorted(
                {
                    error.canonical_field
                    for error in errors
                    if error.code == "required_field_unmapped" and error.canonical_field
                }
            )
            missing_csv = ", ".join(missing) or "none"
            raise MappingIncompleteError(
                message=f"Column mapping is incomplete. Missing required fields: {missing_csv}.",
                errors=errors,
            )
