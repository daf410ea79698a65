"""
app/mappers/column_mapper.py

Keyword-driven column mapping engine for sales spreadsheets.

Each canonical field owns an ordered list of keyword rules evaluated against
the lowercased, trimmed header text. Headers are scanned in encounter order
and the first header matching any rule wins the field. Amount fields also
carry "specific" rules ("valor vendido", "valor pago", ...) that replace a
looser generic match found earlier in the scan.

Rules are plain data: pass ``field_rules`` to override them, or load a JSON
document with :func:`load_field_rules`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from app.domain.sales import ColumnMapping
from app.validators.mapping_validator import (
    ColumnMappingValidator,
    MappingErrorDetail,
    MappingIncompleteError,
)

CANONICAL_FIELDS: tuple[str, ...] = (
    "date",
    "seller_name",
    "amount_sold",
    "amount_paid",
    "department",
    "procedure",
    "client_name",
    "client_national_id",
    "client_record_number",
)


@dataclass(frozen=True)
class KeywordRule:
    """
    One header predicate: ``contains`` or ``equals`` a keyword, unless the
    header also contains one of ``excludes``.
    """

    keyword: str
    match: str = "contains"
    excludes: tuple[str, ...] = ()

    def matches(self, header: str) -> bool:
        if any(excluded in header for excluded in self.excludes):
            return False
        if self.match == "equals":
            return header == self.keyword
        return self.keyword in header


@dataclass(frozen=True)
class FieldRule:
    """
    Ordered rules for one canonical field.
    """

    rules: tuple[KeywordRule, ...]
    specific_rules: tuple[KeywordRule, ...] = field(default=())


def _contains(*keywords: str, excludes: tuple[str, ...] = ()) -> tuple[KeywordRule, ...]:
    return tuple(KeywordRule(keyword=keyword, excludes=excludes) for keyword in keywords)


def _equals(*keywords: str) -> tuple[KeywordRule, ...]:
    return tuple(KeywordRule(keyword=keyword, match="equals") for keyword in keywords)


DEFAULT_FIELD_RULES: dict[str, FieldRule] = {
    "date": FieldRule(rules=_contains("data", "date")),
    "seller_name": FieldRule(
        rules=_contains("vendedor", "seller", "usuario", "usuário", "responsavel", "responsável"),
    ),
    "amount_sold": FieldRule(
        rules=_contains("valor", excludes=("pago", "recebido")),
        specific_rules=_contains("valor vendido") + _equals("vendido"),
    ),
    "amount_paid": FieldRule(
        rules=(),
        specific_rules=_contains("valor pago", "valor recebido") + _equals("pago", "recebido"),
    ),
    "department": FieldRule(rules=_contains("depart", "grupo", "setor")),
    "procedure": FieldRule(
        rules=_equals("procedimento") + _contains("procedimento", "servico", "serviço"),
    ),
    "client_name": FieldRule(
        rules=_contains(
            "cliente",
            "paciente",
            "patient",
            "client",
            "nome conta",
            excludes=("id ", "prontu", "cpf", "documento"),
        )
    ),
    "client_national_id": FieldRule(rules=_contains("cpf", "documento")),
    "client_record_number": FieldRule(
        rules=_contains("prontuario", "prontuário", "id paciente", "id conta"),
    ),
}


def normalize_header(header: str) -> str:
    """
    Normalize a header for keyword matching.
    """

    return " ".join(header.strip().lower().split())


def collect_headers(rows: Iterable[Mapping[str, Any]]) -> tuple[str, ...]:
    """
    Union of headers across all rows, in first-seen order.

    Early rows may omit blank cells, so the first row alone can hide columns.
    """

    seen: dict[str, None] = {}
    for row in rows:
        for header in row.keys():
            if isinstance(header, str) and header.strip():
                seen.setdefault(header, None)
    return tuple(seen)


def load_field_rules(path: str | Path) -> dict[str, FieldRule]:
    """
    Load field rules from a JSON document shaped like::

        {"date": {"rules": [{"keyword": "data"}], "specific_rules": []}, ...}

    Fields absent from the document keep their default rules.
    """

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Column keyword rules must be a JSON object.")

    merged = dict(DEFAULT_FIELD_RULES)
    for canonical_field, payload in raw.items():
        if canonical_field not in CANONICAL_FIELDS:
            raise ValueError(f"Unknown canonical field in keyword rules: {canonical_field!r}.")
        if not isinstance(payload, dict):
            raise ValueError(f"Keyword rules for {canonical_field!r} must be a JSON object.")
        merged[canonical_field] = FieldRule(
            rules=tuple(_rule_from_json(item) for item in payload.get("rules", [])),
            specific_rules=tuple(_rule_from_json(item) for item in payload.get("specific_rules", [])),
        )
    return merged


def _rule_from_json(item: Mapping[str, Any]) -> KeywordRule:
    if not isinstance(item, dict) or not item.get("keyword"):
        raise ValueError(f"Keyword rule needs a non-empty 'keyword': {item!r}.")
    return KeywordRule(
        keyword=str(item["keyword"]).strip().lower(),
        match=str(item.get("match", "contains")),
        excludes=tuple(str(value).strip().lower() for value in item.get("excludes", [])),
    )


@dataclass(frozen=True)
class MappingResolution:
    """
    Final resolved mapping metadata.
    """

    mapping: ColumnMapping
    source_headers: tuple[str, ...]
    match_strategies: dict[str, str]


class ColumnMappingResolver:
    """
    Resolves spreadsheet headers into a ColumnMapping.
    """

    def __init__(
        self,
        *,
        field_rules: Mapping[str, FieldRule] | None = None,
        validator: ColumnMappingValidator | None = None,
    ) -> None:
        self._field_rules = dict(field_rules or DEFAULT_FIELD_RULES)
        self._validator = validator or ColumnMappingValidator(canonical_fields=CANONICAL_FIELDS)

    def resolve_mapping(
        self,
        headers: Sequence[str],
        *,
        manual_overrides: Mapping[str, str] | None = None,
    ) -> MappingResolution:
        """
        Resolve canonical-to-header mapping from headers and manual overrides.
        """

        source_headers = tuple(dict.fromkeys(h for h in headers if h and h.strip()))
        header_lookup = {normalize_header(header): header for header in source_headers}

        resolved: dict[str, str] = {}
        strategies: dict[str, str] = {}
        mapping_errors: list[MappingErrorDetail] = []

        for canonical_field, source_column in (manual_overrides or {}).items():
            if not source_column or not source_column.strip():
                continue
            if canonical_field not in CANONICAL_FIELDS:
                mapping_errors.append(
                    MappingErrorDetail(
                        code="invalid_override_field",
                        message="Manual override contains unknown canonical field.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )
                continue
            matched = header_lookup.get(normalize_header(source_column))
            if matched is None:
                mapping_errors.append(
                    MappingErrorDetail(
                        code="override_source_not_found",
                        message="Manual override points to a column not present in the sheet.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                        context={"source_headers": list(source_headers)},
                    )
                )
                continue
            resolved[canonical_field] = matched
            strategies[canonical_field] = "override"

        for header in source_headers:
            normalized = normalize_header(header)
            for canonical_field, field_rule in self._field_rules.items():
                if strategies.get(canonical_field) in ("override", "specific"):
                    continue
                if any(rule.matches(normalized) for rule in field_rule.specific_rules):
                    resolved[canonical_field] = header
                    strategies[canonical_field] = "specific"
                    continue
                if canonical_field in resolved:
                    continue
                if any(rule.matches(normalized) for rule in field_rule.rules):
                    resolved[canonical_field] = header
                    strategies[canonical_field] = "keyword"

        self._validator.validate(
            mapping=resolved,
            source_headers=source_headers,
            pre_errors=mapping_errors,
        )
        return MappingResolution(
            mapping=ColumnMapping(**resolved),
            source_headers=source_headers,
            match_strategies=strategies,
        )

    def validate_mapping(self, mapping: ColumnMapping, headers: Sequence[str]) -> ColumnMapping:
        """
        Check a human-supplied mapping against the sheet headers.
        """

        self._validator.validate(mapping=mapping.to_dict(), source_headers=tuple(headers))
        return mapping


def build_column_mapping(values: Mapping[str, str | None]) -> ColumnMapping:
    """
    Build a ColumnMapping from a loose dict, raising when required keys are absent.
    """

    cleaned = {key: value for key, value in values.items() if value}
    unknown = sorted(set(cleaned) - set(CANONICAL_FIELDS))
    missing = [name for name in ("date", "seller_name") if name not in cleaned]
    if unknown or missing:
        errors = [
            MappingErrorDetail(
                code="invalid_canonical_field",
                message="Unknown canonical field in mapping.",
                canonical_field=name,
            )
            for name in unknown
        ] + [
            MappingErrorDetail(
                code="required_field_unmapped",
                message="Required canonical field is not mapped.",
                canonical_field=name,
            )
            for name in missing
        ]
        raise MappingIncompleteError(message="Column mapping is incomplete.", errors=errors)
    return ColumnMapping(**cleaned)
