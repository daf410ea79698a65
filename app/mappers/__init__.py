"""
app/mappers package marker.
"""

from app.mappers.column_mapper import (
    CANONICAL_FIELDS,
    DEFAULT_FIELD_RULES,
    ColumnMappingResolver,
    FieldRule,
    KeywordRule,
    MappingResolution,
    collect_headers,
    load_field_rules,
)

__all__ = [
    "CANONICAL_FIELDS",
    "DEFAULT_FIELD_RULES",
    "ColumnMappingResolver",
    "FieldRule",
    "KeywordRule",
    "MappingResolution",
    "collect_headers",
    "load_field_rules",
]
