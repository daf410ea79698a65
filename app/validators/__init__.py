"""
app/validators package marker.
"""

from app.validators.mapping_validator import (
    ColumnMappingValidator,
    MappingErrorDetail,
    MappingIncompleteError,
)
from app.validators.row_normalizer import RowNormalizer, parse_currency, parse_sheet_date

__all__ = [
    "ColumnMappingValidator",
    "MappingErrorDetail",
    "MappingIncompleteError",
    "RowNormalizer",
    "parse_currency",
    "parse_sheet_date",
]
