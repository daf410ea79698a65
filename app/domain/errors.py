"""
app/domain/errors.py

Row, entity, storage and scoring failures raised inside the import pipeline.

Only ``MappingIncompleteError`` (see app/validators/mapping_validator.py)
aborts a batch; every error below is recovered where it is raised.
"""

from __future__ import annotations


class SalesImportError(Exception):
    """Base exception for sales import pipeline failures."""


class RowParseError(SalesImportError):
    """Raised when a raw row cannot be normalized (bad date, zero value)."""


class UnmatchedEntityError(SalesImportError):
    """Raised when a seller cannot be linked to a canonical user."""


class PersistenceError(SalesImportError):
    """Raised when a storage backend fails to write a record."""


class SegmentationError(SalesImportError):
    """Raised when one customer cannot be scored during a rescoring pass."""
