"""
app/domain package marker.
"""

from app.domain.customers import CustomerProfile
from app.domain.errors import (
    PersistenceError,
    RowParseError,
    SalesImportError,
    SegmentationError,
    UnmatchedEntityError,
)
from app.domain.sales import (
    CanonicalUser,
    ColumnMapping,
    FailedRow,
    FailureStage,
    FinancialRecord,
    ImportResult,
    LedgerKind,
    ParsedSale,
    SaleStatus,
    SellerAlias,
    UploadAuditLog,
    UploadStatus,
)

__all__ = [
    "CanonicalUser",
    "ColumnMapping",
    "CustomerProfile",
    "FailedRow",
    "FailureStage",
    "FinancialRecord",
    "ImportResult",
    "LedgerKind",
    "ParsedSale",
    "PersistenceError",
    "RowParseError",
    "SaleStatus",
    "SalesImportError",
    "SegmentationError",
    "SellerAlias",
    "UnmatchedEntityError",
    "UploadAuditLog",
    "UploadStatus",
]
