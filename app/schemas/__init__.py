"""
app/schemas package marker.
"""

from app.schemas.customers import CustomerProfileResponse
from app.schemas.sales_import import (
    FinancialRecordResponse,
    SalesImportPreviewResponse,
    SalesImportResponse,
    SalesMetricsResponse,
    SellerAliasRequest,
    SellerAliasResponse,
    UploadAuditLogResponse,
)

__all__ = [
    "CustomerProfileResponse",
    "FinancialRecordResponse",
    "SalesImportPreviewResponse",
    "SalesImportResponse",
    "SalesMetricsResponse",
    "SellerAliasRequest",
    "SellerAliasResponse",
    "UploadAuditLogResponse",
]
