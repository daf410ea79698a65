"""
app/services package marker.
"""

from app.services.financial_record_writer import FinancialRecordWriter
from app.services.sales_import_service import (
    PreparedImport,
    SalesImportOutcome,
    SalesImportService,
    get_sales_import_service,
)
from app.services.sales_metrics_service import SalesMetrics, SalesMetricsService
from app.services.spreadsheet_reader import SpreadsheetReader, SpreadsheetReadError

__all__ = [
    "FinancialRecordWriter",
    "PreparedImport",
    "SalesImportOutcome",
    "SalesImportService",
    "SalesMetrics",
    "SalesMetricsService",
    "SpreadsheetReadError",
    "SpreadsheetReader",
    "get_sales_import_service",
]
