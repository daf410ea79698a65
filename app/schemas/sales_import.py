"""
app/schemas/sales_import.py

Request and response schemas for sales import endpoints.
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from pydantic import BaseModel, Field


class RowIssueResponse(BaseModel):
    """
    One error or unmatched row reported back to the uploader.
    """

    row_number: int = Field(..., ge=1)
    status: str
    error_message: str | None = None
    seller_name: str | None = None
    client_name: str | None = None


class GroupMetricsResponse(BaseModel):
    key: str
    count: int = Field(..., ge=0)
    revenue_sold: float
    revenue_paid: float
    distinct_clients: int = Field(default=0, ge=0)


class ClientRevenueResponse(BaseModel):
    name: str
    count: int = Field(..., ge=0)
    revenue_sold: float
    revenue_paid: float


class SalesMetricsResponse(BaseModel):
    """
    Batch rollups. ``total_revenue`` equals the sold total.
    """

    sale_count: int = Field(..., ge=0)
    total_revenue: float
    total_revenue_sold: float
    total_revenue_paid: float
    distinct_client_count: int = Field(..., ge=0)
    distinct_seller_count: int = Field(..., ge=0)
    average_ticket_per_sale: float
    average_ticket_per_client: float
    by_seller: list[GroupMetricsResponse] = Field(default_factory=list)
    by_team: list[GroupMetricsResponse] = Field(default_factory=list)
    by_department_all: list[GroupMetricsResponse] = Field(default_factory=list)
    by_department_display: list[GroupMetricsResponse] = Field(default_factory=list)
    by_procedure: list[GroupMetricsResponse] = Field(default_factory=list)
    by_date: list[GroupMetricsResponse] = Field(default_factory=list)
    top_clients: list[ClientRevenueResponse] = Field(default_factory=list)


class SalesImportPreviewResponse(BaseModel):
    """
    Result of mapping, normalization and seller resolution, before any write.
    """

    file_name: str
    ledger: str
    total_rows: int = Field(..., ge=0)
    discarded_rows: int = Field(..., ge=0)
    matched_rows: int = Field(..., ge=0)
    unmatched_rows: int = Field(..., ge=0)
    error_rows: int = Field(..., ge=0)
    mapping: dict[str, str]
    match_strategies: dict[str, str] = Field(default_factory=dict)
    seller_matches: dict[str, int] = Field(default_factory=dict)
    metrics: SalesMetricsResponse
    row_issues: list[RowIssueResponse] = Field(default_factory=list)


class FailedRowResponse(BaseModel):
    row_number: int = Field(..., ge=1)
    error_message: str
    stage: str = "persistence"


class SalesImportResponse(SalesImportPreviewResponse):
    """
    Preview fields plus the persistence outcome.
    """

    success: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    ledger_failed: int = Field(default=0, ge=0)
    status: str
    audit_log_id: uuid.UUID
    failed_rows: list[FailedRowResponse] = Field(default_factory=list)
    segmentation: dict[str, Any] | None = None


class UploadAuditLogResponse(BaseModel):
    id: uuid.UUID
    file_name: str
    ledger: str
    status: str
    uploaded_by: str | None = None
    uploaded_by_name: str | None = None
    total_rows: int
    imported_rows: int
    skipped_rows: int
    failed_rows: int
    error_rows: int
    unmatched_rows: int
    total_revenue_sold: float
    total_revenue_paid: float
    period_start: dt.date | None = None
    period_end: dt.date | None = None
    created_at: dt.datetime | None = None


class FinancialRecordResponse(BaseModel):
    id: uuid.UUID | None = None
    date: dt.date
    amount: float
    attributed_user_id: uuid.UUID
    team_id: uuid.UUID
    department: str | None = None
    procedure: str | None = None
    notes: str | None = None
    client_name: str | None = None
    client_national_id: str | None = None
    client_record_number: str | None = None

    model_config = {"from_attributes": True}


class SellerAliasRequest(BaseModel):
    """
    Manual correction: point a spreadsheet seller name at a user.
    """

    source_name: str = Field(..., min_length=1, max_length=255)
    user_id: uuid.UUID


class SellerAliasResponse(BaseModel):
    source_name: str
    user_id: uuid.UUID

    model_config = {"from_attributes": True}
