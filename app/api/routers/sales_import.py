"""
app/api/routers/sales_import.py

Sales spreadsheet import HTTP endpoints.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Form, HTTPException, Query, UploadFile, status

from app.api.dependencies import get_sales_repository, get_spreadsheet_upload
from app.domain.sales import LedgerKind
from app.repositories.base import SalesLedgerRepository
from app.schemas.sales_import import (
    ClientRevenueResponse,
    FailedRowResponse,
    GroupMetricsResponse,
    RowIssueResponse,
    SalesImportPreviewResponse,
    SalesImportResponse,
    SalesMetricsResponse,
    UploadAuditLogResponse,
)
from app.services.sales_import_service import (
    PreparedImport,
    SalesImportService,
    get_sales_import_service,
)
from app.services.sales_metrics_service import GroupMetrics, SalesMetrics
from app.services.spreadsheet_reader import SpreadsheetReadError
from app.validators.mapping_validator import MappingIncompleteError

router = APIRouter(prefix="/sales-imports", tags=["sales-imports"])


def _parse_overrides(raw: str | None) -> dict[str, str] | None:
    if raw is None or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"mapping_overrides must be a JSON object: {exc.msg}",
        ) from exc
    if not isinstance(parsed, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in parsed.items()
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="mapping_overrides must map canonical field names to column headers.",
        )
    return parsed


def _prepare_upload(
    *,
    file: UploadFile,
    service: SalesImportService,
    repository: SalesLedgerRepository,
    ledger: LedgerKind,
    sheet_name: str | None,
    mapping_overrides: str | None,
    uploaded_by: str | None,
    uploaded_by_name: str | None,
) -> PreparedImport:
    file_name = file.filename or "upload"
    overrides = _parse_overrides(mapping_overrides)
    try:
        rows = service.read_file(file.file.read(), file_name, sheet_name=sheet_name)
        return service.prepare(
            rows,
            repository=repository,
            file_name=file_name,
            ledger=ledger,
            manual_overrides=overrides,
            uploaded_by=uploaded_by,
            uploaded_by_name=uploaded_by_name,
        )
    except MappingIncompleteError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.to_dict(),
        ) from exc
    except SpreadsheetReadError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    finally:
        file.file.close()


def _group(group: GroupMetrics) -> GroupMetricsResponse:
    return GroupMetricsResponse(
        key=group.key,
        count=group.count,
        revenue_sold=group.revenue_sold,
        revenue_paid=group.revenue_paid,
        distinct_clients=group.distinct_clients,
    )


def _metrics_response(metrics: SalesMetrics) -> SalesMetricsResponse:
    return SalesMetricsResponse(
        sale_count=metrics.sale_count,
        total_revenue=metrics.total_revenue,
        total_revenue_sold=metrics.total_revenue_sold,
        total_revenue_paid=metrics.total_revenue_paid,
        distinct_client_count=metrics.distinct_client_count,
        distinct_seller_count=metrics.distinct_seller_count,
        average_ticket_per_sale=metrics.average_ticket_per_sale,
        average_ticket_per_client=metrics.average_ticket_per_client,
        by_seller=[_group(group) for group in metrics.by_seller],
        by_team=[_group(group) for group in metrics.by_team],
        by_department_all=[_group(group) for group in metrics.by_department_all],
        by_department_display=[_group(group) for group in metrics.by_department_display],
        by_procedure=[_group(group) for group in metrics.by_procedure],
        by_date=[_group(group) for group in metrics.by_date],
        top_clients=[
            ClientRevenueResponse(
                name=client.name,
                count=client.count,
                revenue_sold=client.revenue_sold,
                revenue_paid=client.revenue_paid,
            )
            for client in metrics.top_clients
        ],
    )


def _preview_fields(prepared: PreparedImport, service: SalesImportService) -> dict[str, Any]:
    return {
        "file_name": prepared.file_name,
        "ledger": prepared.ledger.value,
        "total_rows": prepared.total_rows,
        "discarded_rows": prepared.discarded_rows,
        "matched_rows": len(prepared.matched),
        "unmatched_rows": len(prepared.unmatched),
        "error_rows": len(prepared.errors),
        "mapping": prepared.mapping.to_dict(),
        "match_strategies": prepared.match_strategies,
        "seller_matches": prepared.seller_matches,
        "metrics": _metrics_response(prepared.metrics),
        "row_issues": [RowIssueResponse(**issue) for issue in service.row_error_report(prepared)],
    }


@router.post("", response_model=SalesImportResponse)
def import_sales(
    file: UploadFile = Depends(get_spreadsheet_upload),
    ledger: LedgerKind = Query(default=LedgerKind.SOLD, description="Target ledger"),
    sheet_name: str | None = Query(default=None, description="Sheet to read; first sheet when omitted"),
    mapping_overrides: str | None = Form(default=None, description="JSON object {canonical_field: header}"),
    uploaded_by: str | None = Form(default=None),
    uploaded_by_name: str | None = Form(default=None),
    repository: SalesLedgerRepository = Depends(get_sales_repository),
    service: SalesImportService = Depends(get_sales_import_service),
) -> SalesImportResponse:
    """
    Import one spreadsheet into the chosen ledger.
    """

    prepared = _prepare_upload(
        file=file,
        service=service,
        repository=repository,
        ledger=ledger,
        sheet_name=sheet_name,
        mapping_overrides=mapping_overrides,
        uploaded_by=uploaded_by,
        uploaded_by_name=uploaded_by_name,
    )
    outcome = service.commit(prepared, repository=repository)
    result = outcome.result

    return SalesImportResponse(
        **_preview_fields(prepared, service),
        success=result.success,
        failed=result.failed,
        skipped=result.skipped,
        ledger_failed=len(result.ledger_failed_rows),
        status=outcome.audit_log.status,
        audit_log_id=outcome.audit_log.id,
        failed_rows=[
            FailedRowResponse(
                row_number=failed.sale.row_number,
                error_message=failed.error_message,
                stage=failed.stage,
            )
            for failed in [*result.failed_rows, *result.ledger_failed_rows]
        ],
        segmentation=outcome.segmentation,
    )


@router.post("/preview", response_model=SalesImportPreviewResponse)
def preview_sales(
    file: UploadFile = Depends(get_spreadsheet_upload),
    ledger: LedgerKind = Query(default=LedgerKind.SOLD),
    sheet_name: str | None = Query(default=None),
    mapping_overrides: str | None = Form(default=None),
    repository: SalesLedgerRepository = Depends(get_sales_repository),
    service: SalesImportService = Depends(get_sales_import_service),
) -> SalesImportPreviewResponse:
    """
    Map, normalize and resolve a spreadsheet without writing any record.
    """

    prepared = _prepare_upload(
        file=file,
        service=service,
        repository=repository,
        ledger=ledger,
        sheet_name=sheet_name,
        mapping_overrides=mapping_overrides,
        uploaded_by=None,
        uploaded_by_name=None,
    )
    return SalesImportPreviewResponse(**_preview_fields(prepared, service))


@router.get("/audit-logs", response_model=list[UploadAuditLogResponse])
def list_audit_logs(
    limit: int = Query(default=50, ge=1, le=500),
    repository: SalesLedgerRepository = Depends(get_sales_repository),
) -> list[UploadAuditLogResponse]:
    return [
        UploadAuditLogResponse(
            id=log.id,
            file_name=log.file_name,
            ledger=log.ledger.value,
            status=log.status,
            uploaded_by=log.uploaded_by,
            uploaded_by_name=log.uploaded_by_name,
            total_rows=log.total_rows,
            imported_rows=log.imported_rows,
            skipped_rows=log.skipped_rows,
            failed_rows=log.failed_rows,
            error_rows=log.error_rows,
            unmatched_rows=log.unmatched_rows,
            total_revenue_sold=log.total_revenue_sold,
            total_revenue_paid=log.total_revenue_paid,
            period_start=log.period_start,
            period_end=log.period_end,
            created_at=log.created_at,
        )
        for log in repository.list_audit_logs(limit=limit)
    ]
