"""
app/services/sales_import_service.py

Service layer for the sales spreadsheet import workflow.

An import runs in two steps:

    prepare()  map columns, normalize rows, resolve sellers, compute metrics
    commit()   write matched rows, store the audit log, update the customer
               ledger and rescore the customer population

``prepare`` has no side effects except the audit log written when the
column mapping is incomplete. Only MappingIncompleteError aborts a batch;
row, seller and storage failures are collected and reported.

After a commit that stored at least one row, RFV segmentation runs once.
Rows whose purchase could not be folded into a customer profile are
reported as ``customer_ledger`` failures and can be resubmitted; a failed
rescoring pass only defers scores to the next pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Mapping, Sequence

from app.config import (
    get_rfv_settings,
    get_sales_import_settings,
    get_sales_metrics_settings,
)
from app.domain.errors import PersistenceError
from app.domain.sales import (
    ColumnMapping,
    FailedRow,
    FailureStage,
    ImportResult,
    LedgerKind,
    ParsedSale,
    SaleStatus,
    UploadAuditLog,
    UploadStatus,
)
from app.logging_utils import (
    OUTCOME_COMPLETED_WITH_ERRORS,
    RUN_SALES_IMPORT,
    RUN_SALES_RESUBMIT,
    run_summary,
)
from app.mappers.column_mapper import ColumnMappingResolver, collect_headers, load_field_rules
from app.repositories.base import SalesLedgerRepository
from app.resolvers.seller_resolver import SellerResolver
from app.services.financial_record_writer import FinancialRecordWriter
from app.services.sales_metrics_service import SalesMetrics, SalesMetricsService
from app.services.spreadsheet_reader import SpreadsheetReader
from app.validators.mapping_validator import MappingIncompleteError
from app.validators.row_normalizer import RowNormalizer
from segmentation.orchestrator import RFVSegmentationOrchestrator, SegmentationReport
from segmentation.rfv_scoring import TIE_BREAKING_MIN

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class PreparedImport:
    """
    Normalized, resolved and measured rows awaiting commit.
    """

    file_name: str
    ledger: LedgerKind
    mapping: ColumnMapping
    match_strategies: dict[str, str]
    total_rows: int
    sales: list[ParsedSale]
    metrics: SalesMetrics
    seller_matches: dict[str, int] = field(default_factory=dict)
    uploaded_by: str | None = None
    uploaded_by_name: str | None = None

    @property
    def matched(self) -> list[ParsedSale]:
        return [sale for sale in self.sales if sale.status == SaleStatus.MATCHED]

    @property
    def unmatched(self) -> list[ParsedSale]:
        return [sale for sale in self.sales if sale.status == SaleStatus.UNMATCHED]

    @property
    def errors(self) -> list[ParsedSale]:
        return [sale for sale in self.sales if sale.status == SaleStatus.ERROR]

    @property
    def discarded_rows(self) -> int:
        return self.total_rows - len(self.sales)

    def period(self) -> tuple[date | None, date | None]:
        dates = [
            sale.date
            for sale in self.sales
            if sale.date is not None and sale.status != SaleStatus.ERROR
        ]
        if not dates:
            return None, None
        return min(dates), max(dates)


@dataclass
class SalesImportOutcome:
    prepared: PreparedImport
    result: ImportResult
    audit_log: UploadAuditLog
    segmentation: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class SalesImportService:
    """
    Coordinates mapping, normalization, resolution, persistence and rescoring.

    The repository is passed per call so one service instance can be shared
    across requests, each with its own session.
    """

    def __init__(
        self,
        *,
        mapping_resolver: ColumnMappingResolver | None = None,
        metrics_service: SalesMetricsService | None = None,
        reader: SpreadsheetReader | None = None,
        max_reported_errors: int = 500,
        log_row_errors: bool = True,
        allow_zero_amount: bool = False,
        run_segmentation: bool = True,
        tie_breaking: str = TIE_BREAKING_MIN,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self._mapping_resolver = mapping_resolver or ColumnMappingResolver()
        self._metrics_service = metrics_service or SalesMetricsService()
        self._reader = reader or SpreadsheetReader()
        self._max_reported_errors = max(1, max_reported_errors)
        self._log_row_errors = log_row_errors
        self._allow_zero_amount = allow_zero_amount
        self._run_segmentation = run_segmentation
        self._tie_breaking = tie_breaking
        self._clock = clock or _utc_today

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def prepare(
        self,
        rows: Sequence[Mapping[str, Any]],
        *,
        repository: SalesLedgerRepository,
        file_name: str,
        ledger: LedgerKind,
        mapping: ColumnMapping | None = None,
        manual_overrides: Mapping[str, str] | None = None,
        uploaded_by: str | None = None,
        uploaded_by_name: str | None = None,
    ) -> PreparedImport:
        """
        Map, normalize, resolve and measure ``rows`` without writing records.

        Raises:
            MappingIncompleteError: when the mapping cannot drive the import.
                An audit log with status ``mapping_incomplete`` is stored first.
        """

        headers = collect_headers(rows)
        try:
            if mapping is not None:
                resolved_mapping = self._mapping_resolver.validate_mapping(mapping, headers)
                strategies = {name: "override" for name in resolved_mapping.to_dict()}
            else:
                resolution = self._mapping_resolver.resolve_mapping(
                    headers,
                    manual_overrides=manual_overrides,
                )
                resolved_mapping = resolution.mapping
                strategies = resolution.match_strategies
        except MappingIncompleteError as exc:
            logger.warning("Column mapping incomplete for %s: %s", file_name, exc.message)
            self._save_audit_log(
                repository,
                UploadAuditLog(
                    file_name=file_name,
                    ledger=ledger,
                    uploaded_by=uploaded_by,
                    uploaded_by_name=uploaded_by_name,
                    status=UploadStatus.MAPPING_INCOMPLETE,
                    total_rows=len(rows),
                    details={"headers": list(headers), **exc.to_dict()},
                ),
            )
            raise

        normalizer = RowNormalizer(resolved_mapping, allow_zero_amount=self._allow_zero_amount)
        sales = normalizer.normalize_rows(rows)

        seller_resolver = SellerResolver(
            repository.list_users(),
            repository.list_seller_aliases(),
        )
        seller_resolver.resolve_all(sales)

        prepared = PreparedImport(
            file_name=file_name,
            ledger=ledger,
            mapping=resolved_mapping,
            match_strategies=strategies,
            total_rows=len(rows),
            sales=sales,
            metrics=self._metrics_service.compute(sales),
            seller_matches=dict(seller_resolver.match_counts),
            uploaded_by=uploaded_by,
            uploaded_by_name=uploaded_by_name,
        )
        self._log_row_issues(prepared)
        return prepared

    def commit(
        self,
        prepared: PreparedImport,
        *,
        repository: SalesLedgerRepository,
    ) -> SalesImportOutcome:
        """
        Persist matched rows, update the customer ledger and store the audit log.

        The audit log is written last so it records customer ledger failures.
        """

        with run_summary(
            logger,
            RUN_SALES_IMPORT,
            file_name=prepared.file_name,
            ledger=prepared.ledger.value,
        ) as summary:
            writer = FinancialRecordWriter(repository)
            result = writer.write(prepared.sales, ledger=prepared.ledger)
            report = self._segment(repository, result.committed, result)

            audit_log = self._save_audit_log(repository, self._build_audit_log(prepared, result))
            summary.update(
                total_rows=prepared.total_rows,
                matched=len(prepared.matched),
                unmatched=len(prepared.unmatched),
                errors=len(prepared.errors),
                success=result.success,
                skipped=result.skipped,
                failed=result.failed,
                ledger_failed=len(result.ledger_failed_rows),
            )
            if result.has_errors:
                summary["outcome"] = OUTCOME_COMPLETED_WITH_ERRORS

        return SalesImportOutcome(
            prepared=prepared,
            result=result,
            audit_log=audit_log,
            segmentation=report.to_dict() if report is not None else None,
        )

    def import_rows(
        self,
        rows: Sequence[Mapping[str, Any]],
        *,
        repository: SalesLedgerRepository,
        file_name: str,
        ledger: LedgerKind,
        mapping: ColumnMapping | None = None,
        manual_overrides: Mapping[str, str] | None = None,
        uploaded_by: str | None = None,
        uploaded_by_name: str | None = None,
    ) -> SalesImportOutcome:
        prepared = self.prepare(
            rows,
            repository=repository,
            file_name=file_name,
            ledger=ledger,
            mapping=mapping,
            manual_overrides=manual_overrides,
            uploaded_by=uploaded_by,
            uploaded_by_name=uploaded_by_name,
        )
        return self.commit(prepared, repository=repository)

    def read_file(
        self,
        content: bytes,
        file_name: str,
        *,
        sheet_name: str | None = None,
    ) -> list[dict[str, Any]]:
        return self._reader.read(content, file_name, sheet_name=sheet_name).rows

    def resubmit_failed(
        self,
        failed_rows: Sequence[FailedRow],
        *,
        repository: SalesLedgerRepository,
        ledger: LedgerKind,
    ) -> ImportResult:
        """
        Retry exactly the rows that failed in a previous commit.

        ``persistence`` rows go through the ledger writer again.
        ``customer_ledger`` rows are already stored, so only their purchase
        is folded into the customer profiles.
        """

        unwritten = [failed.sale for failed in failed_rows if failed.stage == FailureStage.PERSISTENCE]
        stored = [failed.sale for failed in failed_rows if failed.stage == FailureStage.CUSTOMER_LEDGER]

        with run_summary(logger, RUN_SALES_RESUBMIT, ledger=ledger.value) as summary:
            result = FinancialRecordWriter(repository).write(unwritten, ledger=ledger)
            self._segment(repository, [*result.committed, *stored], result)
            summary.update(
                resubmitted=len(failed_rows),
                success=result.success,
                skipped=result.skipped,
                failed=result.failed,
                ledger_failed=len(result.ledger_failed_rows),
            )
            if result.has_errors:
                summary["outcome"] = OUTCOME_COMPLETED_WITH_ERRORS
        return result

    def row_error_report(self, prepared: PreparedImport) -> list[dict[str, Any]]:
        """
        Error and unmatched rows, capped at the configured maximum.
        """

        report: list[dict[str, Any]] = []
        for sale in prepared.sales:
            if sale.status == SaleStatus.MATCHED:
                continue
            if len(report) >= self._max_reported_errors:
                break
            report.append(
                {
                    "row_number": sale.row_number,
                    "status": sale.status.value,
                    "error_message": sale.error_message,
                    "seller_name": sale.seller_name,
                    "client_name": sale.client_name,
                }
            )
        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _segment(
        self,
        repository: SalesLedgerRepository,
        committed: Sequence[ParsedSale],
        result: ImportResult,
    ) -> SegmentationReport | None:
        """
        Run RFV segmentation for ``committed`` and record ledger failures on ``result``.
        """
        if not self._run_segmentation or not committed:
            return None
        orchestrator = RFVSegmentationOrchestrator(
            repository,
            tie_breaking=self._tie_breaking,
            clock=self._clock,
        )
        report = orchestrator.run(committed)
        result.ledger_failed_rows.extend(report.ledger.failed_rows)
        return report

    def _build_audit_log(self, prepared: PreparedImport, result: ImportResult) -> UploadAuditLog:
        period_start, period_end = prepared.period()
        status = UploadStatus.COMPLETED_WITH_ERRORS if result.has_errors else UploadStatus.COMPLETED
        return UploadAuditLog(
            file_name=prepared.file_name,
            ledger=prepared.ledger,
            uploaded_by=prepared.uploaded_by,
            uploaded_by_name=prepared.uploaded_by_name,
            status=status,
            total_rows=prepared.total_rows,
            imported_rows=result.success,
            skipped_rows=result.skipped,
            failed_rows=result.failed,
            error_rows=len(prepared.errors),
            unmatched_rows=len(prepared.unmatched),
            total_revenue_sold=prepared.metrics.total_revenue_sold,
            total_revenue_paid=prepared.metrics.total_revenue_paid,
            period_start=period_start,
            period_end=period_end,
            details={
                "mapping": prepared.mapping.to_dict(),
                "match_strategies": prepared.match_strategies,
                "seller_matches": prepared.seller_matches,
                "discarded_rows": prepared.discarded_rows,
                "row_errors": self.row_error_report(prepared),
                "failed_rows": [
                    {"row_number": failed.sale.row_number, "error_message": failed.error_message}
                    for failed in result.failed_rows[: self._max_reported_errors]
                ],
                "customer_ledger_failures": [
                    {"row_number": failed.sale.row_number, "error_message": failed.error_message}
                    for failed in result.ledger_failed_rows[: self._max_reported_errors]
                ],
            },
        )

    @staticmethod
    def _save_audit_log(
        repository: SalesLedgerRepository,
        audit_log: UploadAuditLog,
    ) -> UploadAuditLog:
        try:
            return repository.save_audit_log(audit_log)
        except PersistenceError as exc:
            logger.warning("Upload audit log for %s was not stored: %s", audit_log.file_name, exc)
            return audit_log

    def _log_row_issues(self, prepared: PreparedImport) -> None:
        if not self._log_row_errors:
            return
        for entry in self.row_error_report(prepared):
            logger.info(
                "Sales import row issue file=%s row=%s status=%s message=%s",
                prepared.file_name,
                entry["row_number"],
                entry["status"],
                entry["error_message"],
            )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_sales_import_service() -> SalesImportService:
    """
    Build and cache the import service with env-driven settings.
    """

    import_settings = get_sales_import_settings()
    metrics_settings = get_sales_metrics_settings()
    rfv_settings = get_rfv_settings()

    field_rules = None
    if import_settings.column_keyword_rules_path:
        field_rules = load_field_rules(import_settings.column_keyword_rules_path)

    return SalesImportService(
        mapping_resolver=ColumnMappingResolver(field_rules=field_rules),
        metrics_service=SalesMetricsService(
            excluded_departments=metrics_settings.excluded_departments,
            top_clients_limit=metrics_settings.top_clients_limit,
        ),
        max_reported_errors=import_settings.max_reported_errors,
        log_row_errors=import_settings.log_row_errors,
        allow_zero_amount=import_settings.allow_zero_amount,
        run_segmentation=import_settings.run_segmentation,
        tie_breaking=rfv_settings.tie_breaking,
    )
