"""
app/services/financial_record_writer.py

Idempotent persistence of matched sales into a ledger.

Rows are written one at a time: the composite-key lookup followed by the
insert is not atomic, so concurrent writes of the same key are avoided by
never running two writes at once.
"""

from __future__ import annotations

import logging
from typing import Iterable

from app.domain.errors import PersistenceError
from app.domain.sales import (
    FailedRow,
    FinancialRecord,
    ImportResult,
    LedgerKind,
    ParsedSale,
    SaleStatus,
)
from app.repositories.base import SalesLedgerRepository

logger = logging.getLogger(__name__)

CLIENT_NOTE_PREFIX = "Cliente: "


def build_financial_record(sale: ParsedSale) -> FinancialRecord:
    """
    Map a matched sale to the record written to the ledger.
    """

    if sale.date is None or sale.matched_user_id is None or sale.matched_team_id is None:
        raise ValueError(f"Row {sale.row_number} is not a matched sale.")
    client_name = sale.client_name.strip() or None
    return FinancialRecord(
        date=sale.date,
        amount=sale.primary_amount,
        attributed_user_id=sale.matched_user_id,
        team_id=sale.matched_team_id,
        department=sale.department.strip() or None,
        procedure=sale.procedure.strip() or None,
        notes=f"{CLIENT_NOTE_PREFIX}{client_name}" if client_name else None,
        client_name=client_name,
        client_national_id=sale.client_national_id,
        client_record_number=sale.client_record_number,
    )


class FinancialRecordWriter:
    """
    Writes matched sales, skipping rows whose composite key already exists.
    """

    def __init__(self, repository: SalesLedgerRepository) -> None:
        self._repository = repository

    def write(self, sales: Iterable[ParsedSale], *, ledger: LedgerKind) -> ImportResult:
        result = ImportResult()
        for sale in sales:
            if sale.status != SaleStatus.MATCHED:
                continue
            if sale.matched_user_id is None or sale.matched_team_id is None:
                continue
            self._write_one(sale, ledger=ledger, result=result)

        logger.info(
            "Ledger %s write finished: success=%s skipped=%s failed=%s",
            ledger.value,
            result.success,
            result.skipped,
            result.failed,
        )
        return result

    def _write_one(self, sale: ParsedSale, *, ledger: LedgerKind, result: ImportResult) -> None:
        record = build_financial_record(sale)
        try:
            existing = self._repository.find_by_composite_key(
                ledger=ledger,
                record_date=record.date,
                attributed_user_id=record.attributed_user_id,
                amount=record.amount,
            )
            if existing is not None:
                result.skipped += 1
                return
            self._repository.insert(record, ledger=ledger)
        except PersistenceError as exc:
            logger.warning("Row %s could not be stored: %s", sale.row_number, exc)
            result.failed += 1
            result.failed_rows.append(FailedRow(sale=sale, error_message=str(exc)))
            return

        result.success += 1
        result.committed.append(sale)
