"""
app/domain/sales.py

Domain models used by the sales spreadsheet import flow.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any


class LedgerKind(str, Enum):
    """
    Target ledger for imported financial records.
    """

    SOLD = "sold"
    EXECUTED = "executed"


class SaleStatus(str, Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    ERROR = "error"


@dataclass(frozen=True)
class ColumnMapping:
    """
    Canonical field -> spreadsheet header, resolved once per import.
    """

    date: str
    seller_name: str
    amount_sold: str | None = None
    amount_paid: str | None = None
    department: str | None = None
    procedure: str | None = None
    client_name: str | None = None
    client_national_id: str | None = None
    client_record_number: str | None = None

    def to_dict(self) -> dict[str, str]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


@dataclass
class ParsedSale:
    """
    One normalized spreadsheet row. Lives only for the duration of an import.
    """

    row_number: int
    date: date | None
    seller_name: str
    amount_sold: float
    amount_paid: float
    department: str = ""
    procedure: str = ""
    client_name: str = ""
    client_national_id: str | None = None
    client_record_number: str | None = None
    matched_user_id: uuid.UUID | None = None
    matched_team_id: uuid.UUID | None = None
    status: SaleStatus = SaleStatus.ERROR
    error_message: str | None = None

    @property
    def primary_amount(self) -> float:
        """
        Amount written to the ledger: paid when positive, sold otherwise.
        """

        amount = self.amount_paid if self.amount_paid > 0 else self.amount_sold
        return round(amount, 2)


@dataclass(frozen=True)
class FinancialRecord:
    """
    Typed financial record prepared for (or read back from) a ledger.
    """

    date: date
    amount: float
    attributed_user_id: uuid.UUID
    team_id: uuid.UUID
    department: str | None = None
    procedure: str | None = None
    notes: str | None = None
    client_name: str | None = None
    client_national_id: str | None = None
    client_record_number: str | None = None
    id: uuid.UUID | None = None


class FailureStage:
    PERSISTENCE = "persistence"
    CUSTOMER_LEDGER = "customer_ledger"


@dataclass(frozen=True)
class FailedRow:
    """
    A matched sale that did not make it through a commit stage.

    ``persistence`` rows were never written to the ledger.
    ``customer_ledger`` rows are stored but their purchase is missing from
    the customer profile. Both are resubmittable on their own.
    """

    sale: ParsedSale
    error_message: str
    stage: str = FailureStage.PERSISTENCE


@dataclass
class ImportResult:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    failed_rows: list[FailedRow] = field(default_factory=list)
    committed: list[ParsedSale] = field(default_factory=list)
    ledger_failed_rows: list[FailedRow] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.failed_rows or self.ledger_failed_rows)

    def to_dict(self) -> dict[str, int]:
        return {"success": self.success, "failed": self.failed, "skipped": self.skipped}


@dataclass(frozen=True)
class CanonicalUser:
    """
    Internal seller identity. Only users attached to a team are listed.
    """

    user_id: uuid.UUID
    full_name: str
    team_id: uuid.UUID


@dataclass(frozen=True)
class SellerAlias:
    """
    Explicit spreadsheet seller name -> canonical user mapping.
    """

    source_name: str
    user_id: uuid.UUID


class UploadStatus:
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    MAPPING_INCOMPLETE = "mapping_incomplete"


@dataclass(frozen=True)
class UploadAuditLog:
    """
    Immutable summary of one import attempt.
    """

    file_name: str
    ledger: LedgerKind
    uploaded_by: str | None
    uploaded_by_name: str | None
    status: str
    total_rows: int = 0
    imported_rows: int = 0
    skipped_rows: int = 0
    failed_rows: int = 0
    error_rows: int = 0
    unmatched_rows: int = 0
    total_revenue_sold: float = 0.0
    total_revenue_paid: float = 0.0
    period_start: date | None = None
    period_end: date | None = None
    details: dict[str, Any] | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime | None = None
