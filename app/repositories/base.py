"""
app/repositories/base.py

Storage contract for the sales import pipeline.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import date
from typing import Sequence

from app.domain.customers import CustomerProfile
from app.domain.sales import (
    CanonicalUser,
    FinancialRecord,
    LedgerKind,
    SellerAlias,
    UploadAuditLog,
)


class SalesLedgerRepository(ABC):
    """
    Ledger, customer, directory and audit storage used by the import flow.

    Implementations raise app.domain.errors.PersistenceError when a write
    fails; a failed write must leave previously committed rows intact.
    """

    @abstractmethod
    def find_by_composite_key(
        self,
        *,
        ledger: LedgerKind,
        record_date: date,
        attributed_user_id: uuid.UUID,
        amount: float,
    ) -> FinancialRecord | None:
        """Return the stored record for (date, user, amount) in ``ledger``."""

    @abstractmethod
    def insert(self, record: FinancialRecord, *, ledger: LedgerKind) -> FinancialRecord:
        """Insert and commit one record, returning it with its id."""

    @abstractmethod
    def query_financial_records(
        self,
        *,
        ledger: LedgerKind,
        attributed_user_id: uuid.UUID | None = None,
        team_id: uuid.UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int = 500,
    ) -> list[FinancialRecord]:
        """Records ordered by date, filtered by user, team and inclusive date range."""

    @abstractmethod
    def list_customers(self) -> list[CustomerProfile]:
        """Every customer profile. Raises PersistenceError when storage is unreachable."""

    @abstractmethod
    def upsert_customer(self, customer: CustomerProfile) -> CustomerProfile:
        """Insert or overwrite the customer keyed by its id."""

    @abstractmethod
    def get_customer(self, customer_id: uuid.UUID) -> CustomerProfile | None:
        ...

    @abstractmethod
    def get_customer_by_national_id(self, national_id: str) -> CustomerProfile | None:
        ...

    @abstractmethod
    def list_users(self) -> list[CanonicalUser]:
        """Users that belong to a team."""

    @abstractmethod
    def list_seller_aliases(self) -> list[SellerAlias]:
        ...

    @abstractmethod
    def add_seller_alias(self, source_name: str, user_id: uuid.UUID) -> SellerAlias:
        """Create or repoint the alias for ``source_name``."""

    @abstractmethod
    def save_audit_log(self, audit_log: UploadAuditLog) -> UploadAuditLog:
        ...

    @abstractmethod
    def list_audit_logs(self, *, limit: int = 50) -> Sequence[UploadAuditLog]:
        """Most recent first."""
