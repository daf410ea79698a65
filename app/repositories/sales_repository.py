"""
app/repositories/sales_repository.py

SQLAlchemy implementation of SalesLedgerRepository.

Every write commits on its own so one failing row never rolls back rows
already stored in the same import.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Callable, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.customers import CustomerProfile
from app.domain.errors import PersistenceError
from app.domain.sales import (
    CanonicalUser,
    FinancialRecord,
    LedgerKind,
    SellerAlias,
    UploadAuditLog,
)
from app.repositories.base import SalesLedgerRepository
from app.resolvers.names import digits_only, normalize_seller_text
from db.models.customer_profile import CustomerProfileRecord
from db.models.financial_record import ExecutedRecord, FinancialRecordMixin, SoldRecord
from db.models.upload_audit_log import UploadAuditLogRecord
from db.models.user_profile import SellerAliasRecord, UserProfile

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

LEDGER_MODELS: dict[LedgerKind, type[SoldRecord] | type[ExecutedRecord]] = {
    LedgerKind.SOLD: SoldRecord,
    LedgerKind.EXECUTED: ExecutedRecord,
}

_CUSTOMER_FIELDS: tuple[str, ...] = (
    "name",
    "national_id",
    "record_number",
    "first_purchase_date",
    "last_purchase_date",
    "total_purchases",
    "total_value",
    "average_ticket",
    "recency_score",
    "frequency_score",
    "value_score",
    "segment",
    "days_since_last_purchase",
)


class SqlAlchemySalesRepository(SalesLedgerRepository):
    """
    Repository backed by one SQLAlchemy session.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_composite_key(
        self,
        *,
        ledger: LedgerKind,
        record_date: date,
        attributed_user_id: uuid.UUID,
        amount: float,
    ) -> FinancialRecord | None:
        model = LEDGER_MODELS[ledger]
        stmt = (
            select(model)
            .where(model.date == record_date)
            .where(model.attributed_user_id == attributed_user_id)
            .where(model.amount == round(amount, 2))
            .limit(1)
        )

        def _read() -> FinancialRecord | None:
            row = self._session.execute(stmt).scalars().first()
            return _record_to_domain(row) if row is not None else None

        return self._run_or_raise(_read, action=f"look up {model.__tablename__}")

    def insert(self, record: FinancialRecord, *, ledger: LedgerKind) -> FinancialRecord:
        model = LEDGER_MODELS[ledger]
        row = model(
            id=record.id or uuid.uuid4(),
            date=record.date,
            amount=round(record.amount, 2),
            attributed_user_id=record.attributed_user_id,
            team_id=record.team_id,
            department=record.department,
            procedure=record.procedure,
            client_name=record.client_name,
            client_national_id=record.client_national_id,
            client_record_number=record.client_record_number,
            notes=record.notes,
        )

        def _write() -> FinancialRecord:
            self._session.add(row)
            self._session.commit()
            return _record_to_domain(row)

        return self._run_or_raise(_write, action=f"insert into {model.__tablename__}")

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
        model = LEDGER_MODELS[ledger]
        stmt = select(model)
        if attributed_user_id is not None:
            stmt = stmt.where(model.attributed_user_id == attributed_user_id)
        if team_id is not None:
            stmt = stmt.where(model.team_id == team_id)
        if start_date is not None:
            stmt = stmt.where(model.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(model.date <= end_date)
        stmt = stmt.order_by(model.date.asc(), model.created_at.asc()).limit(max(1, limit))
        return [_record_to_domain(row) for row in self._session.execute(stmt).scalars()]

    def list_customers(self) -> list[CustomerProfile]:
        stmt = select(CustomerProfileRecord).order_by(CustomerProfileRecord.created_at.asc())

        def _read() -> list[CustomerProfile]:
            return [_customer_to_domain(row) for row in self._session.execute(stmt).scalars()]

        return self._run_or_raise(_read, action="list customer profiles")

    def upsert_customer(self, customer: CustomerProfile) -> CustomerProfile:
        def _write() -> CustomerProfile:
            row = self._session.get(CustomerProfileRecord, customer.id)
            if row is None:
                row = CustomerProfileRecord(id=customer.id)
                self._session.add(row)
            for name in _CUSTOMER_FIELDS:
                setattr(row, name, getattr(customer, name))
            self._session.commit()
            return customer

        return self._run_or_raise(_write, action="upsert customer profile")

    def get_customer(self, customer_id: uuid.UUID) -> CustomerProfile | None:
        row = self._session.get(CustomerProfileRecord, customer_id)
        return _customer_to_domain(row) if row is not None else None

    def get_customer_by_national_id(self, national_id: str) -> CustomerProfile | None:
        digits = digits_only(national_id)
        if not digits:
            return None
        stmt = select(CustomerProfileRecord).where(CustomerProfileRecord.national_id == digits)
        row = self._session.execute(stmt).scalars().first()
        return _customer_to_domain(row) if row is not None else None

    def list_users(self) -> list[CanonicalUser]:
        stmt = (
            select(UserProfile)
            .where(UserProfile.team_id.is_not(None))
            .order_by(UserProfile.created_at.asc())
        )
        return [
            CanonicalUser(user_id=row.user_id, full_name=row.full_name, team_id=row.team_id)
            for row in self._session.execute(stmt).scalars()
        ]

    def list_seller_aliases(self) -> list[SellerAlias]:
        stmt = select(SellerAliasRecord).order_by(SellerAliasRecord.source_name.asc())
        return [
            SellerAlias(source_name=row.source_name, user_id=row.user_id)
            for row in self._session.execute(stmt).scalars()
        ]

    def add_seller_alias(self, source_name: str, user_id: uuid.UUID) -> SellerAlias:
        normalized = normalize_seller_text(source_name)
        if not normalized:
            raise ValueError("source_name must not be blank.")

        def _write() -> SellerAlias:
            stmt = select(SellerAliasRecord).where(SellerAliasRecord.source_name == normalized)
            row = self._session.execute(stmt).scalars().first()
            if row is None:
                row = SellerAliasRecord(source_name=normalized, user_id=user_id)
                self._session.add(row)
            else:
                row.user_id = user_id
            self._session.commit()
            return SellerAlias(source_name=row.source_name, user_id=row.user_id)

        return self._run_or_raise(_write, action="save seller alias")

    def save_audit_log(self, audit_log: UploadAuditLog) -> UploadAuditLog:
        payload: dict[str, Any] = {
            "id": audit_log.id,
            "file_name": audit_log.file_name,
            "ledger": audit_log.ledger.value,
            "uploaded_by": audit_log.uploaded_by,
            "uploaded_by_name": audit_log.uploaded_by_name,
            "status": audit_log.status,
            "total_rows": audit_log.total_rows,
            "imported_rows": audit_log.imported_rows,
            "skipped_rows": audit_log.skipped_rows,
            "failed_rows": audit_log.failed_rows,
            "error_rows": audit_log.error_rows,
            "unmatched_rows": audit_log.unmatched_rows,
            "total_revenue_sold": round(audit_log.total_revenue_sold, 2),
            "total_revenue_paid": round(audit_log.total_revenue_paid, 2),
            "period_start": audit_log.period_start,
            "period_end": audit_log.period_end,
            "details": audit_log.details,
        }

        def _write() -> UploadAuditLog:
            row = UploadAuditLogRecord(**payload)
            self._session.add(row)
            self._session.commit()
            return _audit_log_to_domain(row)

        return self._run_or_raise(_write, action="save upload audit log")

    def list_audit_logs(self, *, limit: int = 50) -> list[UploadAuditLog]:
        stmt = (
            select(UploadAuditLogRecord)
            .order_by(UploadAuditLogRecord.created_at.desc())
            .limit(max(1, limit))
        )
        return [_audit_log_to_domain(row) for row in self._session.execute(stmt).scalars()]

    def _run_or_raise(self, operation: Callable[[], _T], *, action: str) -> _T:
        try:
            return operation()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.warning("Database operation failed (%s): %s", action, exc)
            raise PersistenceError(f"Failed to {action}: {exc}") from exc


def _record_to_domain(row: FinancialRecordMixin) -> FinancialRecord:
    return FinancialRecord(
        id=row.id,
        date=row.date,
        amount=float(row.amount),
        attributed_user_id=row.attributed_user_id,
        team_id=row.team_id,
        department=row.department,
        procedure=row.procedure,
        notes=row.notes,
        client_name=row.client_name,
        client_national_id=row.client_national_id,
        client_record_number=row.client_record_number,
    )


def _customer_to_domain(row: CustomerProfileRecord) -> CustomerProfile:
    values = {name: getattr(row, name) for name in _CUSTOMER_FIELDS}
    values["total_value"] = float(values["total_value"] or 0)
    customer = CustomerProfile(id=row.id, **values)
    customer.average_ticket = customer.ticket_average()
    return customer


def _audit_log_to_domain(row: UploadAuditLogRecord) -> UploadAuditLog:
    return UploadAuditLog(
        id=row.id,
        file_name=row.file_name,
        ledger=LedgerKind(row.ledger),
        uploaded_by=row.uploaded_by,
        uploaded_by_name=row.uploaded_by_name,
        status=row.status,
        total_rows=row.total_rows,
        imported_rows=row.imported_rows,
        skipped_rows=row.skipped_rows,
        failed_rows=row.failed_rows,
        error_rows=row.error_rows,
        unmatched_rows=row.unmatched_rows,
        total_revenue_sold=float(row.total_revenue_sold or 0),
        total_revenue_paid=float(row.total_revenue_paid or 0),
        period_start=row.period_start,
        period_end=row.period_end,
        details=row.details,
        created_at=row.created_at,
    )
