"""
Shared fixtures: an in-memory SalesLedgerRepository, a small user directory
and a SQLite-backed session for repository tests.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Callable, Iterator, Sequence

import pytest
from sqlalchemy.orm import Session

from app.domain.customers import CustomerProfile
from app.domain.errors import PersistenceError
from app.domain.sales import (
    CanonicalUser,
    FinancialRecord,
    LedgerKind,
    ParsedSale,
    SaleStatus,
    SellerAlias,
    UploadAuditLog,
)

TEAM_NORTH = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
TEAM_SOUTH = uuid.UUID("00000000-0000-0000-0000-0000000000b2")

ANA = CanonicalUser(
    user_id=uuid.UUID("00000000-0000-0000-0000-000000000001"),
    full_name="Ana Souza",
    team_id=TEAM_NORTH,
)
BRUNO = CanonicalUser(
    user_id=uuid.UUID("00000000-0000-0000-0000-000000000002"),
    full_name="Bruno Lima",
    team_id=TEAM_SOUTH,
)
ANA_PAULA = CanonicalUser(
    user_id=uuid.UUID("00000000-0000-0000-0000-000000000003"),
    full_name="Ana Paula Reis",
    team_id=TEAM_SOUTH,
)

TODAY = date(2024, 6, 30)


class InMemorySalesRepository:
    """
    Dict-backed repository with optional write-failure injection.

    ``fail_insert`` and ``fail_customer_upsert`` are predicates; when they
    return True the write raises PersistenceError, like a storage outage.
    """

    def __init__(
        self,
        users: Sequence[CanonicalUser] = (ANA, BRUNO, ANA_PAULA),
        aliases: Sequence[SellerAlias] = (),
    ) -> None:
        self.records: dict[LedgerKind, list[FinancialRecord]] = {kind: [] for kind in LedgerKind}
        self.customers: dict[uuid.UUID, CustomerProfile] = {}
        self.users = list(users)
        self.aliases = list(aliases)
        self.audit_logs: list[UploadAuditLog] = []
        self.fail_insert: Callable[[FinancialRecord], bool] = lambda record: False
        self.fail_customer_upsert: Callable[[CustomerProfile], bool] = lambda customer: False

    def find_by_composite_key(self, *, ledger, record_date, attributed_user_id, amount):
        for record in self.records[ledger]:
            if (
                record.date == record_date
                and record.attributed_user_id == attributed_user_id
                and record.amount == round(amount, 2)
            ):
                return record
        return None

    def insert(self, record, *, ledger):
        if self.fail_insert(record):
            raise PersistenceError(f"insert failed for {record.date}")
        stored = replace(record, id=record.id or uuid.uuid4())
        self.records[ledger].append(stored)
        return stored

    def query_financial_records(
        self,
        *,
        ledger,
        attributed_user_id=None,
        team_id=None,
        start_date=None,
        end_date=None,
        limit=500,
    ):
        rows = [
            record
            for record in self.records[ledger]
            if (attributed_user_id is None or record.attributed_user_id == attributed_user_id)
            and (team_id is None or record.team_id == team_id)
            and (start_date is None or record.date >= start_date)
            and (end_date is None or record.date <= end_date)
        ]
        return sorted(rows, key=lambda record: record.date)[:limit]

    def list_customers(self):
        return [replace(customer) for customer in self.customers.values()]

    def upsert_customer(self, customer):
        if self.fail_customer_upsert(customer):
            raise PersistenceError(f"upsert failed for {customer.id}")
        self.customers[customer.id] = replace(customer)
        return customer

    def get_customer(self, customer_id):
        customer = self.customers.get(customer_id)
        return replace(customer) if customer else None

    def get_customer_by_national_id(self, national_id):
        digits = "".join(char for char in national_id if char.isdigit())
        for customer in self.customers.values():
            if digits and customer.national_id == digits:
                return replace(customer)
        return None

    def list_users(self):
        return list(self.users)

    def list_seller_aliases(self):
        return list(self.aliases)

    def add_seller_alias(self, source_name, user_id):
        normalized = " ".join(source_name.lower().split())
        if not normalized:
            raise ValueError("source_name must not be blank.")
        self.aliases = [alias for alias in self.aliases if alias.source_name != normalized]
        alias = SellerAlias(source_name=normalized, user_id=user_id)
        self.aliases.append(alias)
        return alias

    def save_audit_log(self, audit_log):
        stored = replace(audit_log, created_at=datetime.now(timezone.utc))
        self.audit_logs.append(stored)
        return stored

    def list_audit_logs(self, *, limit=50):
        return list(reversed(self.audit_logs))[:limit]


def make_sale(
    row_number: int = 2,
    *,
    sale_date: date | None = date(2024, 3, 15),
    seller_name: str = "Ana Souza",
    amount_sold: float = 100.0,
    amount_paid: float = 0.0,
    client_name: str = "Maria Silva",
    department: str = "",
    procedure: str = "",
    client_national_id: str | None = None,
    client_record_number: str | None = None,
    user: CanonicalUser | None = ANA,
    status: SaleStatus = SaleStatus.MATCHED,
) -> ParsedSale:
    return ParsedSale(
        row_number=row_number,
        date=sale_date,
        seller_name=seller_name,
        amount_sold=amount_sold,
        amount_paid=amount_paid,
        department=department,
        procedure=procedure,
        client_name=client_name,
        client_national_id=client_national_id,
        client_record_number=client_record_number,
        matched_user_id=user.user_id if user and status == SaleStatus.MATCHED else None,
        matched_team_id=user.team_id if user and status == SaleStatus.MATCHED else None,
        status=status,
    )


@pytest.fixture()
def repository() -> InMemorySalesRepository:
    return InMemorySalesRepository()


@pytest.fixture()
def clock() -> Callable[[], date]:
    return lambda: TODAY


@pytest.fixture()
def sqlite_engine():
    import db.models  # noqa: F401 registers tables on Base.metadata
    from db.base import Base
    from db.session import create_db_engine

    engine = create_db_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def db_session(sqlite_engine) -> Iterator[Session]:
    from db.session import build_session_factory

    session = build_session_factory(sqlite_engine)()
    try:
        yield session
    finally:
        session.close()
