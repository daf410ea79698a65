"""
tests/test_sales_repository.py

SqlAlchemySalesRepository against an in-memory SQLite database.
"""

from __future__ import annotations

import uuid
from datetime import date

import pytest

from app.domain.customers import CustomerProfile
from app.domain.errors import PersistenceError
from app.domain.sales import FinancialRecord, LedgerKind, UploadAuditLog, UploadStatus
from app.repositories.sales_repository import SqlAlchemySalesRepository
from conftest import ANA, BRUNO, TEAM_NORTH
from db.models.user_profile import UserProfile
from db.session import build_session_factory


@pytest.fixture()
def repo(db_session) -> SqlAlchemySalesRepository:
    db_session.add_all(
        [
            UserProfile(user_id=ANA.user_id, full_name=ANA.full_name, team_id=ANA.team_id),
            UserProfile(user_id=BRUNO.user_id, full_name=BRUNO.full_name, team_id=BRUNO.team_id),
            UserProfile(full_name="Sem Equipe", team_id=None),
        ]
    )
    db_session.commit()
    return SqlAlchemySalesRepository(db_session)


def _record(record_date: date = date(2024, 3, 15), amount: float = 1234.56, user=ANA, **kwargs):
    return FinancialRecord(
        date=record_date,
        amount=amount,
        attributed_user_id=user.user_id,
        team_id=user.team_id,
        **kwargs,
    )


class TestLedgers:
    def test_insert_and_find_by_composite_key(self, repo) -> None:
        stored = repo.insert(_record(client_name="Maria", notes="Cliente: Maria"), ledger=LedgerKind.SOLD)

        found = repo.find_by_composite_key(
            ledger=LedgerKind.SOLD,
            record_date=date(2024, 3, 15),
            attributed_user_id=ANA.user_id,
            amount=1234.56,
        )

        assert stored.id is not None
        assert found is not None
        assert found.id == stored.id
        assert found.amount == pytest.approx(1234.56)
        assert found.notes == "Cliente: Maria"

    def test_composite_key_requires_all_parts(self, repo) -> None:
        repo.insert(_record(), ledger=LedgerKind.SOLD)

        assert repo.find_by_composite_key(
            ledger=LedgerKind.SOLD,
            record_date=date(2024, 3, 15),
            attributed_user_id=ANA.user_id,
            amount=1234.57,
        ) is None
        assert repo.find_by_composite_key(
            ledger=LedgerKind.SOLD,
            record_date=date(2024, 3, 15),
            attributed_user_id=BRUNO.user_id,
            amount=1234.56,
        ) is None
        assert repo.find_by_composite_key(
            ledger=LedgerKind.EXECUTED,
            record_date=date(2024, 3, 15),
            attributed_user_id=ANA.user_id,
            amount=1234.56,
        ) is None

    def test_query_filters(self, repo) -> None:
        repo.insert(_record(date(2024, 3, 1), 10.0), ledger=LedgerKind.SOLD)
        repo.insert(_record(date(2024, 3, 10), 20.0), ledger=LedgerKind.SOLD)
        repo.insert(_record(date(2024, 3, 20), 30.0), ledger=LedgerKind.SOLD)
        repo.insert(_record(date(2024, 3, 10), 40.0, user=BRUNO), ledger=LedgerKind.SOLD)

        in_range = repo.query_financial_records(
            ledger=LedgerKind.SOLD,
            start_date=date(2024, 3, 10),
            end_date=date(2024, 3, 20),
        )
        by_user = repo.query_financial_records(ledger=LedgerKind.SOLD, attributed_user_id=BRUNO.user_id)
        by_team = repo.query_financial_records(ledger=LedgerKind.SOLD, team_id=TEAM_NORTH)

        assert sorted(record.amount for record in in_range) == [20.0, 30.0, 40.0]
        assert [record.amount for record in by_user] == [40.0]
        assert [record.date for record in by_team] == [date(2024, 3, 1), date(2024, 3, 10), date(2024, 3, 20)]

    def test_failed_insert_raises_persistence_error_and_keeps_session_usable(self, sqlite_engine, repo) -> None:
        record = _record(id=uuid.uuid4())
        repo.insert(record, ledger=LedgerKind.SOLD)
        other_session = build_session_factory(sqlite_engine)()
        try:
            other = SqlAlchemySalesRepository(other_session)

            with pytest.raises(PersistenceError):
                other.insert(record, ledger=LedgerKind.SOLD)

            other.insert(_record(amount=1.0), ledger=LedgerKind.SOLD)
        finally:
            other_session.close()

        assert len(repo.query_financial_records(ledger=LedgerKind.SOLD)) == 2


class TestCustomers:
    def test_upsert_and_lookup(self, repo) -> None:
        customer = CustomerProfile(
            name="Maria Silva",
            national_id="12345678909",
            first_purchase_date=date(2024, 3, 1),
            last_purchase_date=date(2024, 3, 15),
            total_purchases=2,
            total_value=300.0,
            average_ticket=150.0,
        )
        repo.upsert_customer(customer)

        customer.segment = "loyal"
        customer.recency_score = 5
        repo.upsert_customer(customer)

        stored = repo.get_customer(customer.id)
        assert stored is not None
        assert stored.segment == "loyal"
        assert stored.recency_score == 5
        assert stored.total_value == 300.0
        assert repo.get_customer_by_national_id("123.456.789-09").id == customer.id
        assert repo.get_customer_by_national_id("") is None
        assert len(repo.list_customers()) == 1

    def test_average_ticket_is_exact_after_reload(self, repo) -> None:
        customer = CustomerProfile(
            name="Joana Prado",
            first_purchase_date=date(2024, 3, 1),
            last_purchase_date=date(2024, 3, 20),
            total_purchases=3,
            total_value=100.0,
            average_ticket=100.0 / 3,
        )
        repo.upsert_customer(customer)

        stored = repo.get_customer(customer.id)
        listed = repo.list_customers()[0]

        assert stored.average_ticket == 100.0 / 3
        assert listed.average_ticket == stored.average_ticket
        assert stored.average_ticket * stored.total_purchases == pytest.approx(100.0)

    def test_unknown_customer(self, repo) -> None:
        assert repo.get_customer(uuid.uuid4()) is None


class TestDirectory:
    def test_list_users_excludes_teamless(self, repo) -> None:
        names = sorted(user.full_name for user in repo.list_users())

        assert names == ["Ana Souza", "Bruno Lima"]

    def test_add_seller_alias_normalizes_and_repoints(self, repo) -> None:
        repo.add_seller_alias("  Dra.  Ana ", ANA.user_id)
        alias = repo.add_seller_alias("DRA. ANA", BRUNO.user_id)

        assert alias.source_name == "dra. ana"
        assert alias.user_id == BRUNO.user_id
        assert [(a.source_name, a.user_id) for a in repo.list_seller_aliases()] == [("dra. ana", BRUNO.user_id)]

    def test_blank_alias_rejected(self, repo) -> None:
        with pytest.raises(ValueError):
            repo.add_seller_alias("   ", ANA.user_id)


class TestAuditLogs:
    def test_save_and_list(self, repo) -> None:
        saved = repo.save_audit_log(
            UploadAuditLog(
                file_name="vendas.xlsx",
                ledger=LedgerKind.EXECUTED,
                uploaded_by="user-1",
                uploaded_by_name="Operador",
                status=UploadStatus.COMPLETED,
                total_rows=3,
                imported_rows=2,
                total_revenue_sold=150.5,
                period_start=date(2024, 3, 1),
                period_end=date(2024, 3, 2),
                details={"mapping": {"date": "Data"}, "row_errors": []},
            )
        )

        logs = repo.list_audit_logs()

        assert saved.created_at is not None
        assert [log.id for log in logs] == [saved.id]
        assert logs[0].ledger == LedgerKind.EXECUTED
        assert logs[0].details == {"mapping": {"date": "Data"}, "row_errors": []}
        assert logs[0].total_revenue_sold == 150.5
