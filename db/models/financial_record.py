"""
db/models/financial_record.py

Ledger tables for imported sales. The sold and executed ledgers share one
column layout and one composite lookup key (date, attributed_user_id, amount).
"""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import Date, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from db.base import Base, TimestampMixin


class FinancialRecordMixin(TimestampMixin):
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    amount: Mapped[float] = mapped_column(
        Numeric(14, 2, asdecimal=False),
        nullable=False,
        comment="Paid amount when positive, sold amount otherwise",
    )
    attributed_user_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    team_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    procedure: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_national_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    client_record_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        return (
            Index(
                f"ix_{cls.__tablename__}_composite_key",
                "date",
                "attributed_user_id",
                "amount",
            ),
            Index(f"ix_{cls.__tablename__}_team_id", "team_id"),
        )


class SoldRecord(FinancialRecordMixin, Base):
    __tablename__ = "sold_records"


class ExecutedRecord(FinancialRecordMixin, Base):
    __tablename__ = "executed_records"
