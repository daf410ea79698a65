"""
db/models/customer_profile.py

Customer (RFV) ledger row. Created on first reconciled purchase, never deleted.
"""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Date, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class CustomerProfileRecord(Base, TimestampMixin):
    __tablename__ = "customer_profiles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    national_id: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="Digits only",
    )
    record_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    first_purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_purchases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_value: Mapped[float] = mapped_column(
        Numeric(14, 2, asdecimal=False),
        nullable=False,
        default=0,
    )
    # Rounded to cents for SQL consumers; the repository derives the exact
    # value from total_value / total_purchases on read.
    average_ticket: Mapped[float] = mapped_column(
        Numeric(14, 2, asdecimal=False),
        nullable=False,
        default=0,
    )
    recency_score: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    frequency_score: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    value_score: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    segment: Mapped[str] = mapped_column(String(32), nullable=False, default="lost")
    days_since_last_purchase: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_customer_profiles_national_id", "national_id"),
        Index("ix_customer_profiles_record_number", "record_number"),
        Index("ix_customer_profiles_segment", "segment"),
    )
