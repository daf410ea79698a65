"""
db/models/upload_audit_log.py

One row per spreadsheet import attempt.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, DateTime, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class UploadAuditLogRecord(Base):
    __tablename__ = "upload_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    ledger: Mapped[str] = mapped_column(String(16), nullable=False, comment="sold, executed")
    uploaded_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    uploaded_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="completed, completed_with_errors, mapping_incomplete",
    )
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    imported_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unmatched_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_revenue_sold: Mapped[float] = mapped_column(
        Numeric(14, 2, asdecimal=False), nullable=False, default=0
    )
    total_revenue_paid: Mapped[float] = mapped_column(
        Numeric(14, 2, asdecimal=False), nullable=False, default=0
    )
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_upload_audit_logs_created_at", "created_at"),
        Index("ix_upload_audit_logs_status", "status"),
    )
