"""create user directory, sales ledgers, customer profiles and upload audit logs

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def _create_ledger(table_name: str) -> None:
    op.create_table(
        table_name,
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "amount",
            sa.Numeric(14, 2),
            nullable=False,
            comment="Paid amount when positive, sold amount otherwise",
        ),
        sa.Column("attributed_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("procedure", sa.String(length=255), nullable=True),
        sa.Column("client_name", sa.String(length=255), nullable=True),
        sa.Column("client_national_id", sa.String(length=32), nullable=True),
        sa.Column("client_record_number", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        f"ix_{table_name}_composite_key",
        table_name,
        ["date", "attributed_user_id", "amount"],
    )
    op.create_index(f"ix_{table_name}_team_id", table_name, ["team_id"])


def upgrade() -> None:
    # ---------------------------------------------------------------------------
    # user_profiles / seller_aliases
    # ---------------------------------------------------------------------------
    op.create_table(
        "user_profiles",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_table(
        "seller_aliases",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "source_name",
            sa.String(length=255),
            nullable=False,
            comment="Lowercased seller text as it appears in spreadsheets",
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["user_profiles.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_name", name="uq_seller_aliases_source_name"),
    )

    # ---------------------------------------------------------------------------
    # sold_records / executed_records
    # Same layout; composite lookup key (date, attributed_user_id, amount).
    # ---------------------------------------------------------------------------
    _create_ledger("sold_records")
    _create_ledger("executed_records")

    # ---------------------------------------------------------------------------
    # customer_profiles
    # ---------------------------------------------------------------------------
    op.create_table(
        "customer_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("national_id", sa.String(length=32), nullable=True, comment="Digits only"),
        sa.Column("record_number", sa.String(length=64), nullable=True),
        sa.Column("first_purchase_date", sa.Date(), nullable=False),
        sa.Column("last_purchase_date", sa.Date(), nullable=False),
        sa.Column("total_purchases", sa.Integer(), nullable=False),
        sa.Column("total_value", sa.Numeric(14, 2), nullable=False),
        sa.Column("average_ticket", sa.Numeric(14, 2), nullable=False),
        sa.Column("recency_score", sa.Integer(), nullable=False),
        sa.Column("frequency_score", sa.Integer(), nullable=False),
        sa.Column("value_score", sa.Integer(), nullable=False),
        sa.Column("segment", sa.String(length=32), nullable=False),
        sa.Column("days_since_last_purchase", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_customer_profiles_national_id", "customer_profiles", ["national_id"])
    op.create_index("ix_customer_profiles_record_number", "customer_profiles", ["record_number"])
    op.create_index("ix_customer_profiles_segment", "customer_profiles", ["segment"])

    # ---------------------------------------------------------------------------
    # upload_audit_logs
    # ---------------------------------------------------------------------------
    op.create_table(
        "upload_audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("ledger", sa.String(length=16), nullable=False, comment="sold, executed"),
        sa.Column("uploaded_by", sa.String(length=255), nullable=True),
        sa.Column("uploaded_by_name", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            comment="completed, completed_with_errors, mapping_incomplete",
        ),
        sa.Column("total_rows", sa.Integer(), nullable=False),
        sa.Column("imported_rows", sa.Integer(), nullable=False),
        sa.Column("skipped_rows", sa.Integer(), nullable=False),
        sa.Column("failed_rows", sa.Integer(), nullable=False),
        sa.Column("error_rows", sa.Integer(), nullable=False),
        sa.Column("unmatched_rows", sa.Integer(), nullable=False),
        sa.Column("total_revenue_sold", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_revenue_paid", sa.Numeric(14, 2), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_upload_audit_logs_created_at", "upload_audit_logs", ["created_at"])
    op.create_index("ix_upload_audit_logs_status", "upload_audit_logs", ["status"])


def downgrade() -> None:
    op.drop_index("ix_upload_audit_logs_status", table_name="upload_audit_logs")
    op.drop_index("ix_upload_audit_logs_created_at", table_name="upload_audit_logs")
    op.drop_table("upload_audit_logs")

    op.drop_index("ix_customer_profiles_segment", table_name="customer_profiles")
    op.drop_index("ix_customer_profiles_record_number", table_name="customer_profiles")
    op.drop_index("ix_customer_profiles_national_id", table_name="customer_profiles")
    op.drop_table("customer_profiles")

    for table_name in ("executed_records", "sold_records"):
        op.drop_index(f"ix_{table_name}_team_id", table_name=table_name)
        op.drop_index(f"ix_{table_name}_composite_key", table_name=table_name)
        op.drop_table(table_name)

    op.drop_table("seller_aliases")
    op.drop_table("user_profiles")
