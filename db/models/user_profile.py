"""
db/models/user_profile.py

Internal users and the spreadsheet aliases that point at them.
"""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class UserProfile(Base, TimestampMixin):
    """
    Canonical seller identity. Only users with a team take part in matching.
    """

    __tablename__ = "user_profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)


class SellerAliasRecord(Base, TimestampMixin):
    __tablename__ = "seller_aliases"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    source_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Lowercased seller text as it appears in spreadsheets",
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("user_profiles.user_id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (UniqueConstraint("source_name", name="uq_seller_aliases_source_name"),)
