"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.customer_profile import CustomerProfileRecord
from db.models.financial_record import ExecutedRecord, FinancialRecordMixin, SoldRecord
from db.models.upload_audit_log import UploadAuditLogRecord
from db.models.user_profile import SellerAliasRecord, UserProfile

__all__ = [
    "CustomerProfileRecord",
    "ExecutedRecord",
    "FinancialRecordMixin",
    "SellerAliasRecord",
    "SoldRecord",
    "UploadAuditLogRecord",
    "UserProfile",
]
