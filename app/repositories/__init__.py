"""
app/repositories package marker.
"""

from app.repositories.base import SalesLedgerRepository
from app.repositories.sales_repository import SqlAlchemySalesRepository

__all__ = [
    "SalesLedgerRepository",
    "SqlAlchemySalesRepository",
]
