"""
app/api/routers package marker.
"""

from app.api.routers.customers import router as customers_router
from app.api.routers.financial_records import router as financial_records_router
from app.api.routers.sales_import import router as sales_import_router

__all__ = [
    "customers_router",
    "financial_records_router",
    "sales_import_router",
]
