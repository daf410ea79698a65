"""
app/resolvers package marker.
"""

from app.resolvers.client_resolver import ClientIdentity, ClientResolver, ReconciliationStats
from app.resolvers.seller_resolver import SellerResolver

__all__ = [
    "ClientIdentity",
    "ClientResolver",
    "ReconciliationStats",
    "SellerResolver",
]
