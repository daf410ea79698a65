"""
Customer ledger updates (RFV phase 1).

Folds committed purchases into CustomerProfile aggregates, creating a
profile the first time an identity is seen. Scores are left untouched;
population rescoring assigns them.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List
import uuid

from app.domain.customers import CustomerProfile
from app.domain.sales import ParsedSale
from app.resolvers.client_resolver import ClientIdentity, ClientResolver


@dataclass
class TouchedCustomer:
    """
    A customer updated in memory, with the sales folded into it.

    If storing ``customer`` fails, ``sales`` is exactly what has to be
    applied again.
    """

    customer: CustomerProfile
    sales: List[ParsedSale] = field(default_factory=list)


def apply_purchases(
    sales: Iterable[ParsedSale],
    resolver: ClientResolver,
    today: date,
) -> List[TouchedCustomer]:
    """
    Attach each committed sale to a customer and update its aggregates.

    Args:
        sales:    Sales that were persisted by the current import.
        resolver: Index of known customers; new customers are registered
                  into it so later rows in the same batch merge with them.
        today:    Reference date for ``days_since_last_purchase``.

    Returns:
        Touched customers in first-touch order.
    """
    touched: Dict[uuid.UUID, TouchedCustomer] = {}

    for sale in sales:
        if sale.date is None:
            continue
        identity = ClientIdentity.from_sale(sale)
        customer = resolver.resolve(identity)
        if customer is None:
            if identity.is_empty:
                continue
            customer = CustomerProfile(
                name=identity.name,
                national_id=identity.national_id,
                record_number=identity.record_number,
                first_purchase_date=sale.date,
                last_purchase_date=sale.date,
            )
            resolver.stats.created += 1
        else:
            # Backfill identity keys learned from later purchases.
            if customer.national_id is None and identity.national_id:
                customer.national_id = identity.national_id
            if customer.record_number is None and identity.record_number:
                customer.record_number = identity.record_number
            if not customer.name and identity.name:
                customer.name = identity.name

        customer.record_purchase(sale.date, sale.primary_amount, today)
        resolver.register(customer)
        touched.setdefault(customer.id, TouchedCustomer(customer=customer)).sales.append(sale)

    return list(touched.values())
