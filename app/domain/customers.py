"""
app/domain/customers.py

Customer (RFV ledger) domain model.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date


@dataclass
class CustomerProfile:
    """
    Long-lived purchase history and RFV scores for one client identity.
    """

    name: str
    first_purchase_date: date
    last_purchase_date: date
    national_id: str | None = None
    record_number: str | None = None
    total_purchases: int = 0
    total_value: float = 0.0
    average_ticket: float = 0.0
    recency_score: int = 1
    frequency_score: int = 1
    value_score: int = 1
    segment: str = "lost"
    days_since_last_purchase: int = 0
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def record_purchase(self, purchase_date: date, amount: float, today: date) -> None:
        """
        Fold one reconciled purchase into the running aggregates.
        """

        self.first_purchase_date = min(self.first_purchase_date, purchase_date)
        self.last_purchase_date = max(self.last_purchase_date, purchase_date)
        self.total_value = round(self.total_value + amount, 2)
        self.total_purchases += 1
        self.average_ticket = self.ticket_average()
        self.refresh_recency(today)

    def ticket_average(self) -> float:
        if self.total_purchases <= 0:
            return 0.0
        return self.total_value / self.total_purchases

    def refresh_recency(self, today: date) -> None:
        self.days_since_last_purchase = max(0, (today - self.last_purchase_date).days)
