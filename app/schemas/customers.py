"""
app/schemas/customers.py

Response schema for customer (RFV) lookups.
"""

from __future__ import annotations

import datetime as dt
import uuid

from pydantic import BaseModel, Field


class CustomerProfileResponse(BaseModel):
    id: uuid.UUID
    name: str
    national_id: str | None = None
    record_number: str | None = None
    first_purchase_date: dt.date
    last_purchase_date: dt.date
    total_purchases: int = Field(..., ge=0)
    total_value: float
    average_ticket: float
    recency_score: int = Field(..., ge=1, le=5)
    frequency_score: int = Field(..., ge=1, le=5)
    value_score: int = Field(..., ge=1, le=5)
    segment: str
    days_since_last_purchase: int = Field(..., ge=0)

    model_config = {"from_attributes": True}
