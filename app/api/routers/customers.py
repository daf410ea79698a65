"""
app/api/routers/customers.py

Customer (RFV ledger) lookup endpoints.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_sales_repository
from app.repositories.base import SalesLedgerRepository
from app.schemas.customers import CustomerProfileResponse

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("/by-national-id/{national_id}", response_model=CustomerProfileResponse)
def get_customer_by_national_id(
    national_id: str,
    repository: SalesLedgerRepository = Depends(get_sales_repository),
) -> CustomerProfileResponse:
    customer = repository.get_customer_by_national_id(national_id)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No customer with this national ID.",
        )
    return CustomerProfileResponse.model_validate(customer)


@router.get("/{customer_id}", response_model=CustomerProfileResponse)
def get_customer(
    customer_id: uuid.UUID,
    repository: SalesLedgerRepository = Depends(get_sales_repository),
) -> CustomerProfileResponse:
    customer = repository.get_customer(customer_id)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer {customer_id} not found.",
        )
    return CustomerProfileResponse.model_validate(customer)
