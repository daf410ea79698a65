"""
app/api/routers/financial_records.py

Read access to the sold and executed ledgers, plus manual seller corrections.
"""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_sales_repository
from app.domain.errors import PersistenceError
from app.domain.sales import LedgerKind
from app.repositories.base import SalesLedgerRepository
from app.schemas.sales_import import (
    FinancialRecordResponse,
    SellerAliasRequest,
    SellerAliasResponse,
)

router = APIRouter(tags=["financial-records"])


@router.get("/financial-records", response_model=list[FinancialRecordResponse])
def list_financial_records(
    ledger: LedgerKind = Query(default=LedgerKind.SOLD),
    attributed_user_id: uuid.UUID | None = Query(default=None),
    team_id: uuid.UUID | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=500, ge=1, le=5000),
    repository: SalesLedgerRepository = Depends(get_sales_repository),
) -> list[FinancialRecordResponse]:
    """
    Records of one ledger filtered by user, team and inclusive date range.
    """

    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must be on or before end_date.",
        )
    records = repository.query_financial_records(
        ledger=ledger,
        attributed_user_id=attributed_user_id,
        team_id=team_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
    )
    return [FinancialRecordResponse.model_validate(record) for record in records]


@router.post(
    "/seller-aliases",
    response_model=SellerAliasResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_seller_alias(
    body: SellerAliasRequest,
    repository: SalesLedgerRepository = Depends(get_sales_repository),
) -> SellerAliasResponse:
    """
    Link an unmatched spreadsheet seller name to a user that belongs to a team.
    """

    known_users = {user.user_id for user in repository.list_users()}
    if body.user_id not in known_users:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {body.user_id} not found or has no team.",
        )
    try:
        alias = repository.add_seller_alias(body.source_name, body.user_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to store seller alias.",
        ) from exc
    return SellerAliasResponse.model_validate(alias)
