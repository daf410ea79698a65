"""
app/services/sales_metrics_service.py

Batch rollups over one import's parsed sales.

Every non-error row counts (matched and unmatched alike): a seller that is
not linked yet still sold something. Sellers are grouped on their
normalized text, so "Ana" and " ANA " are one seller. Rollups are
computed with pandas ``groupby`` over a frame built from the parsed rows.

Department views
----------------
``by_department_all``     every department, used for audit totals
``by_department_display`` the same minus a denylist (returns, cancellations,
                          losses, "other", "not informed") for chart-facing use
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import pandas as pd

from app.config import DEFAULT_EXCLUDED_DEPARTMENTS
from app.domain.sales import ParsedSale, SaleStatus
from app.resolvers.names import normalize_person_name, normalize_seller_text

logger = logging.getLogger(__name__)

UNINFORMED_DEPARTMENT = "Não informado"
DEFAULT_TOP_CLIENTS_LIMIT = 10

_FRAME_COLUMNS: tuple[str, ...] = (
    "seller",
    "seller_key",
    "team_id",
    "department",
    "procedure",
    "date",
    "client",
    "client_key",
    "amount_sold",
    "amount_paid",
)


@dataclass(frozen=True)
class GroupMetrics:
    key: str
    count: int
    revenue_sold: float
    revenue_paid: float
    distinct_clients: int = 0


@dataclass(frozen=True)
class ClientRevenue:
    name: str
    count: int
    revenue_sold: float
    revenue_paid: float


@dataclass(frozen=True)
class SalesMetrics:
    """
    Rollups for one batch. ``total_revenue`` is the sold total.
    """

    sale_count: int = 0
    total_revenue_sold: float = 0.0
    total_revenue_paid: float = 0.0
    distinct_client_count: int = 0
    distinct_seller_count: int = 0
    average_ticket_per_sale: float = 0.0
    average_ticket_per_client: float = 0.0
    by_seller: list[GroupMetrics] = field(default_factory=list)
    by_team: list[GroupMetrics] = field(default_factory=list)
    by_department_all: list[GroupMetrics] = field(default_factory=list)
    by_department_display: list[GroupMetrics] = field(default_factory=list)
    by_procedure: list[GroupMetrics] = field(default_factory=list)
    by_date: list[GroupMetrics] = field(default_factory=list)
    top_clients: list[ClientRevenue] = field(default_factory=list)

    @property
    def total_revenue(self) -> float:
        return self.total_revenue_sold


def safe_ratio(numerator: float, denominator: float) -> float:
    return round(numerator / denominator, 2) if denominator else 0.0


class SalesMetricsService:
    """
    Computes SalesMetrics for a batch of ParsedSale rows.

    Parameters
    ----------
    excluded_departments:
        Case-insensitive department names left out of the display view.
    top_clients_limit:
        Number of clients kept in ``top_clients``.
    """

    def __init__(
        self,
        *,
        excluded_departments: Iterable[str] = DEFAULT_EXCLUDED_DEPARTMENTS,
        top_clients_limit: int = DEFAULT_TOP_CLIENTS_LIMIT,
    ) -> None:
        self._excluded_departments = frozenset(
            name.strip().lower() for name in excluded_departments if name.strip()
        )
        self._top_clients_limit = max(1, top_clients_limit)

    def compute(self, sales: Sequence[ParsedSale]) -> SalesMetrics:
        frame = self._build_frame(sales)
        if frame.empty:
            return SalesMetrics()

        sale_count = int(len(frame))
        total_sold = round(float(frame["amount_sold"].sum()), 2)
        total_paid = round(float(frame["amount_paid"].sum()), 2)
        distinct_clients = int(frame["client_key"].nunique(dropna=True))
        sellers = frame.loc[frame["seller_key"] != ""]
        distinct_sellers = int(sellers["seller_key"].nunique())

        by_department_all = _rollup(frame, "department")
        by_department_display = [
            group
            for group in by_department_all
            if group.key.strip().lower() not in self._excluded_departments
        ]

        return SalesMetrics(
            sale_count=sale_count,
            total_revenue_sold=total_sold,
            total_revenue_paid=total_paid,
            distinct_client_count=distinct_clients,
            distinct_seller_count=distinct_sellers,
            average_ticket_per_sale=safe_ratio(total_sold, sale_count),
            average_ticket_per_client=safe_ratio(total_sold, distinct_clients),
            by_seller=_seller_rollup(sellers),
            by_team=_rollup(frame, "team_id"),
            by_department_all=by_department_all,
            by_department_display=by_department_display,
            by_procedure=_rollup(frame.loc[frame["procedure"] != ""], "procedure"),
            by_date=sorted(_rollup(frame, "date"), key=lambda group: group.key),
            top_clients=self._top_clients(frame),
        )

    def _top_clients(self, frame: pd.DataFrame) -> list[ClientRevenue]:
        named = frame.dropna(subset=["client_key"])
        if named.empty:
            return []
        grouped = (
            named.groupby("client_key", sort=False)
            .agg(
                name=("client", "first"),
                count=("amount_sold", "size"),
                revenue_sold=("amount_sold", "sum"),
                revenue_paid=("amount_paid", "sum"),
            )
            .sort_values("revenue_sold", ascending=False, kind="mergesort")
            .head(self._top_clients_limit)
        )
        return [
            ClientRevenue(
                name=str(row["name"]),
                count=int(row["count"]),
                revenue_sold=round(float(row["revenue_sold"]), 2),
                revenue_paid=round(float(row["revenue_paid"]), 2),
            )
            for _, row in grouped.iterrows()
        ]

    @staticmethod
    def _build_frame(sales: Sequence[ParsedSale]) -> pd.DataFrame:
        records: list[dict[str, Any]] = []
        for sale in sales:
            if sale.status == SaleStatus.ERROR:
                continue
            records.append(
                {
                    "seller": sale.seller_name.strip(),
                    "seller_key": normalize_seller_text(sale.seller_name),
                    "team_id": str(sale.matched_team_id) if sale.matched_team_id else None,
                    "department": sale.department.strip() or UNINFORMED_DEPARTMENT,
                    "procedure": sale.procedure.strip(),
                    "date": sale.date.isoformat() if sale.date else None,
                    "client": sale.client_name.strip(),
                    "client_key": normalize_person_name(sale.client_name) or None,
                    "amount_sold": float(sale.amount_sold),
                    "amount_paid": float(sale.amount_paid),
                }
            )
        return pd.DataFrame.from_records(records, columns=list(_FRAME_COLUMNS))


def _seller_rollup(sellers: pd.DataFrame) -> list[GroupMetrics]:
    if sellers.empty:
        return []
    # Spellings of one seller share a key; the first one seen is displayed.
    display = sellers.groupby("seller_key", sort=False)["seller"].transform("first")
    return _rollup(sellers.assign(seller=display), "seller")


def _rollup(frame: pd.DataFrame, key: str) -> list[GroupMetrics]:
    """
    Group by ``key`` (rows with a null key are dropped) ordered by sold
    revenue descending; ties keep first-seen order.
    """

    if frame.empty:
        return []
    grouped = (
        frame.groupby(key, sort=False, dropna=True)
        .agg(
            count=("amount_sold", "size"),
            revenue_sold=("amount_sold", "sum"),
            revenue_paid=("amount_paid", "sum"),
            distinct_clients=("client_key", "nunique"),
        )
        .sort_values("revenue_sold", ascending=False, kind="mergesort")
    )
    return [
        GroupMetrics(
            key=str(group_key),
            count=int(row["count"]),
            revenue_sold=round(float(row["revenue_sold"]), 2),
            revenue_paid=round(float(row["revenue_paid"]), 2),
            distinct_clients=int(row["distinct_clients"]),
        )
        for group_key, row in grouped.iterrows()
    ]
