"""
RFV segmentation orchestrator.

Phase 1 folds a batch's committed purchases into the customer ledger.
Phase 2 rescores the whole population: recency is recomputed for everyone,
every metric is ranked against everyone, and every customer is rewritten.

Both phases hold one process-wide lock. Phase 1 reads profiles, changes
them in memory and writes them back, so two overlapping imports for the
same client would otherwise overwrite each other's totals.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from app.domain.customers import CustomerProfile
from app.domain.errors import PersistenceError, SegmentationError
from app.domain.sales import FailedRow, FailureStage, ParsedSale
from app.logging_utils import OUTCOME_COMPLETED_WITH_ERRORS, RUN_RFV_RESCORING, run_summary
from app.repositories.base import SalesLedgerRepository
from app.resolvers.client_resolver import ClientResolver, ReconciliationStats
from segmentation.labeling import DEFAULT_SEGMENT_RULES, SegmentRule, classify_segment
from segmentation.ledger import apply_purchases
from segmentation.rfv_scoring import TIE_BREAKING_MIN, RFVScorer

logger = logging.getLogger(__name__)

# Re-entrant: run() holds it across record_purchases() and rescore_all().
_RESCORING_LOCK = threading.RLock()


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _ledger_failure(sale: ParsedSale, exc: Exception) -> FailedRow:
    return FailedRow(
        sale=sale,
        error_message=f"customer ledger not updated: {exc}",
        stage=FailureStage.CUSTOMER_LEDGER,
    )


@dataclass
class LedgerUpdate:
    """
    Outcome of phase 1.

    ``failed_rows`` holds every sale whose purchase is not reflected in a
    stored customer profile; resubmitting them applies each exactly once.
    """

    stats: ReconciliationStats = field(default_factory=ReconciliationStats)
    failed_rows: List[FailedRow] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {**self.stats.to_dict(), "ledger_failed": len(self.failed_rows)}


@dataclass
class RescoringSummary:
    total_customers: int = 0
    rescored: int = 0
    failed: int = 0
    segments: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total_customers": self.total_customers,
            "rescored": self.rescored,
            "failed": self.failed,
            "segments": self.segments,
        }


@dataclass
class SegmentationReport:
    ledger: LedgerUpdate
    rescoring: Optional[RescoringSummary] = None

    def to_dict(self) -> dict:
        return {
            "reconciliation": self.ledger.to_dict(),
            "rescoring": self.rescoring.to_dict() if self.rescoring is not None else None,
        }


class RFVSegmentationOrchestrator:
    """
    Coordinates ledger updates and population rescoring.

    Args:
        repository:   Storage for customer profiles.
        tie_breaking: Percentile tie handling, see ``segmentation.rfv_scoring``.
        rules:        Ordered segment rules.
        clock:        Returns "today"; injectable for deterministic tests.
    """

    def __init__(
        self,
        repository: SalesLedgerRepository,
        *,
        tie_breaking: str = TIE_BREAKING_MIN,
        rules: Sequence[SegmentRule] = DEFAULT_SEGMENT_RULES,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self._repository = repository
        self._scorer = RFVScorer(tie_breaking)
        self._rules = tuple(rules)
        self._clock = clock or _utc_today

    def run(self, sales: Iterable[ParsedSale]) -> SegmentationReport:
        """
        Phase 1 for ``sales`` then phase 2 for the whole population.

        A storage failure while rescoring leaves ``rescoring`` empty; the
        stored aggregates are intact and the next pass scores them.
        """
        with _RESCORING_LOCK:
            ledger = self.record_purchases(sales)
            try:
                rescoring: Optional[RescoringSummary] = self.rescore_all()
            except PersistenceError as exc:
                logger.warning("Rescoring deferred to the next pass: %s", exc)
                rescoring = None
        return SegmentationReport(ledger=ledger, rescoring=rescoring)

    def record_purchases(self, sales: Iterable[ParsedSale]) -> LedgerUpdate:
        """
        Update (or create) the customers touched by ``sales`` and persist them.

        Storage failures never raise; the affected sales come back in
        ``LedgerUpdate.failed_rows``.
        """
        sales = list(sales)
        with _RESCORING_LOCK:
            try:
                known = self._repository.list_customers()
            except PersistenceError as exc:
                logger.warning(
                    "Customer ledger unavailable, %d purchases left pending: %s",
                    len(sales),
                    exc,
                )
                return LedgerUpdate(failed_rows=[_ledger_failure(sale, exc) for sale in sales])

            resolver = ClientResolver(known)
            update = LedgerUpdate(stats=resolver.stats)
            for entry in apply_purchases(sales, resolver, self._clock()):
                try:
                    self._repository.upsert_customer(entry.customer)
                except PersistenceError as exc:
                    logger.warning(
                        "Could not store customer %s, %d purchases left pending: %s",
                        entry.customer.id,
                        len(entry.sales),
                        exc,
                    )
                    update.failed_rows.extend(_ledger_failure(sale, exc) for sale in entry.sales)
        return update

    def rescore_all(self) -> RescoringSummary:
        """
        Recompute recency, scores and segment for every customer.

        Raises:
            PersistenceError: when the customer population cannot be read.
        """
        with _RESCORING_LOCK, run_summary(logger, RUN_RFV_RESCORING) as fields:
            summary = self._rescore_population()
            fields.update(
                total_customers=summary.total_customers,
                rescored=summary.rescored,
                failed=summary.failed,
                segments={name: data["count"] for name, data in summary.segments.items()},
            )
            if summary.failed:
                fields["outcome"] = OUTCOME_COMPLETED_WITH_ERRORS
        return summary

    def _rescore_population(self) -> RescoringSummary:
        today = self._clock()
        customers = self._repository.list_customers()
        summary = RescoringSummary(total_customers=len(customers))
        if not customers:
            return summary

        for customer in customers:
            customer.refresh_recency(today)
        scores = self._scorer.score(
            [customer.days_since_last_purchase for customer in customers],
            [customer.total_purchases for customer in customers],
            [customer.total_value for customer in customers],
        )

        for customer, (r, f, v) in zip(customers, scores):
            try:
                self._rescore_customer(customer, r, f, v)
            except SegmentationError as exc:
                summary.failed += 1
                logger.warning("Skipping customer %s during rescoring: %s", customer.id, exc)
                continue
            summary.rescored += 1
            bucket = summary.segments.setdefault(
                customer.segment,
                {"count": 0, "total_value": 0.0},
            )
            bucket["count"] += 1
            bucket["total_value"] = round(bucket["total_value"] + customer.total_value, 2)
        return summary

    def _rescore_customer(self, customer: CustomerProfile, r: int, f: int, v: int) -> None:
        customer.recency_score = r
        customer.frequency_score = f
        customer.value_score = v
        customer.segment = classify_segment(r, f, v, self._rules)
        customer.average_ticket = customer.ticket_average()
        try:
            self._repository.upsert_customer(customer)
        except PersistenceError as exc:
            raise SegmentationError(f"Failed to store scores for customer {customer.id}") from exc
