"""
tests/test_segmentation_orchestrator.py

Customer ledger updates followed by full-population RFV rescoring.
"""

from __future__ import annotations

import threading
import time
from datetime import date

import pytest

from app.domain.customers import CustomerProfile
from app.domain.errors import PersistenceError
from app.domain.sales import FailureStage
from app.resolvers.client_resolver import ClientResolver
from segmentation.labeling import SEGMENT_LOST, SEGMENT_LOYAL
from segmentation.ledger import apply_purchases
from segmentation.orchestrator import RFVSegmentationOrchestrator
from conftest import TODAY, make_sale


@pytest.fixture()
def orchestrator(repository, clock) -> RFVSegmentationOrchestrator:
    return RFVSegmentationOrchestrator(repository, clock=clock)


def _by_name(repository) -> dict[str, CustomerProfile]:
    return {customer.name: customer for customer in repository.customers.values()}


def _first_batch():
    return [
        make_sale(2, sale_date=date(2024, 6, 1), amount_sold=100.0, client_name="Maria Silva"),
        make_sale(3, sale_date=date(2024, 6, 20), amount_sold=200.0, client_name="MARIA SILVA",
                  client_national_id="123.456.789-09"),
        make_sale(4, sale_date=date(2024, 1, 10), amount_sold=50.0, client_name="João Pedro"),
    ]


class TestApplyPurchases:
    def test_creates_and_merges_customers(self) -> None:
        resolver = ClientResolver()

        touched = apply_purchases(_first_batch(), resolver, TODAY)

        assert [entry.customer.name for entry in touched] == ["Maria Silva", "João Pedro"]
        assert [[sale.row_number for sale in entry.sales] for entry in touched] == [[2, 3], [4]]
        maria = touched[0].customer
        assert maria.total_purchases == 2
        assert maria.total_value == 300.0
        assert maria.average_ticket == 150.0
        assert maria.first_purchase_date == date(2024, 6, 1)
        assert maria.last_purchase_date == date(2024, 6, 20)
        assert maria.days_since_last_purchase == 10
        assert maria.national_id == "12345678909"
        assert resolver.stats.created == 2
        assert resolver.stats.by_name == 1

    def test_uses_paid_amount_when_present(self) -> None:
        touched = apply_purchases(
            [make_sale(amount_sold=500.0, amount_paid=200.0)],
            ClientResolver(),
            TODAY,
        )

        assert touched[0].customer.total_value == 200.0

    def test_skips_rows_without_identity(self) -> None:
        resolver = ClientResolver()

        touched = apply_purchases([make_sale(client_name="")], resolver, TODAY)

        assert touched == []
        assert resolver.stats.no_identity == 1


class TestRecordPurchasesAndRescore:
    def test_run_scores_the_population(self, repository, orchestrator) -> None:
        report = orchestrator.run(_first_batch()).to_dict()

        assert report["reconciliation"]["created"] == 2
        assert report["reconciliation"]["no_match"] == 2
        assert report["rescoring"]["total_customers"] == 2
        assert report["rescoring"]["rescored"] == 2
        assert report["rescoring"]["segments"] == {
            SEGMENT_LOYAL: {"count": 1, "total_value": 300.0},
            SEGMENT_LOST: {"count": 1, "total_value": 50.0},
        }

        customers = _by_name(repository)
        maria = customers["Maria Silva"]
        assert (maria.recency_score, maria.frequency_score, maria.value_score) == (5, 3, 3)
        assert maria.segment == SEGMENT_LOYAL
        joao = customers["João Pedro"]
        assert (joao.recency_score, joao.frequency_score, joao.value_score) == (3, 1, 1)
        assert joao.days_since_last_purchase == 172
        assert joao.segment == SEGMENT_LOST

    def test_later_batch_merges_by_national_id(self, repository, orchestrator) -> None:
        orchestrator.run(_first_batch())

        report = orchestrator.run(
            [make_sale(2, sale_date=date(2024, 6, 25), amount_sold=80.0,
                       client_name="M. Silva", client_national_id="12345678909")]
        ).to_dict()

        assert report["reconciliation"]["by_national_id"] == 1
        assert report["reconciliation"]["created"] == 0
        assert len(repository.customers) == 2
        maria = _by_name(repository)["Maria Silva"]
        assert maria.total_purchases == 3
        assert maria.total_value == 380.0
        assert maria.last_purchase_date == date(2024, 6, 25)

    def test_rescoring_refreshes_recency_for_everyone(self, repository) -> None:
        RFVSegmentationOrchestrator(repository, clock=lambda: TODAY).run(_first_batch())

        later = RFVSegmentationOrchestrator(repository, clock=lambda: date(2024, 7, 30))
        summary = later.rescore_all()

        assert summary.rescored == 2
        days = {customer.name: customer.days_since_last_purchase for customer in repository.customers.values()}
        assert days == {"Maria Silva": 40, "João Pedro": 202}

    def test_failed_customer_is_counted_and_skipped(self, repository, orchestrator) -> None:
        orchestrator.run(_first_batch())
        repository.fail_customer_upsert = lambda customer: customer.name == "João Pedro"

        summary = orchestrator.rescore_all()

        assert summary.total_customers == 2
        assert summary.rescored == 1
        assert summary.failed == 1
        assert SEGMENT_LOST not in summary.segments

    def test_upsert_failure_returns_the_customers_sales(self, repository, orchestrator) -> None:
        repository.fail_customer_upsert = lambda customer: customer.name == "Maria Silva"

        update = orchestrator.record_purchases(_first_batch())

        assert update.stats.created == 2
        assert [failed.sale.row_number for failed in update.failed_rows] == [2, 3]
        assert {failed.stage for failed in update.failed_rows} == {FailureStage.CUSTOMER_LEDGER}
        assert update.to_dict()["ledger_failed"] == 2
        assert [customer.name for customer in repository.customers.values()] == ["João Pedro"]

    def test_retrying_failed_sales_applies_each_purchase_once(self, repository, orchestrator) -> None:
        repository.fail_customer_upsert = lambda customer: True
        update = orchestrator.record_purchases(_first_batch())

        repository.fail_customer_upsert = lambda customer: False
        retry = orchestrator.record_purchases([failed.sale for failed in update.failed_rows])

        assert retry.failed_rows == []
        maria = _by_name(repository)["Maria Silva"]
        assert maria.total_purchases == 2
        assert maria.total_value == 300.0
        assert _by_name(repository)["João Pedro"].total_value == 50.0

    def test_unreadable_customer_store_leaves_every_sale_pending(self, repository, orchestrator) -> None:
        def broken_list_customers():
            raise PersistenceError("customer store offline")

        repository.list_customers = broken_list_customers

        report = orchestrator.run(_first_batch())

        assert [failed.sale.row_number for failed in report.ledger.failed_rows] == [2, 3, 4]
        assert "customer store offline" in report.ledger.failed_rows[0].error_message
        assert report.rescoring is None

    def test_overlapping_runs_do_not_lose_purchases(self, repository, clock) -> None:
        original_list_customers = repository.list_customers

        def slow_list_customers():
            snapshot = original_list_customers()
            time.sleep(0.05)
            return snapshot

        repository.list_customers = slow_list_customers
        batches = [
            [make_sale(2, sale_date=date(2024, 6, 1), amount_sold=100.0, client_name="Maria Silva")],
            [make_sale(2, sale_date=date(2024, 6, 2), amount_sold=40.0, client_name="Maria Silva")],
        ]
        threads = [
            threading.Thread(target=RFVSegmentationOrchestrator(repository, clock=clock).run, args=(batch,))
            for batch in batches
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(repository.customers) == 1
        maria = _by_name(repository)["Maria Silva"]
        assert maria.total_purchases == 2
        assert maria.total_value == 140.0

    def test_empty_population(self, orchestrator) -> None:
        summary = orchestrator.rescore_all()

        assert summary.to_dict() == {
            "total_customers": 0,
            "rescored": 0,
            "failed": 0,
            "segments": {},
        }

    def test_dense_tie_breaking(self, repository, clock) -> None:
        for name in ("A", "B", "C"):
            repository.upsert_customer(
                CustomerProfile(
                    name=name,
                    first_purchase_date=date(2024, 6, 1),
                    last_purchase_date=date(2024, 6, 1),
                    total_purchases=1 if name != "C" else 4,
                    total_value=100.0,
                )
            )

        RFVSegmentationOrchestrator(repository, tie_breaking="dense", clock=clock).rescore_all()

        scores = {c.name: c.frequency_score for c in repository.customers.values()}
        assert scores == {"A": 1, "B": 1, "C": 3}
