"""
app/scheduler/jobs.py

APScheduler-based scheduler for periodic customer rescoring.

Recency scores depend on the calendar, not only on imports: a customer who
buys nothing for a month must drift down even when no spreadsheet arrives.
One daily job reruns the full-population RFV rescoring.

Schedule (UTC)
--------------
  daily_rfv_rescoring: RFV_RESCORING_HOUR_UTC:00 every day (default 03:00)

Lifecycle
---------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from app.config import get_rfv_settings
from app.repositories.sales_repository import SqlAlchemySalesRepository
from db.session import SessionLocal
from segmentation.orchestrator import RFVSegmentationOrchestrator

logger = logging.getLogger(__name__)


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Yield a fresh session and ensure it is closed on exit."""
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def run_daily_rfv_rescoring() -> None:
    """
    Rescore every customer against the current population.
    """
    logger.info("Scheduler: daily_rfv_rescoring starting")
    settings = get_rfv_settings()

    with _session_scope() as db:
        try:
            orchestrator = RFVSegmentationOrchestrator(
                SqlAlchemySalesRepository(db),
                tie_breaking=settings.tie_breaking,
            )
            summary = orchestrator.rescore_all()
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.warning("Scheduler: daily_rfv_rescoring failed: %s", exc)
            return

    logger.info(
        "Scheduler: daily_rfv_rescoring complete customers=%s rescored=%s failed=%s",
        summary.total_customers,
        summary.rescored,
        summary.failed,
    )


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_daily_rfv_rescoring,
        trigger="cron",
        hour=get_rfv_settings().rescoring_hour_utc,
        minute=0,
        id="daily_rfv_rescoring",
        name="Daily RFV rescoring",
        replace_existing=True,
        misfire_grace_time=3600,
        max_instances=1,
    )

    return scheduler
