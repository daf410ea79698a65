from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

logger = logging.getLogger(__name__)

_TIE_BREAKING_MODES: frozenset[str] = frozenset({"min", "dense"})


def _startup_problems() -> list[str]:
    """
    Collect configuration problems that would break imports or rescoring.

    Returns an empty list when the process can boot.
    """

    from db.config import resolve_database_url

    problems: list[str] = []

    try:
        resolve_database_url()
    except RuntimeError as exc:
        problems.append(str(exc))

    tie_breaking = os.getenv("RFV_TIE_BREAKING", "min").strip().lower()
    if tie_breaking not in _TIE_BREAKING_MODES:
        problems.append(
            f"RFV_TIE_BREAKING={tie_breaking!r} is not one of {sorted(_TIE_BREAKING_MODES)}"
        )

    rules_path = os.getenv("COLUMN_KEYWORD_RULES_PATH", "").strip()
    if rules_path:
        from app.mappers.column_mapper import load_field_rules

        try:
            load_field_rules(rules_path)
        except (OSError, ValueError) as exc:
            problems.append(f"COLUMN_KEYWORD_RULES_PATH={rules_path!r} is unusable: {exc}")

    return problems


def _validate_env() -> None:
    problems = _startup_problems()
    if problems:
        raise RuntimeError(
            "Sales API cannot start:\n" + "\n".join(f"  - {problem}" for problem in problems)
        )


def _configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _verify_ledger_schema() -> None:
    """
    Ping the database and require every sales table to exist.

    Nothing is created here; a missing table means ``alembic upgrade head``
    has not been run against this database.
    """
    from sqlalchemy import inspect as sa_inspect
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    import db.models  # noqa: F401 registers the ledger tables on Base.metadata
    from db.base import Base
    from db.session import get_engine

    engine = get_engine()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            present = set(sa_inspect(connection).get_table_names())
    except SQLAlchemyError as exc:
        raise RuntimeError("Sales database is unreachable.") from exc

    missing = sorted(set(Base.metadata.tables) - present)
    if missing:
        logger.critical("Sales tables missing: %s. Run 'alembic upgrade head'.", ", ".join(missing))
        raise RuntimeError(f"Sales tables missing from the database: {', '.join(missing)}")
    logger.info("Sales schema verified (%d tables)", len(Base.metadata.tables))


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Verify the schema, then keep the rescoring scheduler running for the app's lifetime."""
    _verify_ledger_schema()

    from app.scheduler.jobs import build_scheduler

    scheduler = build_scheduler()
    scheduler.start()
    logger.info("RFV rescoring scheduler started: %s", [job.id for job in scheduler.get_jobs()])
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logger.info("RFV rescoring scheduler stopped")


def create_app() -> FastAPI:
    """
    Build the sales reconciliation API.
    """

    _validate_env()
    _configure_logging()

    from app.api.routers import (
        customers_router,
        financial_records_router,
        sales_import_router,
    )

    application = FastAPI(
        title="Sales Reconciliation API",
        version="1.0.0",
        lifespan=_lifespan,
    )
    for router in (sales_import_router, customers_router, financial_records_router):
        application.include_router(router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
