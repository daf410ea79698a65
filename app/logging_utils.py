"""
Run summaries for sales imports and RFV rescoring passes.

Each run emits exactly one JSON line whose ``event`` is ``<run>.<outcome>``,
for example ``sales_import.completed`` or ``rfv_rescoring.failed``.
Completed runs log at INFO, runs that left rows or customers behind at
WARNING and aborted runs at ERROR.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

RUN_SALES_IMPORT = "sales_import"
RUN_SALES_RESUBMIT = "sales_resubmit"
RUN_RFV_RESCORING = "rfv_rescoring"

OUTCOME_COMPLETED = "completed"
OUTCOME_COMPLETED_WITH_ERRORS = "completed_with_errors"
OUTCOME_FAILED = "failed"

_OUTCOME_LEVELS: dict[str, int] = {
    OUTCOME_COMPLETED: logging.INFO,
    OUTCOME_COMPLETED_WITH_ERRORS: logging.WARNING,
    OUTCOME_FAILED: logging.ERROR,
}


def run_event(run: str, outcome: str) -> str:
    return f"{run}.{outcome}"


def log_run_summary(logger: logging.Logger, run: str, outcome: str, **fields: Any) -> None:
    payload = {"event": run_event(run, outcome), "run": run, "outcome": outcome, **fields}
    logger.log(
        _OUTCOME_LEVELS.get(outcome, logging.INFO),
        json.dumps(payload, default=str, sort_keys=True, ensure_ascii=False),
    )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)


@contextmanager
def run_summary(logger: logging.Logger, run: str, **context: Any) -> Iterator[dict[str, Any]]:
    """
    Time a run and log its summary when the block exits.

    The block fills the yielded dict with counts. Setting ``"outcome"`` in
    it replaces the default ``completed``. An exception logs a ``failed``
    summary carrying the error text and propagates unchanged.
    """

    started = time.perf_counter()
    fields: dict[str, Any] = dict(context)
    try:
        yield fields
    except Exception as exc:
        fields.pop("outcome", None)
        fields["error"] = str(exc)
        log_run_summary(logger, run, OUTCOME_FAILED, duration_ms=_elapsed_ms(started), **fields)
        raise
    outcome = fields.pop("outcome", OUTCOME_COMPLETED)
    log_run_summary(logger, run, outcome, duration_ms=_elapsed_ms(started), **fields)
