"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from db.config import load_env_files

DEFAULT_EXCLUDED_DEPARTMENTS: tuple[str, ...] = (
    "devolução",
    "cancelamento",
    "perda",
    "outros",
    "não informado",
)

_TIE_BREAKING_MODES = {"min", "dense"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """
    Read a comma-separated list; entries are trimmed and lowercased.
    """

    raw_value = _get_optional_str_env(name)
    if raw_value is None:
        return default
    return tuple(item.strip().lower() for item in raw_value.split(",") if item.strip())


@dataclass(frozen=True)
class SalesImportSettings:
    """
    Runtime settings for spreadsheet imports.
    """

    max_reported_errors: int = 500
    log_row_errors: bool = True
    allow_zero_amount: bool = False
    column_keyword_rules_path: str | None = None
    run_segmentation: bool = True


@dataclass(frozen=True)
class SalesMetricsSettings:
    top_clients_limit: int = 10
    excluded_departments: tuple[str, ...] = field(default=DEFAULT_EXCLUDED_DEPARTMENTS)


@dataclass(frozen=True)
class RFVSettings:
    """
    Customer rescoring settings.

    tie_breaking:
        ``min``   equal metric values share the lowest position (competition rank)
        ``dense`` equal values share a rank and ranks have no gaps
    """

    tie_breaking: str = "min"
    rescoring_hour_utc: int = 3


@lru_cache(maxsize=1)
def get_sales_import_settings() -> SalesImportSettings:
    """
    Return cached import settings from environment variables.
    """

    return SalesImportSettings(
        max_reported_errors=max(1, _get_int_env("SALES_IMPORT_MAX_REPORTED_ERRORS", 500)),
        log_row_errors=_get_bool_env("SALES_IMPORT_LOG_ROW_ERRORS", True),
        allow_zero_amount=_get_bool_env("SALES_IMPORT_ALLOW_ZERO_AMOUNT", False),
        column_keyword_rules_path=_get_optional_str_env("COLUMN_KEYWORD_RULES_PATH"),
        run_segmentation=_get_bool_env("SALES_IMPORT_RUN_SEGMENTATION", True),
    )


@lru_cache(maxsize=1)
def get_sales_metrics_settings() -> SalesMetricsSettings:
    return SalesMetricsSettings(
        top_clients_limit=max(1, _get_int_env("METRICS_TOP_CLIENTS_LIMIT", 10)),
        excluded_departments=_get_csv_env(
            "METRICS_EXCLUDED_DEPARTMENTS",
            DEFAULT_EXCLUDED_DEPARTMENTS,
        ),
    )


@lru_cache(maxsize=1)
def get_rfv_settings() -> RFVSettings:
    """
    Return cached RFV settings. Unknown tie-breaking modes fall back to ``min``.
    """

    tie_breaking = _get_str_env("RFV_TIE_BREAKING", "min").lower()
    if tie_breaking not in _TIE_BREAKING_MODES:
        tie_breaking = "min"
    return RFVSettings(
        tie_breaking=tie_breaking,
        rescoring_hour_utc=min(23, max(0, _get_int_env("RFV_RESCORING_HOUR_UTC", 3))),
    )
