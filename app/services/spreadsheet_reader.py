"""
app/services/spreadsheet_reader.py

Reads uploaded spreadsheets (xlsx, xls, csv) into raw header -> value rows.

Blank cells are omitted from each row, so headers are collected across all
rows rather than taken from the first one.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

import numpy as np
import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd import XLRDError

from app.mappers.column_mapper import collect_headers

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: tuple[str, ...] = (".xlsx", ".xls", ".csv")
CSV_SHEET_NAME = "csv"

_EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}
_WORKBOOK_ERRORS = (ValueError, OSError, KeyError, zipfile.BadZipFile, InvalidFileException, XLRDError)


class SpreadsheetReadError(ValueError):
    """
    Raised when an upload cannot be opened as a spreadsheet.
    """


@dataclass(frozen=True)
class SheetData:
    sheet_name: str
    headers: tuple[str, ...]
    rows: list[dict[str, Any]]


def file_extension(file_name: str) -> str:
    return PurePath(file_name or "").suffix.lower()


class SpreadsheetReader:
    """
    pandas-backed reader returning RawRow dictionaries.
    """

    def list_sheets(self, content: bytes, file_name: str) -> list[str]:
        extension = self._require_supported(file_name)
        if extension == ".csv":
            return [CSV_SHEET_NAME]
        try:
            with pd.ExcelFile(io.BytesIO(content), engine=_EXCEL_ENGINES[extension]) as workbook:
                return [str(name) for name in workbook.sheet_names]
        except _WORKBOOK_ERRORS as exc:
            raise SpreadsheetReadError(f"Could not open workbook {file_name!r}: {exc}") from exc

    def read(
        self,
        content: bytes,
        file_name: str,
        *,
        sheet_name: str | None = None,
    ) -> SheetData:
        """
        Read one sheet (the first when ``sheet_name`` is None).
        """

        extension = self._require_supported(file_name)
        try:
            if extension == ".csv":
                frame = pd.read_csv(
                    io.BytesIO(content),
                    sep=None,
                    engine="python",
                    dtype=str,
                    encoding="utf-8-sig",
                    keep_default_na=False,
                )
                resolved_sheet = CSV_SHEET_NAME
            else:
                sheets = self.list_sheets(content, file_name)
                if not sheets:
                    raise SpreadsheetReadError(f"Workbook {file_name!r} has no sheets.")
                resolved_sheet = sheet_name or sheets[0]
                if resolved_sheet not in sheets:
                    raise SpreadsheetReadError(
                        f"Sheet {resolved_sheet!r} not found. Available sheets: {', '.join(sheets)}."
                    )
                frame = pd.read_excel(
                    io.BytesIO(content),
                    sheet_name=resolved_sheet,
                    engine=_EXCEL_ENGINES[extension],
                )
        except UnicodeDecodeError as exc:
            raise SpreadsheetReadError("CSV must be UTF-8 encoded.") from exc
        except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as exc:
            raise SpreadsheetReadError(f"Invalid spreadsheet content: {exc}") from exc

        rows = self._frame_to_rows(frame)
        headers = collect_headers(rows)
        logger.info(
            "Read sheet %r from %s: %s rows, %s headers",
            resolved_sheet,
            file_name,
            len(rows),
            len(headers),
        )
        return SheetData(sheet_name=resolved_sheet, headers=headers, rows=rows)

    @staticmethod
    def _require_supported(file_name: str) -> str:
        extension = file_extension(file_name)
        if extension not in SUPPORTED_EXTENSIONS:
            raise SpreadsheetReadError(
                f"Unsupported file type {extension or '(none)'!r}. "
                f"Allowed: {', '.join(SUPPORTED_EXTENSIONS)}."
            )
        return extension

    @staticmethod
    def _frame_to_rows(frame: pd.DataFrame) -> list[dict[str, Any]]:
        columns = [str(column).strip() for column in frame.columns]
        rows: list[dict[str, Any]] = []
        for values in frame.itertuples(index=False, name=None):
            row: dict[str, Any] = {}
            for header, value in zip(columns, values):
                if not header or header.startswith("Unnamed:"):
                    continue
                cell = _to_python(value)
                if cell is None or (isinstance(cell, str) and not cell.strip()):
                    continue
                row[header] = cell
            if row:
                rows.append(row)
        return rows


def _to_python(value: Any) -> Any:
    """
    Convert pandas/numpy scalars to plain Python values; NaN and NaT become None.
    """

    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NaT:
        return None
    return value
