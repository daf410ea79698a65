"""
app/validators/row_normalizer.py

Raw spreadsheet row -> ParsedSale normalization.

Handles Brazilian-formatted currency ("R$ 1.234,56"), spreadsheet date
serials, ISO and day-first string dates, and the summary/total lines that
exports append to the bottom of a sheet.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timedelta
from numbers import Number
from typing import Any, Iterable, Mapping

from app.domain.errors import RowParseError
from app.domain.sales import ColumnMapping, ParsedSale, SaleStatus

logger = logging.getLogger(__name__)

SPREADSHEET_EPOCH = date(1899, 12, 30)
FIRST_DATA_ROW_NUMBER = 2

INVALID_DATE_MESSAGE = "invalid date"
ZERO_VALUE_MESSAGE = "zero value"

SUMMARY_NAME_MARKERS: tuple[str, ...] = ("total", "soma", "subtotal")
SUMMARY_DATE_MARKERS: tuple[str, ...] = ("total", "soma")

_CURRENCY_NOISE_RE = re.compile(r"[R$€\s ]")
_NUMERIC_TEXT_RE = re.compile(r"^\d+(\.\d+)?$")
_DATE_SPLIT_RE = re.compile(r"[-/]")


def cell_text(value: Any) -> str:
    """
    Render a cell as trimmed text; integral floats lose their ``.0`` suffix.
    """

    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def parse_currency(value: Any) -> float:
    """
    Parse a currency cell into a float, returning 0.0 when unparsable.

    >>> parse_currency("R$ 1.234,56")
    1234.56
    """

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, Number):
        number = float(value)
        return 0.0 if math.isnan(number) else number

    text = _CURRENCY_NOISE_RE.sub("", str(value))
    if not text:
        return 0.0

    last_comma = text.rfind(",")
    last_dot = text.rfind(".")
    if last_comma != -1 and last_dot != -1:
        if last_comma > last_dot:
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif last_comma != -1:
        text = text.replace(",", "") if text.count(",") > 1 else text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        number = float(text)
    except ValueError:
        return 0.0
    return 0.0 if math.isnan(number) or math.isinf(number) else number


def serial_to_date(serial: float) -> date:
    """
    Convert a 1900-system spreadsheet serial to a calendar date.

    The fractional (time of day) part is ignored.
    """

    return SPREADSHEET_EPOCH + timedelta(days=int(serial))


def parse_sheet_date(value: Any) -> date:
    """
    Parse a date cell.

    Raises RowParseError when the value cannot be read as a date.
    """

    if value is None or isinstance(value, bool):
        raise RowParseError(INVALID_DATE_MESSAGE)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, Number):
        number = float(value)
        if math.isnan(number) or number <= 0:
            raise RowParseError(INVALID_DATE_MESSAGE)
        return serial_to_date(number)

    text = str(value).strip()
    if not text:
        raise RowParseError(INVALID_DATE_MESSAGE)
    if _NUMERIC_TEXT_RE.match(text):
        return serial_to_date(float(text))

    text = text.split(" ")[0].split("T")[0]
    parts = _DATE_SPLIT_RE.split(text)
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        raise RowParseError(INVALID_DATE_MESSAGE)

    try:
        if len(parts[0]) == 4:
            return date(int(parts[0]), int(parts[1]), int(parts[2]))
        return date(int(parts[2]), int(parts[1]), int(parts[0]))
    except ValueError as exc:
        raise RowParseError(INVALID_DATE_MESSAGE) from exc


def is_summary_row(*, date_text: str, seller_text: str, client_text: str) -> bool:
    """
    Heuristic for total/summary lines appended to exports.
    """

    lowered_names = (seller_text.lower(), client_text.lower())
    if any(marker in name for name in lowered_names for marker in SUMMARY_NAME_MARKERS):
        return True
    if not date_text and (not seller_text or not client_text):
        return True
    lowered_date = date_text.lower()
    return any(marker in lowered_date for marker in SUMMARY_DATE_MARKERS)


class RowNormalizer:
    """
    Converts raw rows into ParsedSale instances for one resolved mapping.

    Successfully parsed rows are returned with ``status=unmatched`` until the
    seller resolver decides their final status.
    """

    def __init__(self, mapping: ColumnMapping, *, allow_zero_amount: bool = False) -> None:
        self._mapping = mapping
        self._allow_zero_amount = allow_zero_amount

    def normalize_rows(self, rows: Iterable[Mapping[str, Any]]) -> list[ParsedSale]:
        sales: list[ParsedSale] = []
        discarded = 0
        for row_number, row in enumerate(rows, start=FIRST_DATA_ROW_NUMBER):
            sale = self.normalize(row, row_number=row_number)
            if sale is None:
                discarded += 1
                continue
            sales.append(sale)
        if discarded:
            logger.debug("Discarded %s summary rows", discarded)
        return sales

    def normalize(self, row: Mapping[str, Any], *, row_number: int) -> ParsedSale | None:
        """
        Normalize one row; returns None for summary rows.
        """

        mapping = self._mapping
        raw_date = row.get(mapping.date)
        seller_name = cell_text(row.get(mapping.seller_name))
        client_name = self._text(row, mapping.client_name)
        date_text = cell_text(raw_date)
        if is_summary_row(date_text=date_text, seller_text=seller_name, client_text=client_name):
            return None

        sale = ParsedSale(
            row_number=row_number,
            date=None,
            seller_name=seller_name,
            amount_sold=self._amount(row, mapping.amount_sold),
            amount_paid=self._amount(row, mapping.amount_paid),
            department=self._text(row, mapping.department),
            procedure=self._text(row, mapping.procedure),
            client_name=client_name,
            client_national_id=self._text(row, mapping.client_national_id) or None,
            client_record_number=self._text(row, mapping.client_record_number) or None,
        )

        try:
            sale.date = parse_sheet_date(raw_date)
            if not self._allow_zero_amount and sale.amount_sold == 0 and sale.amount_paid == 0:
                raise RowParseError(ZERO_VALUE_MESSAGE)
        except RowParseError as exc:
            sale.status = SaleStatus.ERROR
            sale.error_message = str(exc)
            return sale

        sale.status = SaleStatus.UNMATCHED
        return sale

    @staticmethod
    def _text(row: Mapping[str, Any], header: str | None) -> str:
        if not header:
            return ""
        return cell_text(row.get(header))

    @staticmethod
    def _amount(row: Mapping[str, Any], header: str | None) -> float:
        if not header:
            return 0.0
        return parse_currency(row.get(header))
