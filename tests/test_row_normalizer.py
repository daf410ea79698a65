"""
tests/test_row_normalizer.py

Currency, date and summary-row handling for raw spreadsheet rows.
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from app.domain.errors import RowParseError
from app.domain.sales import ColumnMapping, SaleStatus
from app.validators.row_normalizer import (
    INVALID_DATE_MESSAGE,
    ZERO_VALUE_MESSAGE,
    RowNormalizer,
    cell_text,
    is_summary_row,
    parse_currency,
    parse_sheet_date,
)

MAPPING = ColumnMapping(
    date="Data",
    seller_name="Vendedor",
    amount_sold="Valor",
    amount_paid="Pago",
    department="Departamento",
    client_name="Cliente",
    client_national_id="CPF",
    client_record_number="Prontuario",
)


# ---------------------------------------------------------------------------
# Currency
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("R$ 1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("1234,5", 1234.5),
        ("1.234.567", 1234567.0),
        ("1,234,567", 1234567.0),
        ("R$ 0,00", 0.0),
        ("150", 150.0),
        (150, 150.0),
        (99.9, 99.9),
        ("", 0.0),
        ("abc", 0.0),
        (None, 0.0),
    ],
)
def test_parse_currency(raw, expected) -> None:
    assert parse_currency(raw) == pytest.approx(expected)


def test_parse_currency_ignores_nan() -> None:
    assert parse_currency(float("nan")) == 0.0


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw",
    [
        45366,
        45366.75,
        "45366",
        "15/03/2024",
        "15-03-2024",
        "15/03/2024 10:30",
        "2024-03-15",
        "2024-03-15T08:00:00",
        datetime(2024, 3, 15, 9, 45),
        date(2024, 3, 15),
    ],
)
def test_parse_sheet_date_accepts_common_formats(raw) -> None:
    assert parse_sheet_date(raw) == date(2024, 3, 15)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(45000, date(2023, 3, 15)), ("45000", date(2023, 3, 15)), (60, date(1900, 2, 28))],
)
def test_parse_sheet_date_counts_serials_from_1899_12_30(raw, expected) -> None:
    assert parse_sheet_date(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "abc", "31/02/2024", "15/03", 0, -3, True])
def test_parse_sheet_date_rejects_garbage(raw) -> None:
    with pytest.raises(RowParseError, match=INVALID_DATE_MESSAGE):
        parse_sheet_date(raw)


def test_cell_text_drops_integral_float_suffix() -> None:
    assert cell_text(12345.0) == "12345"
    assert cell_text(" Ana ") == "Ana"
    assert cell_text(None) == ""


# ---------------------------------------------------------------------------
# Summary rows
# ---------------------------------------------------------------------------


def test_summary_row_detected_by_total_marker() -> None:
    assert is_summary_row(date_text="", seller_text="TOTAL", client_text="")
    assert is_summary_row(date_text="15/03/2024", seller_text="Ana", client_text="Subtotal geral")
    assert is_summary_row(date_text="Soma", seller_text="Ana", client_text="Maria")


def test_summary_row_detected_by_missing_date_and_name() -> None:
    assert is_summary_row(date_text="", seller_text="Ana", client_text="")


def test_regular_row_is_not_summary() -> None:
    assert not is_summary_row(date_text="15/03/2024", seller_text="Ana", client_text="")
    assert not is_summary_row(date_text="", seller_text="Ana", client_text="Maria")


# ---------------------------------------------------------------------------
# RowNormalizer
# ---------------------------------------------------------------------------


class TestRowNormalizer:
    def test_valid_row_is_parsed_and_left_unmatched(self) -> None:
        normalizer = RowNormalizer(MAPPING)

        sale = normalizer.normalize(
            {
                "Data": "15/03/2024",
                "Vendedor": " Ana Souza ",
                "Valor": "R$ 1.500,00",
                "Pago": "R$ 500,00",
                "Departamento": "Estética",
                "Cliente": "Maria Silva",
                "CPF": "123.456.789-09",
                "Prontuario": 778.0,
            },
            row_number=2,
        )

        assert sale is not None
        assert sale.status == SaleStatus.UNMATCHED
        assert sale.error_message is None
        assert sale.date == date(2024, 3, 15)
        assert sale.seller_name == "Ana Souza"
        assert sale.amount_sold == 1500.0
        assert sale.amount_paid == 500.0
        assert sale.primary_amount == 500.0
        assert sale.department == "Estética"
        assert sale.client_national_id == "123.456.789-09"
        assert sale.client_record_number == "778"

    def test_zero_amount_row_is_an_error(self) -> None:
        sale = RowNormalizer(MAPPING).normalize(
            {"Data": "15/03/2024", "Vendedor": "Ana", "Valor": "0,00", "Cliente": "Maria"},
            row_number=3,
        )

        assert sale.status == SaleStatus.ERROR
        assert sale.error_message == ZERO_VALUE_MESSAGE
        assert sale.date == date(2024, 3, 15)

    def test_zero_amount_allowed_when_configured(self) -> None:
        sale = RowNormalizer(MAPPING, allow_zero_amount=True).normalize(
            {"Data": "15/03/2024", "Vendedor": "Ana", "Cliente": "Maria"},
            row_number=3,
        )

        assert sale.status == SaleStatus.UNMATCHED

    def test_invalid_date_row_is_an_error(self) -> None:
        sale = RowNormalizer(MAPPING).normalize(
            {"Data": "ontem", "Vendedor": "Ana", "Valor": "10", "Cliente": "Maria"},
            row_number=4,
        )

        assert sale.status == SaleStatus.ERROR
        assert sale.error_message == INVALID_DATE_MESSAGE
        assert sale.date is None
        assert sale.amount_sold == 10.0

    def test_normalize_rows_numbers_rows_and_discards_totals(self) -> None:
        rows = [
            {"Data": "15/03/2024", "Vendedor": "Ana", "Valor": "100", "Cliente": "Maria"},
            {"Data": "16/03/2024", "Vendedor": "Bruno", "Valor": "0", "Cliente": "José"},
            {"Vendedor": "Total", "Valor": "100"},
            {"Data": "xx", "Vendedor": "Ana", "Valor": "5", "Cliente": "Pedro"},
        ]

        sales = RowNormalizer(MAPPING).normalize_rows(rows)

        assert [sale.row_number for sale in sales] == [2, 3, 5]
        assert [sale.status for sale in sales] == [
            SaleStatus.UNMATCHED,
            SaleStatus.ERROR,
            SaleStatus.ERROR,
        ]

    def test_optional_columns_default_to_empty(self) -> None:
        mapping = ColumnMapping(date="Data", seller_name="Vendedor", amount_sold="Valor")

        sale = RowNormalizer(mapping).normalize(
            {"Data": 45366, "Vendedor": "Ana", "Valor": 80},
            row_number=2,
        )

        assert sale.client_name == ""
        assert sale.client_national_id is None
        assert sale.amount_paid == 0.0
        assert sale.primary_amount == 80.0
