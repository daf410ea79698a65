from __future__ import annotations

import io
from datetime import datetime

import pytest
from openpyxl import Workbook

from app.services.spreadsheet_reader import SpreadsheetReader, SpreadsheetReadError


def _xlsx_bytes() -> bytes:
    workbook = Workbook()
    sales = workbook.active
    sales.title = "Vendas"
    sales.append(["Data", "Vendedor", "Valor", "Cliente"])
    sales.append([datetime(2024, 3, 15), "Ana Souza", 1500.5, "Maria"])
    sales.append([datetime(2024, 3, 16), "Bruno Lima", 300, None])
    sales.append([None, None, None, None])
    summary = workbook.create_sheet("Resumo")
    summary.append(["Total", "Quantidade"])
    summary.append([1800.5, 2])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture()
def reader() -> SpreadsheetReader:
    return SpreadsheetReader()


def test_list_sheets(reader) -> None:
    assert reader.list_sheets(_xlsx_bytes(), "vendas.xlsx") == ["Vendas", "Resumo"]


def test_reads_first_sheet_and_omits_blank_cells(reader) -> None:
    sheet = reader.read(_xlsx_bytes(), "vendas.xlsx")

    assert sheet.sheet_name == "Vendas"
    assert sheet.headers == ("Data", "Vendedor", "Valor", "Cliente")
    assert len(sheet.rows) == 2
    assert sheet.rows[0]["Data"] == datetime(2024, 3, 15)
    assert sheet.rows[0]["Valor"] == 1500.5
    assert "Cliente" not in sheet.rows[1]


def test_reads_named_sheet(reader) -> None:
    sheet = reader.read(_xlsx_bytes(), "vendas.xlsx", sheet_name="Resumo")

    assert sheet.headers == ("Total", "Quantidade")
    assert sheet.rows == [{"Total": 1800.5, "Quantidade": 2}]


def test_missing_sheet_is_rejected(reader) -> None:
    with pytest.raises(SpreadsheetReadError, match="Vendas, Resumo"):
        reader.read(_xlsx_bytes(), "vendas.xlsx", sheet_name="Março")


def test_reads_csv_as_text(reader) -> None:
    content = (
        "Data,Vendedor,Valor,Cliente\n"
        "15/03/2024,Ana Souza,1500.50,Maria\n"
        "16/03/2024,Bruno Lima,300,\n"
        "17/03/2024,Ana Souza,80,José\n"
    ).encode("utf-8")

    sheet = reader.read(content, "vendas.CSV")

    assert sheet.sheet_name == "csv"
    assert sheet.rows[0] == {
        "Data": "15/03/2024",
        "Vendedor": "Ana Souza",
        "Valor": "1500.50",
        "Cliente": "Maria",
    }
    assert "Cliente" not in sheet.rows[1]
    assert sheet.rows[2]["Cliente"] == "José"


def test_unsupported_extension(reader) -> None:
    with pytest.raises(SpreadsheetReadError, match="Unsupported file type"):
        reader.read(b"irrelevant", "vendas.pdf")


def test_corrupt_workbook(reader) -> None:
    with pytest.raises(SpreadsheetReadError):
        reader.list_sheets(b"not a zip file", "vendas.xlsx")
