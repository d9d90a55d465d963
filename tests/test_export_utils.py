"""Tests for CSV / Excel export helpers."""

from decimal import Decimal
from io import BytesIO

import openpyxl
import pytest
from fastapi import HTTPException

from backend.app.utils.export_utils import (
    CSV_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    Column,
    export_response,
    objects_to_csv,
    objects_to_excel,
)

COLUMNS = [
    Column("Nombre", "name"),
    Column("Monto", "amount", money=True),
    Column("Nota", "note", formatter=lambda v, row: (v or "").upper()),
]

ROWS = [
    {"name": 'Café "El Sol"', "amount": Decimal("12.50"), "note": "a, b"},
    {"name": "Arriendo", "amount": 900, "note": None},
]


def test_csv_quotes_every_cell_and_escapes_quotes():
    lines = objects_to_csv(ROWS, COLUMNS).split("\n")
    assert lines[0] == '"Nombre","Monto","Nota"'
    assert lines[1] == '"Café ""El Sol""","12.50","A, B"'
    assert lines[2] == '"Arriendo","900",""'


def test_csv_empty_rows_keeps_header():
    assert objects_to_csv([], COLUMNS) == '"Nombre","Monto","Nota"'


def test_excel_workbook_contents():
    wb = openpyxl.load_workbook(BytesIO(objects_to_excel(ROWS, COLUMNS, sheet_name="Gastos")))
    ws = wb["Gastos"]
    assert [c.value for c in ws[1]] == ["Nombre", "Monto", "Nota"]
    assert ws[1][0].font.bold
    assert ws["B2"].value == 12.5
    assert ws["B2"].number_format == "#,##0.00"
    assert ws["C3"].value in (None, "")


def test_export_response_headers():
    resp = export_response(ROWS, COLUMNS, fmt="csv", filename="gastos_enero")
    assert resp.media_type == CSV_MEDIA_TYPE
    assert 'filename="gastos_enero.csv"' in resp.headers["content-disposition"]

    resp = export_response(ROWS, COLUMNS, fmt="xlsx", filename="gastos_enero")
    assert resp.media_type == XLSX_MEDIA_TYPE
    assert resp.headers["content-disposition"].endswith('.xlsx"')


def test_export_response_unknown_format():
    with pytest.raises(HTTPException) as exc:
        export_response(ROWS, COLUMNS, fmt="pdf", filename="x")
    assert exc.value.status_code == 400
