# backend/app/utils/export_utils.py

"""
Exportación de listados a CSV y Excel.

- Column: cabecera, clave del dict y formateador opcional.
- objects_to_csv: todas las celdas entre comillas dobles, comillas internas
  duplicadas, una fila de cabecera.
- objects_to_excel: libro openpyxl con una hoja; las columnas de dinero
  conservan el número con formato "#,##0.00".
- export_response: StreamingResponse lista para descargar.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from io import BytesIO
from typing import Any, Callable, Iterable, List, Optional, Sequence

import openpyxl
from fastapi import HTTPException
from fastapi.responses import Response
from openpyxl.styles import Font

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

MONEY_FORMAT = "#,##0.00"


@dataclass
class Column:
    header: str
    key: str
    formatter: Optional[Callable[[Any, dict], Any]] = None
    money: bool = False


def _value(col: Column, row: dict) -> Any:
    value = row.get(col.key)
    if col.formatter is not None:
        return col.formatter(value, row)
    return value


def _csv_cell(value: Any) -> str:
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'


def objects_to_csv(rows: Iterable[dict], columns: Sequence[Column]) -> str:
    lines = [",".join(_csv_cell(c.header) for c in columns)]
    for row in rows:
        lines.append(",".join(_csv_cell(_value(c, row)) for c in columns))
    return "\n".join(lines)


def _excel_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


def objects_to_excel(rows: Iterable[dict], columns: Sequence[Column], sheet_name: str = "Datos") -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_name[:31]

    ws.append([c.header for c in columns])
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for row in rows:
        ws.append([_excel_value(_value(c, row)) for c in columns])

    for idx, col in enumerate(columns, start=1):
        if not col.money:
            continue
        for (cell,) in ws.iter_rows(min_row=2, min_col=idx, max_col=idx):
            cell.number_format = MONEY_FORMAT

    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


def export_response(
    rows: List[dict],
    columns: Sequence[Column],
    *,
    fmt: str,
    filename: str,
    sheet_name: str = "Datos",
) -> Response:
    """
    fmt: "csv" o "xlsx". `filename` sin extensión.
    """
    if fmt == "csv":
        body = objects_to_csv(rows, columns).encode("utf-8")
        media_type = CSV_MEDIA_TYPE
    elif fmt == "xlsx":
        body = objects_to_excel(rows, columns, sheet_name)
        media_type = XLSX_MEDIA_TYPE
    else:
        raise HTTPException(status_code=400, detail="Formato no soportado. Use csv o xlsx.")

    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}.{fmt}"'},
    )
