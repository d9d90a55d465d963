# backend/app/api/v1/export_router.py

"""
API v1 - EXPORTACIÓN (CSV / Excel)

- GET /api/export/budget-summary?period_id=&format=csv|xlsx
- GET /api/export/expenses?period_id=&format=csv|xlsx

Sin period_id se usa el periodo abierto (o el más reciente).
"""

from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.db.session import get_db
from backend.app.utils.budget_utils import period_budget_summary
from backend.app.utils.common import resolve_active_period
from backend.app.utils.export_utils import Column, export_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["export"])

PAYMENT_LABELS = {"cash": "Efectivo", "credit": "Crédito", "debit": "Débito"}


def _period_or_active(db: Session, period_id: Optional[str]) -> models.Period:
    if not period_id:
        return resolve_active_period(db)
    period = db.get(models.Period, period_id)
    if not period:
        raise HTTPException(status_code=404, detail="Periodo no encontrado")
    return period


def _slug(text: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in text).strip("_").lower() or "periodo"


BUDGET_SUMMARY_COLUMNS = [
    Column("Categoría", "category_name"),
    Column("Tipo de gasto", "tipo_gasto"),
    Column("Presupuesto", "expected_amount", money=True),
    Column("Efectivo", "cash_amount", money=True),
    Column("Crédito", "credit_amount", money=True),
    Column("Débito", "debit_amount", money=True),
    Column("Total gastado", "total_amount", money=True),
    Column("Restante", "remaining", money=True),
]

EXPENSE_COLUMNS = [
    Column("Fecha", "date", formatter=lambda v, _row: v.isoformat() if v else ""),
    Column("Categoría", "category_name"),
    Column("Descripción", "description"),
    Column("Evento", "event"),
    Column("Método de pago", "payment_method", formatter=lambda v, _row: PAYMENT_LABELS.get(v, v)),
    Column("Fondo origen", "source_fund_name"),
    Column("Fondo destino", "destination_fund_name"),
    Column("Tarjeta", "credit_card"),
    Column("Monto", "amount", money=True),
]


@router.get("/budget-summary")
def export_budget_summary(
    period_id: Optional[str] = Query(None),
    format: Literal["csv", "xlsx"] = Query("csv"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    period = _period_or_active(db, period_id)
    summary = period_budget_summary(db, period)
    rows = list(summary["budget_summary"])
    rows.append(
        {
            "category_name": "TOTAL",
            "expected_amount": summary["total_expected"],
            "total_amount": summary["total_expenses"],
            "remaining": summary["total_expected"] - summary["total_expenses"],
        }
    )
    logger.info("[export] budget-summary period=%s format=%s rows=%s", period.id, format, len(rows))
    return export_response(
        rows,
        BUDGET_SUMMARY_COLUMNS,
        fmt=format,
        filename=f"presupuesto_{_slug(period.name)}",
        sheet_name="Presupuesto",
    )


@router.get("/expenses")
def export_expenses(
    period_id: Optional[str] = Query(None),
    format: Literal["csv", "xlsx"] = Query("csv"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    period = _period_or_active(db, period_id)
    expenses = (
        db.query(models.Expense)
        .filter(models.Expense.period_id == period.id)
        .order_by(models.Expense.date.asc(), models.Expense.created_at.asc())
        .all()
    )
    rows = []
    for e in expenses:
        card = e.credit_card
        rows.append(
            {
                "date": e.date,
                "category_name": e.category.name if e.category else None,
                "description": e.description,
                "event": e.event,
                "payment_method": e.payment_method,
                "source_fund_name": e.source_fund.name if e.source_fund else None,
                "destination_fund_name": e.destination_fund.name if e.destination_fund else None,
                "credit_card": f"{card.bank_name} {card.franchise} ****{card.last_four_digits}" if card else None,
                "amount": float(to_money(e.amount)),
            }
        )
    logger.info("[export] expenses period=%s format=%s rows=%s", period.id, format, len(rows))
    return export_response(
        rows,
        EXPENSE_COLUMNS,
        fmt=format,
        filename=f"gastos_{_slug(period.name)}",
        sheet_name="Gastos",
    )
