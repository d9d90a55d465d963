# backend/app/api/v1/budgets_router.py

"""
API v1 - PRESUPUESTOS

Un presupuesto es el importe esperado de una categoría en un periodo para
un método de pago. (category_id, period_id, payment_method) es único: el
POST hace upsert sobre esa clave.

expected_date: si no llega se calcula con el default_day de la categoría
(limitado al último día del mes del periodo).
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.db.session import get_db
from backend.app.schemas.movements import BudgetCreate, BudgetOut, BudgetUpdate
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.default_day_utils import default_date_for_period

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/budgets", tags=["budgets"])

BUDGET_NOT_FOUND = "Presupuesto no encontrado"


def _budget_out(obj: models.Budget) -> dict:
    return {
        "id": obj.id,
        "category_id": obj.category_id,
        "category_name": obj.category.name if obj.category else None,
        "period_id": obj.period_id,
        "expected_amount": float(to_money(obj.expected_amount)),
        "payment_method": obj.payment_method,
        "expected_date": obj.expected_date,
    }


def _get_budget_or_404(db: Session, budget_id: str) -> models.Budget:
    obj = db.get(models.Budget, budget_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=BUDGET_NOT_FOUND)
    return obj


@router.get("", response_model=List[BudgetOut])
def list_budgets(
    period_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    q = db.query(models.Budget).join(models.Category, models.Budget.category_id == models.Category.id)
    if period_id:
        q = q.filter(models.Budget.period_id == period_id)
    rows = q.order_by(models.Category.name.asc(), models.Budget.payment_method.asc()).all()
    return [_budget_out(b) for b in rows]


@router.get("/{budget_id}", response_model=BudgetOut)
def get_budget(budget_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _budget_out(_get_budget_or_404(db, budget_id))


@router.post("", response_model=BudgetOut)
def upsert_budget(payload: BudgetCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    """
    201 si se crea, 200 si ya existía y se actualiza.
    """
    category = db.get(models.Category, payload.category_id)
    if not category:
        raise HTTPException(status_code=400, detail="La categoría especificada no existe")
    period = db.get(models.Period, payload.period_id)
    if not period:
        raise HTTPException(status_code=400, detail="El periodo especificado no existe")

    expected_date = payload.expected_date or default_date_for_period(category.default_day, period)

    obj = (
        db.query(models.Budget)
        .filter_by(
            category_id=payload.category_id,
            period_id=payload.period_id,
            payment_method=payload.payment_method,
        )
        .first()
    )
    created = obj is None
    if created:
        obj = models.Budget(
            category_id=payload.category_id,
            period_id=payload.period_id,
            payment_method=payload.payment_method,
        )
        db.add(obj)
    obj.expected_amount = to_money(payload.expected_amount)
    obj.expected_date = expected_date

    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[budgets] upsert")
    db.refresh(obj)
    logger.info("[budgets] %s id=%s amount=%s", "creado" if created else "actualizado", obj.id, obj.expected_amount)

    body = BudgetOut(**_budget_out(obj)).model_dump(mode="json")
    return JSONResponse(status_code=201 if created else 200, content=body)


@router.put("/{budget_id}", response_model=BudgetOut)
def update_budget(
    budget_id: str,
    payload: BudgetUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_budget_or_404(db, budget_id)
    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")

    if "expected_amount" in data:
        obj.expected_amount = to_money(data["expected_amount"])
    if "payment_method" in data:
        obj.payment_method = data["payment_method"]
    if "expected_date" in data:
        obj.expected_date = data["expected_date"]

    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[budgets] actualizar")
    db.refresh(obj)
    return _budget_out(obj)


@router.delete("/{budget_id}")
def delete_budget(budget_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_budget_or_404(db, budget_id)
    try:
        db.delete(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[budgets] eliminar")
    return {"success": True, "message": "Presupuesto eliminado correctamente"}
