# backend/app/api/v1/incomes_router.py

"""
API v1 - INGRESOS

Cada ingreso suma su importe al saldo del fondo al que entra.

Endpoints:
- GET    /api/incomes?period_id=&fund_id=
- GET    /api/incomes/{id}
- POST   /api/incomes
- PUT    /api/incomes/{id}
- DELETE /api/incomes/{id}

Reglas de saldo:
- Crear: fondo += amount
- Editar: se revierte el importe anterior en el fondo anterior y se
  aplica el nuevo importe en el fondo nuevo.
- Borrar: fondo -= amount
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.db.session import get_db
from backend.app.schemas.movements import IncomeCreate, IncomeOut, IncomeUpdate
from backend.app.utils.common import resolve_active_period
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.fund_utils import adjust_fund_balance, get_default_fund

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/incomes", tags=["incomes"])

INCOME_NOT_FOUND = "Ingreso no encontrado"


def _income_out(obj: models.Income) -> dict:
    return {
        "id": obj.id,
        "period_id": obj.period_id,
        "date": obj.date,
        "description": obj.description,
        "amount": float(to_money(obj.amount)),
        "event": obj.event,
        "fund_id": obj.fund_id,
        "fund_name": obj.fund.name if obj.fund else None,
        "created_at": obj.created_at,
    }


def _get_income_or_404(db: Session, income_id: str) -> models.Income:
    obj = db.get(models.Income, income_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=INCOME_NOT_FOUND)
    return obj


def _ensure_period(db: Session, period_id: str) -> None:
    if not db.get(models.Period, period_id):
        raise HTTPException(status_code=400, detail="El periodo especificado no existe")


@router.get("", response_model=List[IncomeOut])
def list_incomes(
    period_id: Optional[str] = Query(None),
    fund_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    q = db.query(models.Income)
    if period_id:
        q = q.filter(models.Income.period_id == period_id)
    if fund_id:
        q = q.filter(models.Income.fund_id == fund_id)
    rows = q.order_by(models.Income.date.desc(), models.Income.created_at.desc()).all()
    return [_income_out(r) for r in rows]


@router.get("/{income_id}", response_model=IncomeOut)
def get_income(income_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _income_out(_get_income_or_404(db, income_id))


@router.post("", response_model=IncomeOut, status_code=status.HTTP_201_CREATED)
def create_income(payload: IncomeCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    """
    - period_id por defecto: periodo abierto (o el más reciente).
    - fund_id por defecto: fondo por defecto.
    """
    if payload.period_id:
        _ensure_period(db, payload.period_id)
        period_id = payload.period_id
    else:
        period_id = resolve_active_period(db).id

    fund_id = payload.fund_id
    if not fund_id:
        default = get_default_fund(db)
        if default is None:
            raise HTTPException(status_code=400, detail="No hay fondos disponibles. Crea un fondo primero.")
        fund_id = default.id

    obj = models.Income(
        period_id=period_id,
        date=payload.date,
        description=payload.description.strip(),
        amount=to_money(payload.amount),
        event=payload.event,
        fund_id=fund_id,
    )
    try:
        adjust_fund_balance(db, fund_id, obj.amount)
        db.add(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[incomes] crear")
    db.refresh(obj)
    logger.info("[incomes] creado id=%s fund=%s amount=%s", obj.id, fund_id, obj.amount)
    return _income_out(obj)


@router.put("/{income_id}", response_model=IncomeOut)
def update_income(
    income_id: str,
    payload: IncomeUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_income_or_404(db, income_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")

    old_fund_id, old_amount = obj.fund_id, to_money(obj.amount)
    new_fund_id = data.get("fund_id") or old_fund_id
    new_amount = to_money(data["amount"]) if data.get("amount") is not None else old_amount

    if data.get("period_id"):
        _ensure_period(db, data["period_id"])
        obj.period_id = data["period_id"]
    if data.get("date") is not None:
        obj.date = data["date"]
    if data.get("description") is not None:
        obj.description = data["description"].strip()
    if "event" in data:
        obj.event = data["event"]

    try:
        adjust_fund_balance(db, old_fund_id, -old_amount, raise_if_missing=False)
        adjust_fund_balance(db, new_fund_id, new_amount)
        obj.fund_id = new_fund_id
        obj.amount = new_amount
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[incomes] actualizar")
    except HTTPException:
        db.rollback()
        raise
    db.refresh(obj)
    return _income_out(obj)


@router.delete("/{income_id}")
def delete_income(income_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_income_or_404(db, income_id)
    try:
        adjust_fund_balance(db, obj.fund_id, -to_money(obj.amount), raise_if_missing=False)
        db.delete(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[incomes] eliminar")
    logger.info("[incomes] eliminado id=%s", income_id)
    return {"success": True, "message": "Ingreso eliminado correctamente"}
