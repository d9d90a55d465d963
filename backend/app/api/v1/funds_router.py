# backend/app/api/v1/funds_router.py

"""
API v1 - FONDOS

Un fondo es una bolsa de dinero (cuenta, efectivo, ahorro...). Su saldo
actual se mueve con ingresos (+), gastos con el fondo como origen (-) y
transferencias que llegan a él (+).

Endpoints:
- GET    /api/funds
- GET    /api/funds/{id}
- POST   /api/funds
- PUT    /api/funds/{id}                -> start_date no editable
- DELETE /api/funds/{id}                -> 409 si tiene movimientos, relaciones o es el fondo por defecto
- POST   /api/funds/{id}/recalculate    -> recalcula current_balance desde los movimientos
- GET    /api/funds/{id}/trend?days=30  -> serie diaria del saldo
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.db.session import get_db
from backend.app.schemas.funds import FundCreate, FundOut, FundUpdate
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.fund_utils import (
    FUND_NOT_FOUND,
    fund_balance_trend,
    get_default_fund,
    recalculate_fund_balance,
)
from backend.app.utils.text_utils import normalize_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/funds", tags=["funds"])


def _get_fund_or_404(db: Session, fund_id: str) -> models.Fund:
    fund = db.get(models.Fund, fund_id)
    if not fund:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=FUND_NOT_FOUND)
    return fund


def _ensure_unique_name(db: Session, name: str, exclude_id: str | None = None) -> None:
    q = db.query(models.Fund).filter(func.lower(models.Fund.name) == name.lower())
    if exclude_id:
        q = q.filter(models.Fund.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail="Ya existe un fondo con ese nombre")


def _count(db: Session, column, fund_id: str) -> int:
    return db.query(func.count()).filter(column == fund_id).scalar() or 0


@router.get("", response_model=List[FundOut])
def list_funds(db: Session = Depends(get_db), user=Depends(require_user)):
    return db.query(models.Fund).order_by(models.Fund.name.asc()).all()


@router.get("/{fund_id}", response_model=FundOut)
def get_fund(fund_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _get_fund_or_404(db, fund_id)


@router.post("", response_model=FundOut, status_code=status.HTTP_201_CREATED)
def create_fund(payload: FundCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    name = normalize_name(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="El nombre del fondo es obligatorio")
    _ensure_unique_name(db, name)

    initial = to_money(payload.initial_balance)
    obj = models.Fund(
        name=name,
        description=payload.description,
        initial_balance=initial,
        current_balance=initial,
        start_date=payload.start_date,
    )
    try:
        db.add(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[funds] crear")
    db.refresh(obj)
    logger.info("[funds] creado id=%s name=%s initial=%s", obj.id, obj.name, initial)
    return obj


@router.put("/{fund_id}", response_model=FundOut)
def update_fund(
    fund_id: str,
    payload: FundUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Cambiar initial_balance desplaza current_balance en la misma diferencia.
    """
    obj = _get_fund_or_404(db, fund_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")

    if data.get("name") is not None:
        name = normalize_name(data["name"])
        _ensure_unique_name(db, name, exclude_id=obj.id)
        obj.name = name
    if "description" in data:
        obj.description = data["description"]
    if data.get("initial_balance") is not None:
        new_initial = to_money(data["initial_balance"])
        delta = new_initial - to_money(obj.initial_balance)
        obj.initial_balance = new_initial
        obj.current_balance = to_money(obj.current_balance) + delta

    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[funds] actualizar")
    db.refresh(obj)
    return obj


@router.delete("/{fund_id}")
def delete_fund(fund_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_fund_or_404(db, fund_id)

    default = get_default_fund(db)
    if default is not None and default.id == obj.id:
        raise HTTPException(status_code=409, detail="No se puede eliminar el fondo por defecto")

    usage = {
        "incomes": _count(db, models.Income.fund_id, obj.id),
        "expenses": _count(db, models.Expense.source_fund_id, obj.id)
        + _count(db, models.Expense.destination_fund_id, obj.id),
        "category_relationships": _count(db, models.CategoryFundRelationship.fund_id, obj.id),
    }
    if any(usage.values()):
        raise HTTPException(
            status_code=409,
            detail={
                "error": "No se puede eliminar un fondo con movimientos o categorías asociadas",
                "usage": usage,
            },
        )

    try:
        db.delete(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[funds] eliminar")
    logger.info("[funds] eliminado id=%s", fund_id)
    return {"success": True, "message": "Fondo eliminado correctamente"}


@router.post("/{fund_id}/recalculate")
def recalculate_fund(fund_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_fund_or_404(db, fund_id)
    try:
        result = recalculate_fund_balance(db, obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[funds] recalcular")
    return result


@router.get("/{fund_id}/trend")
def get_fund_trend(
    fund_id: str,
    days: int = Query(30, ge=1, le=366),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_fund_or_404(db, fund_id)
    return {"fund_id": obj.id, "fund_name": obj.name, "days": days, "series": fund_balance_trend(db, obj, days=days)}
