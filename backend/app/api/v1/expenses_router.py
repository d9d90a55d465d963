# backend/app/api/v1/expenses_router.py

"""
API v1 - GASTOS

Un gasto sale siempre de un fondo origen (source_fund_id). Si además
tiene destination_fund_id es una transferencia: el destino recibe el
mismo importe.

Endpoints:
- GET    /api/expenses?period_id=&fund_id=&category_id=
- GET    /api/expenses/{id}
- POST   /api/expenses
- PUT    /api/expenses/{id}
- DELETE /api/expenses/{id}
- POST   /api/expenses/validate-source-fund   -> solo valida, no guarda

Validación de fondos: category_fund_validation (errores -> 400 con
details y warnings; los warnings se devuelven informativos).
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from backend.app.api.v1.auth_router import require_user
from backend.app.core.constants import PAYMENT_CREDIT
from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.db.session import get_db
from backend.app.schemas.movements import (
    ExpenseCreate,
    ExpenseOut,
    ExpenseUpdate,
    SourceFundValidationIn,
)
from backend.app.utils.category_fund_validation import (
    ValidationResult,
    validate_expense_source_funds,
    validate_source_fund_update,
)
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.fund_utils import adjust_fund_balance, resolve_funds_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/expenses", tags=["expenses"])

EXPENSE_NOT_FOUND = "Gasto no encontrado"


# ============================================================
# Helpers internos
# ============================================================

def _expense_out(obj: models.Expense) -> dict:
    return {
        "id": obj.id,
        "category_id": obj.category_id,
        "category_name": obj.category.name if obj.category else None,
        "period_id": obj.period_id,
        "date": obj.date,
        "event": obj.event,
        "payment_method": obj.payment_method,
        "description": obj.description,
        "amount": float(to_money(obj.amount)),
        "source_fund_id": obj.source_fund_id,
        "source_fund_name": obj.source_fund.name if obj.source_fund else None,
        "destination_fund_id": obj.destination_fund_id,
        "destination_fund_name": obj.destination_fund.name if obj.destination_fund else None,
        "credit_card_id": obj.credit_card_id,
        "pending": bool(obj.pending),
        "created_at": obj.created_at,
    }


def _get_expense_or_404(db: Session, expense_id: str) -> models.Expense:
    obj = db.get(models.Expense, expense_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=EXPENSE_NOT_FOUND)
    return obj


def _raise_if_invalid(result: ValidationResult) -> None:
    if not result.is_valid:
        raise HTTPException(
            status_code=400,
            detail={"error": result.errors[0], "details": result.errors, "warnings": result.warnings},
        )


def _check_period(db: Session, period_id: str) -> None:
    if not db.get(models.Period, period_id):
        raise HTTPException(status_code=400, detail="El periodo especificado no existe")


def _check_credit_card(db: Session, credit_card_id: Optional[str], payment_method: str) -> None:
    """
    Tarjeta solo con pago a crédito; debe existir y estar activa.
    """
    if not credit_card_id:
        return
    if payment_method != PAYMENT_CREDIT:
        raise HTTPException(
            status_code=400,
            detail="Solo se puede asociar una tarjeta de crédito a gastos con método de pago crédito",
        )
    card = db.get(models.CreditCard, credit_card_id)
    if card is None:
        raise HTTPException(status_code=400, detail="La tarjeta de crédito especificada no existe")
    if not card.is_active:
        raise HTTPException(status_code=400, detail="La tarjeta de crédito está inactiva")


def _apply_effects(db: Session, expense: models.Expense, sign: int) -> None:
    """sign=+1 aplica el gasto a los saldos; sign=-1 lo revierte."""
    amount = to_money(expense.amount)
    adjust_fund_balance(db, expense.source_fund_id, -sign * amount, raise_if_missing=sign > 0)
    adjust_fund_balance(db, expense.destination_fund_id, sign * amount, raise_if_missing=sign > 0)


# ============================================================
# Endpoints
# ============================================================

@router.get("", response_model=List[ExpenseOut])
def list_expenses(
    period_id: Optional[str] = Query(None),
    category_id: Optional[str] = Query(None),
    fund_id: Optional[str] = Query(
        None,
        description="Gastos con este fondo como origen o de categorías asociadas a él",
    ),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    q = db.query(models.Expense).options(
        selectinload(models.Expense.category),
        selectinload(models.Expense.source_fund),
        selectinload(models.Expense.destination_fund),
    )
    if period_id:
        q = q.filter(models.Expense.period_id == period_id)
    if category_id:
        q = q.filter(models.Expense.category_id == category_id)
    if fund_id:
        all_funds = db.query(models.Fund).all()
        linked_category_ids = []
        for c in db.query(models.Category).all():
            resolution = resolve_funds_for(c, all_funds)
            if resolution.has_restrictions and fund_id in resolution.fund_ids:
                linked_category_ids.append(c.id)
        q = q.filter(
            or_(
                models.Expense.source_fund_id == fund_id,
                models.Expense.category_id.in_(linked_category_ids or [""]),
            )
        )
    rows = q.order_by(models.Expense.date.desc(), models.Expense.created_at.desc()).all()
    return [_expense_out(r) for r in rows]


@router.post("/validate-source-fund")
def validate_source_fund(
    payload: SourceFundValidationIn,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    result = validate_expense_source_funds(
        db,
        payload.category_id,
        payload.source_fund_id,
        payload.destination_fund_id,
        payload.amount,
    )
    return result.to_dict()


@router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense(expense_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _expense_out(_get_expense_or_404(db, expense_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_expense(payload: ExpenseCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    """
    Devuelve el gasto creado y los avisos de la validación de fondos.
    """
    result = validate_expense_source_funds(
        db,
        payload.category_id,
        payload.source_fund_id,
        payload.destination_fund_id,
        payload.amount,
    )
    _raise_if_invalid(result)
    _check_period(db, payload.period_id)
    _check_credit_card(db, payload.credit_card_id, payload.payment_method)

    obj = models.Expense(**payload.model_dump())
    obj.amount = to_money(payload.amount)
    try:
        db.add(obj)
        db.flush()
        _apply_effects(db, obj, +1)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[expenses] crear")
    db.refresh(obj)
    logger.info(
        "[expenses] creado id=%s source=%s dest=%s amount=%s",
        obj.id, obj.source_fund_id, obj.destination_fund_id, obj.amount,
    )
    return {"expense": _expense_out(obj), "warnings": result.warnings}


@router.put("/{expense_id}")
def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Revierte el efecto anterior en los fondos y aplica el nuevo.
    destination_fund_id=null explícito quita la transferencia.
    """
    obj = _get_expense_or_404(db, expense_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")

    kwargs = {
        "category_id": data.get("category_id"),
        "source_fund_id": data.get("source_fund_id"),
        "amount": data.get("amount"),
    }
    if "destination_fund_id" in data:
        kwargs["destination_fund_id"] = data["destination_fund_id"]
    result = validate_source_fund_update(db, obj.id, **kwargs)
    _raise_if_invalid(result)

    if data.get("period_id"):
        _check_period(db, data["period_id"])
    final_method = data.get("payment_method") or obj.payment_method
    final_card = data["credit_card_id"] if "credit_card_id" in data else obj.credit_card_id
    if final_card and final_method != PAYMENT_CREDIT and "credit_card_id" not in data:
        # cambiar a un método distinto de crédito suelta la tarjeta
        final_card = None
        data["credit_card_id"] = None
    _check_credit_card(db, final_card, final_method)

    try:
        _apply_effects(db, obj, -1)
        for key, value in data.items():
            if key in ("destination_fund_id", "credit_card_id", "event", "description"):
                setattr(obj, key, value)
            elif value is not None:
                setattr(obj, key, to_money(value) if key == "amount" else value)
        db.flush()
        _apply_effects(db, obj, +1)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[expenses] actualizar")
    except HTTPException:
        db.rollback()
        raise
    db.refresh(obj)
    logger.info("[expenses] actualizado id=%s", obj.id)
    return {"expense": _expense_out(obj), "warnings": result.warnings}


@router.delete("/{expense_id}")
def delete_expense(expense_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_expense_or_404(db, expense_id)
    try:
        _apply_effects(db, obj, -1)
        db.delete(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[expenses] eliminar")
    logger.info("[expenses] eliminado id=%s", expense_id)
    return {"success": True, "message": "Gasto eliminado correctamente"}
