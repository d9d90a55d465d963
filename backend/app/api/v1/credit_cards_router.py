# backend/app/api/v1/credit_cards_router.py

"""
API v1 - TARJETAS DE CRÉDITO

(bank_name, franchise, last_four_digits) es único -> 409 si se repite.
Al borrar una tarjeta los gastos asociados quedan con credit_card_id = NULL.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.session import get_db
from backend.app.schemas.movements import (
    CreditCardCreate,
    CreditCardOut,
    CreditCardStatus,
    CreditCardUpdate,
)
from backend.app.utils.db_errors import raise_db_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credit-cards", tags=["credit-cards"])

CARD_NOT_FOUND = "Tarjeta de crédito no encontrada"
CARD_DUPLICATE = "Ya existe una tarjeta con ese banco, franquicia y últimos 4 dígitos"


def _get_card_or_404(db: Session, card_id: str) -> models.CreditCard:
    obj = db.get(models.CreditCard, card_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CARD_NOT_FOUND)
    return obj


def _ensure_unique(db: Session, bank_name: str, franchise: str, last4: str, exclude_id: Optional[str] = None) -> None:
    q = db.query(models.CreditCard).filter_by(bank_name=bank_name, franchise=franchise, last_four_digits=last4)
    if exclude_id:
        q = q.filter(models.CreditCard.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail=CARD_DUPLICATE)


@router.get("", response_model=List[CreditCardOut])
def list_credit_cards(
    active: Optional[bool] = Query(None, description="Filtra por estado"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    q = db.query(models.CreditCard)
    if active is not None:
        q = q.filter(models.CreditCard.is_active.is_(active))
    return q.order_by(models.CreditCard.bank_name.asc(), models.CreditCard.last_four_digits.asc()).all()


@router.get("/{card_id}", response_model=CreditCardOut)
def get_credit_card(card_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _get_card_or_404(db, card_id)


@router.post("", response_model=CreditCardOut, status_code=status.HTTP_201_CREATED)
def create_credit_card(payload: CreditCardCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    bank_name = payload.bank_name.strip()
    _ensure_unique(db, bank_name, payload.franchise, payload.last_four_digits)
    obj = models.CreditCard(
        bank_name=bank_name,
        franchise=payload.franchise,
        last_four_digits=payload.last_four_digits,
        is_active=payload.is_active,
    )
    try:
        db.add(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[credit-cards] crear")
    db.refresh(obj)
    logger.info("[credit-cards] creada id=%s", obj.id)
    return obj


@router.put("/{card_id}", response_model=CreditCardOut)
def update_credit_card(
    card_id: str,
    payload: CreditCardUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_card_or_404(db, card_id)
    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    if "bank_name" in data:
        data["bank_name"] = data["bank_name"].strip()

    _ensure_unique(
        db,
        data.get("bank_name", obj.bank_name),
        data.get("franchise", obj.franchise),
        data.get("last_four_digits", obj.last_four_digits),
        exclude_id=obj.id,
    )
    for k, v in data.items():
        setattr(obj, k, v)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[credit-cards] actualizar")
    db.refresh(obj)
    return obj


@router.patch("/{card_id}/status", response_model=CreditCardOut)
def set_credit_card_status(
    card_id: str,
    payload: CreditCardStatus,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_card_or_404(db, card_id)
    obj.is_active = payload.is_active
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[credit-cards] estado")
    db.refresh(obj)
    logger.info("[credit-cards] id=%s is_active=%s", obj.id, obj.is_active)
    return obj


@router.delete("/{card_id}")
def delete_credit_card(card_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_card_or_404(db, card_id)
    try:
        db.query(models.Expense).filter(models.Expense.credit_card_id == obj.id).update(
            {models.Expense.credit_card_id: None}, synchronize_session=False
        )
        db.delete(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[credit-cards] eliminar")
    return {"success": True, "message": "Tarjeta eliminada correctamente"}
