# backend/app/api/v1/periods_router.py

"""
API v1 - PERIODOS

Un periodo es un mes (month 0-11) de un año. Como mucho hay un periodo
abierto; abrir uno cierra los demás.

Endpoints:
- GET    /api/periods                -> listar (año desc, mes desc)
- GET    /api/periods/active         -> periodo abierto (404 si no hay)
- GET    /api/periods/{id}
- GET    /api/periods/{id}/data      -> ingresos y presupuestos listos para copiar a una simulación
- POST   /api/periods
- PUT    /api/periods/{id}
- DELETE /api/periods/{id}           -> borra en cascada presupuestos y gastos
- POST   /api/periods/{id}/open
- POST   /api/periods/close/{id}     -> 409 PERIOD_ALREADY_INACTIVE si ya estaba cerrado
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.session import get_db
from backend.app.schemas.periods import PeriodCreate, PeriodOut, PeriodUpdate
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.simulation_utils import period_copy_data

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/periods", tags=["periods"])

PERIOD_NOT_FOUND = "Periodo no encontrado"


def _get_period_or_404(db: Session, period_id: str) -> models.Period:
    period = db.get(models.Period, period_id)
    if not period:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PERIOD_NOT_FOUND)
    return period


def _close_others(db: Session, keep_id: str) -> int:
    return (
        db.query(models.Period)
        .filter(models.Period.is_open.is_(True), models.Period.id != keep_id)
        .update({models.Period.is_open: False}, synchronize_session=False)
    )


@router.get("", response_model=List[PeriodOut])
def list_periods(db: Session = Depends(get_db), user=Depends(require_user)):
    return (
        db.query(models.Period)
        .order_by(models.Period.year.desc(), models.Period.month.desc())
        .all()
    )


@router.get("/active", response_model=PeriodOut)
def get_active_period(db: Session = Depends(get_db), user=Depends(require_user)):
    period = db.query(models.Period).filter(models.Period.is_open.is_(True)).first()
    if not period:
        raise HTTPException(status_code=404, detail="No hay un periodo activo")
    return period


@router.get("/{period_id}", response_model=PeriodOut)
def get_period(period_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _get_period_or_404(db, period_id)


@router.get("/{period_id}/data")
def get_period_data(period_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    """Ingresos y presupuestos del periodo en formato de simulación."""
    return period_copy_data(db, _get_period_or_404(db, period_id))


@router.post("", response_model=PeriodOut, status_code=status.HTTP_201_CREATED)
def create_period(payload: PeriodCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    """
    Crea un periodo. Si llega is_open=true, el resto de periodos se cierran.
    """
    obj = models.Period(**payload.model_dump())
    try:
        db.add(obj)
        db.flush()
        if obj.is_open:
            _close_others(db, obj.id)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[periods] crear")
    db.refresh(obj)
    logger.info("[periods] creado id=%s %s/%s", obj.id, obj.month, obj.year)
    return obj


@router.put("/{period_id}", response_model=PeriodOut)
def update_period(
    period_id: str,
    payload: PeriodUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_period_or_404(db, period_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    for k, v in data.items():
        if v is not None:
            setattr(obj, k, v)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[periods] actualizar")
    db.refresh(obj)
    return obj


@router.delete("/{period_id}")
def delete_period(period_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_period_or_404(db, period_id)
    try:
        db.delete(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[periods] eliminar")
    logger.info("[periods] eliminado id=%s", period_id)
    return {"success": True, "message": "Periodo eliminado correctamente"}


@router.post("/{period_id}/open", response_model=PeriodOut)
def open_period(period_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_period_or_404(db, period_id)
    try:
        closed = _close_others(db, obj.id)
        obj.is_open = True
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[periods] abrir")
    db.refresh(obj)
    logger.info("[periods] abierto id=%s (cerrados=%s)", obj.id, closed)
    return obj


@router.post("/close/{period_id}", response_model=PeriodOut)
def close_period(period_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_period_or_404(db, period_id)
    if not obj.is_open:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="PERIOD_ALREADY_INACTIVE")
    obj.is_open = False
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[periods] cerrar")
    db.refresh(obj)
    logger.info("[periods] cerrado id=%s", obj.id)
    return obj
