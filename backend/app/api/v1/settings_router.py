# backend/app/api/v1/settings_router.py

"""
API v1 - SETTINGS

Fila única (id=1) con el fondo por defecto.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.session import get_db
from backend.app.schemas.movements import SettingsOut, SettingsUpdate
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.fund_utils import get_default_fund

router = APIRouter(prefix="/settings", tags=["settings"])


def _settings_out(db: Session, row: models.AppSettings | None) -> dict:
    # sin configuración explícita se informa el fondo por defecto deducido
    fund = row.default_fund if row and row.default_fund else get_default_fund(db)
    return {
        "default_fund_id": fund.id if fund else None,
        "default_fund_name": fund.name if fund else None,
    }


@router.get("", response_model=SettingsOut)
def get_settings(db: Session = Depends(get_db), user=Depends(require_user)):
    return _settings_out(db, db.get(models.AppSettings, 1))


@router.put("", response_model=SettingsOut)
def update_settings(payload: SettingsUpdate, db: Session = Depends(get_db), user=Depends(require_user)):
    if payload.default_fund_id and not db.get(models.Fund, payload.default_fund_id):
        raise HTTPException(status_code=400, detail="El fondo especificado no existe")

    row = db.get(models.AppSettings, 1)
    if row is None:
        row = models.AppSettings(id=1)
        db.add(row)
    row.default_fund_id = payload.default_fund_id
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[settings] actualizar")
    db.refresh(row)
    return _settings_out(db, row)
