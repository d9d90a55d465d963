# backend/app/api/v1/interest_rates_router.py

"""
API v1 - SIMULADOR DE TASAS DE INTERÉS

Conversión entre EA, EM, ED, NM y NA (siempre pasando por EA).
Las tasas van en decimal (0.12 = 12%).
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
from backend.app.schemas.simulators import (
    RateConvertIn,
    RateScenarioCreate,
    RateScenarioOut,
    RateScenarioUpdate,
)
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.interest_rate_utils import (
    convert_rate,
    get_conversion_display,
    get_rate_validation_error,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/interest-rate-scenarios", tags=["interest-rate-scenarios"])

SCENARIO_NOT_FOUND = "Escenario de tasa no encontrado"


def _get_scenario_or_404(db: Session, scenario_id: str) -> models.InterestRateScenario:
    obj = db.get(models.InterestRateScenario, scenario_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SCENARIO_NOT_FOUND)
    return obj


def _scenario_out(obj: models.InterestRateScenario) -> dict:
    rate = float(obj.input_rate)
    return {
        "id": obj.id,
        "name": obj.name,
        "input_rate": rate,
        "input_rate_type": obj.input_rate_type,
        "notes": obj.notes,
        "created_at": obj.created_at,
        "updated_at": obj.updated_at,
        "conversions": convert_rate(rate, obj.input_rate_type),
    }


def _commit(db: Session, context: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, context)


@router.post("/convert")
def convert(payload: RateConvertIn, user=Depends(require_user)):
    error = get_rate_validation_error(payload.rate)
    if error:
        raise HTTPException(status_code=400, detail=error)
    return {
        "input_rate": payload.rate,
        "input_rate_type": payload.rate_type,
        "conversions": convert_rate(payload.rate, payload.rate_type),
        "display": get_conversion_display(payload.rate, payload.rate_type),
    }


@router.get("", response_model=List[RateScenarioOut])
def list_rate_scenarios(db: Session = Depends(get_db), user=Depends(require_user)):
    rows = db.query(models.InterestRateScenario).order_by(models.InterestRateScenario.created_at.desc()).all()
    return [_scenario_out(s) for s in rows]


@router.get("/{scenario_id}", response_model=RateScenarioOut)
def get_rate_scenario(scenario_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _scenario_out(_get_scenario_or_404(db, scenario_id))


@router.post("", response_model=RateScenarioOut, status_code=status.HTTP_201_CREATED)
def create_rate_scenario(payload: RateScenarioCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = models.InterestRateScenario(
        name=payload.name.strip(),
        input_rate=payload.input_rate,
        input_rate_type=payload.input_rate_type,
        notes=payload.notes,
    )
    db.add(obj)
    _commit(db, "[rates] crear")
    db.refresh(obj)
    logger.info("[rates] escenario creado id=%s %s=%s", obj.id, obj.input_rate_type, obj.input_rate)
    return _scenario_out(obj)


@router.put("/{scenario_id}", response_model=RateScenarioOut)
def update_rate_scenario(
    scenario_id: str,
    payload: RateScenarioUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_scenario_or_404(db, scenario_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    for k, v in data.items():
        if k == "notes":
            obj.notes = v
        elif v is not None:
            setattr(obj, k, v.strip() if k == "name" else v)
    _commit(db, "[rates] actualizar")
    db.refresh(obj)
    return _scenario_out(obj)


@router.delete("/{scenario_id}")
def delete_rate_scenario(scenario_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_scenario_or_404(db, scenario_id)
    db.delete(obj)
    _commit(db, "[rates] eliminar")
    return {"success": True, "message": "Escenario eliminado correctamente"}
