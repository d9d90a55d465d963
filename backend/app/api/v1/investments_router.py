# backend/app/api/v1/investments_router.py

"""
API v1 - SIMULADOR DE INVERSIONES

Interés compuesto con aportes mensuales, capitalización mensual o diaria.
Cálculos en utils/invest_utils.py.

Endpoints:
- GET|POST          /api/invest-scenarios
- GET|PUT|DELETE    /api/invest-scenarios/{id}
- GET               /api/invest-scenarios/{id}/projection?mode=monthly|full
- GET|POST          /api/invest-scenarios/{id}/rate-comparisons
- DELETE            /api/invest-scenarios/{id}/rate-comparisons/{comparison_id}
- GET               /api/invest-scenarios/{id}/rate-range?min_rate=&max_rate=&step=
- GET               /api/invest-scenarios/{id}/target?amount=
"""

from __future__ import annotations

import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.session import get_db
from backend.app.schemas.simulators import (
    InvestScenarioCreate,
    InvestScenarioOut,
    InvestScenarioUpdate,
    RateComparisonCreate,
    RateComparisonOut,
)
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.invest_utils import (
    calculate_investment_summary,
    calculate_required_contribution,
    calculate_time_to_target,
    compare_rate_range,
    compare_rates,
    generate_monthly_summary_schedule,
    generate_projection_schedule,
    params_from,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invest-scenarios", tags=["invest-scenarios"])

SCENARIO_NOT_FOUND = "Escenario de inversión no encontrado"


def _get_scenario_or_404(db: Session, scenario_id: str) -> models.InvestmentScenario:
    obj = db.get(models.InvestmentScenario, scenario_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SCENARIO_NOT_FOUND)
    return obj


def _commit(db: Session, context: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, context)


# ============================================================
# Escenarios
# ============================================================

@router.get("", response_model=List[InvestScenarioOut])
def list_invest_scenarios(db: Session = Depends(get_db), user=Depends(require_user)):
    return db.query(models.InvestmentScenario).order_by(models.InvestmentScenario.created_at.desc()).all()


@router.get("/{scenario_id}", response_model=InvestScenarioOut)
def get_invest_scenario(scenario_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _get_scenario_or_404(db, scenario_id)


@router.post("", response_model=InvestScenarioOut, status_code=status.HTTP_201_CREATED)
def create_invest_scenario(payload: InvestScenarioCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = models.InvestmentScenario(**payload.model_dump())
    obj.name = payload.name.strip()
    db.add(obj)
    _commit(db, "[invest] crear")
    db.refresh(obj)
    logger.info("[invest] escenario creado id=%s", obj.id)
    return obj


@router.put("/{scenario_id}", response_model=InvestScenarioOut)
def update_invest_scenario(
    scenario_id: str,
    payload: InvestScenarioUpdate,
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
    _commit(db, "[invest] actualizar")
    db.refresh(obj)
    return obj


@router.delete("/{scenario_id}")
def delete_invest_scenario(scenario_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_scenario_or_404(db, scenario_id)
    db.delete(obj)
    _commit(db, "[invest] eliminar")
    return {"success": True, "message": "Escenario eliminado correctamente"}


# ============================================================
# Proyección y metas
# ============================================================

@router.get("/{scenario_id}/projection")
def get_projection(
    scenario_id: str,
    mode: Literal["monthly", "full"] = Query("monthly", description="monthly = una fila por mes; full = detalle completo"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    summary + schedule + comparación con las tasas guardadas.
    El calendario arranca en la fecha de creación del escenario.
    """
    obj = _get_scenario_or_404(db, scenario_id)
    start = obj.created_at.date() if obj.created_at else None
    if mode == "full":
        schedule = generate_projection_schedule(obj, start=start)
    else:
        schedule = generate_monthly_summary_schedule(obj, start=start)
    return {
        "investment_scenario_id": obj.id,
        "mode": mode,
        "summary": calculate_investment_summary(obj),
        "schedule": schedule,
        "comparisons": compare_rates(obj, obj.rate_comparisons),
    }


@router.get("/{scenario_id}/target")
def get_target(
    scenario_id: str,
    amount: float = Query(..., gt=0, description="Monto objetivo"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    months_to_target: -1 si no se alcanza en 100 años.
    required_monthly_contribution: aporte para llegar en el plazo del escenario.
    """
    obj = _get_scenario_or_404(db, scenario_id)
    p = params_from(obj)
    months = calculate_time_to_target(amount, p)
    return {
        "investment_scenario_id": obj.id,
        "target_amount": amount,
        "months_to_target": months,
        "reachable": months >= 0,
        "required_monthly_contribution": calculate_required_contribution(
            amount, p.initial_amount, p.term_months, p.annual_rate, p.compounding_frequency
        ),
    }


@router.get("/{scenario_id}/rate-range")
def get_rate_range(
    scenario_id: str,
    min_rate: float = Query(..., ge=0, le=100),
    max_rate: float = Query(..., ge=0, le=100),
    step: float = Query(0.5, gt=0),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_scenario_or_404(db, scenario_id)
    if max_rate < min_rate:
        raise HTTPException(status_code=400, detail="max_rate debe ser mayor o igual que min_rate")
    if (max_rate - min_rate) / step > 200:
        raise HTTPException(status_code=400, detail="Demasiadas tasas en el rango (máximo 200)")
    return {"investment_scenario_id": obj.id, "comparisons": compare_rate_range(obj, min_rate, max_rate, step)}


# ============================================================
# Tasas de comparación guardadas
# ============================================================

@router.get("/{scenario_id}/rate-comparisons", response_model=List[RateComparisonOut])
def list_rate_comparisons(scenario_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _get_scenario_or_404(db, scenario_id).rate_comparisons


@router.post(
    "/{scenario_id}/rate-comparisons",
    response_model=RateComparisonOut,
    status_code=status.HTTP_201_CREATED,
)
def create_rate_comparison(
    scenario_id: str,
    payload: RateComparisonCreate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    scenario = _get_scenario_or_404(db, scenario_id)
    if any(float(rc.rate) == float(payload.rate) for rc in scenario.rate_comparisons):
        raise HTTPException(status_code=409, detail="Esa tasa ya está en la comparación")
    obj = models.InvestmentRateComparison(
        investment_scenario_id=scenario.id,
        rate=payload.rate,
        label=payload.label,
    )
    db.add(obj)
    _commit(db, "[invest] crear tasa de comparación")
    db.refresh(obj)
    return obj


@router.delete("/{scenario_id}/rate-comparisons/{comparison_id}")
def delete_rate_comparison(
    scenario_id: str,
    comparison_id: str,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    scenario = _get_scenario_or_404(db, scenario_id)
    obj = db.get(models.InvestmentRateComparison, comparison_id)
    if not obj or obj.investment_scenario_id != scenario.id:
        raise HTTPException(status_code=404, detail="Tasa de comparación no encontrada")
    db.delete(obj)
    _commit(db, "[invest] eliminar tasa de comparación")
    return {"success": True, "message": "Tasa de comparación eliminada correctamente"}
