# backend/app/api/v1/loans_router.py

"""
API v1 - SIMULADOR DE PRÉSTAMOS

Escenarios de préstamo con cuota fija (sistema francés) y abonos extra a
capital. Los cálculos están en utils/loan_utils.py; aquí solo se
validan entradas, se persiste y se arma la respuesta.

Endpoints:
- GET|POST          /api/loan-scenarios
- GET|PUT|DELETE    /api/loan-scenarios/{id}
- GET               /api/loan-scenarios/{id}/schedule
- GET               /api/loan-scenarios/{id}/comparisons?rates=10,12.5
- GET               /api/loan-scenarios/{id}/range-summary?start=&end=
- GET|POST          /api/loan-scenarios/{id}/extra-payments
- PUT|DELETE        /api/loan-scenarios/{id}/extra-payments/{extra_id}
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
from backend.app.schemas.simulators import (
    LoanExtraPaymentCreate,
    LoanExtraPaymentOut,
    LoanExtraPaymentUpdate,
    LoanScenarioCreate,
    LoanScenarioOut,
    LoanScenarioUpdate,
)
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.loan_utils import (
    calculate_extra_payment_impact,
    calculate_loan_summary,
    calculate_principal_paid_percentage,
    generate_amortization_schedule,
    generate_loan_comparisons,
    get_payment_range_summary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/loan-scenarios", tags=["loan-scenarios"])

SCENARIO_NOT_FOUND = "Escenario de préstamo no encontrado"
EXTRA_NOT_FOUND = "Abono extra no encontrado"


# ============================================================
# Helpers internos
# ============================================================

def _get_scenario_or_404(db: Session, scenario_id: str) -> models.LoanScenario:
    obj = db.get(models.LoanScenario, scenario_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SCENARIO_NOT_FOUND)
    return obj


def _scenario_out(obj: models.LoanScenario) -> dict:
    summary = calculate_loan_summary(obj.principal, obj.interest_rate, obj.term_months, obj.start_date)
    return {
        "id": obj.id,
        "name": obj.name,
        "principal": float(to_money(obj.principal)),
        "interest_rate": float(obj.interest_rate),
        "term_months": obj.term_months,
        "start_date": obj.start_date,
        "currency": obj.currency,
        "created_at": obj.created_at,
        "updated_at": obj.updated_at,
        "monthly_payment": summary["monthly_payment"],
        "total_interest": summary["total_interest"],
        "payoff_date": summary["payoff_date"],
    }


def _check_payment_number(scenario: models.LoanScenario, payment_number: int) -> None:
    if payment_number < 1 or payment_number > scenario.term_months:
        raise HTTPException(
            status_code=400,
            detail=f"El número de cuota debe estar entre 1 y {scenario.term_months}",
        )


def _parse_rates(raw: Optional[str]) -> List[float]:
    if not raw:
        return []
    rates = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            rate = float(chunk)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Tasa inválida: {chunk}")
        if rate <= 0 or rate > 100:
            raise HTTPException(status_code=400, detail=f"Tasa fuera de rango (0-100]: {chunk}")
        rates.append(rate)
    return rates


def _commit(db: Session, context: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, context)


# ============================================================
# Escenarios
# ============================================================

@router.get("", response_model=List[LoanScenarioOut])
def list_loan_scenarios(db: Session = Depends(get_db), user=Depends(require_user)):
    rows = db.query(models.LoanScenario).order_by(models.LoanScenario.created_at.desc()).all()
    return [_scenario_out(s) for s in rows]


@router.get("/{scenario_id}", response_model=LoanScenarioOut)
def get_loan_scenario(scenario_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _scenario_out(_get_scenario_or_404(db, scenario_id))


@router.post("", response_model=LoanScenarioOut, status_code=status.HTTP_201_CREATED)
def create_loan_scenario(payload: LoanScenarioCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = models.LoanScenario(**payload.model_dump())
    obj.name = payload.name.strip()
    db.add(obj)
    _commit(db, "[loans] crear")
    db.refresh(obj)
    logger.info("[loans] escenario creado id=%s principal=%s", obj.id, obj.principal)
    return _scenario_out(obj)


@router.put("/{scenario_id}", response_model=LoanScenarioOut)
def update_loan_scenario(
    scenario_id: str,
    payload: LoanScenarioUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_scenario_or_404(db, scenario_id)
    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")

    new_term = data.get("term_months", obj.term_months)
    beyond = [ep.payment_number for ep in obj.extra_payments if ep.payment_number > new_term]
    if beyond:
        raise HTTPException(
            status_code=400,
            detail=f"Hay abonos extra en cuotas posteriores al nuevo plazo: {', '.join(map(str, beyond))}",
        )

    for k, v in data.items():
        setattr(obj, k, v.strip() if k == "name" else v)
    _commit(db, "[loans] actualizar")
    db.refresh(obj)
    return _scenario_out(obj)


@router.delete("/{scenario_id}")
def delete_loan_scenario(scenario_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_scenario_or_404(db, scenario_id)
    db.delete(obj)
    _commit(db, "[loans] eliminar")
    return {"success": True, "message": "Escenario eliminado correctamente"}


# ============================================================
# Cálculos
# ============================================================

@router.get("/{scenario_id}/schedule")
def get_loan_schedule(scenario_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    """
    Plan de amortización con abonos extra y su impacto frente al plan
    original (meses e intereses ahorrados).
    """
    obj = _get_scenario_or_404(db, scenario_id)
    extras = list(obj.extra_payments)
    payments = generate_amortization_schedule(obj, extras)
    impact = calculate_extra_payment_impact(obj, extras)
    return {
        "loan_scenario_id": obj.id,
        "summary": impact["new_summary"],
        "payments": payments,
        "extra_payments": [LoanExtraPaymentOut.model_validate(ep).model_dump() for ep in extras],
        "original_summary": impact["original_summary"],
        "months_saved": impact["months_saved"],
        "interest_saved": impact["interest_saved"],
    }


@router.get("/{scenario_id}/comparisons")
def get_loan_comparisons(
    scenario_id: str,
    rates: Optional[str] = Query(None, description="Tasas EA en %, separadas por comas"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_scenario_or_404(db, scenario_id)
    return {
        "loan_scenario_id": obj.id,
        "base_rate": float(obj.interest_rate),
        "comparisons": generate_loan_comparisons(obj, _parse_rates(rates)),
    }


@router.get("/{scenario_id}/range-summary")
def get_loan_range_summary(
    scenario_id: str,
    start: int = Query(1, ge=1),
    end: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_scenario_or_404(db, scenario_id)
    if end is not None and end < start:
        raise HTTPException(status_code=400, detail="La cuota final debe ser mayor o igual que la inicial")
    summary = get_payment_range_summary(obj, start, end)
    summary["principal_paid_percentage"] = calculate_principal_paid_percentage(obj, end or obj.term_months)
    return summary


# ============================================================
# Abonos extra
# ============================================================

@router.get("/{scenario_id}/extra-payments", response_model=List[LoanExtraPaymentOut])
def list_extra_payments(scenario_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _get_scenario_or_404(db, scenario_id).extra_payments


@router.post("/{scenario_id}/extra-payments", response_model=LoanExtraPaymentOut, status_code=status.HTTP_201_CREATED)
def create_extra_payment(
    scenario_id: str,
    payload: LoanExtraPaymentCreate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    scenario = _get_scenario_or_404(db, scenario_id)
    _check_payment_number(scenario, payload.payment_number)
    obj = models.LoanExtraPayment(
        loan_scenario_id=scenario.id,
        payment_number=payload.payment_number,
        amount=to_money(payload.amount),
        description=payload.description,
    )
    db.add(obj)
    _commit(db, "[loans] crear abono extra")
    db.refresh(obj)
    logger.info("[loans] abono extra id=%s cuota=%s amount=%s", obj.id, obj.payment_number, obj.amount)
    return obj


@router.put("/{scenario_id}/extra-payments/{extra_id}", response_model=LoanExtraPaymentOut)
def update_extra_payment(
    scenario_id: str,
    extra_id: str,
    payload: LoanExtraPaymentUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    scenario = _get_scenario_or_404(db, scenario_id)
    obj = db.get(models.LoanExtraPayment, extra_id)
    if not obj or obj.loan_scenario_id != scenario.id:
        raise HTTPException(status_code=404, detail=EXTRA_NOT_FOUND)

    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    if "payment_number" in data:
        _check_payment_number(scenario, data["payment_number"])
    if "amount" in data:
        data["amount"] = to_money(data["amount"])
    for k, v in data.items():
        setattr(obj, k, v)
    _commit(db, "[loans] actualizar abono extra")
    db.refresh(obj)
    return obj


@router.delete("/{scenario_id}/extra-payments/{extra_id}")
def delete_extra_payment(
    scenario_id: str,
    extra_id: str,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    scenario = _get_scenario_or_404(db, scenario_id)
    obj = db.get(models.LoanExtraPayment, extra_id)
    if not obj or obj.loan_scenario_id != scenario.id:
        raise HTTPException(status_code=404, detail=EXTRA_NOT_FOUND)
    db.delete(obj)
    _commit(db, "[loans] eliminar abono extra")
    return {"success": True, "message": "Abono extra eliminado correctamente"}
