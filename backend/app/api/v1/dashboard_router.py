# backend/app/api/v1/dashboard_router.py

"""
API v1 - DASHBOARD e INFORMES

- GET /api/dashboard?period_id=                 -> presupuesto vs gasto por categoría
- GET /api/dashboard/groupers?...               -> total por agrupador (opcional: estudio)
- GET /api/dashboard/funds/balances?period_id=  -> saldos y movimientos por fondo
- GET /api/dashboard/remainder?fund_id&estudio_id&agrupador_ids -> presupuesto restante
- GET /api/dashboard/groupers/period-comparison -> agrupador x periodo
- GET /api/dashboard/groupers/weekly-categories?period_id&week_start&week_end
- GET /api/dashboard/groupers/weekly-cumulative?period_id
- GET /api/dashboard/funds/transfers?fund_id&limit&offset
- GET /api/overspend/all-periods                -> sobregasto por categoría y periodo
- GET /api/budget-execution/{period_id}?view_mode=daily|weekly

Sin period_id se usa el periodo abierto (o el más reciente).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.db.session import get_db
from backend.app.utils.budget_utils import (
    budget_execution,
    grouper_period_comparison,
    grouper_totals,
    overspend_all_periods,
    period_budget_summary,
    remainder_by_category,
    validate_payment_methods,
    weekly_category_totals,
    weekly_cumulative_by_grouper,
)
from backend.app.utils.common import resolve_active_period
from backend.app.utils.fund_utils import (
    FUND_NOT_FOUND,
    filter_categories_by_fund,
    fund_movement_totals,
    fund_transfers,
)
from backend.app.utils.id_utils import parse_id_list, parse_positive_int

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])
overspend_router = APIRouter(prefix="/overspend", tags=["dashboard"])
budget_execution_router = APIRouter(prefix="/budget-execution", tags=["dashboard"])


def _period_or_active(db: Session, period_id: Optional[str]) -> models.Period:
    if not period_id:
        return resolve_active_period(db)
    period = db.get(models.Period, period_id)
    if not period:
        raise HTTPException(status_code=404, detail="Periodo no encontrado")
    return period


@router.get("")
def get_dashboard(
    period_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    period = _period_or_active(db, period_id)
    return period_budget_summary(db, period)


@router.get("/groupers")
def get_grouper_dashboard(
    period_id: Optional[str] = Query(None),
    payment_method: Literal["all", "cash", "credit", "debit"] = Query("all"),
    grouper_ids: Optional[str] = Query(None, description="Lista separada por comas: 1,2,3"),
    estudio_id: Optional[str] = Query(None),
    include_budgets: bool = Query(False),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    period = _period_or_active(db, period_id)
    ids = parse_id_list(grouper_ids, "ID de agrupador")

    estudio = None
    if estudio_id:
        estudio = db.get(models.Estudio, parse_positive_int(estudio_id, "ID de estudio"))
        if estudio is None:
            raise HTTPException(status_code=404, detail="Estudio no encontrado")

    rows = grouper_totals(
        db,
        period.id,
        payment_method=payment_method,
        grouper_ids=ids,
        include_budgets=include_budgets,
        estudio_id=estudio.id if estudio else None,
    )
    return {
        "period_id": period.id,
        "period_name": period.name,
        "estudio_id": estudio.id if estudio else None,
        "payment_method": payment_method,
        "groupers": rows,
        "total_amount": float(sum(to_money(r["total_amount"]) for r in rows)),
    }


@router.get("/funds/balances")
def get_fund_balances(
    period_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Con period_id los totales se limitan a ese periodo; el saldo es
    siempre el current_balance del fondo.
    """
    if period_id and not db.get(models.Period, period_id):
        raise HTTPException(status_code=404, detail="Periodo no encontrado")

    rows = []
    for fund in db.query(models.Fund).order_by(models.Fund.name.asc()).all():
        totals = fund_movement_totals(db, fund, since=fund.start_date, period_id=period_id)
        rows.append(
            {
                "fund_id": fund.id,
                "fund_name": fund.name,
                "initial_balance": float(to_money(fund.initial_balance)),
                "current_balance": float(to_money(fund.current_balance)),
                **{k: float(v) for k, v in totals.items()},
            }
        )
    return {
        "period_id": period_id,
        "funds": rows,
        "total_balance": float(sum(to_money(r["current_balance"]) for r in rows)),
    }


@overspend_router.get("/all-periods")
def get_overspend_all_periods(
    payment_method: Optional[Literal["cash", "credit"]] = Query(
        None, description="cash incluye efectivo y débito; vacío = todos"
    ),
    excluded_category_ids: Optional[str] = Query(None, description="Lista separada por comas"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    excluded = [c.strip() for c in (excluded_category_ids or "").split(",") if c.strip()]
    return overspend_all_periods(db, payment_method=payment_method, excluded_category_ids=excluded)


# ============================================================
# Presupuesto restante (periodo abierto)
# ============================================================

@router.get("/remainder")
def get_remainder_dashboard(
    fund_id: Optional[str] = Query(None),
    estudio_id: Optional[str] = Query(None),
    agrupador_ids: Optional[str] = Query(None, description="Lista separada por comas: 1,2,3"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Categorías del periodo abierto con presupuesto aún disponible.

    Filtros opcionales (se combinan): fondo desde el que se puede pagar,
    agrupadores del estudio y agrupadores concretos.
    """
    ids = parse_id_list(agrupador_ids, "ID de agrupador")
    applied = {"fund_id": fund_id, "estudio_id": None, "agrupador_ids": ids or []}

    categories = db.query(models.Category).all()
    if fund_id:
        fund = db.get(models.Fund, fund_id)
        if fund is None:
            raise HTTPException(status_code=404, detail=FUND_NOT_FOUND)
        categories = filter_categories_by_fund(categories, fund, db.query(models.Fund).all())
        applied["fund_name"] = fund.name
    if estudio_id:
        estudio = db.get(models.Estudio, parse_positive_int(estudio_id, "ID de estudio"))
        if estudio is None:
            raise HTTPException(status_code=404, detail="Estudio no encontrado")
        in_estudio = {link.grouper_id for link in estudio.grouper_links}
        ids = [i for i in ids if i in in_estudio] if ids else list(in_estudio)
        applied.update(estudio_id=estudio.id, estudio_name=estudio.name)
    category_ids = {c.id for c in categories}
    if ids is not None:
        groupers = db.query(models.Grouper).filter(models.Grouper.id.in_(ids or [-1])).order_by(models.Grouper.name).all()
        category_ids &= {link.category_id for g in groupers for link in g.category_links}
        applied["agrupador_names"] = [g.name for g in groupers]

    period = (
        db.query(models.Period)
        .filter(models.Period.is_open.is_(True))
        .order_by(models.Period.year.desc(), models.Period.month.desc())
        .first()
    )
    if period is None:
        return {
            "active_period": None,
            "categories": [],
            "totals": {
                "total_current_expenses": 0.0,
                "total_original_budget": 0.0,
                "total_remainder_budget": 0.0,
                "categories_count": 0,
            },
            "applied_filters": applied,
        }

    out = remainder_by_category(db, period, category_ids=category_ids)
    out["applied_filters"] = applied
    return out


# ============================================================
# Agrupadores: comparación y semanas
# ============================================================

@router.get("/groupers/period-comparison")
def get_grouper_period_comparison(
    payment_method: Literal["all", "cash", "credit", "debit"] = Query("all"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    return grouper_period_comparison(db, payment_method=payment_method)


@router.get("/groupers/weekly-categories")
def get_weekly_categories(
    period_id: str = Query(...),
    week_start: date = Query(...),
    week_end: date = Query(...),
    payment_method: Literal["all", "cash", "credit", "debit"] = Query("all"),
    expense_payment_methods: Optional[str] = Query(None, description="Lista separada por comas"),
    grouper_ids: Optional[str] = Query(None, description="Lista separada por comas: 1,2,3"),
    estudio_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    expense_payment_methods tiene prioridad sobre payment_method.
    """
    period = _period_or_active(db, period_id)
    if week_end < week_start:
        raise HTTPException(status_code=400, detail="week_end no puede ser anterior a week_start")

    methods = None
    if expense_payment_methods:
        methods = [m.strip() for m in expense_payment_methods.split(",") if m.strip()]
        error = validate_payment_methods(methods)
        if error:
            raise HTTPException(status_code=400, detail=error)
    elif payment_method != "all":
        methods = [payment_method]

    estudio = None
    if estudio_id:
        estudio = db.get(models.Estudio, parse_positive_int(estudio_id, "ID de estudio"))
        if estudio is None:
            raise HTTPException(status_code=404, detail="Estudio no encontrado")

    return weekly_category_totals(
        db,
        period.id,
        week_start,
        week_end,
        methods=methods,
        grouper_ids=parse_id_list(grouper_ids, "ID de agrupador"),
        estudio_id=estudio.id if estudio else None,
    )


@router.get("/groupers/weekly-cumulative")
def get_weekly_cumulative(
    period_id: str = Query(...),
    payment_method: Literal["all", "cash", "credit", "debit"] = Query("all"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    period = _period_or_active(db, period_id)
    return weekly_cumulative_by_grouper(db, period, payment_method=payment_method)


# ============================================================
# Transferencias entre fondos
# ============================================================

@router.get("/funds/transfers")
def get_fund_transfers(
    fund_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    fund = None
    if fund_id:
        fund = db.get(models.Fund, fund_id)
        if fund is None:
            raise HTTPException(status_code=404, detail=FUND_NOT_FOUND)
    return fund_transfers(db, fund, limit=limit, offset=offset)


# ============================================================
# Ejecución de presupuesto
# ============================================================

@budget_execution_router.get("/{period_id}")
def get_budget_execution(
    period_id: str,
    view_mode: Literal["daily", "weekly"] = Query("daily"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    period = db.get(models.Period, period_id)
    if not period:
        raise HTTPException(status_code=404, detail="Periodo no encontrado")
    return budget_execution(db, period, view_mode)
