# backend/app/utils/simulation_utils.py

"""
Cálculos sobre simulaciones de presupuesto.

- simulation_summary: totales, balance y filas por categoría.
- subgroup_totals: suma de las filas de cada subgrupo.
- grouper_comparison: total simulado por agrupador frente al promedio de
  los últimos periodos cerrados.
- budgets_from_period: presupuestos e ingresos de un periodo convertidos
  al formato de simulación (cash y debit -> efectivo, credit -> credito).
- period_copy_data: vista previa de esa copia (ingresos por descripción,
  presupuestos por categoría y totales).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.app.core.constants import PAYMENT_CASH, PAYMENT_CREDIT, PAYMENT_DEBIT
from backend.app.db import models
from backend.app.db.custom_types import to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

SIM_EFECTIVO = "efectivo"
SIM_CREDITO = "credito"
SIM_PAYMENT_METHODS = (SIM_EFECTIVO, SIM_CREDITO)

# Método de pago real -> columna de la simulación
PERIOD_METHOD_TO_SIM = {
    PAYMENT_CASH: SIM_EFECTIVO,
    PAYMENT_DEBIT: SIM_EFECTIVO,
    PAYMENT_CREDIT: SIM_CREDITO,
}

# Variación (en %) por debajo de la cual el agrupador se considera estable
TREND_THRESHOLD = 5.0


def budget_row(budget: models.SimulationBudget) -> dict:
    efectivo = to_money(budget.efectivo_amount)
    credito = to_money(budget.credito_amount)
    category = budget.category
    return {
        "id": budget.id,
        "simulation_id": budget.simulation_id,
        "category_id": budget.category_id,
        "category_name": category.name if category else None,
        "tipo_gasto": category.tipo_gasto if category else None,
        "efectivo_amount": float(efectivo),
        "credito_amount": float(credito),
        "ahorro_efectivo_amount": float(to_money(budget.ahorro_efectivo_amount)),
        "ahorro_credito_amount": float(to_money(budget.ahorro_credito_amount)),
        "expected_savings": float(to_money(budget.expected_savings)),
        "total_amount": float(efectivo + credito),
    }


def simulation_summary(simulation: models.Simulation) -> dict:
    """
    balance = ingresos - (efectivo + crédito).
    Los ahorros se informan aparte y no restan del balance.
    """
    total_income = sum((to_money(i.amount) for i in simulation.incomes), ZERO)

    rows = sorted((budget_row(b) for b in simulation.budgets), key=lambda r: (r["category_name"] or "").lower())
    total_efectivo = sum((to_money(b.efectivo_amount) for b in simulation.budgets), ZERO)
    total_credito = sum((to_money(b.credito_amount) for b in simulation.budgets), ZERO)
    total_ahorro_efectivo = sum((to_money(b.ahorro_efectivo_amount) for b in simulation.budgets), ZERO)
    total_ahorro_credito = sum((to_money(b.ahorro_credito_amount) for b in simulation.budgets), ZERO)
    total_expected_savings = sum((to_money(b.expected_savings) for b in simulation.budgets), ZERO)
    total_budget = total_efectivo + total_credito

    return {
        "simulation_id": simulation.id,
        "simulation_name": simulation.name,
        "total_income": float(total_income),
        "total_efectivo": float(total_efectivo),
        "total_credito": float(total_credito),
        "total_budget": float(total_budget),
        "total_ahorro_efectivo": float(total_ahorro_efectivo),
        "total_ahorro_credito": float(total_ahorro_credito),
        "total_expected_savings": float(total_expected_savings),
        "balance": float(total_income - total_budget),
        "categories": rows,
    }


def subgroup_totals(simulation: models.Simulation) -> List[dict]:
    by_category = {b.category_id: b for b in simulation.budgets}
    out = []
    for sg in simulation.subgroups:
        efectivo = credito = ZERO
        for cid in sg.category_ids or []:
            b = by_category.get(cid)
            if b is None:
                continue
            efectivo += to_money(b.efectivo_amount)
            credito += to_money(b.credito_amount)
        out.append(
            {
                "subgroup_id": sg.id,
                "name": sg.name,
                "display_order": sg.display_order,
                "category_count": len(sg.category_ids or []),
                "efectivo_amount": float(efectivo),
                "credito_amount": float(credito),
                "total_amount": float(efectivo + credito),
            }
        )
    return out


def _sim_amount(budget: models.SimulationBudget, methods: Optional[Sequence[str]]) -> Decimal:
    total = ZERO
    if methods is None or SIM_EFECTIVO in methods:
        total += to_money(budget.efectivo_amount)
    if methods is None or SIM_CREDITO in methods:
        total += to_money(budget.credito_amount)
    return total


def _real_methods(methods: Optional[Sequence[str]]) -> Optional[List[str]]:
    if methods is None:
        return None
    out = []
    for real, sim in PERIOD_METHOD_TO_SIM.items():
        if sim in methods:
            out.append(real)
    return out


def grouper_comparison(
    db: Session,
    simulation: models.Simulation,
    *,
    estudio_id: Optional[int] = None,
    grouper_ids: Optional[List[int]] = None,
    payment_methods: Optional[Sequence[str]] = None,
    comparison_periods: int = 3,
) -> dict:
    """
    payment_methods: "efectivo"/"credito" (None = ambos).
    Con estudio_id, el histórico usa los payment_methods de cada agrupador
    en el estudio en lugar del filtro global.
    """
    budgets = {b.category_id: b for b in simulation.budgets}

    config: Dict[int, models.EstudioGrouper] = {}
    q = db.query(models.Grouper)
    if estudio_id is not None:
        links = db.query(models.EstudioGrouper).filter(models.EstudioGrouper.estudio_id == estudio_id).all()
        config = {link.grouper_id: link for link in links}
        q = q.filter(models.Grouper.id.in_(list(config) or [-1]))
    if grouper_ids:
        q = q.filter(models.Grouper.id.in_(grouper_ids))
    groupers = q.order_by(models.Grouper.name.asc()).all()

    periods = []
    if comparison_periods > 0:
        periods = (
            db.query(models.Period)
            .filter(models.Period.is_open.is_(False))
            .order_by(models.Period.year.desc(), models.Period.month.desc())
            .limit(comparison_periods)
            .all()
        )

    # {(period_id, category_id, method): total}
    spent: Dict[tuple, Decimal] = defaultdict(lambda: ZERO)
    if periods:
        E = models.Expense
        rows = (
            db.query(E.period_id, E.category_id, E.payment_method, func.sum(E.amount))
            .filter(E.period_id.in_([p.id for p in periods]))
            .group_by(E.period_id, E.category_id, E.payment_method)
            .all()
        )
        for pid, cid, method, total in rows:
            spent[(pid, cid, method)] = to_money(total)

    grouper_data = []
    historical = []
    metrics = []
    for grouper in groupers:
        category_ids = [link.category_id for link in grouper.category_links]
        sim_total = sum((_sim_amount(budgets[c], payment_methods) for c in category_ids if c in budgets), ZERO)

        link = config.get(grouper.id)
        if link is not None:
            real_methods = list(link.payment_methods) if link.payment_methods else None
        else:
            real_methods = _real_methods(payment_methods)

        period_totals = []
        for period in periods:
            amount = sum(
                (
                    v
                    for (pid, cid, method), v in spent.items()
                    if pid == period.id and cid in category_ids and (real_methods is None or method in real_methods)
                ),
                ZERO,
            )
            period_totals.append(amount)
            historical.append(
                {
                    "grouper_id": grouper.id,
                    "grouper_name": grouper.name,
                    "period_id": period.id,
                    "period_name": period.name,
                    "total_amount": float(amount),
                }
            )

        avg = (sum(period_totals, ZERO) / len(period_totals)) if period_totals else ZERO
        variance = float((sim_total - avg) / avg * 100) if avg > 0 else 0.0
        trend = "stable"
        if abs(variance) > TREND_THRESHOLD:
            trend = "increase" if variance > 0 else "decrease"

        grouper_data.append(
            {
                "grouper_id": grouper.id,
                "grouper_name": grouper.name,
                "simulation_total": float(sim_total),
                "historical_avg": float(to_money(avg)),
                "variance_percentage": round(variance, 2),
            }
        )
        metrics.append(
            {
                "grouper_id": grouper.id,
                "grouper_name": grouper.name,
                "avg_historical": float(to_money(avg)),
                "simulation_amount": float(sim_total),
                "variance_percentage": round(variance, 2),
                "trend": trend,
            }
        )

    return {
        "grouper_data": grouper_data,
        "historical_data": historical,
        "comparison_metrics": metrics,
        "comparison_periods": [p.id for p in periods],
    }


def budgets_from_period(db: Session, period_id: str) -> Dict[str, Dict[str, Decimal]]:
    """
    {category_id: {"efectivo": total, "credito": total}} con los
    presupuestos del periodo.
    """
    B = models.Budget
    rows = (
        db.query(B.category_id, B.payment_method, func.sum(B.expected_amount))
        .filter(B.period_id == period_id)
        .group_by(B.category_id, B.payment_method)
        .all()
    )
    out: Dict[str, Dict[str, Decimal]] = defaultdict(lambda: {SIM_EFECTIVO: ZERO, SIM_CREDITO: ZERO})
    for cid, method, total in rows:
        target = PERIOD_METHOD_TO_SIM.get(method)
        if target is None:
            logger.warning("[simulations] método de pago desconocido en presupuesto: %s", method)
            continue
        out[cid][target] += to_money(total)
    return dict(out)


def period_copy_data(db: Session, period: models.Period) -> dict:
    """
    Vista previa de lo que copy-from-period llevaría a una simulación:
    ingresos agrupados por descripción y presupuestos por categoría.
    """
    I = models.Income
    incomes = (
        db.query(I.description, func.sum(I.amount), func.count(I.id))
        .filter(I.period_id == period.id)
        .group_by(I.description)
        .order_by(I.description.asc())
        .all()
    )
    budgets = budgets_from_period(db, period.id)
    names = dict(
        db.query(models.Category.id, models.Category.name)
        .filter(models.Category.id.in_(list(budgets) or [""]))
        .all()
    )

    budget_rows = sorted(
        (
            {
                "category_id": cid,
                "category_name": names.get(cid),
                "efectivo_amount": float(amounts[SIM_EFECTIVO]),
                "credito_amount": float(amounts[SIM_CREDITO]),
            }
            for cid, amounts in budgets.items()
        ),
        key=lambda r: r["category_name"] or "",
    )
    total_income = sum((to_money(total) for _, total, _ in incomes), ZERO)
    total_efectivo = sum((b[SIM_EFECTIVO] for b in budgets.values()), ZERO)
    total_credito = sum((b[SIM_CREDITO] for b in budgets.values()), ZERO)

    return {
        "period": {
            "id": period.id,
            "name": period.name,
            "month": period.month,
            "year": period.year,
            "is_open": period.is_open,
        },
        "incomes": [
            {"description": desc, "total_amount": float(to_money(total)), "count": count}
            for desc, total, count in incomes
        ],
        "budgets": budget_rows,
        "totals": {
            "total_income": float(total_income),
            "total_budget_efectivo": float(total_efectivo),
            "total_budget_credito": float(total_credito),
            "total_budget": float(total_efectivo + total_credito),
        },
        "counts": {"income_entries": len(incomes), "budget_categories": len(budget_rows)},
    }
