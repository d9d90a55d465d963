# backend/app/utils/budget_utils.py

"""
Agregados de presupuesto y ejecución (dashboard, agrupadores, sobregasto).

Los totales se leen con dos consultas agrupadas por (categoría, método de
pago): una sobre expenses y otra sobre budgets. El resto se combina en
Python, así gastos y presupuestos nunca se multiplican entre sí en un JOIN.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.app.core.constants import (
    ALL_PAYMENT_METHODS,
    PAYMENT_CASH,
    PAYMENT_CREDIT,
    PAYMENT_DEBIT,
)
from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.utils.default_day_utils import period_bounds

Totals = Dict[Tuple[str, str], Decimal]

# Para informes de sobregasto "efectivo" agrupa cash y debit
CASH_LIKE_METHODS = (PAYMENT_CASH, PAYMENT_DEBIT)


def validate_payment_methods(methods: Optional[Sequence[str]]) -> Optional[str]:
    """
    None = todos los métodos. Devuelve el mensaje de error o None.
    """
    if methods is None:
        return None
    if not isinstance(methods, (list, tuple)):
        return "Los métodos de pago deben ser una lista"
    if len(methods) == 0:
        return "Debe seleccionar al menos un método de pago o usar null para todos"
    invalid = [m for m in methods if m not in ALL_PAYMENT_METHODS]
    if invalid:
        return f"Métodos de pago inválidos: {', '.join(map(str, invalid))}. Válidos: {', '.join(ALL_PAYMENT_METHODS)}"
    if len(set(methods)) != len(methods):
        return "No se permiten métodos de pago duplicados"
    return None


# ============================================================
# Lecturas agrupadas
# ============================================================

def expense_totals(db: Session, period_id: Optional[str] = None) -> Dict[str, Totals]:
    """
    {period_id: {(category_id, payment_method): total}}
    """
    E = models.Expense
    q = db.query(E.period_id, E.category_id, E.payment_method, func.sum(E.amount)).group_by(
        E.period_id, E.category_id, E.payment_method
    )
    if period_id:
        q = q.filter(E.period_id == period_id)
    out: Dict[str, Totals] = defaultdict(dict)
    for pid, cid, method, total in q.all():
        out[pid][(cid, method)] = to_money(total)
    return out


def budget_totals(db: Session, period_id: Optional[str] = None) -> Dict[str, Totals]:
    B = models.Budget
    q = db.query(B.period_id, B.category_id, B.payment_method, func.sum(B.expected_amount)).group_by(
        B.period_id, B.category_id, B.payment_method
    )
    if period_id:
        q = q.filter(B.period_id == period_id)
    out: Dict[str, Totals] = defaultdict(dict)
    for pid, cid, method, total in q.all():
        out[pid][(cid, method)] = to_money(total)
    return out


def _sum_for(totals: Totals, category_ids: Iterable[str], methods: Optional[Iterable[str]] = None) -> Decimal:
    cats = set(category_ids)
    allowed = set(methods) if methods is not None else None
    return sum(
        (v for (cid, m), v in totals.items() if cid in cats and (allowed is None or m in allowed)),
        Decimal("0.00"),
    )


# ============================================================
# Resumen de un periodo
# ============================================================

def period_budget_summary(db: Session, period: models.Period) -> dict:
    """
    Por categoría: presupuesto, gastado (total y por método) y restante.
    Solo categorías con presupuesto o gasto.
    """
    spent = expense_totals(db, period.id).get(period.id, {})
    planned = budget_totals(db, period.id).get(period.id, {})

    rows = []
    for category in db.query(models.Category).order_by(models.Category.name.asc()).all():
        expected = _sum_for(planned, [category.id])
        total = _sum_for(spent, [category.id])
        if expected <= 0 and total <= 0:
            continue
        rows.append(
            {
                "category_id": category.id,
                "category_name": category.name,
                "tipo_gasto": category.tipo_gasto,
                "expected_amount": float(expected),
                "total_amount": float(total),
                "cash_amount": float(_sum_for(spent, [category.id], [PAYMENT_CASH])),
                "credit_amount": float(_sum_for(spent, [category.id], [PAYMENT_CREDIT])),
                "debit_amount": float(_sum_for(spent, [category.id], [PAYMENT_DEBIT])),
                "remaining": float(expected - total),
            }
        )

    total_income = (
        db.query(func.coalesce(func.sum(models.Income.amount), 0))
        .filter(models.Income.period_id == period.id)
        .scalar()
    )
    total_expenses = sum((v for v in spent.values()), Decimal("0.00"))
    total_expected = sum((v for v in planned.values()), Decimal("0.00"))

    return {
        "period_id": period.id,
        "period_name": period.name,
        "total_income": float(to_money(total_income)),
        "total_expenses": float(total_expenses),
        "total_expected": float(total_expected),
        "balance": float(to_money(total_income) - total_expenses),
        "budget_summary": rows,
    }


# ============================================================
# Agrupadores
# ============================================================

def grouper_totals(
    db: Session,
    period_id: str,
    *,
    payment_method: Optional[str] = None,
    grouper_ids: Optional[List[int]] = None,
    include_budgets: bool = False,
    estudio_id: Optional[int] = None,
) -> List[dict]:
    """
    Total gastado (y opcionalmente presupuestado) por agrupador en el periodo.

    - payment_method ("all" o None = todos) filtra los gastos.
    - Con estudio_id solo entran los agrupadores del estudio; cada uno usa
      sus payment_methods (None = todos) y su percentage (None = 100%).
    """
    spent = expense_totals(db, period_id).get(period_id, {})
    planned = budget_totals(db, period_id).get(period_id, {}) if include_budgets else {}

    config: Dict[int, models.EstudioGrouper] = {}
    q = db.query(models.Grouper)
    if estudio_id is not None:
        links = db.query(models.EstudioGrouper).filter(models.EstudioGrouper.estudio_id == estudio_id).all()
        config = {link.grouper_id: link for link in links}
        q = q.filter(models.Grouper.id.in_(list(config) or [-1]))
    if grouper_ids:
        q = q.filter(models.Grouper.id.in_(grouper_ids))

    global_methods = None if not payment_method or payment_method == "all" else [payment_method]

    rows = []
    for grouper in q.order_by(models.Grouper.name.asc()).all():
        category_ids = [link.category_id for link in grouper.category_links]

        methods = global_methods
        factor = Decimal("1")
        link = config.get(grouper.id)
        if link is not None:
            if link.payment_methods:
                own = list(link.payment_methods)
                methods = own if methods is None else [m for m in methods if m in own]
            if link.percentage is not None:
                factor = Decimal(str(link.percentage)) / Decimal("100")

        total = to_money(_sum_for(spent, category_ids, methods) * factor)
        row = {
            "grouper_id": grouper.id,
            "grouper_name": grouper.name,
            "total_amount": float(total),
        }
        if link is not None:
            row["percentage"] = float(link.percentage) if link.percentage is not None else None
            row["payment_methods"] = link.payment_methods
        if include_budgets:
            row["budget_amount"] = float(to_money(_sum_for(planned, category_ids, methods) * factor))
        rows.append(row)
    return rows


# ============================================================
# Sobregasto histórico
# ============================================================

def overspend_all_periods(
    db: Session,
    *,
    payment_method: Optional[str] = None,
    excluded_category_ids: Optional[Iterable[str]] = None,
) -> dict:
    """
    Por categoría y periodo: planeado, real y sobregasto (max(0, real - planeado)).

    payment_method: "cash" (cash + debit), "credit" o None (todos).
    Solo aparecen categorías con algo planeado o con sobregasto.
    """
    if payment_method == PAYMENT_CASH:
        methods = list(CASH_LIKE_METHODS)
    elif payment_method == PAYMENT_CREDIT:
        methods = [PAYMENT_CREDIT]
    else:
        methods = list(ALL_PAYMENT_METHODS)

    excluded = set(excluded_category_ids or [])
    spent = expense_totals(db)
    planned = budget_totals(db)
    periods = db.query(models.Period).order_by(models.Period.year.desc(), models.Period.month.desc()).all()

    categories_out = []
    total_planned = total_actual = total_overspend = Decimal("0.00")

    for category in db.query(models.Category).order_by(models.Category.name.asc()).all():
        if category.id in excluded:
            continue
        entry_periods = []
        c_planned = c_actual = c_over = Decimal("0.00")
        for period in periods:
            p = _sum_for(planned.get(period.id, {}), [category.id], methods)
            a = _sum_for(spent.get(period.id, {}), [category.id], methods)
            over = max(Decimal("0.00"), a - p)
            entry_periods.append(
                {
                    "period_id": period.id,
                    "period_name": period.name,
                    "month": period.month,
                    "year": period.year,
                    "planeado": float(p),
                    "actual": float(a),
                    "overspend": float(over),
                }
            )
            c_planned += p
            c_actual += a
            c_over += over

        if c_planned > 0 or c_over > 0:
            categories_out.append(
                {
                    "category_id": category.id,
                    "category_name": category.name,
                    "tipo_gasto": category.tipo_gasto,
                    "periods": entry_periods,
                    "total_planeado": float(c_planned),
                    "total_actual": float(c_actual),
                    "total_overspend": float(c_over),
                }
            )
            total_planned += c_planned
            total_actual += c_actual
            total_overspend += c_over

    return {
        "overspend_by_category": categories_out,
        "totals": {
            "total_planeado": float(total_planned),
            "total_actual": float(total_actual),
            "total_overspend": float(total_overspend),
        },
    }


# ============================================================
# Ejecución de presupuesto (por día o por semana)
# ============================================================

VIEW_DAILY = "daily"
VIEW_WEEKLY = "weekly"


def budget_execution(db: Session, period: models.Period, view_mode: str = VIEW_DAILY) -> dict:
    """
    Presupuesto del periodo repartido por fecha esperada.

    Presupuestos sin expected_date cuentan en el día 1 del periodo. En la
    vista semanal se agrupa por semana ISO (lunes a domingo).
    """
    start, _ = period_bounds(period.year, period.month)
    B = models.Budget
    rows = (
        db.query(B.expected_date, func.sum(B.expected_amount))
        .filter(B.period_id == period.id)
        .group_by(B.expected_date)
        .all()
    )

    by_day: Dict[date, Decimal] = defaultdict(lambda: Decimal("0.00"))
    for expected_date, total in rows:
        by_day[expected_date or start] += to_money(total)

    data = []
    if view_mode == VIEW_WEEKLY:
        by_week: Dict[Tuple[int, int], Decimal] = defaultdict(lambda: Decimal("0.00"))
        for day, total in by_day.items():
            iso_year, week, _ = day.isocalendar()
            by_week[(iso_year, week)] += total
        for (iso_year, week), total in sorted(by_week.items()):
            monday = date.fromisocalendar(iso_year, week, 1)
            data.append(
                {
                    "date": f"week-{week}",
                    "amount": float(total),
                    "week_number": week,
                    "week_start": monday.isoformat(),
                    "week_end": (monday + timedelta(days=6)).isoformat(),
                }
            )
    else:
        for day, total in sorted(by_day.items()):
            # 0 = domingo
            data.append({"date": day.isoformat(), "amount": float(total), "day_of_week": (day.weekday() + 1) % 7})

    total_budget = sum((to_money(d["amount"]) for d in data), Decimal("0.00"))
    peak = max(data, key=lambda d: d["amount"], default=None)
    return {
        "period_id": period.id,
        "period_name": period.name,
        "view_mode": view_mode,
        "data": data,
        "summary": {
            "total_budget": float(total_budget),
            "average_per_day": float(to_money(total_budget / len(data))) if data else 0.0,
            "peak_date": peak["date"] if peak else "",
            "peak_amount": peak["amount"] if peak else 0.0,
        },
    }


# ============================================================
# Presupuesto restante por categoría
# ============================================================

def remainder_by_category(
    db: Session,
    period: models.Period,
    *,
    category_ids: Optional[Iterable[str]] = None,
) -> dict:
    """
    Categorías con presupuesto que aún no lo han agotado, de mayor a menor
    restante. category_ids (None = todas) limita el universo.
    """
    spent = expense_totals(db, period.id).get(period.id, {})
    planned = budget_totals(db, period.id).get(period.id, {})
    allowed = set(category_ids) if category_ids is not None else None

    rows = []
    for category in db.query(models.Category).all():
        if allowed is not None and category.id not in allowed:
            continue
        expected = _sum_for(planned, [category.id])
        current = _sum_for(spent, [category.id])
        if expected <= 0 or current >= expected:
            continue
        rows.append(
            {
                "category_id": category.id,
                "category_name": category.name,
                "original_planned_budget": float(expected),
                "current_expenses": float(current),
                "remainder_planned_budget": float(expected - current),
                "fund_id": category.fund_id,
                "fund_name": category.fund.name if category.fund else None,
            }
        )
    rows.sort(key=lambda r: (-r["remainder_planned_budget"], r["category_name"]))

    return {
        "active_period": {"id": period.id, "name": period.name},
        "categories": rows,
        "totals": {
            "total_current_expenses": float(sum((to_money(r["current_expenses"]) for r in rows), Decimal("0.00"))),
            "total_original_budget": float(
                sum((to_money(r["original_planned_budget"]) for r in rows), Decimal("0.00"))
            ),
            "total_remainder_budget": float(
                sum((to_money(r["remainder_planned_budget"]) for r in rows), Decimal("0.00"))
            ),
            "categories_count": len(rows),
        },
    }


# ============================================================
# Agrupadores: comparación entre periodos y vistas semanales
# ============================================================

def _methods_filter(payment_method: Optional[str]) -> Optional[List[str]]:
    return None if not payment_method or payment_method == "all" else [payment_method]


def grouper_period_comparison(db: Session, *, payment_method: Optional[str] = None) -> List[dict]:
    """
    Total gastado por cada agrupador en cada periodo (año, mes ascendente).
    Todos los agrupadores aparecen en todos los periodos, con 0 si no hay gasto.
    """
    methods = _methods_filter(payment_method)
    spent = expense_totals(db)
    groupers = db.query(models.Grouper).order_by(models.Grouper.name.asc()).all()
    periods = db.query(models.Period).order_by(models.Period.year.asc(), models.Period.month.asc()).all()

    out = []
    for period in periods:
        totals = spent.get(period.id, {})
        out.append(
            {
                "period_id": period.id,
                "period_name": period.name,
                "period_month": period.month,
                "period_year": period.year,
                "grouper_data": [
                    {
                        "grouper_id": g.id,
                        "grouper_name": g.name,
                        "total_amount": float(
                            _sum_for(totals, [link.category_id for link in g.category_links], methods)
                        ),
                    }
                    for g in groupers
                ],
            }
        )
    return out


def expense_daily_totals(db: Session, period_id: str) -> Dict[date, Totals]:
    """
    {fecha: {(category_id, payment_method): total}} de un periodo.
    """
    E = models.Expense
    rows = (
        db.query(E.date, E.category_id, E.payment_method, func.sum(E.amount))
        .filter(E.period_id == period_id)
        .group_by(E.date, E.category_id, E.payment_method)
        .all()
    )
    out: Dict[date, Totals] = defaultdict(dict)
    for day, cid, method, total in rows:
        out[day][(cid, method)] = to_money(total)
    return out


def _merge_days(daily: Dict[date, Totals], start: date, end: date) -> Totals:
    merged: Dict[Tuple[str, str], Decimal] = defaultdict(lambda: Decimal("0.00"))
    for day, totals in daily.items():
        if start <= day <= end:
            for key, value in totals.items():
                merged[key] += value
    return merged


def weekly_category_totals(
    db: Session,
    period_id: str,
    week_start: date,
    week_end: date,
    *,
    methods: Optional[Sequence[str]] = None,
    grouper_ids: Optional[List[int]] = None,
    estudio_id: Optional[int] = None,
) -> List[dict]:
    """
    Gasto por categoría entre week_start y week_end (incluidos), solo para
    categorías que pertenecen a algún agrupador seleccionado. percentage es
    la parte de cada categoría sobre el total de la semana.
    """
    q = db.query(models.GrouperCategory.category_id).join(
        models.Grouper, models.Grouper.id == models.GrouperCategory.grouper_id
    )
    if grouper_ids:
        q = q.filter(models.Grouper.id.in_(grouper_ids))
    if estudio_id is not None:
        q = q.join(models.EstudioGrouper, models.EstudioGrouper.grouper_id == models.Grouper.id).filter(
            models.EstudioGrouper.estudio_id == estudio_id
        )
    category_ids = {cid for (cid,) in q.distinct().all()}

    week = _merge_days(expense_daily_totals(db, period_id), week_start, week_end)
    names = {}
    if category_ids:
        names = dict(
            db.query(models.Category.id, models.Category.name)
            .filter(models.Category.id.in_(list(category_ids)))
            .all()
        )

    rows = []
    for cid in category_ids:
        total = _sum_for(week, [cid], methods)
        if total > 0:
            rows.append({"category_id": cid, "category_name": names.get(cid), "total_amount": total})

    grand_total = sum((r["total_amount"] for r in rows), Decimal("0.00"))
    rows.sort(key=lambda r: r["total_amount"], reverse=True)
    return [
        {
            **r,
            "total_amount": float(r["total_amount"]),
            "percentage": float((r["total_amount"] / grand_total * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
        }
        for r in rows
    ]


def weekly_cumulative_by_grouper(
    db: Session,
    period: models.Period,
    *,
    payment_method: Optional[str] = None,
    today: Optional[date] = None,
) -> List[dict]:
    """
    Gasto acumulado por agrupador al cierre de cada semana del periodo.

    Las semanas empiezan en domingo: la primera es la que contiene el día 1
    (puede empezar en el mes anterior). No se generan semanas posteriores a
    hoy y la semana en curso termina hoy.
    """
    today = today or date.today()
    start, end = period_bounds(period.year, period.month)
    last = min(end, today)
    if last < start:
        return []

    methods = _methods_filter(payment_method)
    daily = expense_daily_totals(db, period.id)
    groupers = db.query(models.Grouper).order_by(models.Grouper.name.asc()).all()
    running: Dict[int, Decimal] = {g.id: Decimal("0.00") for g in groupers}

    out = []
    cursor = start
    while cursor <= last:
        week_start = cursor - timedelta(days=(cursor.weekday() + 1) % 7)
        week_end = min(week_start + timedelta(days=6), today)
        week = _merge_days(daily, week_start, week_end)

        grouper_data = []
        for g in groupers:
            running[g.id] += _sum_for(week, [link.category_id for link in g.category_links], methods)
            grouper_data.append(
                {"grouper_id": g.id, "grouper_name": g.name, "cumulative_amount": float(running[g.id])}
            )
        out.append(
            {
                "week_start": week_start.isoformat(),
                "week_end": week_end.isoformat(),
                "week_label": f"Semana del {week_start:%d/%m} - {week_end:%d/%m}",
                "grouper_data": grouper_data,
            }
        )
        cursor += timedelta(days=7)
    return out
