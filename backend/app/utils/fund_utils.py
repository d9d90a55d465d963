# backend/app/utils/fund_utils.py

"""
Lógica de FONDOS y de la relación CATEGORÍA <-> FONDO.

Resolución de fondos de una categoría (un único punto de acceso):

    1) category_fund_relationships  (fuente preferida)
    2) categories.fund_id           (campo legacy, un solo fondo)
    3) todos los fondos             (la categoría no tiene restricciones)

Todas las rutas (validación de gastos, fondos disponibles, filtros por
fondo, migración) pasan por resolve_funds_for / resolve_category_funds.

Saldos:
- adjust_fund_balance: suma/resta al saldo actual de un fondo sin commit.
- recalculate_fund_balance: recalcula desde cero con la fórmula
      inicial + ingresos + transferencias_entrantes - gastos_origen
  contando solo movimientos con fecha >= start_date del fondo.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.db import models
from backend.app.db.custom_types import Money, to_money
from backend.app.utils.text_utils import normalize_for_match

logger = logging.getLogger(__name__)

SOURCE_RELATIONSHIPS = "relationships"
SOURCE_LEGACY = "legacy"
SOURCE_ALL = "all"

FUND_NOT_FOUND = "Fondo no encontrado"


# ============================================================
# Resolución de fondos de una categoría
# ============================================================

@dataclass
class FundResolution:
    funds: List[models.Fund]
    has_restrictions: bool
    source: str

    @property
    def fund_ids(self) -> List[str]:
        return [f.id for f in self.funds]

    def allows(self, fund_id: Optional[str]) -> bool:
        if not self.has_restrictions:
            return True
        return fund_id in self.fund_ids


def _by_name(funds: Iterable[models.Fund]) -> List[models.Fund]:
    return sorted(funds, key=lambda f: (f.name or "").lower())


def linked_funds(category: models.Category) -> List[models.Fund]:
    """Fondos asociados vía category_fund_relationships."""
    return _by_name(link.fund for link in category.fund_links if link.fund is not None)


def resolve_funds_for(category: models.Category, all_funds: List[models.Fund]) -> FundResolution:
    """
    Resolución sobre filas ya cargadas (no consulta la BD).
    """
    linked = linked_funds(category)
    if linked:
        return FundResolution(linked, True, SOURCE_RELATIONSHIPS)

    if category.fund_id:
        legacy = next((f for f in all_funds if f.id == category.fund_id), None)
        if legacy is not None:
            return FundResolution([legacy], True, SOURCE_LEGACY)

    return FundResolution(_by_name(all_funds), False, SOURCE_ALL)


def resolve_category_funds(db: Session, category: models.Category) -> FundResolution:
    all_funds = db.query(models.Fund).order_by(models.Fund.name.asc()).all()
    return resolve_funds_for(category, all_funds)


# ---- helpers puros sobre listas de categorías/fondos

def available_funds_for(
    category_id: Optional[str],
    categories: List[models.Category],
    funds: List[models.Fund],
) -> List[models.Fund]:
    """
    Fondos válidos para la categoría. Categoría desconocida -> todos.
    """
    category = next((c for c in categories if c.id == category_id), None)
    if category is None:
        return list(funds or [])
    return resolve_funds_for(category, funds).funds


def is_fund_valid_for_category(
    fund_id: str,
    category_id: str,
    categories: List[models.Category],
    funds: List[models.Fund],
) -> bool:
    return any(f.id == fund_id for f in available_funds_for(category_id, categories, funds))


def category_has_fund_restrictions(
    category_id: str,
    categories: List[models.Category],
    funds: List[models.Fund],
) -> bool:
    category = next((c for c in categories if c.id == category_id), None)
    if category is None:
        return False
    return resolve_funds_for(category, funds).has_restrictions


def filter_categories_by_fund(
    categories: List[models.Category],
    fund: Optional[models.Fund],
    funds: List[models.Fund],
) -> List[models.Category]:
    """
    Categorías que aceptan gastos desde `fund`. Las categorías sin
    restricciones aparecen siempre.
    """
    if fund is None:
        return list(categories)
    return [c for c in categories if resolve_funds_for(c, funds).allows(fund.id)]


def pick_default_fund(
    funds: List[models.Fund],
    configured_id: Optional[str] = None,
    default_name: Optional[str] = None,
) -> Optional[models.Fund]:
    """
    Orden de preferencia:
      1) el fondo configurado en settings (si existe)
      2) nombre exactamente igual a DEFAULT_FUND_NAME ("Disponible")
      3) nombre que contiene DEFAULT_FUND_NAME
      4) nombre que contiene "default"
      5) el primero
    """
    if not funds:
        return None

    if configured_id:
        configured = next((f for f in funds if f.id == configured_id), None)
        if configured is not None:
            return configured

    target = normalize_for_match(default_name or settings.DEFAULT_FUND_NAME)
    names = [(f, normalize_for_match(f.name)) for f in funds]

    for f, n in names:
        if n == target:
            return f
    for f, n in names:
        if target and target in n:
            return f
    for f, n in names:
        if "default" in n:
            return f
    return funds[0]


def default_fund_for_category(
    category_id: str,
    categories: List[models.Category],
    funds: List[models.Fund],
    *,
    current_filter_fund: Optional[models.Fund] = None,
    fund_filter: Optional[str] = None,
    configured_default_id: Optional[str] = None,
) -> Optional[models.Fund]:
    """
    Fondo sugerido al registrar un gasto de la categoría:
    filtro activo -> filtro por id -> fondo por defecto -> primer disponible.
    """
    available = available_funds_for(category_id, categories, funds)
    if not available:
        return None
    ids = {f.id for f in available}

    if current_filter_fund is not None and current_filter_fund.id in ids:
        return current_filter_fund

    if fund_filter and fund_filter != "all":
        match = next((f for f in available if f.id == fund_filter), None)
        if match is not None:
            return match

    default = pick_default_fund(funds, configured_default_id)
    if default is not None and default.id in ids:
        return default

    return available[0]


def prepare_category_for_multi_fund(category: models.Category) -> dict:
    """
    Diagnóstico de migración legacy -> relaciones para una categoría.
    """
    warnings: List[str] = []
    needs_migration = False
    suggested: List[str] = []
    linked_ids = [link.fund_id for link in category.fund_links]

    if category.fund_id and not linked_ids:
        needs_migration = True
        suggested = [category.fund_id]
        warnings.append(
            f'La categoría "{category.name}" tiene fund_id legacy pero no tiene fondos asociados. '
            "Conviene migrarla al sistema multi-fondo."
        )

    if category.fund_id and linked_ids and category.fund_id not in linked_ids:
        warnings.append(
            f'La categoría "{category.name}" tiene relaciones de fondo en conflicto: '
            "el fund_id legacy no coincide con los fondos asociados."
        )

    return {
        "needs_migration": needs_migration,
        "suggested_fund_ids": suggested,
        "warnings": warnings,
    }


# ============================================================
# Fondo por defecto (BD)
# ============================================================

def get_configured_default_fund_id(db: Session) -> Optional[str]:
    row = db.get(models.AppSettings, 1)
    return row.default_fund_id if row else None


def get_default_fund(db: Session) -> Optional[models.Fund]:
    funds = db.query(models.Fund).order_by(models.Fund.name.asc()).all()
    return pick_default_fund(funds, get_configured_default_fund_id(db))


# ============================================================
# Saldos
# ============================================================

def adjust_fund_balance(
    db: Session,
    fund_id: Optional[str],
    delta,
    *,
    raise_if_missing: bool = True,
) -> None:
    """
    Suma `delta` al current_balance del fondo.

    - fund_id None o delta 0 -> no hace nada.
    - Fondo inexistente -> HTTP 400 (o nada si raise_if_missing=False).

    No hace commit: el router está en una transacción y hará db.commit().
    """
    delta = to_money(delta)
    if not fund_id or delta == 0:
        return

    fund = (
        db.query(models.Fund)
        .filter(models.Fund.id == fund_id)
        .with_for_update()
        .one_or_none()
    )
    if fund is None:
        if raise_if_missing:
            raise HTTPException(status_code=400, detail="El fondo especificado no existe")
        return

    fund.current_balance = to_money(fund.current_balance) + delta
    db.flush()


def _sum(q) -> Money:
    return to_money(q.scalar() or 0)


def fund_movement_totals(
    db: Session,
    fund: models.Fund,
    *,
    since: Optional[date] = None,
    until: Optional[date] = None,
    period_id: Optional[str] = None,
) -> Dict[str, Money]:
    """
    Totales de movimientos de un fondo:
    total_income, total_expenses (como origen), total_transfers_in,
    total_transfers_out (origen con destino distinto).
    """
    def _bounded(q, date_col):
        if since is not None:
            q = q.filter(date_col >= since)
        if until is not None:
            q = q.filter(date_col <= until)
        return q

    E = models.Expense
    I = models.Income

    q_income = _bounded(db.query(func.coalesce(func.sum(I.amount), 0)).filter(I.fund_id == fund.id), I.date)
    q_exp = _bounded(db.query(func.coalesce(func.sum(E.amount), 0)).filter(E.source_fund_id == fund.id), E.date)
    q_in = _bounded(db.query(func.coalesce(func.sum(E.amount), 0)).filter(E.destination_fund_id == fund.id), E.date)
    q_out = _bounded(
        db.query(func.coalesce(func.sum(E.amount), 0)).filter(
            E.source_fund_id == fund.id,
            E.destination_fund_id.isnot(None),
            E.destination_fund_id != fund.id,
        ),
        E.date,
    )
    if period_id:
        q_income = q_income.filter(I.period_id == period_id)
        q_exp = q_exp.filter(E.period_id == period_id)
        q_in = q_in.filter(E.period_id == period_id)
        q_out = q_out.filter(E.period_id == period_id)

    return {
        "total_income": _sum(q_income),
        "total_expenses": _sum(q_exp),
        "total_transfers_in": _sum(q_in),
        "total_transfers_out": _sum(q_out),
    }


def recalculate_fund_balance(db: Session, fund: models.Fund) -> dict:
    """
    Recalcula y guarda (sin commit) el saldo del fondo.
    """
    old_balance = to_money(fund.current_balance)
    totals = fund_movement_totals(db, fund, since=fund.start_date)

    new_balance = (
        to_money(fund.initial_balance)
        + totals["total_income"]
        + totals["total_transfers_in"]
        - totals["total_expenses"]
    )
    fund.current_balance = new_balance
    db.flush()

    logger.info(
        "[funds] recalculate fund_id=%s old=%s new=%s", fund.id, old_balance, new_balance
    )

    return {
        "success": True,
        "fund_id": fund.id,
        "fund_name": fund.name,
        "old_balance": float(old_balance),
        "new_balance": float(new_balance),
        "calculation_details": {
            "initial_balance": float(to_money(fund.initial_balance)),
            "total_income": float(totals["total_income"]),
            "total_expenses": float(totals["total_expenses"]),
            "total_transfers_in": float(totals["total_transfers_in"]),
            "total_transfers_out": float(totals["total_transfers_out"]),
            "start_date": fund.start_date.isoformat(),
        },
    }


def fund_balance_trend(db: Session, fund: models.Fund, *, days: int = 30, today: Optional[date] = None) -> List[dict]:
    """
    Serie diaria del saldo de un fondo en los últimos `days` días.

    El saldo de partida es el inicial más los movimientos previos a la
    ventana (desde start_date). Cada día suma ingresos y transferencias
    entrantes y resta gastos con el fondo como origen.
    """
    end = today or date.today()
    start = end - timedelta(days=days)

    opening = to_money(fund.initial_balance)
    if start > fund.start_date:
        prior = fund_movement_totals(db, fund, since=fund.start_date, until=start - timedelta(days=1))
        opening += prior["total_income"] + prior["total_transfers_in"] - prior["total_expenses"]

    window_start = max(start, fund.start_date)
    changes: Dict[date, Decimal] = {}

    for d, amount in (
        db.query(models.Income.date, models.Income.amount)
        .filter(models.Income.fund_id == fund.id, models.Income.date >= window_start, models.Income.date <= end)
    ):
        changes[d] = changes.get(d, Decimal("0")) + to_money(amount)
    for d, amount in (
        db.query(models.Expense.date, models.Expense.amount)
        .filter(models.Expense.destination_fund_id == fund.id, models.Expense.date >= window_start, models.Expense.date <= end)
    ):
        changes[d] = changes.get(d, Decimal("0")) + to_money(amount)
    for d, amount in (
        db.query(models.Expense.date, models.Expense.amount)
        .filter(models.Expense.source_fund_id == fund.id, models.Expense.date >= window_start, models.Expense.date <= end)
    ):
        changes[d] = changes.get(d, Decimal("0")) - to_money(amount)

    series = []
    balance = opening
    day = start
    while day <= end:
        net = changes.get(day, Decimal("0"))
        balance += net
        series.append({"date": day.isoformat(), "net_change": float(net), "balance": float(balance)})
        day += timedelta(days=1)
    return series


# ============================================================
# Transferencias entre fondos
# ============================================================

TRANSFER_INCOMING = "incoming"
TRANSFER_OUTGOING = "outgoing"
TRANSFER_ANY = "transfer"


def _transfer_row(expense: models.Expense, transfer_type: str) -> dict:
    return {
        "id": expense.id,
        "date": expense.date.isoformat(),
        "description": expense.description,
        "amount": float(to_money(expense.amount)),
        "transfer_type": transfer_type,
        "category_name": expense.category.name if expense.category else None,
        "source_fund_id": expense.source_fund_id,
        "source_fund_name": expense.source_fund.name if expense.source_fund else None,
        "destination_fund_id": expense.destination_fund_id,
        "destination_fund_name": expense.destination_fund.name if expense.destination_fund else None,
    }


def fund_transfers(
    db: Session,
    fund: Optional[models.Fund] = None,
    *,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    """
    Gastos con fondo destino (transferencias), del más reciente al más antiguo.

    Con fund: entrantes (destino = fund) y salientes (origen = fund) con
    sus estadísticas; sin fund: todas, con total, días distintos y promedio.
    """
    E = models.Expense
    q = db.query(E).filter(E.destination_fund_id.isnot(None))
    if fund is not None:
        q = q.filter((E.destination_fund_id == fund.id) | (E.source_fund_id == fund.id))
    expenses = q.order_by(E.date.desc(), E.created_at.desc()).all()

    def _kind(e: models.Expense) -> str:
        if fund is None:
            return TRANSFER_ANY
        return TRANSFER_INCOMING if e.destination_fund_id == fund.id else TRANSFER_OUTGOING

    rows = [_transfer_row(e, _kind(e)) for e in expenses]

    if fund is not None:
        incoming = [e for e in expenses if e.destination_fund_id == fund.id]
        outgoing = [e for e in expenses if e.destination_fund_id != fund.id]
        incoming_total = sum((to_money(e.amount) for e in incoming), Decimal("0.00"))
        outgoing_total = sum((to_money(e.amount) for e in outgoing), Decimal("0.00"))
        statistics = {
            "incoming_count": len(incoming),
            "incoming_total": float(incoming_total),
            "outgoing_count": len(outgoing),
            "outgoing_total": float(outgoing_total),
            "total_transfers": len(expenses),
            "net_transfer_amount": float(incoming_total - outgoing_total),
        }
    else:
        total = sum((to_money(e.amount) for e in expenses), Decimal("0.00"))
        statistics = {
            "total_transfers": len(expenses),
            "total_transfer_amount": float(total),
            "transfer_days": len({e.date for e in expenses}),
            "average_transfer_amount": float(to_money(total / len(expenses))) if expenses else 0.0,
        }

    return {
        "fund_id": fund.id if fund is not None else None,
        "transfers": rows[offset : offset + limit],
        "pagination": {"limit": limit, "offset": offset, "total": len(rows)},
        "statistics": statistics,
    }
