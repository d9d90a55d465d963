# backend/app/utils/common.py

"""
Funciones auxiliares comunes entre INGRESOS, GASTOS, PRESUPUESTOS y los
simuladores.

Incluye:

- safe_float(v, default=0.0):
    Conversión robusta a float (None / "" -> default).

- round_half_up(v, decimals):
    Redondeo "comercial" (0.5 siempre hacia arriba), el que esperan los
    usuarios al ver importes y tasas. round() de Python redondea al par.

- resolve_active_period(db):
    Periodo por defecto para nuevos movimientos: el abierto; si no hay,
    el más reciente; si no hay ninguno, HTTP 400.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backend.app.db import models


# ============================================================
# Conversión numérica
# ============================================================

def safe_float(value: Any, default: float = 0.0) -> float:
    """
    Convierte un valor a float de forma segura.

    - None, "" o valores no numéricos -> default.
    - int, float, Decimal, str numérico -> float(valor).
    """
    try:
        if value is None or value == "":
            return float(default)
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def round_half_up(value: float, decimals: int = 2) -> float:
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


# ============================================================
# Periodo activo
# ============================================================

NO_PERIODS_MESSAGE = "No hay periodos disponibles. Crea un periodo primero."


def find_active_period(db: Session) -> Optional[models.Period]:
    """
    Periodo abierto; si no hay, el más reciente por (año, mes).
    """
    period = (
        db.query(models.Period)
        .filter(models.Period.is_open.is_(True))
        .order_by(models.Period.year.desc(), models.Period.month.desc())
        .first()
    )
    if period:
        return period
    return (
        db.query(models.Period)
        .order_by(models.Period.year.desc(), models.Period.month.desc())
        .first()
    )


def resolve_active_period(db: Session) -> models.Period:
    period = find_active_period(db)
    if not period:
        raise HTTPException(status_code=400, detail=NO_PERIODS_MESSAGE)
    return period
