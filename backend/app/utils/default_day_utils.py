"""
Fecha por defecto de presupuestos a partir del "día preferido" (1-31) de
una categoría.

Un periodo es un mes (month 0-11, year). Si el día no existe en ese mes
(31 en febrero) se usa el último día del mes.
"""

from __future__ import annotations

import calendar
from datetime import date
from typing import Optional


def get_days_in_month(year: int, month: int) -> int:
    """month en 1-12."""
    if month < 1 or month > 12:
        raise ValueError(f"Mes inválido: {month}. Debe estar entre 1 y 12.")
    return calendar.monthrange(year, month)[1]


def period_bounds(year: int, month0: int) -> tuple[date, date]:
    """Primer y último día del periodo (month0 en 0-11)."""
    month = month0 + 1
    return date(year, month, 1), date(year, month, get_days_in_month(year, month))


def calculate_default_date(day: Optional[int], period_end: date) -> Optional[date]:
    """
    Día `day` del mes de `period_end`, limitado al último día del mes.
    None si no hay día preferido.
    """
    if day is None:
        return None
    if isinstance(day, bool) or not isinstance(day, int) or day < 1 or day > 31:
        raise ValueError(f"Día inválido: {day}. Debe ser un entero entre 1 y 31.")
    last = get_days_in_month(period_end.year, period_end.month)
    return date(period_end.year, period_end.month, min(day, last))


def default_date_for_period(day: Optional[int], period) -> Optional[date]:
    """Atajo para modelos Period."""
    _, end = period_bounds(period.year, period.month)
    return calculate_default_date(day, end)
