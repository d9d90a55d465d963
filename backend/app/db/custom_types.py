# backend/app/db/custom_types.py

"""
Tipos personalizados relacionados con la base de datos y los schemas.

- Money: alias tipado de Decimal para importes (NUMERIC(15, 2) en BD).
- MONEY_COLUMN: tipo SQLAlchemy común a todas las columnas de dinero.
- to_money(v): normaliza cualquier número a Decimal con 2 decimales.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, TypeAlias

from sqlalchemy import Numeric

Money: TypeAlias = Decimal

MONEY_COLUMN = Numeric(15, 2)

CENT = Decimal("0.01")


def to_money(value: Any) -> Money:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
