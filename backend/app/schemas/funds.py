from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


# ============================
# Pydantic: FONDO
# ============================

class FundCreate(BaseModel):
    """
    Alta de fondo. current_balance arranca igual a initial_balance.
    start_date: solo cuentan para el saldo los movimientos desde esa fecha.
    """
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=500)
    initial_balance: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    start_date: date


class FundUpdate(BaseModel):
    """
    start_date no es editable. Cambiar initial_balance desplaza
    current_balance en la misma diferencia.
    """
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=500)
    initial_balance: Decimal | None = Field(None, ge=0, max_digits=15, decimal_places=2)


class FundOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    initial_balance: float
    current_balance: float
    start_date: date
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FundBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    current_balance: float
