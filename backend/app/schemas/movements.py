from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PaymentMethod = Literal["cash", "credit", "debit"]


# ============================
# Pydantic: INGRESO
# ============================

class IncomeCreate(BaseModel):
    """
    period_id: si no llega, periodo abierto (o el más reciente).
    fund_id: si no llega, fondo por defecto.
    """
    period_id: str | None = None
    date: dt.date
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    event: str | None = Field(None, max_length=255)
    fund_id: str | None = None


class IncomeUpdate(BaseModel):
    period_id: str | None = None
    date: dt.date | None = None
    description: str | None = Field(None, min_length=1, max_length=500)
    amount: Decimal | None = Field(None, gt=0, max_digits=15, decimal_places=2)
    event: str | None = Field(None, max_length=255)
    fund_id: str | None = None


class IncomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    period_id: str | None
    date: dt.date
    description: str
    amount: float
    event: str | None
    fund_id: str | None
    fund_name: str | None = None
    created_at: dt.datetime | None = None


# ============================
# Pydantic: GASTO
# ============================

class ExpenseCreate(BaseModel):
    """
    destination_fund_id convierte el gasto en transferencia entre fondos.
    credit_card_id solo con payment_method = credit.
    """
    category_id: str
    period_id: str
    date: dt.date
    event: str | None = Field(None, max_length=255)
    payment_method: PaymentMethod
    description: str | None = Field(None, max_length=500)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    source_fund_id: str
    destination_fund_id: str | None = None
    credit_card_id: str | None = None
    pending: bool = False


class ExpenseUpdate(BaseModel):
    category_id: str | None = None
    period_id: str | None = None
    date: dt.date | None = None
    event: str | None = Field(None, max_length=255)
    payment_method: PaymentMethod | None = None
    description: str | None = Field(None, max_length=500)
    amount: Decimal | None = Field(None, gt=0, max_digits=15, decimal_places=2)
    source_fund_id: str | None = None
    destination_fund_id: str | None = None
    credit_card_id: str | None = None
    pending: bool | None = None


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category_id: str
    category_name: str | None = None
    period_id: str
    date: dt.date
    event: str | None
    payment_method: str
    description: str | None
    amount: float
    source_fund_id: str | None
    source_fund_name: str | None = None
    destination_fund_id: str | None
    destination_fund_name: str | None = None
    credit_card_id: str | None
    pending: bool
    created_at: dt.datetime | None = None


class SourceFundValidationIn(BaseModel):
    category_id: str
    source_fund_id: str
    destination_fund_id: str | None = None
    amount: Decimal | None = Field(None, max_digits=15, decimal_places=2)


# ============================
# Pydantic: PRESUPUESTO
# ============================

class BudgetCreate(BaseModel):
    """
    Upsert por (category_id, period_id, payment_method).
    expected_date: si no llega se calcula con el día por defecto de la categoría.
    """
    category_id: str
    period_id: str
    expected_amount: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)
    payment_method: PaymentMethod = "cash"
    expected_date: dt.date | None = None


class BudgetUpdate(BaseModel):
    expected_amount: Decimal | None = Field(None, ge=0, max_digits=15, decimal_places=2)
    payment_method: PaymentMethod | None = None
    expected_date: dt.date | None = None


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category_id: str
    category_name: str | None = None
    period_id: str
    expected_amount: float
    payment_method: str
    expected_date: dt.date | None


# ============================
# Pydantic: TARJETA DE CRÉDITO
# ============================

Franchise = Literal["visa", "mastercard", "american_express", "discover", "other"]


class CreditCardCreate(BaseModel):
    bank_name: str = Field(..., min_length=1, max_length=255)
    franchise: Franchise
    last_four_digits: str = Field(..., pattern=r"^\d{4}$")
    is_active: bool = True


class CreditCardUpdate(BaseModel):
    bank_name: str | None = Field(None, min_length=1, max_length=255)
    franchise: Franchise | None = None
    last_four_digits: str | None = Field(None, pattern=r"^\d{4}$")
    is_active: bool | None = None


class CreditCardStatus(BaseModel):
    is_active: bool


class CreditCardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    bank_name: str
    franchise: str
    last_four_digits: str
    is_active: bool
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


# ============================
# Pydantic: SETTINGS
# ============================

class SettingsUpdate(BaseModel):
    default_fund_id: str | None = None


class SettingsOut(BaseModel):
    default_fund_id: str | None
    default_fund_name: str | None = None
