from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from backend.app.core.constants import MAX_INVEST_TERM_MONTHS, MAX_LOAN_TERM_MONTHS

Currency = Literal["USD", "COP", "EUR", "MXN", "ARS", "GBP"]
RateType = Literal["EA", "EM", "ED", "NM", "NA"]


# ============================
# Pydantic: PRÉSTAMO
# ============================

class LoanScenarioCreate(BaseModel):
    """
    interest_rate: tasa efectiva anual en % (12.5 = 12,5% EA).
    """
    name: str = Field(..., min_length=1, max_length=255)
    principal: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    interest_rate: Decimal = Field(..., gt=0, le=100, max_digits=7, decimal_places=4)
    term_months: int = Field(..., gt=0, le=MAX_LOAN_TERM_MONTHS)
    start_date: date
    currency: Currency = "USD"


class LoanScenarioUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    principal: Decimal | None = Field(None, gt=0, max_digits=15, decimal_places=2)
    interest_rate: Decimal | None = Field(None, gt=0, le=100, max_digits=7, decimal_places=4)
    term_months: int | None = Field(None, gt=0, le=MAX_LOAN_TERM_MONTHS)
    start_date: date | None = None
    currency: Currency | None = None


class LoanExtraPaymentCreate(BaseModel):
    payment_number: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    description: str | None = Field(None, max_length=500)


class LoanExtraPaymentUpdate(BaseModel):
    payment_number: int | None = Field(None, gt=0)
    amount: Decimal | None = Field(None, gt=0, max_digits=15, decimal_places=2)
    description: str | None = Field(None, max_length=500)


class LoanExtraPaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    loan_scenario_id: str
    payment_number: int
    amount: float
    description: str | None


class LoanScenarioOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    principal: float
    interest_rate: float
    term_months: int
    start_date: date
    currency: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    monthly_payment: float | None = None
    total_interest: float | None = None
    payoff_date: date | None = None


# ============================
# Pydantic: INVERSIÓN
# ============================

class InvestScenarioCreate(BaseModel):
    """
    annual_rate: EA en % (10 = 10% EA).
    """
    name: str = Field(..., min_length=1, max_length=255)
    initial_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    monthly_contribution: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    term_months: int = Field(..., gt=0, le=MAX_INVEST_TERM_MONTHS)
    annual_rate: Decimal = Field(..., ge=0, le=100, max_digits=7, decimal_places=4)
    compounding_frequency: Literal["daily", "monthly"] = "monthly"
    currency: Currency = "COP"
    notes: str | None = None


class InvestScenarioUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    initial_amount: Decimal | None = Field(None, ge=0, max_digits=15, decimal_places=2)
    monthly_contribution: Decimal | None = Field(None, ge=0, max_digits=15, decimal_places=2)
    term_months: int | None = Field(None, gt=0, le=MAX_INVEST_TERM_MONTHS)
    annual_rate: Decimal | None = Field(None, ge=0, le=100, max_digits=7, decimal_places=4)
    compounding_frequency: Literal["daily", "monthly"] | None = None
    currency: Currency | None = None
    notes: str | None = None


class InvestScenarioOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    initial_amount: float
    monthly_contribution: float
    term_months: int
    annual_rate: float
    compounding_frequency: str
    currency: str
    notes: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RateComparisonCreate(BaseModel):
    rate: Decimal = Field(..., ge=0, le=100, max_digits=7, decimal_places=4)
    label: str | None = Field(None, max_length=255)


class RateComparisonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    investment_scenario_id: str
    rate: float
    label: str | None


# ============================
# Pydantic: TASAS DE INTERÉS
# ============================

class RateScenarioCreate(BaseModel):
    """
    input_rate en decimal: 0.12 = 12%.
    """
    name: str = Field(..., min_length=1, max_length=255)
    input_rate: Decimal = Field(..., ge=0, le=10, max_digits=14, decimal_places=8)
    input_rate_type: RateType
    notes: str | None = None


class RateScenarioUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    input_rate: Decimal | None = Field(None, ge=0, le=10, max_digits=14, decimal_places=8)
    input_rate_type: RateType | None = None
    notes: str | None = None


class RateScenarioOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    input_rate: float
    input_rate_type: str
    notes: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    conversions: dict | None = None


class RateConvertIn(BaseModel):
    rate: float
    rate_type: RateType
