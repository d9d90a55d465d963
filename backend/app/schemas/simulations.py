from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field


# ============================
# Pydantic: SIMULACIÓN
# ============================

class SimulationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class SimulationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None


class SimulationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SimulationCopyIn(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)


class SimulationIncomeCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)


class SimulationIncomeUpdate(BaseModel):
    description: str | None = Field(None, min_length=1, max_length=500)
    amount: Decimal | None = Field(None, gt=0, max_digits=15, decimal_places=2)


class SimulationIncomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    simulation_id: str
    description: str
    amount: float


class SimulationBudgetIn(BaseModel):
    category_id: str
    efectivo_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    credito_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    ahorro_efectivo_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    ahorro_credito_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    expected_savings: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)


class SimulationBudgetsUpdate(BaseModel):
    budgets: List[SimulationBudgetIn]


class SimulationBudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    simulation_id: str
    category_id: str
    category_name: str | None = None
    tipo_gasto: str | None = None
    efectivo_amount: float
    credito_amount: float
    ahorro_efectivo_amount: float
    ahorro_credito_amount: float
    expected_savings: float


class CopyFromPeriodIn(BaseModel):
    period_id: str
    include_incomes: bool = True


# ============================
# Pydantic: SUBGRUPOS / PLANTILLAS
# ============================

class SubgroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    display_order: int | None = Field(None, ge=0)
    category_ids: List[str] = []


class SubgroupUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    display_order: int | None = Field(None, ge=0)
    category_ids: List[str] | None = None


class SubgroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    simulation_id: str
    name: str
    display_order: int
    category_ids: List[str]
    template_subgroup_id: str | None = None


class TemplateSubgroupIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    display_order: int | None = Field(None, ge=0)
    category_ids: List[str] = []


class TemplateSubgroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    display_order: int
    category_ids: List[str]


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    subgroups: List[TemplateSubgroupIn] = []


class TemplateUpdate(BaseModel):
    """subgroups, si llega, reemplaza la lista completa."""
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    subgroups: List[TemplateSubgroupIn] | None = None


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    subgroups: List[TemplateSubgroupOut] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SaveAsTemplateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class ApplyTemplateIn(BaseModel):
    template_id: str
