from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from backend.app.schemas.funds import FundBrief

TipoGasto = Literal["F", "V", "SF", "E"]


class CategoryCreate(BaseModel):
    """
    fund_ids: fondos asociados (tabla de relaciones).
    fund_id: campo legacy; si no llegan fund_ids se usa como único fondo.
    """
    name: str = Field(..., min_length=1, max_length=255)
    fund_id: str | None = None
    fund_ids: List[str] | None = None
    tipo_gasto: TipoGasto = "F"
    default_day: int | None = Field(None, ge=1, le=31)
    recurring_date: int | None = Field(None, ge=1, le=31)


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    fund_id: str | None = None
    fund_ids: List[str] | None = None
    tipo_gasto: TipoGasto | None = None
    default_day: int | None = Field(None, ge=1, le=31)
    recurring_date: int | None = Field(None, ge=1, le=31)


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    fund_id: str | None
    fund_name: str | None = None
    tipo_gasto: str
    default_day: int | None
    recurring_date: int | None
    associated_funds: List[FundBrief] = []


class CategoryFundsUpdate(BaseModel):
    fund_ids: List[str]


class AvailableFundsOut(BaseModel):
    category_id: str
    category_name: str
    funds: List[FundBrief]
    has_restrictions: bool
    source: str
