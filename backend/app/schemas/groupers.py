from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field


# ============================
# Pydantic: AGRUPADOR
# ============================

class GrouperCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class GrouperUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class GrouperOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category_count: int = 0
    created_at: datetime | None = None


class GrouperCategoriesAdd(BaseModel):
    category_ids: List[str] = Field(..., min_length=1)


# ============================
# Pydantic: ESTUDIO
# ============================

class EstudioCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class EstudioUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None


class EstudioOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    grouper_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EstudioGroupersAdd(BaseModel):
    grouper_ids: List[int] = Field(..., min_length=1)


class EstudioGrouperUpdate(BaseModel):
    """
    percentage: 0-100; null = 100%.
    payment_methods: lista no vacía; null = todos los métodos.
    Los campos que no llegan no se tocan.
    """
    percentage: Decimal | None = Field(None, ge=0, le=100, max_digits=5, decimal_places=2)
    payment_methods: List[str] | None = None
