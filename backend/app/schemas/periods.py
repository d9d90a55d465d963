from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PeriodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    month: int = Field(..., ge=0, le=11)
    year: int = Field(..., ge=2000, le=2100)
    is_open: bool = False


class PeriodUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    month: int | None = Field(None, ge=0, le=11)
    year: int | None = Field(None, ge=2000, le=2100)


class PeriodOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    month: int
    year: int
    is_open: bool
    created_at: datetime | None = None
