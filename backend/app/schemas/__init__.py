# backend/app/schemas/__init__.py
"""
Schemas Pydantic de Control de Gastos.

Un módulo por área:
- periods, funds, categories
- movements (ingresos, gastos, presupuestos, tarjetas, settings)
- groupers (agrupadores y estudios)
- simulators (préstamos, inversión, tasas)
- simulations (simulaciones y plantillas de subgrupos)
"""

from .funds import FundCreate, FundOut, FundUpdate
from .movements import ExpenseCreate, ExpenseOut, ExpenseUpdate, IncomeCreate, IncomeOut, IncomeUpdate
from .periods import PeriodCreate, PeriodOut, PeriodUpdate

__all__ = [
    "PeriodCreate", "PeriodUpdate", "PeriodOut",
    "FundCreate", "FundUpdate", "FundOut",
    "IncomeCreate", "IncomeUpdate", "IncomeOut",
    "ExpenseCreate", "ExpenseUpdate", "ExpenseOut",
]
