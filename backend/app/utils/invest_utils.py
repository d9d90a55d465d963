"""
Utilidades de negocio para el SIMULADOR DE INVERSIONES (interés compuesto).

Convenciones:
- annual_rate es EA en % (10 = 10% efectivo anual).
- Capitalización mensual (12 periodos/año) o diaria (365 periodos/año).
- En capitalización diaria el mes se modela como 30 días y el aporte
  mensual entra el primer día de cada mes.
- Los aportes mensuales se tratan como anualidad vencida (al final de
  cada periodo) en la fórmula de valor futuro.

Los escenarios pueden ser modelos InvestmentScenario o InvestParams.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Iterable, List, Optional

from backend.app.core.constants import (
    BASE_RATE_LABEL,
    COMPOUNDING_DAILY,
    COMPOUNDING_MONTHLY,
    PERIODS_PER_YEAR,
)
from backend.app.utils.common import round_half_up, safe_float
from backend.app.utils.loan_utils import add_months

DAYS_PER_MONTH = 30
MAX_TARGET_MONTHS = 1200


@dataclass
class InvestParams:
    initial_amount: float
    monthly_contribution: float
    term_months: int
    annual_rate: float
    compounding_frequency: str = COMPOUNDING_MONTHLY


def params_from(scenario) -> InvestParams:
    return InvestParams(
        initial_amount=safe_float(scenario.initial_amount),
        monthly_contribution=safe_float(scenario.monthly_contribution),
        term_months=int(scenario.term_months),
        annual_rate=safe_float(scenario.annual_rate),
        compounding_frequency=scenario.compounding_frequency or COMPOUNDING_MONTHLY,
    )


# ============================
# Tasas
# ============================

def convert_ea_to_periodic_rate(annual_rate: float, frequency: str) -> float:
    periods = PERIODS_PER_YEAR[frequency]
    return (1 + safe_float(annual_rate) / 100) ** (1 / periods) - 1


def convert_ea_to_monthly_rate(annual_rate: float) -> float:
    return convert_ea_to_periodic_rate(annual_rate, COMPOUNDING_MONTHLY)


def convert_ea_to_daily_rate(annual_rate: float) -> float:
    return convert_ea_to_periodic_rate(annual_rate, COMPOUNDING_DAILY)


# ============================
# Valor futuro
# ============================

def calculate_future_value(principal: float, periodic_rate: float, periods: int, contribution: float = 0.0) -> float:
    """
    FV = P(1+r)^n + PMT * ((1+r)^n - 1) / r
    """
    if periodic_rate == 0:
        return principal + contribution * periods
    growth = (1 + periodic_rate) ** periods
    return principal * growth + contribution * ((growth - 1) / periodic_rate)


def _final_balance(p: InvestParams) -> float:
    if p.compounding_frequency == COMPOUNDING_MONTHLY:
        return calculate_future_value(
            p.initial_amount, convert_ea_to_monthly_rate(p.annual_rate), p.term_months, p.monthly_contribution
        )

    daily = convert_ea_to_daily_rate(p.annual_rate)
    total_days = p.term_months * DAYS_PER_MONTH
    balance = p.initial_amount * (1 + daily) ** total_days
    for month in range(1, p.term_months + 1):
        days_remaining = (p.term_months - month) * DAYS_PER_MONTH + DAYS_PER_MONTH
        balance += p.monthly_contribution * (1 + daily) ** days_remaining
    return balance


def calculate_investment_summary(scenario) -> dict:
    p = scenario if isinstance(scenario, InvestParams) else params_from(scenario)

    final_balance = _final_balance(p)
    total_monthly = p.monthly_contribution * p.term_months
    total_contributions = p.initial_amount + total_monthly

    return {
        "final_balance": round_half_up(final_balance),
        "total_contributions": round_half_up(total_contributions),
        "total_interest_earned": round_half_up(final_balance - total_contributions),
        "initial_amount": round_half_up(p.initial_amount),
        "total_monthly_contributions": round_half_up(total_monthly),
        "annual_rate": p.annual_rate,
        "effective_monthly_rate": round_half_up(convert_ea_to_monthly_rate(p.annual_rate) * 100, 6),
        "effective_daily_rate": round_half_up(convert_ea_to_daily_rate(p.annual_rate) * 100, 6),
        "term_months": p.term_months,
        "compounding_frequency": p.compounding_frequency,
    }


# ============================
# Calendarios de proyección
# ============================

def _row(n: int, d: date, opening, contribution, interest, closing, cum_contrib, cum_interest) -> dict:
    return {
        "period_number": n,
        "date": d,
        "opening_balance": round_half_up(opening),
        "contribution": round_half_up(contribution),
        "interest_earned": round_half_up(interest),
        "closing_balance": round_half_up(closing),
        "cumulative_contributions": round_half_up(cum_contrib),
        "cumulative_interest": round_half_up(cum_interest),
    }


def generate_projection_schedule(scenario, *, start: Optional[date] = None) -> List[dict]:
    """
    Detalle completo: una fila por mes (capitalización mensual) o por día
    (capitalización diaria). El interés se calcula sobre el saldo de apertura.
    """
    p = scenario if isinstance(scenario, InvestParams) else params_from(scenario)
    start = start or date.today()
    schedule: List[dict] = []

    balance = p.initial_amount
    cum_contrib = p.initial_amount
    cum_interest = 0.0

    if p.compounding_frequency == COMPOUNDING_MONTHLY:
        rate = convert_ea_to_monthly_rate(p.annual_rate)
        for month in range(1, p.term_months + 1):
            opening = balance
            interest = opening * rate
            balance = opening + interest + p.monthly_contribution
            cum_contrib += p.monthly_contribution
            cum_interest += interest
            schedule.append(
                _row(month, add_months(start, month), opening, p.monthly_contribution, interest, balance, cum_contrib, cum_interest)
            )
        return schedule

    rate = convert_ea_to_daily_rate(p.annual_rate)
    last_contribution_month = 0
    for day in range(1, p.term_months * DAYS_PER_MONTH + 1):
        opening = balance
        interest = opening * rate
        current_month = (day + DAYS_PER_MONTH - 1) // DAYS_PER_MONTH
        contribution = p.monthly_contribution if current_month > last_contribution_month else 0.0
        if current_month > last_contribution_month:
            last_contribution_month = current_month
        balance = opening + interest + contribution
        cum_contrib += contribution
        cum_interest += interest
        schedule.append(
            _row(day, start + timedelta(days=day), opening, contribution, interest, balance, cum_contrib, cum_interest)
        )
    return schedule


def generate_monthly_summary_schedule(scenario, *, start: Optional[date] = None) -> List[dict]:
    """
    Una fila por mes en ambos modos. En capitalización diaria agrega los
    30 días de cada mes.
    """
    p = scenario if isinstance(scenario, InvestParams) else params_from(scenario)
    if p.compounding_frequency == COMPOUNDING_MONTHLY:
        return generate_projection_schedule(p, start=start)

    start = start or date.today()
    rate = convert_ea_to_daily_rate(p.annual_rate)
    schedule: List[dict] = []
    balance = p.initial_amount
    cum_contrib = p.initial_amount
    cum_interest = 0.0

    for month in range(1, p.term_months + 1):
        opening = balance
        monthly_interest = 0.0
        for day in range(1, DAYS_PER_MONTH + 1):
            monthly_interest += balance * rate
            balance = balance * (1 + rate)
            if day == 1:
                balance += p.monthly_contribution
        cum_contrib += p.monthly_contribution
        cum_interest += monthly_interest
        schedule.append(
            _row(month, add_months(start, month), opening, p.monthly_contribution, monthly_interest, balance, cum_contrib, cum_interest)
        )
    return schedule


# ============================
# Comparación de tasas
# ============================

def compare_rates(scenario, additional_rates: Iterable) -> List[dict]:
    """
    `additional_rates`: objetos/dicts con rate y label opcional.
    La fila base se etiqueta "Tasa Base"; las tasas iguales a la base se omiten.
    """
    p = scenario if isinstance(scenario, InvestParams) else params_from(scenario)
    base = calculate_investment_summary(p)

    results = [
        {
            "rate": p.annual_rate,
            "label": BASE_RATE_LABEL,
            "final_balance": base["final_balance"],
            "total_interest_earned": base["total_interest_earned"],
            "difference_from_base": 0.0,
            "is_base_rate": True,
        }
    ]

    for item in additional_rates:
        rate = safe_float(item["rate"] if isinstance(item, dict) else item.rate)
        label = item.get("label") if isinstance(item, dict) else getattr(item, "label", None)
        if rate == p.annual_rate:
            continue
        summary = calculate_investment_summary(replace(p, annual_rate=rate))
        results.append(
            {
                "rate": rate,
                "label": label,
                "final_balance": summary["final_balance"],
                "total_interest_earned": summary["total_interest_earned"],
                "difference_from_base": round_half_up(summary["final_balance"] - base["final_balance"]),
                "is_base_rate": False,
            }
        )

    return sorted(results, key=lambda r: r["rate"])


def compare_rate_range(scenario, min_rate: float, max_rate: float, step: float = 0.5) -> List[dict]:
    if step <= 0:
        raise ValueError("El paso debe ser positivo")
    p = scenario if isinstance(scenario, InvestParams) else params_from(scenario)
    rates = []
    i = 0
    while True:
        rate = round_half_up(min_rate + i * step)
        if rate > max_rate:
            break
        if rate != p.annual_rate:
            rates.append({"rate": rate})
        i += 1
    return compare_rates(p, rates)


# ============================
# Metas
# ============================

def calculate_time_to_target(target_amount: float, scenario) -> int:
    """
    Meses necesarios para alcanzar `target_amount`.
    0 si ya se alcanza con el monto inicial; -1 si no se alcanza en 100 años.
    """
    p = scenario if isinstance(scenario, InvestParams) else params_from(scenario)
    if target_amount <= p.initial_amount:
        return 0
    if p.monthly_contribution == 0 and p.annual_rate == 0:
        return -1

    def reaches(months: int) -> bool:
        return calculate_investment_summary(replace(p, term_months=months))["final_balance"] >= target_amount

    low, high = 1, MAX_TARGET_MONTHS
    while low < high:
        mid = (low + high) // 2
        if reaches(mid):
            high = mid
        else:
            low = mid + 1
    return low if reaches(low) else -1


def calculate_required_contribution(
    target_amount: float,
    initial_amount: float,
    term_months: int,
    annual_rate: float,
    compounding_frequency: str = COMPOUNDING_MONTHLY,
) -> float:
    """
    Aporte mensual necesario para llegar a `target_amount` en `term_months`.
    Mensual: forma cerrada. Diaria: búsqueda binaria con tolerancia 0.01.
    """
    if term_months <= 0:
        raise ValueError("El plazo debe ser positivo")

    if compounding_frequency == COMPOUNDING_MONTHLY:
        if annual_rate == 0:
            return max(0.0, round_half_up((target_amount - initial_amount) / term_months))
        r = convert_ea_to_monthly_rate(annual_rate)
        growth = (1 + r) ** term_months
        required = (target_amount - initial_amount * growth) * r / (growth - 1)
        return max(0.0, round_half_up(required))

    base = InvestParams(initial_amount, 0.0, term_months, annual_rate, compounding_frequency)
    low, high = 0.0, float(target_amount)
    while high - low > 0.01:
        mid = (low + high) / 2
        if calculate_investment_summary(replace(base, monthly_contribution=mid))["final_balance"] >= target_amount:
            high = mid
        else:
            low = mid
    return round_half_up(high)
