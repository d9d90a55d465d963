"""
Utilidades de negocio para el SIMULADOR DE PRÉSTAMOS.

- Tasa EA (efectiva anual, en %) -> tasa mensual: (1 + EA)^(1/12) - 1
- Cuota fija (fórmula PMT): P * r(1+r)^n / ((1+r)^n - 1)
- Plan de amortización con pagos extra (abonos a capital) que acortan el plazo.
- Comparación de tasas y resúmenes de tramos del plan.

Todo importe se redondea a céntimos con redondeo comercial.
Los escenarios pueden ser modelos LoanScenario o cualquier objeto con
principal, interest_rate, term_months y start_date (LoanParams).
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from backend.app.utils.common import round_half_up, safe_float


@dataclass
class LoanParams:
    principal: float
    interest_rate: float
    term_months: int
    start_date: date


# ============================
# Fechas
# ============================

def add_months(d: date, months: int) -> date:
    """
    Suma `months` meses; si el día no existe en el mes destino se usa el
    último día de ese mes (31-ene + 1 mes -> 28/29-feb).
    """
    y = d.year + (d.month - 1 + months) // 12
    m = (d.month - 1 + months) % 12 + 1
    last = calendar.monthrange(y, m)[1]
    return date(y, m, min(d.day, last))


def calculate_payoff_date(start_date: date, term_months: int) -> date:
    return add_months(start_date, term_months)


# ============================
# Cuota y resumen
# ============================

def convert_ea_to_monthly_rate(annual_rate: float) -> float:
    """EA en % (8.5 = 8,5%) -> tasa mensual en decimal."""
    return (1 + safe_float(annual_rate) / 100) ** (1 / 12) - 1


def calculate_monthly_payment(principal: float, annual_rate: float, term_months: int) -> float:
    principal = safe_float(principal)
    annual_rate = safe_float(annual_rate)
    if principal <= 0 or annual_rate <= 0 or term_months <= 0:
        raise ValueError("El capital, la tasa de interés y el plazo deben ser números positivos")

    r = convert_ea_to_monthly_rate(annual_rate)
    if r == 0:
        return round_half_up(principal / term_months)

    growth = (1 + r) ** term_months
    return round_half_up(principal * (r * growth) / (growth - 1))


def calculate_loan_summary(principal, annual_rate, term_months: int, start_date: date) -> dict:
    monthly_payment = calculate_monthly_payment(principal, annual_rate, term_months)
    total_payment = monthly_payment * term_months
    return {
        "monthly_payment": monthly_payment,
        "total_principal": round_half_up(safe_float(principal)),
        "total_interest": round_half_up(total_payment - safe_float(principal)),
        "total_payment": round_half_up(total_payment),
        "payoff_date": calculate_payoff_date(start_date, term_months),
        "term_months": term_months,
    }


def _summary_of(scenario) -> dict:
    return calculate_loan_summary(
        scenario.principal, scenario.interest_rate, scenario.term_months, scenario.start_date
    )


# ============================
# Plan de amortización
# ============================

def _extra_by_payment(extra_payments: Iterable) -> Dict[int, float]:
    """Suma los abonos extra por número de cuota."""
    out: Dict[int, float] = {}
    for ep in extra_payments or []:
        n = int(ep.payment_number)
        out[n] = out.get(n, 0.0) + safe_float(ep.amount)
    return out


def generate_amortization_schedule(scenario, extra_payments: Optional[Iterable] = None) -> List[dict]:
    """
    Plan cuota a cuota. Cada fila:
      payment_number, date, payment_amount, principal_portion,
      interest_portion, remaining_balance, is_extra_payment, extra_amount

    - El interés se calcula sobre el saldo vivo (redondeado a céntimos).
    - El abono extra se suma al capital de esa cuota.
    - El capital nunca supera el saldo; el plan termina al llegar a 0.
    """
    principal = safe_float(scenario.principal)
    term = int(scenario.term_months)
    monthly_payment = calculate_monthly_payment(principal, scenario.interest_rate, term)
    r = convert_ea_to_monthly_rate(scenario.interest_rate)
    extras = _extra_by_payment(extra_payments)

    schedule: List[dict] = []
    balance = principal

    for n in range(1, term + 1):
        interest = round_half_up(balance * r)
        principal_portion = monthly_payment - interest

        extra = extras.get(n, 0.0)
        has_extra = extra > 0
        if has_extra:
            principal_portion += extra

        if principal_portion > balance:
            # última cuota: solo lo que queda más su interés
            principal_portion = balance
            payment_amount = balance + interest
        else:
            payment_amount = monthly_payment + extra

        balance = round_half_up(balance - principal_portion)
        if balance < 0.01:
            balance = 0.0

        schedule.append(
            {
                "payment_number": n,
                "date": add_months(scenario.start_date, n - 1),
                "payment_amount": round_half_up(payment_amount),
                "principal_portion": round_half_up(principal_portion),
                "interest_portion": round_half_up(interest),
                "remaining_balance": balance,
                "is_extra_payment": has_extra,
                "extra_amount": extra if has_extra else None,
            }
        )

        if balance == 0:
            break

    return schedule


def calculate_extra_payment_impact(scenario, extra_payments: Iterable) -> dict:
    """
    Compara el préstamo original con el plan que incluye los abonos extra.
    months_saved e interest_saved nunca son negativos.
    """
    original = _summary_of(scenario)
    schedule = generate_amortization_schedule(scenario, extra_payments)

    if not schedule:
        return {
            "original_summary": original,
            "new_summary": original,
            "months_saved": 0,
            "interest_saved": 0.0,
        }

    principal = safe_float(scenario.principal)
    total_interest = sum(p["interest_portion"] for p in schedule)
    total_payment = principal + total_interest
    # mismo redondeo cuota a cuota que el plan sin abonos
    base_interest = sum(p["interest_portion"] for p in generate_amortization_schedule(scenario))

    new_summary = {
        "monthly_payment": original["monthly_payment"],
        "total_principal": original["total_principal"],
        "total_interest": round_half_up(total_interest),
        "total_payment": round_half_up(total_payment),
        "payoff_date": schedule[-1]["date"],
        "term_months": len(schedule),
    }

    return {
        "original_summary": original,
        "new_summary": new_summary,
        "months_saved": max(0, original["term_months"] - len(schedule)),
        "interest_saved": max(0.0, round_half_up(base_interest - total_interest)),
    }


# ============================
# Comparación de tasas
# ============================

def compare_interest_rates(scenario, interest_rates: Iterable[float]) -> List[dict]:
    principal = safe_float(scenario.principal)
    term = int(scenario.term_months)
    rows = []
    for rate in interest_rates:
        payment = calculate_monthly_payment(principal, rate, term)
        total_payment = payment * term
        rows.append(
            {
                "interest_rate": float(rate),
                "monthly_payment": payment,
                "total_interest": round_half_up(total_payment - principal),
                "total_payment": round_half_up(total_payment),
            }
        )
    return sorted(rows, key=lambda row: row["interest_rate"])


def generate_loan_comparisons(scenario, additional_rates: Optional[Iterable[float]] = None) -> List[dict]:
    """Incluye siempre la tasa del escenario; sin duplicados."""
    rates = [safe_float(scenario.interest_rate)] + [safe_float(r) for r in (additional_rates or [])]
    return compare_interest_rates(scenario, list(dict.fromkeys(rates)))


# ============================
# Utilidades de lectura del plan
# ============================

def calculate_principal_paid_percentage(scenario, payment_number: int) -> float:
    schedule = generate_amortization_schedule(scenario)
    if payment_number >= len(schedule):
        return 100.0
    if payment_number < 1:
        return 0.0
    principal = safe_float(scenario.principal)
    paid = principal - schedule[payment_number - 1]["remaining_balance"]
    return paid / principal * 100


def get_payment_range_summary(scenario, start_payment: int = 1, end_payment: Optional[int] = None) -> dict:
    schedule = generate_amortization_schedule(scenario)
    end = end_payment or int(scenario.term_months)
    rows = schedule[max(0, start_payment - 1):min(len(schedule), end)]

    total_principal = sum(p["principal_portion"] for p in rows)
    total_interest = sum(p["interest_portion"] for p in rows)
    return {
        "payment_count": len(rows),
        "total_principal": round_half_up(total_principal),
        "total_interest": round_half_up(total_interest),
        "total_paid": round_half_up(total_principal + total_interest),
    }
